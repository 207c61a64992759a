# Standard Library
import asyncio
import io
import json
import zipfile

# PIP3 modules
import PIL.Image
import pypdf
import pytest

# local repo modules
import card_sheet_composer as csc
import card_sheet_composer.config
import card_sheet_composer.errors
import card_sheet_composer.output
import card_sheet_composer.render
import card_sheet_composer.resources
import card_sheet_composer.tiles


Item = csc.tiles.Item
ModeASettings = csc.config.ModeASettings
ModeBSettings = csc.config.ModeBSettings
SheetGeometry = csc.config.SheetGeometry


#============================================
def make_items(count: int, locator: str | None = None) -> list[Item]:
	"""
	Build items pointing at the fake fetcher's icons.
	"""
	return [
		Item(f"{index:04X}", f"Item {index}", locator or f"icon-{index}")
		for index in range(1, count + 1)
	]


#============================================
def decode_png(data: bytes) -> PIL.Image.Image:
	return PIL.Image.open(io.BytesIO(data))


#============================================
def test_mode_a_sheets_paginate(fake_fetcher) -> None:
	"""
	Seven mode A cards on a 3x2 grid give two sheets of six and one.
	"""
	outputs: dict[str, bytes] = {}

	async def run():
		cache = csc.resources.ResourceCache(fetcher=fake_fetcher)
		return await csc.render.export_sheets(
			make_items(7),
			"A",
			ModeASettings(),
			ModeBSettings(),
			SheetGeometry(columns=3, rows=2, gap=16),
			cache,
			outputs.__setitem__,
		)

	result = asyncio.run(run())
	assert result.filenames == ["sheet_01_of_02.png", "sheet_02_of_02.png"]
	assert result.pages == 2
	assert result.tile_count == 7
	first = decode_png(outputs["sheet_01_of_02.png"])
	assert first.size == (3 * 320 + 2 * 16, 2 * 260 + 16)
	second = decode_png(outputs["sheet_02_of_02.png"])
	assert second.size == (320 + 2 * 16, 260)
	assert fake_fetcher.total_calls == 7


#============================================
def test_mode_b_sheets_keep_pairs_in_order(fake_fetcher) -> None:
	outputs: dict[str, bytes] = {}

	async def run():
		cache = csc.resources.ResourceCache(fetcher=fake_fetcher)
		return await csc.render.export_sheets(
			make_items(3),
			"B",
			ModeASettings(),
			ModeBSettings(),
			SheetGeometry(columns=2, rows=2, gap=0),
			cache,
			outputs.__setitem__,
		)

	result = asyncio.run(run())
	assert result.tile_count == 6
	assert result.filenames == [
		"sheet_01_of_02.png",
		"sheet_02_of_02.png",
	]
	# icon cards in column 0, label cards in column 1
	first = result.images[0]
	assert first.size == (480, 240 + 240)


#============================================
def test_split_prefixes() -> None:
	assert csc.render.sheet_prefix("B", "icon") == "sheet_icons"
	assert csc.render.sheet_prefix("B", "text") == "sheet_labels"
	assert csc.render.sheet_prefix("B", "all") == "sheet"
	assert csc.render.sheet_prefix("A", "icon") == "sheet"
	assert csc.render.sheet_filename("sheet_icons", 3, 12) == "sheet_icons_03_of_12.png"


#============================================
def test_empty_selection_gives_placeholder(fake_fetcher) -> None:
	"""
	No items still produce one placeholder sheet and no fetches.
	"""
	outputs: dict[str, bytes] = {}

	async def run():
		cache = csc.resources.ResourceCache(fetcher=fake_fetcher)
		return await csc.render.export_sheets(
			[],
			"B",
			ModeASettings(),
			ModeBSettings(),
			SheetGeometry(),
			cache,
			outputs.__setitem__,
		)

	result = asyncio.run(run())
	assert result.filenames == ["sheet_01_of_01.png"]
	assert decode_png(outputs["sheet_01_of_01.png"]).size == csc.config.EMPTY_SHEET_SIZE
	assert fake_fetcher.total_calls == 0


#============================================
def test_export_cards_shares_icon_fetch(fake_fetcher) -> None:
	"""
	Cards for items sharing one icon fetch it once.
	"""
	outputs: dict[str, bytes] = {}

	async def run():
		cache = csc.resources.ResourceCache(fetcher=fake_fetcher)
		return await csc.render.export_cards(
			make_items(4, locator="icon-1"),
			"B",
			ModeASettings(),
			ModeBSettings(),
			cache,
			outputs.__setitem__,
		)

	result = asyncio.run(run())
	assert len(result.filenames) == 8
	assert result.filenames[0] == "001_Item_1_0001_icon.png"
	assert result.filenames[1] == "001_Item_1_0001_text.png"
	assert set(outputs) == set(result.filenames)
	assert decode_png(outputs["001_Item_1_0001_text.png"]).size == (240, 140)
	assert fake_fetcher.calls == {"icon-1": 1}


#============================================
def test_export_cards_fails_on_missing_icon(fake_fetcher) -> None:
	async def run():
		cache = csc.resources.ResourceCache(fetcher=fake_fetcher)
		await csc.render.export_cards(
			[Item("1", "Lost", "nowhere")],
			"A",
			ModeASettings(),
			ModeBSettings(),
			cache,
			lambda name, data: None,
		)

	with pytest.raises(csc.errors.ResourceFetchError):
		asyncio.run(run())


#============================================
def test_stale_token_cancels_export(fake_fetcher) -> None:
	"""
	A superseded run emits nothing.
	"""
	outputs: dict[str, bytes] = {}
	generation = csc.render.RenderGeneration()
	old_token = generation.begin()
	generation.begin()
	assert old_token.stale

	async def run():
		cache = csc.resources.ResourceCache(fetcher=fake_fetcher)
		await csc.render.export_cards(
			make_items(2),
			"A",
			ModeASettings(),
			ModeBSettings(),
			cache,
			outputs.__setitem__,
			token=old_token,
		)

	with pytest.raises(csc.errors.RenderCancelled):
		asyncio.run(run())
	assert outputs == {}


#============================================
def test_preview_sheet_reports_pages(fake_fetcher) -> None:
	async def run():
		cache = csc.resources.ResourceCache(fetcher=fake_fetcher)
		return await csc.render.preview_sheet(
			make_items(7),
			"A",
			ModeASettings(),
			ModeBSettings(),
			SheetGeometry(columns=3, rows=2, gap=16),
			cache,
			page_index=5,
		)

	preview = asyncio.run(run())
	assert preview.page_index == 1
	assert preview.total_pages == 2
	assert preview.error is None


#============================================
def test_preview_sheet_fallback_and_stale(fake_fetcher) -> None:
	"""
	Failed previews return the fallback surface; stale ones return None.
	"""
	generation = csc.render.RenderGeneration()

	async def run():
		cache = csc.resources.ResourceCache(fetcher=fake_fetcher)
		failed = await csc.render.preview_sheet(
			[Item("1", "Lost", "nowhere")],
			"A",
			ModeASettings(),
			ModeBSettings(),
			SheetGeometry(),
			cache,
			token=generation.begin(),
		)
		stale_token = generation.begin()
		generation.begin()
		stale = await csc.render.preview_sheet(
			make_items(2),
			"A",
			ModeASettings(),
			ModeBSettings(),
			SheetGeometry(),
			cache,
			token=stale_token,
		)
		return failed, stale

	failed, stale = asyncio.run(run())
	assert failed.image.size == csc.config.SHEET_PREVIEW_ERROR_SIZE
	assert failed.error
	assert failed.total_pages == 1
	assert stale is None


#============================================
def test_preview_card_variants(fake_fetcher) -> None:
	async def run():
		cache = csc.resources.ResourceCache(fetcher=fake_fetcher)
		empty = await csc.render.preview_card(None, "A", ModeASettings(), ModeBSettings(), cache)
		card = await csc.render.preview_card(make_items(1)[0], "B", ModeASettings(), ModeBSettings(), cache)
		failed = await csc.render.preview_card(Item("1", "Lost", "nowhere"), "A", ModeASettings(), ModeBSettings(), cache)
		return empty, card, failed

	empty, card, failed = asyncio.run(run())
	assert empty.size == csc.config.EMPTY_CARD_SIZE
	assert card.size == (240, 240)
	assert failed.size == csc.config.CARD_PREVIEW_ERROR_SIZE


#============================================
def test_sheets_pdf_page_count(tmp_path) -> None:
	"""
	The PDF bundle holds one page per sheet image.
	"""
	images = [
		PIL.Image.new("RGBA", (600, 300), (255, 255, 255, 255)),
		PIL.Image.new("RGBA", (300, 300), (255, 255, 255, 255)),
	]
	pdf_path = tmp_path / "sheets.pdf"
	assert csc.output.write_sheets_pdf(images, pdf_path) == 2
	reader = pypdf.PdfReader(str(pdf_path))
	assert len(reader.pages) == 2
	first = reader.pages[0].mediabox
	assert float(first.width) == pytest.approx(600 * 72.0 / 300.0)


#============================================
def test_zip_and_directory_writers(tmp_path) -> None:
	zip_path = tmp_path / "out" / "cards.zip"
	with csc.output.ZipArchiveWriter(zip_path) as writer:
		writer("a.png", b"one")
		writer("b.png", b"two")
	with zipfile.ZipFile(zip_path) as archive:
		assert archive.namelist() == ["a.png", "b.png"]
		assert archive.read("b.png") == b"two"

	directory = csc.output.DirectoryWriter(tmp_path / "files")
	directory("c.png", b"three")
	assert (tmp_path / "files" / "c.png").read_bytes() == b"three"


#============================================
def test_write_manifest(tmp_path) -> None:
	result = csc.render.ExportResult(filenames=["sheet_01_of_01.png"], pages=1, tile_count=2)
	manifest_path = tmp_path / "manifest.json"
	csc.render.write_manifest(
		manifest_path,
		None,
		make_items(2),
		"A",
		ModeASettings(),
		ModeBSettings(),
		SheetGeometry(columns=80),
		None,
		{"all": result},
	)
	data = json.loads(manifest_path.read_text(encoding="utf-8"))
	assert data["item_count"] == 2
	assert data["sheet"]["columns"] == 50
	assert data["sheets"]["all"]["files"] == ["sheet_01_of_01.png"]
	assert data["cards"] == []


#============================================
def superseding_fetcher(fetcher, generation):
	"""
	Wrap a fetcher so each fetch starts a newer render run.
	"""
	async def fetch(locator: str) -> bytes:
		generation.begin()
		return await fetcher(locator)
	return fetch


#============================================
def test_run_superseded_during_fetch_is_discarded(fake_fetcher) -> None:
	"""
	A run overtaken while its icons load emits nothing and previews give None.
	"""
	generation = csc.render.RenderGeneration()
	outputs: dict[str, bytes] = {}

	async def run():
		fetch = superseding_fetcher(fake_fetcher, generation)
		sheet_preview = await csc.render.preview_sheet(
			make_items(3),
			"A",
			ModeASettings(),
			ModeBSettings(),
			SheetGeometry(),
			csc.resources.ResourceCache(fetcher=fetch),
			token=generation.begin(),
		)
		card_preview = await csc.render.preview_card(
			make_items(1)[0],
			"B",
			ModeASettings(),
			ModeBSettings(),
			csc.resources.ResourceCache(fetcher=fetch),
			token=generation.begin(),
		)
		with pytest.raises(csc.errors.RenderCancelled):
			await csc.render.export_cards(
				make_items(2),
				"B",
				ModeASettings(),
				ModeBSettings(),
				csc.resources.ResourceCache(fetcher=fetch),
				outputs.__setitem__,
				token=generation.begin(),
			)
		with pytest.raises(csc.errors.RenderCancelled):
			await csc.render.export_sheets(
				make_items(2),
				"A",
				ModeASettings(),
				ModeBSettings(),
				SheetGeometry(),
				csc.resources.ResourceCache(fetcher=fetch),
				outputs.__setitem__,
				token=generation.begin(),
			)
		return sheet_preview, card_preview

	sheet_preview, card_preview = asyncio.run(run())
	assert sheet_preview is None
	assert card_preview is None
	assert outputs == {}
	assert fake_fetcher.total_calls > 0


#============================================
def test_current_run_still_emits(fake_fetcher) -> None:
	"""
	A token that stays current through the fetches renders normally.
	"""
	generation = csc.render.RenderGeneration()
	outputs: dict[str, bytes] = {}

	async def run():
		return await csc.render.export_cards(
			make_items(2),
			"A",
			ModeASettings(),
			ModeBSettings(),
			csc.resources.ResourceCache(fetcher=fake_fetcher),
			outputs.__setitem__,
			token=generation.begin(),
		)

	result = asyncio.run(run())
	assert len(outputs) == 2
	assert result.filenames == sorted(outputs)
