"""
Rendering, pagination and export of card tiles and sheets.
"""

# Standard Library
import dataclasses
import io
import json
import pathlib
from collections.abc import Callable

# PIP3 modules
import PIL.Image

# local repo modules
import card_sheet_composer as csc
import card_sheet_composer.cards
import card_sheet_composer.config
import card_sheet_composer.errors
import card_sheet_composer.layout
import card_sheet_composer.tiles


Item = csc.tiles.Item
Tile = csc.tiles.Tile
ModeASettings = csc.config.ModeASettings
ModeBSettings = csc.config.ModeBSettings
SheetGeometry = csc.config.SheetGeometry
CardSheetError = csc.errors.CardSheetError
RenderCancelled = csc.errors.RenderCancelled

MODE_A = csc.config.MODE_A
VARIANT_ALL = csc.config.VARIANT_ALL
SHEET_PREFIXES = csc.config.SHEET_PREFIXES
EMPTY_SELECTION_MESSAGE = csc.config.EMPTY_SELECTION_MESSAGE
EMPTY_SHEET_SIZE = csc.config.EMPTY_SHEET_SIZE
EMPTY_CARD_SIZE = csc.config.EMPTY_CARD_SIZE
SHEET_PREVIEW_ERROR_MESSAGE = csc.config.SHEET_PREVIEW_ERROR_MESSAGE
SHEET_PREVIEW_ERROR_SIZE = csc.config.SHEET_PREVIEW_ERROR_SIZE
CARD_PREVIEW_ERROR_MESSAGE = csc.config.CARD_PREVIEW_ERROR_MESSAGE
CARD_PREVIEW_ERROR_SIZE = csc.config.CARD_PREVIEW_ERROR_SIZE
PROGRESS_BAR_WIDTH = csc.config.PROGRESS_BAR_WIDTH
PROGRESS_UPDATE_EVERY = csc.config.PROGRESS_UPDATE_EVERY

Emitter = Callable[[str, bytes], None]


class RenderToken:
	"""
	Identifies one render run; stale once a newer run begins.
	"""

	def __init__(self, generation: "RenderGeneration", run_id: int) -> None:
		self._generation = generation
		self.run_id = run_id

	@property
	def stale(self) -> bool:
		return self.run_id != self._generation.current

	def check(self) -> None:
		if self.stale:
			raise RenderCancelled(f"Render run {self.run_id} was superseded")


class RenderGeneration:
	"""
	Monotonic run counter for one logical output, such as a preview pane.
	"""

	def __init__(self) -> None:
		self.current = 0

	def begin(self) -> RenderToken:
		self.current += 1
		return RenderToken(self, self.current)


@dataclasses.dataclass
class RenderedPage:
	image: PIL.Image.Image
	page_index: int
	total_pages: int


@dataclasses.dataclass
class SheetPreview:
	image: PIL.Image.Image
	page_index: int
	total_pages: int
	error: str | None = None


@dataclasses.dataclass
class ExportResult:
	filenames: list[str]
	pages: int
	tile_count: int
	images: list[PIL.Image.Image] = dataclasses.field(default_factory=list, repr=False)


#============================================
def print_progress(prefix: str, current: int, total: int) -> None:
	"""
	Print a simple progress bar.

	Args:
		prefix: Label text.
		current: Current count.
		total: Total count.
	"""
	if total <= 0:
		return
	percent = int(round((current / total) * 100.0))
	filled = int(round(PROGRESS_BAR_WIDTH * percent / 100.0))
	bar = "#" * filled + "-" * (PROGRESS_BAR_WIDTH - filled)
	print(f"{prefix} [{bar}] {current}/{total} ({percent}%)", end="\r")


#============================================
def check_token(token: RenderToken | None) -> None:
	if token is not None:
		token.check()


#============================================
def encode_png(image: PIL.Image.Image) -> bytes:
	"""
	Encode an image as PNG bytes.
	"""
	buffer = io.BytesIO()
	image.save(buffer, format="PNG")
	return buffer.getvalue()


#============================================
def sheet_prefix(mode: str, variant: str) -> str:
	"""
	Default filename prefix for a sheet export.
	"""
	if str(mode).upper() == MODE_A:
		return SHEET_PREFIXES[VARIANT_ALL]
	return SHEET_PREFIXES.get(str(variant).lower(), SHEET_PREFIXES[VARIANT_ALL])


#============================================
def sheet_filename(prefix: str, page_number: int, total_pages: int) -> str:
	"""
	Build a sheet filename like "sheet_02_of_05.png".
	"""
	return f"{prefix}_{page_number:02d}_of_{total_pages:02d}.png"


#============================================
def paginate(tiles: list[Tile], columns: int, rows: int) -> int:
	"""
	Count the sheet pages needed for a tile list (at least one).
	"""
	return csc.layout.count_pages(len(tiles), columns, rows)


#============================================
async def render_tile(tile: Tile, token: RenderToken | None = None) -> PIL.Image.Image:
	"""
	Render one tile onto its own cleared surface.

	Args:
		tile: Tile to render.
		token: Optional run token checked after rendering.

	Returns:
		RGBA image of tile.width x tile.height.
	"""
	surface = csc.cards.new_surface(tile.width, tile.height)
	await tile.render(surface)
	check_token(token)
	return surface


#============================================
async def render_sheet(
	tiles: list[Tile],
	columns: int,
	rows: int,
	gap: int,
	cache=None,
	token: RenderToken | None = None,
) -> PIL.Image.Image:
	"""
	Compose one page of tiles into a sheet image.

	Icons are fetched together first; tiles are then drawn one at a time
	onto the shared sheet surface.

	Args:
		tiles: Tiles of this page.
		columns: Grid columns.
		rows: Grid rows.
		gap: Gap between cells in pixels.
		cache: Optional ResourceCache used to prefetch icons.
		token: Optional run token.

	Returns:
		RGBA sheet image, or the placeholder page when tiles is empty.
	"""
	if not tiles:
		return csc.cards.build_message_surface(EMPTY_SELECTION_MESSAGE, EMPTY_SHEET_SIZE)
	layout = csc.layout.layout_sheet(tiles, columns, rows, gap)
	if cache is not None:
		await cache.prefetch(locator for tile in layout.used_tiles for locator in tile.locators)
		check_token(token)
	sheet = csc.cards.new_surface(max(1, layout.sheet_width), max(1, layout.sheet_height))
	for index, tile in enumerate(layout.used_tiles):
		tile_surface = await render_tile(tile, token)
		sheet.alpha_composite(tile_surface, dest=layout.tile_origin(index))
	return sheet


#============================================
async def render_page(
	tiles: list[Tile],
	columns: int,
	rows: int,
	gap: int,
	page_index: int,
	cache=None,
	token: RenderToken | None = None,
) -> RenderedPage:
	"""
	Render one page of a paginated tile list.

	Args:
		tiles: All tiles.
		columns: Grid columns.
		rows: Grid rows.
		gap: Gap between cells.
		page_index: Requested 0-based page, clamped into range.
		cache: Optional ResourceCache.
		token: Optional run token.

	Returns:
		RenderedPage.
	"""
	total_pages = paginate(tiles, columns, rows)
	page_index, page_tiles = csc.layout.page_slice(tiles, columns, rows, page_index)
	image = await render_sheet(page_tiles, columns, rows, gap, cache, token)
	return RenderedPage(image=image, page_index=page_index, total_pages=total_pages)


#============================================
async def export_cards(
	items: list[Item],
	mode: str,
	settings_a: ModeASettings,
	settings_b: ModeBSettings,
	cache,
	emit: Emitter,
	variant: str = VARIANT_ALL,
	token: RenderToken | None = None,
	verbose: bool = False,
) -> ExportResult:
	"""
	Render every tile to its own PNG file.

	Args:
		items: Items to export.
		mode: "A" or "B".
		settings_a: Mode A settings.
		settings_b: Mode B settings.
		cache: ResourceCache.
		emit: Callable receiving (filename, png_bytes).
		variant: Mode B variant.
		token: Optional run token.
		verbose: Print progress.

	Returns:
		ExportResult with one filename per tile.
	"""
	tiles = csc.tiles.build_tiles(mode, items, settings_a, settings_b, variant, cache)
	await cache.prefetch(locator for tile in tiles for locator in tile.locators)
	check_token(token)
	filenames: list[str] = []
	total = len(tiles)
	for index, tile in enumerate(tiles, start=1):
		image = await render_tile(tile, token)
		emit(tile.filename_hint, encode_png(image))
		filenames.append(tile.filename_hint)
		if verbose and (index % PROGRESS_UPDATE_EVERY == 0 or index == total):
			print_progress("Cards", index, total)
	if verbose and total > 0:
		print()
	return ExportResult(filenames=filenames, pages=0, tile_count=total)


#============================================
async def export_sheets(
	items: list[Item],
	mode: str,
	settings_a: ModeASettings,
	settings_b: ModeBSettings,
	geometry: SheetGeometry,
	cache,
	emit: Emitter,
	variant: str = VARIANT_ALL,
	prefix: str | None = None,
	token: RenderToken | None = None,
	verbose: bool = False,
) -> ExportResult:
	"""
	Render paginated sheets, one PNG file per page.

	Args:
		items: Items to export.
		mode: "A" or "B".
		settings_a: Mode A settings.
		settings_b: Mode B settings.
		geometry: Sheet grid geometry.
		cache: ResourceCache.
		emit: Callable receiving (filename, png_bytes).
		variant: Mode B variant.
		prefix: Filename prefix; derived from mode/variant when None.
		token: Optional run token.
		verbose: Print progress.

	Returns:
		ExportResult with page filenames and images.
	"""
	geometry = geometry.clamped()
	tiles = csc.tiles.build_tiles(mode, items, settings_a, settings_b, variant, cache)
	total_pages = paginate(tiles, geometry.columns, geometry.rows)
	if prefix is None:
		prefix = sheet_prefix(mode, variant)
	filenames: list[str] = []
	images: list[PIL.Image.Image] = []
	for page_index in range(total_pages):
		page = await render_page(
			tiles,
			geometry.columns,
			geometry.rows,
			geometry.gap,
			page_index,
			cache,
			token,
		)
		filename = sheet_filename(prefix, page_index + 1, total_pages)
		emit(filename, encode_png(page.image))
		filenames.append(filename)
		images.append(page.image)
		if verbose:
			print_progress("Sheets", page_index + 1, total_pages)
	if verbose:
		print()
	return ExportResult(filenames=filenames, pages=total_pages, tile_count=len(tiles), images=images)


#============================================
async def preview_sheet(
	items: list[Item],
	mode: str,
	settings_a: ModeASettings,
	settings_b: ModeBSettings,
	geometry: SheetGeometry,
	cache,
	page_index: int = 0,
	variant: str = VARIANT_ALL,
	token: RenderToken | None = None,
) -> SheetPreview | None:
	"""
	Render one sheet page for live preview.

	Engine errors never escape: a failed render returns the fallback
	surface. A superseded run returns None.

	Args:
		items: Items to lay out.
		mode: "A" or "B".
		settings_a: Mode A settings.
		settings_b: Mode B settings.
		geometry: Sheet grid geometry.
		cache: ResourceCache.
		page_index: Requested 0-based page.
		variant: Mode B variant.
		token: Optional run token.

	Returns:
		SheetPreview, or None when the run was superseded.
	"""
	total_pages = 1
	try:
		geometry = geometry.clamped()
		tiles = csc.tiles.build_tiles(mode, items, settings_a, settings_b, variant, cache)
		total_pages = paginate(tiles, geometry.columns, geometry.rows)
		page = await render_page(
			tiles,
			geometry.columns,
			geometry.rows,
			geometry.gap,
			page_index,
			cache,
			token,
		)
	except RenderCancelled:
		return None
	except CardSheetError as error:
		if token is not None and token.stale:
			return None
		image = csc.cards.build_message_surface(SHEET_PREVIEW_ERROR_MESSAGE, SHEET_PREVIEW_ERROR_SIZE)
		clamped_index = max(0, min(total_pages - 1, int(page_index)))
		return SheetPreview(image=image, page_index=clamped_index, total_pages=total_pages, error=str(error))
	if token is not None and token.stale:
		return None
	return SheetPreview(image=page.image, page_index=page.page_index, total_pages=page.total_pages)


#============================================
async def preview_card(
	item: Item | None,
	mode: str,
	settings_a: ModeASettings,
	settings_b: ModeBSettings,
	cache,
	token: RenderToken | None = None,
) -> PIL.Image.Image | None:
	"""
	Render the first card of one item for live preview.

	Mode B previews the icon card.

	Args:
		item: Item to preview, or None for an empty selection.
		mode: "A" or "B".
		settings_a: Mode A settings.
		settings_b: Mode B settings.
		cache: ResourceCache.
		token: Optional run token.

	Returns:
		RGBA image, or None when the run was superseded.
	"""
	if item is None:
		return csc.cards.build_message_surface(EMPTY_SELECTION_MESSAGE, EMPTY_CARD_SIZE)
	try:
		tiles = csc.tiles.build_tiles(mode, [item], settings_a, settings_b, VARIANT_ALL, cache)
		image = await render_tile(tiles[0], token)
	except RenderCancelled:
		return None
	except CardSheetError:
		if token is not None and token.stale:
			return None
		return csc.cards.build_message_surface(CARD_PREVIEW_ERROR_MESSAGE, CARD_PREVIEW_ERROR_SIZE)
	return image


#============================================
def write_manifest(
	manifest_path: pathlib.Path,
	items_path: pathlib.Path | None,
	items: list[Item],
	mode: str,
	settings_a: ModeASettings,
	settings_b: ModeBSettings,
	geometry: SheetGeometry,
	card_result: ExportResult | None,
	sheet_results: dict[str, ExportResult],
) -> None:
	"""
	Write a manifest JSON file.

	Args:
		manifest_path: Output path.
		items_path: Items JSON the run was fed from.
		items: Exported items.
		mode: Card mode.
		settings_a: Mode A settings.
		settings_b: Mode B settings.
		geometry: Sheet geometry.
		card_result: Per-card export result, if any.
		sheet_results: Sheet export results keyed by variant.
	"""
	data = {
		"items_file": str(items_path) if items_path is not None else None,
		"item_count": len(items),
		"item_ids": [item.item_id for item in items],
		"mode": mode,
		"mode_a": dataclasses.asdict(settings_a),
		"mode_b": dataclasses.asdict(settings_b),
		"sheet": dataclasses.asdict(geometry.clamped()),
		"cards": card_result.filenames if card_result is not None else [],
		"sheets": {
			variant: {
				"files": result.filenames,
				"pages": result.pages,
				"tiles": result.tile_count,
			}
			for variant, result in sheet_results.items()
		},
	}
	with manifest_path.open("w", encoding="utf-8") as handle:
		json.dump(data, handle, indent=2, sort_keys=True)
