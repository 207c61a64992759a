"""
CLI entry points for exporting item cards and sheets.
"""

# Standard Library
import argparse
import asyncio
import json
import pathlib
import sys
import time
import urllib.parse

# local repo modules
import card_sheet_composer as csc
import card_sheet_composer.config
import card_sheet_composer.errors
import card_sheet_composer.output
import card_sheet_composer.render
import card_sheet_composer.resources
import card_sheet_composer.tiles


Item = csc.tiles.Item
SheetGeometry = csc.config.SheetGeometry
CardSheetError = csc.errors.CardSheetError
ConfigurationError = csc.errors.ConfigurationError

MODE_A = csc.config.MODE_A
MODE_B = csc.config.MODE_B
MODES = csc.config.MODES
VARIANT_ALL = csc.config.VARIANT_ALL
VARIANT_ICON = csc.config.VARIANT_ICON
VARIANT_TEXT = csc.config.VARIANT_TEXT
VARIANTS = csc.config.VARIANTS
SHEET_PREFIXES = csc.config.SHEET_PREFIXES

CARDS_ZIP_NAME = "cards.zip"
SHEETS_ZIP_NAME = "sheets.zip"
SHEETS_PDF_NAME = "sheets.pdf"
MANIFEST_NAME = "manifest.json"


#============================================
def resolve_locator(value: str, base_dir: pathlib.Path) -> str:
	"""
	Resolve a relative image path against the items file directory.

	URLs and absolute paths are returned unchanged.

	Args:
		value: Locator from the items file.
		base_dir: Directory holding the items file.

	Returns:
		Usable locator string.
	"""
	scheme = urllib.parse.urlparse(value).scheme
	if scheme in ("http", "https", "file"):
		return value
	path = pathlib.Path(value)
	if path.is_absolute():
		return value
	return str(base_dir / path)


#============================================
def load_items(items_path: pathlib.Path) -> list[Item]:
	"""
	Load items from a JSON list of {"id", "label", "image"} objects.

	Args:
		items_path: Items JSON path.

	Returns:
		List of Item entries in file order.
	"""
	try:
		with items_path.open("r", encoding="utf-8") as handle:
			data = json.load(handle)
	except (OSError, json.JSONDecodeError) as error:
		raise ConfigurationError(f"Could not read items file {items_path}: {error}") from error
	if not isinstance(data, list):
		raise ConfigurationError(f"Items file must hold a JSON list: {items_path}")
	base_dir = items_path.resolve().parent
	items: list[Item] = []
	for position, entry in enumerate(data, start=1):
		if not isinstance(entry, dict) or "id" not in entry or "image" not in entry:
			raise ConfigurationError(f"Item {position} needs 'id' and 'image' keys")
		items.append(
			Item(
				item_id=str(entry["id"]).upper(),
				label=str(entry.get("label") or ""),
				image_locator=resolve_locator(str(entry["image"]), base_dir),
			)
		)
	return items


#============================================
def build_geometry(args: argparse.Namespace, geometry: SheetGeometry) -> SheetGeometry:
	"""
	Apply command line grid overrides to the loaded sheet geometry.

	Args:
		args: Parsed argparse namespace.
		geometry: Geometry from the settings file or defaults.

	Returns:
		Clamped SheetGeometry.
	"""
	columns = geometry.columns if args.columns is None else args.columns
	rows = geometry.rows if args.rows is None else args.rows
	gap = geometry.gap if args.gap is None else args.gap
	return SheetGeometry(columns=columns, rows=rows, gap=gap).clamped()


#============================================
def sheet_jobs(args: argparse.Namespace) -> list[tuple[str, str]]:
	"""
	List the (variant, prefix) sheet exports requested.

	Args:
		args: Parsed argparse namespace.

	Returns:
		List of (variant, prefix) tuples.
	"""
	if args.mode == MODE_B and args.split:
		variants = [VARIANT_ICON, VARIANT_TEXT]
	else:
		variants = [args.variant]
	jobs = []
	for variant in variants:
		prefix = csc.render.sheet_prefix(args.mode, variant)
		if args.prefix:
			prefix = args.prefix
			if len(variants) > 1:
				prefix = f"{args.prefix}_{SHEET_PREFIXES[variant].split('_', 1)[1]}"
		jobs.append((variant, prefix))
	return jobs


#============================================
def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
	"""
	Parse command line arguments.

	Args:
		argv: Argument list, or None for sys.argv.

	Returns:
		Parsed argparse namespace.
	"""
	parser = argparse.ArgumentParser(description="Render item cards and paginated card sheets as PNG files.")
	parser.add_argument("items_path", help="Items JSON file (list of {id, label, image}).")

	output_group = parser.add_argument_group("Output")
	output_group.add_argument("-o", "--output-dir", dest="output_dir", required=True, help="Output directory.")
	output_group.add_argument("--manifest", dest="manifest_path", default=None, help="Output manifest JSON path.")
	output_group.add_argument("--prefix", dest="prefix", default=None, help="Sheet filename prefix.")
	output_group.add_argument("-c", "--cards", dest="cards", action="store_true", help="Export one PNG per card.")
	output_group.add_argument("-C", "--no-cards", dest="cards", action="store_false", help="Skip per-card export.")
	output_group.add_argument("-t", "--sheets", dest="sheets", action="store_true", help="Export sheet PNGs.")
	output_group.add_argument("-T", "--no-sheets", dest="sheets", action="store_false", help="Skip sheet export.")
	output_group.add_argument("-z", "--zip", dest="zip_output", action="store_true", help="Bundle files into zip archives.")
	output_group.add_argument("-p", "--pdf", dest="pdf", action="store_true", help="Also write the sheets as one PDF.")

	card_group = parser.add_argument_group("Cards")
	card_group.add_argument("-s", "--settings", dest="settings_path", default=None, help="Settings JSON file.")
	card_group.add_argument("-m", "--mode", dest="mode", choices=MODES, type=str.upper, default=MODE_A, help="Card mode.")
	card_group.add_argument("--variant", dest="variant", choices=VARIANTS, type=str.lower, default=VARIANT_ALL, help="Mode B card variant.")
	card_group.add_argument("--split", dest="split", action="store_true", help="Mode B: separate icon and label sheets.")

	sheet_group = parser.add_argument_group("Sheet")
	sheet_group.add_argument("--columns", dest="columns", type=int, default=None, help="Sheet columns.")
	sheet_group.add_argument("--rows", dest="rows", type=int, default=None, help="Sheet rows.")
	sheet_group.add_argument("--gap", dest="gap", type=int, default=None, help="Gap between cards in pixels.")

	parser.set_defaults(
		cards=True,
		sheets=True,
		zip_output=False,
		pdf=False,
		split=False,
	)

	args = parser.parse_args(argv)
	return args


#============================================
async def run_exports(
	args: argparse.Namespace,
	items: list[Item],
	settings_a,
	settings_b,
	geometry: SheetGeometry,
	output_dir: pathlib.Path,
) -> tuple:
	"""
	Run the requested card and sheet exports with one shared cache.

	Args:
		args: Parsed argparse namespace.
		items: Items to export.
		settings_a: Mode A settings.
		settings_b: Mode B settings.
		geometry: Sheet geometry.
		output_dir: Output directory.

	Returns:
		Tuple of (card_result, sheet_results).
	"""
	card_result = None
	sheet_results = {}
	async with csc.resources.ResourceCache() as cache:
		if args.cards:
			print("Exporting cards")
			if args.zip_output:
				with csc.output.ZipArchiveWriter(output_dir / CARDS_ZIP_NAME) as writer:
					card_result = await csc.render.export_cards(
						items, args.mode, settings_a, settings_b, cache, writer,
						variant=args.variant, verbose=True,
					)
			else:
				writer = csc.output.DirectoryWriter(output_dir)
				card_result = await csc.render.export_cards(
					items, args.mode, settings_a, settings_b, cache, writer,
					variant=args.variant, verbose=True,
				)
			print(f"Cards written: {len(card_result.filenames)}")

		if args.sheets:
			zip_writer = None
			if args.zip_output:
				zip_writer = csc.output.ZipArchiveWriter(output_dir / SHEETS_ZIP_NAME)
			try:
				for variant, prefix in sheet_jobs(args):
					print(f"Exporting sheets: {prefix}")
					writer = zip_writer if zip_writer is not None else csc.output.DirectoryWriter(output_dir)
					result = await csc.render.export_sheets(
						items, args.mode, settings_a, settings_b, geometry, cache, writer,
						variant=variant, prefix=prefix, verbose=True,
					)
					sheet_results[variant] = result
					print(f"Sheets written: {result.pages} ({result.tile_count} cards)")
			finally:
				if zip_writer is not None:
					zip_writer.close()
	return (card_result, sheet_results)


#============================================
def run_pipeline(args: argparse.Namespace) -> None:
	"""
	Run the full pipeline from items JSON to exported files.

	Args:
		args: Parsed argparse namespace.
	"""
	items_path = pathlib.Path(args.items_path)
	output_dir = pathlib.Path(args.output_dir)
	print("Card sheet export")
	print(f"Items file: {items_path}")
	print(f"Output directory: {output_dir}")
	print(f"Mode: {args.mode}")
	if args.mode == MODE_B:
		print(f"Variant: {args.variant}")
		print(f"Split sheets: {args.split}")
	if args.settings_path:
		print(f"Settings: {args.settings_path}")

	start_time = time.perf_counter()
	settings_path = pathlib.Path(args.settings_path) if args.settings_path else None
	settings_a, settings_b, geometry = csc.config.load_settings(settings_path)
	geometry = build_geometry(args, geometry)
	print(f"Sheet grid: {geometry.columns}x{geometry.rows} gap={geometry.gap}")

	items = load_items(items_path)
	print(f"Items loaded: {len(items)}")

	export_start = time.perf_counter()
	card_result, sheet_results = asyncio.run(
		run_exports(args, items, settings_a, settings_b, geometry, output_dir)
	)
	export_end = time.perf_counter()

	if args.pdf and sheet_results:
		pdf_path = output_dir / SHEETS_PDF_NAME
		images = [image for result in sheet_results.values() for image in result.images]
		pages = csc.output.write_sheets_pdf(images, pdf_path)
		print(f"PDF written: {pdf_path} ({pages} pages)")

	manifest_path = args.manifest_path
	if manifest_path is None:
		manifest_path = output_dir / MANIFEST_NAME
	manifest_path = pathlib.Path(manifest_path)
	manifest_path.parent.mkdir(parents=True, exist_ok=True)
	csc.render.write_manifest(
		manifest_path,
		items_path,
		items,
		args.mode,
		settings_a,
		settings_b,
		geometry,
		card_result,
		sheet_results,
	)

	total_time = time.perf_counter() - start_time
	print(
		"Timing: export={:.2f}s total={:.2f}s".format(
			export_end - export_start,
			total_time,
		)
	)
	print(f"Manifest written: {manifest_path}")


#============================================
def main(argv: list[str] | None = None) -> None:
	"""
	Main entry point.
	"""
	args = parse_args(argv)
	try:
		run_pipeline(args)
	except CardSheetError as error:
		print(f"Error: {error}")
		sys.exit(1)
