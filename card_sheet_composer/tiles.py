"""
Tile factory: turn items into renderable card tiles.
"""

# Standard Library
import dataclasses
import re
import unicodedata
from collections.abc import Awaitable, Callable

# PIP3 modules
import PIL.Image

# local repo modules
import card_sheet_composer as csc
import card_sheet_composer.cards
import card_sheet_composer.config
import card_sheet_composer.errors


ConfigurationError = csc.errors.ConfigurationError
ModeASettings = csc.config.ModeASettings
ModeBSettings = csc.config.ModeBSettings

MODE_A = csc.config.MODE_A
MODE_B = csc.config.MODE_B
VARIANT_ALL = csc.config.VARIANT_ALL
VARIANT_ICON = csc.config.VARIANT_ICON
VARIANT_TEXT = csc.config.VARIANT_TEXT
ICON_TOP_PADDING = csc.config.ICON_TOP_PADDING
TEXT_PADDING = csc.config.TEXT_PADDING
FILENAME_PART_LIMIT = csc.config.FILENAME_PART_LIMIT
FILENAME_INDEX_WIDTH = csc.config.FILENAME_INDEX_WIDTH
FALLBACK_LABEL = csc.config.FALLBACK_LABEL

UNSAFE_FILENAME_CHARS = set('/\\?%*:|"<>')
WHITESPACE_RUN = re.compile(r"\s+")


@dataclasses.dataclass(frozen=True)
class Item:
	item_id: str
	label: str
	image_locator: str


@dataclasses.dataclass
class Tile:
	width: int
	height: int
	filename_hint: str
	render: Callable[[PIL.Image.Image], Awaitable[None]]
	locators: tuple[str, ...] = ()

	def __post_init__(self) -> None:
		if self.width <= 0 or self.height <= 0:
			raise ConfigurationError(
				f"Tile {self.filename_hint} has non-positive size {self.width}x{self.height}"
			)


#============================================
def sanitize_filename_part(value: str) -> str:
	"""
	Sanitize a string for use inside a filename.

	Strips diacritics, removes path-unsafe and control characters,
	collapses whitespace runs to underscores and caps the length.

	Args:
		value: Input string.

	Returns:
		Sanitized string, possibly empty.
	"""
	normalized = unicodedata.normalize("NFKD", value or "")
	kept: list[str] = []
	for char in normalized:
		if unicodedata.combining(char):
			continue
		if char in UNSAFE_FILENAME_CHARS:
			continue
		if unicodedata.category(char) == "Cc" and not char.isspace():
			continue
		kept.append(char)
	collapsed = WHITESPACE_RUN.sub("_", "".join(kept))
	return collapsed[:FILENAME_PART_LIMIT]


#============================================
def build_filename_stem(index: int, item: Item) -> str:
	"""
	Build the shared filename stem for an item's tiles.

	Args:
		index: 1-based item index.
		item: Item being rendered.

	Returns:
		Stem like "007_Red_apple_1F34E".
	"""
	safe_label = sanitize_filename_part(item.label or FALLBACK_LABEL)
	safe_id = sanitize_filename_part(item.item_id)
	return f"{index:0{FILENAME_INDEX_WIDTH}d}_{safe_label}_{safe_id}"


#============================================
def draw_label(
	surface: PIL.Image.Image,
	label: str,
	font_size: int,
	card_width: int,
	border_width: int,
	y: float,
	vertical: str,
) -> None:
	"""
	Fit and draw a label centred on the card.

	Args:
		surface: Card surface.
		label: Label text.
		font_size: Font size in pixels.
		card_width: Card width.
		border_width: Card border width.
		y: Text top or vertical centre.
		vertical: "top" or "middle".
	"""
	if font_size <= 0:
		return
	font = csc.cards.load_font(font_size)
	max_width = card_width - 2 * (border_width + TEXT_PADDING)
	text = csc.cards.fit_text(csc.cards.make_measure(font), label, max_width)
	csc.cards.draw_centered_text(surface, text, font, card_width / 2.0, y, vertical)


#============================================
def make_combined_tile(item: Item, stem: str, settings: ModeASettings, cache) -> Tile:
	"""
	Build the mode A tile: icon on top, label below.
	"""
	width = settings.width
	height = settings.height
	icon_size = settings.icon_size

	async def render(surface: PIL.Image.Image) -> None:
		csc.cards.draw_card_frame(surface, width, height, settings)
		top = settings.border_width + ICON_TOP_PADDING
		if icon_size > 0:
			handle = await cache.get(item.image_locator)
			icon = handle.rasterize(icon_size, icon_size)
			icon_x = int(round(width / 2.0 - icon_size / 2.0))
			csc.cards.paste_icon(surface, icon, icon_x, top)
		text_top = top + icon_size + settings.icon_text_gap
		draw_label(surface, item.label, settings.font_size, width, settings.border_width, text_top, "top")

	locators = (item.image_locator,) if icon_size > 0 else ()
	return Tile(width, height, f"{stem}.png", render, locators)


#============================================
def make_icon_tile(item: Item, stem: str, settings: ModeBSettings, cache) -> Tile:
	"""
	Build the mode B icon card.
	"""
	width = settings.icon_card_width
	height = settings.icon_card_height
	icon_size = settings.icon_size

	async def render(surface: PIL.Image.Image) -> None:
		csc.cards.draw_card_frame(surface, width, height, settings)
		if icon_size <= 0:
			return
		handle = await cache.get(item.image_locator)
		icon = handle.rasterize(icon_size, icon_size)
		icon_x = int(round((width - icon_size) / 2.0))
		icon_y = int(round((height - icon_size) / 2.0))
		csc.cards.paste_icon(surface, icon, icon_x, icon_y)

	locators = (item.image_locator,) if icon_size > 0 else ()
	return Tile(width, height, f"{stem}_icon.png", render, locators)


#============================================
def make_text_tile(item: Item, stem: str, settings: ModeBSettings) -> Tile:
	"""
	Build the mode B label card.
	"""
	width = settings.text_card_width
	height = settings.text_card_height

	async def render(surface: PIL.Image.Image) -> None:
		csc.cards.draw_card_frame(surface, width, height, settings)
		draw_label(surface, item.label, settings.font_size, width, settings.border_width, height / 2.0, "middle")

	return Tile(width, height, f"{stem}_text.png", render)


def build_combined(item, stem, settings_a, settings_b, cache) -> list[Tile]:
	return [make_combined_tile(item, stem, settings_a, cache)]


def build_icon_only(item, stem, settings_a, settings_b, cache) -> list[Tile]:
	return [make_icon_tile(item, stem, settings_b, cache)]


def build_text_only(item, stem, settings_a, settings_b, cache) -> list[Tile]:
	return [make_text_tile(item, stem, settings_b)]


def build_icon_and_text(item, stem, settings_a, settings_b, cache) -> list[Tile]:
	return [
		make_icon_tile(item, stem, settings_b, cache),
		make_text_tile(item, stem, settings_b),
	]


# mode A ignores the variant
TILE_STRATEGIES = {
	(MODE_A, VARIANT_ALL): build_combined,
	(MODE_A, VARIANT_ICON): build_combined,
	(MODE_A, VARIANT_TEXT): build_combined,
	(MODE_B, VARIANT_ALL): build_icon_and_text,
	(MODE_B, VARIANT_ICON): build_icon_only,
	(MODE_B, VARIANT_TEXT): build_text_only,
}


#============================================
def build_tiles(
	mode: str,
	items: list[Item],
	settings_a: ModeASettings,
	settings_b: ModeBSettings,
	variant: str,
	cache,
) -> list[Tile]:
	"""
	Build the ordered tiles for a batch of items.

	Args:
		mode: "A" or "B".
		items: Items in caller order.
		settings_a: Mode A card settings.
		settings_b: Mode B card settings.
		variant: "all", "icon" or "text".
		cache: ResourceCache used by the tiles when they render.

	Returns:
		List of Tile entries.
	"""
	strategy = TILE_STRATEGIES.get((str(mode).upper(), str(variant).lower()))
	if strategy is None:
		raise ConfigurationError(f"Unknown mode/variant: {mode!r}/{variant!r}")
	settings_a = settings_a.normalized()
	settings_b = settings_b.normalized()
	tiles: list[Tile] = []
	for index, item in enumerate(items, start=1):
		stem = build_filename_stem(index, item)
		tiles.extend(strategy(item, stem, settings_a, settings_b, cache))
	return tiles
