"""
Shared configuration and constants.
"""

# Standard Library
import dataclasses
import json
import math
import pathlib

# local repo modules
import card_sheet_composer as csc
import card_sheet_composer.errors


MODE_A = "A"
MODE_B = "B"
MODES = (MODE_A, MODE_B)

VARIANT_ALL = "all"
VARIANT_ICON = "icon"
VARIANT_TEXT = "text"
VARIANTS = (VARIANT_ALL, VARIANT_ICON, VARIANT_TEXT)

BACKGROUND_FILLED = "filled"
BACKGROUND_TRANSPARENT = "transparent"
BACKGROUNDS = (BACKGROUND_FILLED, BACKGROUND_TRANSPARENT)

MAX_GRID_DIMENSION = 50
DEFAULT_COLUMNS = 6
DEFAULT_ROWS = 4
DEFAULT_GAP = 16

ICON_TOP_PADDING = 8
TEXT_PADDING = 12
ELLIPSIS = "…"
FILENAME_PART_LIMIT = 80
FILENAME_INDEX_WIDTH = 3
FALLBACK_LABEL = "item"

FILL_COLOR = (255, 255, 255, 255)
INK_COLOR = (0, 0, 0, 255)
CLEAR_COLOR = (0, 0, 0, 0)

FONT_CANDIDATES = (
	"Roboto-Bold.ttf",
	"DejaVuSans-Bold.ttf",
	"LiberationSans-Bold.ttf",
	"Arial Bold.ttf",
	"arialbd.ttf",
)
MESSAGE_FONT_SIZE = 16
MESSAGE_ORIGIN = (12, 14)

EMPTY_SELECTION_MESSAGE = "No selection."
EMPTY_SHEET_SIZE = (420, 240)
EMPTY_CARD_SIZE = (360, 220)
SHEET_PREVIEW_ERROR_MESSAGE = "Sheet preview unavailable."
SHEET_PREVIEW_ERROR_SIZE = (520, 260)
CARD_PREVIEW_ERROR_MESSAGE = "Card preview unavailable."
CARD_PREVIEW_ERROR_SIZE = (420, 240)

SHEET_PREFIXES = {
	VARIANT_ALL: "sheet",
	VARIANT_ICON: "sheet_icons",
	VARIANT_TEXT: "sheet_labels",
}

POINTS_PER_INCH = 72.0
PDF_DPI = 300.0
PROGRESS_BAR_WIDTH = 20
PROGRESS_UPDATE_EVERY = 10


@dataclasses.dataclass
class ModeASettings:
	width: int = 320
	height: int = 260
	icon_size: int = 120
	font_size: int = 28
	icon_text_gap: int = 10
	border_width: int = 6
	corner_radius: int = 18
	background: str = BACKGROUND_FILLED

	def normalized(self) -> "ModeASettings":
		"""
		Return a copy with every numeric field floored and non-negative.
		"""
		return normalize_settings(self)


@dataclasses.dataclass
class ModeBSettings:
	icon_card_width: int = 240
	icon_card_height: int = 240
	icon_size: int = 140
	text_card_width: int = 240
	text_card_height: int = 140
	font_size: int = 28
	border_width: int = 6
	corner_radius: int = 18
	background: str = BACKGROUND_FILLED

	def normalized(self) -> "ModeBSettings":
		"""
		Return a copy with every numeric field floored and non-negative.
		"""
		return normalize_settings(self)


@dataclasses.dataclass
class SheetGeometry:
	columns: int = DEFAULT_COLUMNS
	rows: int = DEFAULT_ROWS
	gap: int = DEFAULT_GAP

	def clamped(self) -> "SheetGeometry":
		"""
		Return a copy with columns/rows in [1, 50] and gap >= 0.
		"""
		columns, rows, gap = clamp_grid(self.columns, self.rows, self.gap)
		return SheetGeometry(columns=columns, rows=rows, gap=gap)


#============================================
def floor_non_negative(value: float, name: str = "value") -> int:
	"""
	Floor a setting value and clamp it at zero.

	Args:
		value: Raw numeric value.
		name: Setting name used in error messages.

	Returns:
		Non-negative integer.
	"""
	if isinstance(value, bool):
		raise csc.errors.ConfigurationError(f"Setting {name} must be a number, got {value!r}")
	try:
		number = float(value)
	except (TypeError, ValueError) as error:
		raise csc.errors.ConfigurationError(f"Setting {name} must be a number, got {value!r}") from error
	if not math.isfinite(number):
		return 0
	return max(0, math.floor(number))


#============================================
def clamp_grid(columns: float, rows: float, gap: float) -> tuple[int, int, int]:
	"""
	Floor and clamp sheet grid values.

	Args:
		columns: Requested column count.
		rows: Requested row count.
		gap: Requested gap in pixels.

	Returns:
		Tuple of (columns, rows, gap).
	"""
	columns = max(1, min(MAX_GRID_DIMENSION, floor_non_negative(columns, "columns")))
	rows = max(1, min(MAX_GRID_DIMENSION, floor_non_negative(rows, "rows")))
	gap = floor_non_negative(gap, "gap")
	return (columns, rows, gap)


#============================================
def normalize_settings(settings):
	"""
	Floor every numeric field of a settings dataclass.

	Args:
		settings: ModeASettings or ModeBSettings.

	Returns:
		New settings instance of the same type.
	"""
	changes = {}
	for field in dataclasses.fields(settings):
		value = getattr(settings, field.name)
		if field.name == "background":
			if value not in BACKGROUNDS:
				value = BACKGROUND_FILLED
			changes[field.name] = value
			continue
		changes[field.name] = floor_non_negative(value, field.name)
	return dataclasses.replace(settings, **changes)


#============================================
def apply_overrides(settings, overrides: dict):
	"""
	Apply known keys from a mapping onto a settings dataclass.

	Args:
		settings: Dataclass instance with defaults.
		overrides: Mapping loaded from JSON.

	Returns:
		New dataclass instance.
	"""
	names = {field.name for field in dataclasses.fields(settings)}
	changes = {key: value for key, value in overrides.items() if key in names}
	return dataclasses.replace(settings, **changes)


#============================================
def read_section(data: dict, key: str, path: pathlib.Path) -> dict:
	"""
	Get one optional object section of a settings file.
	"""
	section = data.get(key, {})
	if not isinstance(section, dict):
		raise csc.errors.ConfigurationError(f"Settings section {key} in {path} must be a JSON object")
	return section


#============================================
def load_settings(path: pathlib.Path | None) -> tuple[ModeASettings, ModeBSettings, SheetGeometry]:
	"""
	Load card and sheet settings from a JSON file over the defaults.

	The file holds an object with optional "mode_a", "mode_b" and "sheet"
	sections. Unknown keys are ignored.

	Args:
		path: Settings JSON path, or None for defaults.

	Returns:
		Tuple of (ModeASettings, ModeBSettings, SheetGeometry).
	"""
	settings_a = ModeASettings()
	settings_b = ModeBSettings()
	geometry = SheetGeometry()
	if path is None:
		return (settings_a, settings_b, geometry)
	try:
		with path.open("r", encoding="utf-8") as handle:
			data = json.load(handle)
	except (OSError, json.JSONDecodeError) as error:
		raise csc.errors.ConfigurationError(f"Could not read settings file {path}: {error}") from error
	if not isinstance(data, dict):
		raise csc.errors.ConfigurationError(f"Settings file must hold a JSON object: {path}")
	settings_a = apply_overrides(settings_a, read_section(data, "mode_a", path)).normalized()
	settings_b = apply_overrides(settings_b, read_section(data, "mode_b", path)).normalized()
	geometry = apply_overrides(geometry, read_section(data, "sheet", path)).clamped()
	return (settings_a, settings_b, geometry)
