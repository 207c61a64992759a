"""
Card frame drawing and text fitting.
"""

# Standard Library
from collections.abc import Callable

# PIP3 modules
import PIL.Image
import PIL.ImageDraw
import PIL.ImageFont

# local repo modules
import card_sheet_composer as csc
import card_sheet_composer.config
import card_sheet_composer.errors


RenderSurfaceUnavailable = csc.errors.RenderSurfaceUnavailable

BACKGROUND_FILLED = csc.config.BACKGROUND_FILLED
ELLIPSIS = csc.config.ELLIPSIS
FILL_COLOR = csc.config.FILL_COLOR
INK_COLOR = csc.config.INK_COLOR
CLEAR_COLOR = csc.config.CLEAR_COLOR
FONT_CANDIDATES = csc.config.FONT_CANDIDATES
MESSAGE_FONT_SIZE = csc.config.MESSAGE_FONT_SIZE
MESSAGE_ORIGIN = csc.config.MESSAGE_ORIGIN

_FONT_CACHE: dict[int, PIL.ImageFont.ImageFont | PIL.ImageFont.FreeTypeFont] = {}


#============================================
def new_surface(width: int, height: int) -> PIL.Image.Image:
	"""
	Create a cleared RGBA drawing surface.

	Args:
		width: Surface width in pixels.
		height: Surface height in pixels.

	Returns:
		Transparent RGBA image.
	"""
	limit = PIL.Image.MAX_IMAGE_PIXELS
	if limit is not None and width * height > 2 * limit:
		raise RenderSurfaceUnavailable(width, height, "exceeds pixel limit")
	try:
		return PIL.Image.new("RGBA", (width, height), CLEAR_COLOR)
	except (ValueError, MemoryError) as error:
		raise RenderSurfaceUnavailable(width, height, str(error)) from error


#============================================
def clamp_radius(radius: float, width: float, height: float) -> float:
	"""
	Clamp a corner radius to half the shorter side.

	Args:
		radius: Requested radius.
		width: Box width.
		height: Box height.

	Returns:
		Usable radius.
	"""
	return max(0.0, min(radius, min(width, height) / 2.0))


#============================================
def draw_card_frame(surface: PIL.Image.Image, width: int, height: int, style) -> None:
	"""
	Draw the static card frame: optional white fill and a rounded border.

	The border is drawn inside the card box, so its stroke centre line
	runs border_width / 2 pixels in from the card edge.

	Args:
		surface: RGBA surface at least width x height.
		width: Card width.
		height: Card height.
		style: Settings carrying border_width, corner_radius and background.
	"""
	surface.paste(CLEAR_COLOR, (0, 0, width, height))
	draw = PIL.ImageDraw.Draw(surface)
	radius = clamp_radius(style.corner_radius, width, height)
	if style.background == BACKGROUND_FILLED:
		draw.rounded_rectangle((0, 0, width - 1, height - 1), radius=radius, fill=FILL_COLOR)
	border = style.border_width
	if border <= 0:
		return
	box = (0, 0, width - 1, height - 1)
	draw.rounded_rectangle(box, radius=radius, outline=INK_COLOR, width=border)


#============================================
def fit_text(measure: Callable[[str], float], text: str, max_width: float) -> str:
	"""
	Fit text to a pixel budget, truncating with an ellipsis.

	Args:
		measure: Callable returning the pixel width of a string.
		text: Label text.
		max_width: Width budget in pixels.

	Returns:
		The trimmed text, a truncated prefix plus ellipsis, or "".
	"""
	clean = (text or "").strip()
	if not clean:
		return ""
	if measure(clean) <= max_width:
		return clean
	low = 0
	high = len(clean)
	while low < high:
		mid = (low + high + 1) // 2
		if measure(clean[:mid] + ELLIPSIS) <= max_width:
			low = mid
		else:
			high = mid - 1
	if low == 0 and measure(ELLIPSIS) > max_width:
		return ""
	return clean[:low] + ELLIPSIS


#============================================
def load_font(size: int):
	"""
	Load the bold label font at a pixel size.

	Args:
		size: Font size in pixels.

	Returns:
		Pillow font object.
	"""
	size = max(1, int(size))
	font = _FONT_CACHE.get(size)
	if font is not None:
		return font
	for name in FONT_CANDIDATES:
		try:
			font = PIL.ImageFont.truetype(name, size)
			break
		except OSError:
			continue
	if font is None:
		font = PIL.ImageFont.load_default(size=size)
	_FONT_CACHE[size] = font
	return font


#============================================
def make_measure(font) -> Callable[[str], float]:
	"""
	Build a text measuring callable for a font.

	Args:
		font: Pillow font object.

	Returns:
		Callable mapping text to pixel width.
	"""
	def measure(value: str) -> float:
		return font.getlength(value)
	return measure


#============================================
def draw_centered_text(
	surface: PIL.Image.Image,
	text: str,
	font,
	center_x: float,
	y: float,
	vertical: str = "top",
) -> None:
	"""
	Draw black text centred horizontally on center_x.

	Args:
		surface: RGBA surface.
		text: Already fitted text.
		font: Pillow font object.
		center_x: Horizontal centre.
		y: Top edge ("top") or vertical centre ("middle").
		vertical: "top" or "middle".
	"""
	if not text:
		return
	draw = PIL.ImageDraw.Draw(surface)
	left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
	text_x = center_x - (right - left) / 2.0 - left
	if vertical == "middle":
		text_y = y - (top + bottom) / 2.0
	else:
		text_y = y
	draw.text((text_x, text_y), text, font=font, fill=INK_COLOR)


#============================================
def paste_icon(surface: PIL.Image.Image, icon: PIL.Image.Image, x: int, y: int) -> None:
	"""
	Alpha-composite an icon onto a surface at any offset.

	Args:
		surface: RGBA surface.
		icon: RGBA icon image.
		x: Left offset, may be negative.
		y: Top offset, may be negative.
	"""
	if x >= 0 and y >= 0 and x + icon.width <= surface.width and y + icon.height <= surface.height:
		surface.alpha_composite(icon, dest=(x, y))
		return
	layer = PIL.Image.new("RGBA", surface.size, CLEAR_COLOR)
	layer.paste(icon, (x, y))
	surface.alpha_composite(layer)


#============================================
def build_message_surface(message: str, size: tuple[int, int]) -> PIL.Image.Image:
	"""
	Build a fixed-size surface showing a short message.

	Used for empty selections and failed previews.

	Args:
		message: Text to show.
		size: Surface (width, height).

	Returns:
		RGBA image.
	"""
	surface = new_surface(size[0], size[1])
	draw = PIL.ImageDraw.Draw(surface)
	font = PIL.ImageFont.load_default(size=MESSAGE_FONT_SIZE)
	draw.text(MESSAGE_ORIGIN, message, font=font, fill=INK_COLOR)
	return surface
