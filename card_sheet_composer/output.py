"""
Output delivery: directory and zip writers, and the sheet PDF bundle.
"""

# Standard Library
import pathlib
import zipfile

# PIP3 modules
import PIL.Image
import reportlab.lib.utils
import reportlab.pdfgen.canvas

# local repo modules
import card_sheet_composer as csc
import card_sheet_composer.config


POINTS_PER_INCH = csc.config.POINTS_PER_INCH
PDF_DPI = csc.config.PDF_DPI


class DirectoryWriter:
	"""
	Emit callable that writes each file into a directory.
	"""

	def __init__(self, path: pathlib.Path) -> None:
		self.path = pathlib.Path(path)
		self.written: list[pathlib.Path] = []

	def __call__(self, filename: str, data: bytes) -> None:
		self.path.mkdir(parents=True, exist_ok=True)
		target = self.path / filename
		target.write_bytes(data)
		self.written.append(target)


class ZipArchiveWriter:
	"""
	Emit callable that collects files into one zip archive.

	The archive is created on the first emitted file and finalized by
	close(); use it as a context manager.
	"""

	def __init__(self, path: pathlib.Path) -> None:
		self.path = pathlib.Path(path)
		self.names: list[str] = []
		self._archive: zipfile.ZipFile | None = None

	def __enter__(self) -> "ZipArchiveWriter":
		return self

	def __exit__(self, exc_type, exc, traceback) -> None:
		self.close()

	def __call__(self, filename: str, data: bytes) -> None:
		if self._archive is None:
			self.path.parent.mkdir(parents=True, exist_ok=True)
			self._archive = zipfile.ZipFile(self.path, "w", compression=zipfile.ZIP_DEFLATED)
		self._archive.writestr(filename, data)
		self.names.append(filename)

	def close(self) -> None:
		if self._archive is not None:
			self._archive.close()
			self._archive = None


#============================================
def pixels_to_points(pixels: int, dpi: float = PDF_DPI) -> float:
	"""
	Convert a pixel length to PDF points at a print resolution.
	"""
	return pixels * POINTS_PER_INCH / dpi


#============================================
def write_sheets_pdf(images: list[PIL.Image.Image], output_path: pathlib.Path, dpi: float = PDF_DPI) -> int:
	"""
	Write sheet images into one PDF, one page per sheet.

	Each page is sized to its sheet at the given resolution.

	Args:
		images: Sheet images in page order.
		output_path: Output PDF path.
		dpi: Pixels per inch used to size the pages.

	Returns:
		Number of pages written.
	"""
	output_path = pathlib.Path(output_path)
	output_path.parent.mkdir(parents=True, exist_ok=True)
	pdf = reportlab.pdfgen.canvas.Canvas(str(output_path))
	for image in images:
		page_width = pixels_to_points(image.width, dpi)
		page_height = pixels_to_points(image.height, dpi)
		pdf.setPageSize((page_width, page_height))
		image_reader = reportlab.lib.utils.ImageReader(image)
		pdf.drawImage(
			image_reader,
			0,
			0,
			width=page_width,
			height=page_height,
			mask="auto",
			preserveAspectRatio=False,
			anchor="sw",
		)
		pdf.showPage()
	pdf.save()
	return len(images)
