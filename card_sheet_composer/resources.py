"""
Icon resource fetching, decoding and caching.
"""

# Standard Library
import asyncio
import dataclasses
import io
import pathlib
import urllib.parse
import urllib.request

# PIP3 modules
import defusedxml
import defusedxml.ElementTree as ElementTree
import fitz
import httpx
import PIL.Image

# local repo modules
import card_sheet_composer as csc
import card_sheet_composer.errors


ResourceFetchError = csc.errors.ResourceFetchError
DecodeError = csc.errors.DecodeError

HTTP_TIMEOUT = 15.0
KIND_SVG = "svg"
KIND_RASTER = "raster"


@dataclasses.dataclass
class IconHandle:
	locator: str
	kind: str
	data: bytes
	width: float
	height: float
	image: PIL.Image.Image | None = None
	sizes: dict[tuple[int, int], PIL.Image.Image] = dataclasses.field(default_factory=dict, repr=False)

	def rasterize(self, width: int, height: int) -> PIL.Image.Image:
		"""
		Rasterize the icon to an RGBA image of exactly width x height.

		Args:
			width: Target width in pixels.
			height: Target height in pixels.

		Returns:
			RGBA PIL image, shared between callers asking for the same size.
		"""
		key = (width, height)
		cached = self.sizes.get(key)
		if cached is not None:
			return cached
		if self.kind == KIND_SVG:
			image = render_svg(self.data, width, height)
		else:
			image = self.image.resize((width, height), PIL.Image.Resampling.LANCZOS)
		self.sizes[key] = image
		return image


#============================================
def render_svg(data: bytes, width: int, height: int) -> PIL.Image.Image:
	"""
	Render SVG bytes to an RGBA image with PyMuPDF.

	Args:
		data: SVG document bytes.
		width: Target width in pixels.
		height: Target height in pixels.

	Returns:
		RGBA PIL image.
	"""
	document = fitz.open(stream=data, filetype="svg")
	try:
		page = document[0]
		matrix = fitz.Matrix(width / page.rect.width, height / page.rect.height)
		pixmap = page.get_pixmap(matrix=matrix, alpha=True)
		image = PIL.Image.frombytes("RGBA", (pixmap.width, pixmap.height), pixmap.samples)
	finally:
		document.close()
	if image.size != (width, height):
		image = image.resize((width, height), PIL.Image.Resampling.LANCZOS)
	return image


#============================================
def looks_like_markup(data: bytes) -> bool:
	"""
	Check whether bytes look like an XML/SVG document.

	Args:
		data: Raw resource bytes.

	Returns:
		True for markup.
	"""
	stripped = data.lstrip(b"\xef\xbb\xbf \t\r\n")
	return stripped.startswith(b"<")


#============================================
def decode_svg(locator: str, data: bytes) -> IconHandle:
	"""
	Validate SVG bytes and read their intrinsic size.

	Args:
		locator: Resource locator, for error reports.
		data: SVG bytes.

	Returns:
		IconHandle for the SVG.
	"""
	try:
		root = ElementTree.fromstring(data)
	except (ElementTree.ParseError, defusedxml.DefusedXmlException) as error:
		raise DecodeError(locator, str(error)) from error
	if not root.tag.endswith("svg"):
		raise DecodeError(locator, f"unexpected root element {root.tag}")
	try:
		document = fitz.open(stream=data, filetype="svg")
	except (RuntimeError, ValueError) as error:
		raise DecodeError(locator, str(error)) from error
	try:
		if document.page_count < 1:
			raise DecodeError(locator, "empty SVG document")
		rect = document[0].rect
	finally:
		document.close()
	if rect.width <= 0 or rect.height <= 0:
		raise DecodeError(locator, "SVG has no drawable area")
	return IconHandle(
		locator=locator,
		kind=KIND_SVG,
		data=data,
		width=rect.width,
		height=rect.height,
	)


#============================================
def decode_raster(locator: str, data: bytes) -> IconHandle:
	"""
	Decode raster image bytes with Pillow.

	Args:
		locator: Resource locator, for error reports.
		data: Image bytes.

	Returns:
		IconHandle for the raster image.
	"""
	try:
		image = PIL.Image.open(io.BytesIO(data))
		image.load()
	except (OSError, PIL.Image.DecompressionBombError) as error:
		raise DecodeError(locator, str(error)) from error
	image = image.convert("RGBA")
	return IconHandle(
		locator=locator,
		kind=KIND_RASTER,
		data=data,
		width=float(image.width),
		height=float(image.height),
		image=image,
	)


#============================================
def decode_icon(locator: str, data: bytes) -> IconHandle:
	"""
	Decode fetched bytes into a drawable icon handle.

	Args:
		locator: Resource locator.
		data: Raw bytes.

	Returns:
		IconHandle.
	"""
	if looks_like_markup(data):
		return decode_svg(locator, data)
	return decode_raster(locator, data)


#============================================
def read_local_bytes(locator: str, path: pathlib.Path) -> bytes:
	"""
	Read a local resource file.

	Args:
		locator: Original locator, for error reports.
		path: File path.

	Returns:
		File bytes.
	"""
	try:
		return path.read_bytes()
	except OSError as error:
		raise ResourceFetchError(locator, None, str(error)) from error


class LocatorFetcher:
	"""
	Fetch resource bytes for http(s) URLs, file URLs and plain paths.
	"""

	def __init__(self, client: httpx.AsyncClient | None = None, timeout: float = HTTP_TIMEOUT) -> None:
		self._client = client
		self._owns_client = client is None
		self._timeout = timeout

	async def __call__(self, locator: str) -> bytes:
		parsed = urllib.parse.urlparse(locator)
		if parsed.scheme in ("http", "https"):
			return await self._fetch_http(locator)
		if parsed.scheme == "file":
			path = pathlib.Path(urllib.request.url2pathname(parsed.path))
		else:
			path = pathlib.Path(locator)
		return await asyncio.to_thread(read_local_bytes, locator, path)

	async def _fetch_http(self, locator: str) -> bytes:
		if self._client is None:
			self._client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
		try:
			response = await self._client.get(locator)
		except httpx.HTTPError as error:
			raise ResourceFetchError(locator, None, str(error)) from error
		if not response.is_success:
			raise ResourceFetchError(locator, response.status_code)
		return response.content

	async def aclose(self) -> None:
		if self._owns_client and self._client is not None:
			await self._client.aclose()
			self._client = None


class ResourceCache:
	"""
	Session cache of decoded icons keyed by locator.

	The pending task is stored before the fetch starts, so concurrent
	requests for one locator share a single fetch. Failed loads remove
	their entry so the next request starts over.
	"""

	def __init__(self, fetcher=None, decoder=None) -> None:
		self._fetcher = fetcher if fetcher is not None else LocatorFetcher()
		self._decoder = decoder if decoder is not None else decode_icon
		self._entries: dict[str, asyncio.Task] = {}

	def __contains__(self, locator: str) -> bool:
		return locator in self._entries

	def __len__(self) -> int:
		return len(self._entries)

	async def __aenter__(self) -> "ResourceCache":
		return self

	async def __aexit__(self, exc_type, exc, traceback) -> None:
		await self.aclose()

	def get(self, locator: str) -> asyncio.Future:
		"""
		Get the load for a locator, starting it on first request.

		Each caller receives a shielded view of the shared load task, so
		cancelling one waiter leaves the load running for the others.
		Must be called with a running event loop.

		Args:
			locator: Resource locator.

		Returns:
			Awaitable resolving to an IconHandle.
		"""
		task = self._entries.get(locator)
		if task is None:
			task = asyncio.ensure_future(self._load(locator))
			self._entries[locator] = task
		return asyncio.shield(task)

	async def _load(self, locator: str) -> IconHandle:
		try:
			data = await self._fetcher(locator)
			return await asyncio.to_thread(self._decoder, locator, data)
		except (Exception, asyncio.CancelledError):
			if self._entries.get(locator) is asyncio.current_task():
				del self._entries[locator]
			raise

	async def prefetch(self, locators) -> list[IconHandle]:
		"""
		Load several locators concurrently.

		Every load is awaited to completion before the first failure,
		if any, is raised.

		Args:
			locators: Iterable of locators; duplicates are loaded once.

		Returns:
			Icon handles in first-seen order.
		"""
		unique = list(dict.fromkeys(locators))
		if not unique:
			return []
		results = await asyncio.gather(
			*(self.get(locator) for locator in unique),
			return_exceptions=True,
		)
		for result in results:
			if isinstance(result, BaseException):
				raise result
		return list(results)

	def clear(self) -> None:
		self._entries.clear()

	async def aclose(self) -> None:
		closer = getattr(self._fetcher, "aclose", None)
		if closer is not None:
			await closer()
