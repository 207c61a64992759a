"""
Pytest configuration for local imports and shared fixtures.
"""

# Standard Library
import asyncio
import io
import os
import sys

# PIP3 modules
import PIL.Image
import pytest

#============================================


def _ensure_repo_on_path() -> None:
	"""
	Ensure the repository root is on sys.path.
	"""
	repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
	if repo_root not in sys.path:
		sys.path.insert(0, repo_root)


_ensure_repo_on_path()

# local repo modules
import card_sheet_composer as csc  # noqa: E402
import card_sheet_composer.errors  # noqa: E402


SVG_ICON = (
	b'<svg xmlns="http://www.w3.org/2000/svg" width="32" height="32" viewBox="0 0 32 32">'
	b'<circle cx="16" cy="16" r="12" fill="#d62d20"/>'
	b"</svg>"
)


#============================================
def make_png_bytes(size: tuple[int, int] = (16, 16), color: tuple = (200, 30, 30, 255)) -> bytes:
	"""
	Build a solid color PNG.
	"""
	image = PIL.Image.new("RGBA", size, color)
	buffer = io.BytesIO()
	image.save(buffer, format="PNG")
	return buffer.getvalue()


class FakeFetcher:
	"""
	In-memory fetcher that counts calls per locator.
	"""

	def __init__(self, resources: dict[str, bytes] | None = None) -> None:
		self.resources = dict(resources or {})
		self.calls: dict[str, int] = {}
		self.failures: dict[str, int] = {}

	def fail_next(self, locator: str, status: int = 404) -> None:
		self.failures[locator] = status

	@property
	def total_calls(self) -> int:
		return sum(self.calls.values())

	async def __call__(self, locator: str) -> bytes:
		self.calls[locator] = self.calls.get(locator, 0) + 1
		# yield so concurrent requests overlap
		await asyncio.sleep(0)
		status = self.failures.pop(locator, None)
		if status is not None:
			raise csc.errors.ResourceFetchError(locator, status)
		if locator not in self.resources:
			raise csc.errors.ResourceFetchError(locator, 404)
		return self.resources[locator]


#============================================
@pytest.fixture
def png_bytes():
	"""
	Factory fixture for PNG bytes.
	"""
	return make_png_bytes


#============================================
@pytest.fixture
def svg_bytes() -> bytes:
	return SVG_ICON


#============================================
@pytest.fixture
def fake_fetcher() -> FakeFetcher:
	"""
	Fetcher serving a PNG for "icon-N" locators and an SVG for "vector".
	"""
	resources = {f"icon-{index}": make_png_bytes() for index in range(1, 21)}
	resources["vector"] = SVG_ICON
	return FakeFetcher(resources)
