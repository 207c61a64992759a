"""
Error kinds raised by the composition engine.
"""


class CardSheetError(Exception):
	"""Base class for engine errors."""


class ResourceFetchError(CardSheetError):
	def __init__(self, locator: str, status: int | None, detail: str = "") -> None:
		self.locator = locator
		self.status = status
		message = f"Could not fetch {locator}"
		if status is not None:
			message += f" (status {status})"
		if detail:
			message += f": {detail}"
		super().__init__(message)


class DecodeError(CardSheetError):
	def __init__(self, locator: str, reason: str) -> None:
		self.locator = locator
		self.reason = reason
		super().__init__(f"Could not decode {locator}: {reason}")


class RenderSurfaceUnavailable(CardSheetError):
	def __init__(self, width: int, height: int, reason: str = "") -> None:
		self.width = width
		self.height = height
		message = f"Drawing surface {width}x{height} unavailable"
		if reason:
			message += f": {reason}"
		super().__init__(message)


class ConfigurationError(CardSheetError):
	"""Raised when settings produce an unusable tile."""


class RenderCancelled(CardSheetError):
	"""Raised when a newer render run supersedes the current one."""
