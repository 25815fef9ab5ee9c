"""Error taxonomy shared by the chat, search and identity services."""

from __future__ import annotations


class SemchatError(Exception):
	"""Base class for errors surfaced to API callers."""

	status_code = 500

	def __init__(self, detail: str) -> None:
		super().__init__(detail)
		self.detail = detail


class InputInvalid(SemchatError):
	"""Empty or malformed request fields."""

	status_code = 400


class Unauthorized(SemchatError):
	"""Missing or bad credential."""

	status_code = 401


class StoreFailure(SemchatError):
	"""Durable read/write failed; reported as a generic server error."""

	status_code = 500
