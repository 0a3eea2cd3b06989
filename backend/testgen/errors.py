from __future__ import annotations
from typing import Optional


class ModelInvocationError(RuntimeError):
	"""Raised by the model client when the provider call does not yield text.

	``status_code`` is the provider's HTTP status when there was one; network
	failures and malformed payloads leave it as ``None``.
	"""

	def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
		super().__init__(message)
		self.status_code = status_code

	def __str__(self) -> str:
		base = super().__str__()
		if self.status_code is not None:
			return f"[{self.status_code}] {base}"
		return base
