from __future__ import annotations
import asyncio
import logging
from typing import Awaitable, Callable, FrozenSet, Optional

from .errors import ModelInvocationError
from .settings import settings

logger = logging.getLogger(__name__)

TRANSIENT_STATUS_CODES: FrozenSet[int] = frozenset({503})
_TRANSIENT_MARKERS = ("503", "overloaded")

Invoker = Callable[[str], Awaitable[str]]
Sleeper = Callable[[float], Awaitable[None]]


def is_transient(error: BaseException) -> bool:
	status = getattr(error, "status_code", None)
	if isinstance(error, ModelInvocationError) and status in TRANSIENT_STATUS_CODES:
		return True
	message = str(error).lower()
	return any(marker in message for marker in _TRANSIENT_MARKERS)


async def invoke_with_retry(
	invoke: Invoker,
	prompt: str,
	max_attempts: Optional[int] = None,
	*,
	backoff_seconds: Optional[float] = None,
	sleep: Sleeper = asyncio.sleep,
) -> str:
	"""Call ``invoke(prompt)``, retrying transient overload errors.

	Waits ``attempt * backoff_seconds`` between attempts (2s, 4s, ... with the
	default settings). A non-transient error is re-raised immediately; after
	``max_attempts`` transient failures the last one is re-raised.
	"""
	attempts = max_attempts if max_attempts is not None else settings.generation_max_attempts
	backoff = backoff_seconds if backoff_seconds is not None else settings.generation_backoff_seconds
	if attempts < 1:
		raise ValueError("max_attempts must be at least 1")
	attempt = 0
	while True:
		attempt += 1
		try:
			return await invoke(prompt)
		except Exception as err:
			if not is_transient(err) or attempt >= attempts:
				raise
			delay = attempt * backoff
			logger.info(
				"Model overloaded, retrying in %s seconds (attempt %s/%s): %s",
				delay, attempt, attempts, err,
			)
			await sleep(delay)
