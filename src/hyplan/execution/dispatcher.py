"""IntentDispatcher protocol and a retrying wrapper for unreliable transports.

The coordinator only ever talks to an :class:`IntentDispatcher`.  Transport
hiccups (:class:`DispatcherUnavailableError`) are retried here, with
exponential backoff, so they stay invisible to the planning core beyond
the overall timeout.  Re-submitting is safe because intents are
idempotent.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from hyplan.execution.errors import DispatcherUnavailableError

if TYPE_CHECKING:
    from hyplan.execution.models import Intent, IntentResult

logger = logging.getLogger(__name__)


@runtime_checkable
class IntentDispatcher(Protocol):
    """Asynchronous execution boundary for intents."""

    async def submit(self, intent: Intent) -> IntentResult:
        """Execute *intent* and return its tagged result."""
        ...

    async def cancel(self, intent_id: str) -> bool:
        """Request cooperative cancellation; ``True`` if the intent was known."""
        ...


class RetryingDispatcher:
    """Wraps an :class:`IntentDispatcher` with backoff retries and a timeout.

    Usage::

        dispatcher = RetryingDispatcher(queue_client, attempts=5, timeout=30)
        result = await dispatcher.submit(intent)

    Raises :class:`DispatcherUnavailableError` once *attempts* are spent or
    *timeout* seconds have elapsed.
    """

    def __init__(
        self,
        inner: IntentDispatcher,
        *,
        attempts: int = 3,
        backoff: float = 0.5,
        max_backoff: float = 10.0,
        timeout: float | None = None,
    ) -> None:
        self._inner = inner
        self.attempts = attempts
        self.backoff = backoff
        self.max_backoff = max_backoff
        self.timeout = timeout

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential(multiplier=self.backoff, max=self.max_backoff),
            retry=retry_if_exception_type(DispatcherUnavailableError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    async def submit(self, intent: Intent) -> IntentResult:
        async def attempt() -> IntentResult:
            async for retry in self._retrying():
                with retry:
                    return await self._inner.submit(intent)
            raise DispatcherUnavailableError("no attempts made")  # pragma: no cover

        try:
            return await asyncio.wait_for(attempt(), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise DispatcherUnavailableError(
                f"submit of {intent.id} timed out after {self.timeout}s"
            ) from exc

    async def cancel(self, intent_id: str) -> bool:
        async for retry in self._retrying():
            with retry:
                return await self._inner.cancel(intent_id)
        return False  # pragma: no cover
