"""Tests for RetryingDispatcher."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from hyplan.execution.dispatcher import IntentDispatcher, RetryingDispatcher
from hyplan.execution.errors import DispatcherUnavailableError
from hyplan.execution.models import Completed, Intent, IntentResult


def _intent() -> Intent:
    return Intent(id="p1:1#1", plan_id="p1", node_id=1, action="move")


def _inner(*outcomes: object) -> MagicMock:
    inner = MagicMock()
    inner.submit = AsyncMock(side_effect=list(outcomes))
    inner.cancel = AsyncMock(return_value=True)
    return inner


class TestRetryingDispatcher:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(RetryingDispatcher(_inner()), IntentDispatcher)

    async def test_passes_result_through(self) -> None:
        done = Completed(intent_id="p1:1#1")
        inner = _inner(done)
        dispatcher = RetryingDispatcher(inner, backoff=0)

        assert await dispatcher.submit(_intent()) is done
        inner.submit.assert_awaited_once()

    async def test_retries_unavailable_transport(self) -> None:
        done = Completed(intent_id="p1:1#1")
        inner = _inner(
            DispatcherUnavailableError("connection reset"),
            DispatcherUnavailableError("connection reset"),
            done,
        )
        dispatcher = RetryingDispatcher(inner, attempts=3, backoff=0)

        assert await dispatcher.submit(_intent()) is done
        assert inner.submit.await_count == 3

    async def test_gives_up_after_attempts(self) -> None:
        inner = _inner(*(DispatcherUnavailableError("down") for _ in range(2)))
        dispatcher = RetryingDispatcher(inner, attempts=2, backoff=0)

        with pytest.raises(DispatcherUnavailableError, match="down"):
            await dispatcher.submit(_intent())
        assert inner.submit.await_count == 2

    async def test_other_errors_are_not_retried(self) -> None:
        inner = _inner(ValueError("bad payload"))
        dispatcher = RetryingDispatcher(inner, attempts=5, backoff=0)

        with pytest.raises(ValueError, match="bad payload"):
            await dispatcher.submit(_intent())
        inner.submit.assert_awaited_once()

    async def test_timeout(self) -> None:
        class _Stalled:
            async def submit(self, intent: Intent) -> IntentResult:
                await asyncio.sleep(10)
                return Completed(intent_id=intent.id)

            async def cancel(self, intent_id: str) -> bool:
                return False

        dispatcher = RetryingDispatcher(_Stalled(), timeout=0.05)

        with pytest.raises(DispatcherUnavailableError, match="timed out"):
            await dispatcher.submit(_intent())

    async def test_cancel_is_retried(self) -> None:
        inner = _inner()
        inner.cancel = AsyncMock(side_effect=[DispatcherUnavailableError("blip"), True])
        dispatcher = RetryingDispatcher(inner, backoff=0)

        assert await dispatcher.cancel("p1:1#1") is True
        assert inner.cancel.await_count == 2
