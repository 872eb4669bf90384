"""LocalExecutor — in-process reference implementation of :class:`IntentDispatcher`.

Runs intents against the live :class:`~hyplan.core.state.store.StateStore`
without mutating it: the executor only *reports* effects, the coordinator
commits them.  Behaviour at execution time:

1. **Idempotency** — an intent already completed in the ledger returns
   ``Completed`` with no effects; one already cancelled or rejected
   returns ``Rejected``.
2. **Precondition re-check** — the planner's expected facts and the
   action's own preconditions are evaluated against the current state; a
   mismatch returns ``Rejected``.
3. **Simulated duration** — with ``time_scale > 0`` the executor sleeps
   ``duration * time_scale`` seconds, waking early on cancellation.
4. **Runtime hook** — the action's ``execute`` hook may raise
   :class:`IntentRejectedError` (→ ``Rejected``) or any other exception
   (→ ``Failed``), or return a mapping of actual effects.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from hyplan.core.state.models import Fact
from hyplan.execution.errors import IntentRejectedError
from hyplan.execution.models import (
    Cancelled,
    Completed,
    Failed,
    IntentStatus,
    Rejected,
    TERMINAL_STATUSES,
)
from hyplan.utils.telemetry import ATTR_ACTION, ATTR_ATTEMPT, ATTR_INTENT_ID, ATTR_RESULT, get_tracer

if TYPE_CHECKING:
    from hyplan.core.domain.domain import Domain
    from hyplan.core.state.state import State
    from hyplan.core.state.store import StateStore
    from hyplan.execution.ledger import IntentLedger
    from hyplan.execution.models import Intent, IntentResult

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)


class LocalExecutor:
    """Bounded worker pool executing intents in the current process.

    Args:
        domain: Domain providing action preconditions, effects and hooks.
        store: Store whose current state intents are checked against.
        ledger: Shared idempotency record.
        concurrency: Maximum number of intents executing at once.
        time_scale: Wall-clock seconds slept per planned second (``0``
            disables simulated durations).
    """

    def __init__(
        self,
        domain: Domain,
        store: StateStore,
        ledger: IntentLedger,
        *,
        concurrency: int = 4,
        time_scale: float = 0.0,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._domain = domain
        self._store = store
        self._ledger = ledger
        self._semaphore = asyncio.Semaphore(concurrency)
        self._cancel_events: dict[str, asyncio.Event] = {}
        self._cancelled: set[str] = set()
        self.time_scale = time_scale

    async def submit(self, intent: Intent) -> IntentResult:
        with _tracer.start_as_current_span("hyplan.executor.submit") as span:
            span.set_attribute(ATTR_INTENT_ID, intent.id)
            span.set_attribute(ATTR_ACTION, intent.action)
            span.set_attribute(ATTR_ATTEMPT, intent.attempt)
            result = await self._submit(intent)
            span.set_attribute(ATTR_RESULT, result.kind)
            return result

    async def cancel(self, intent_id: str) -> bool:
        """Signal cancellation; observed before any effects are reported.

        Ids are remembered only until their submission is seen, and not at
        all once the ledger holds a terminal status for them.
        """
        event = self._cancel_events.get(intent_id)
        if event is None:
            if self._ledger.status(intent_id) not in TERMINAL_STATUSES:
                self._cancelled.add(intent_id)
            return False
        event.set()
        logger.debug("Cancellation requested for in-flight intent %s", intent_id)
        return True

    async def _submit(self, intent: Intent) -> IntentResult:
        status = self._ledger.status(intent.id)
        if status is IntentStatus.COMPLETED:
            logger.info("Intent %s already completed; not re-executing", intent.id)
            return Completed(intent_id=intent.id, duplicate=True)
        if status in (IntentStatus.CANCELLED, IntentStatus.REJECTED):
            return Rejected(intent_id=intent.id, reason=f"intent already {status.value}")
        if intent.id in self._cancelled:
            self._cancelled.discard(intent.id)
            return Cancelled(intent_id=intent.id, reason="cancelled before start")

        event = self._cancel_events.setdefault(intent.id, asyncio.Event())
        try:
            async with self._semaphore:
                return await self._run(intent, event)
        finally:
            self._cancel_events.pop(intent.id, None)
            self._cancelled.discard(intent.id)

    async def _run(self, intent: Intent, cancelled: asyncio.Event) -> IntentResult:
        if cancelled.is_set():
            return Cancelled(intent_id=intent.id, reason="cancelled before start")

        spec = self._domain.actions.get(intent.action)
        if spec is None:
            return Failed(intent_id=intent.id, error=f"unknown action {intent.action!r}")

        reason = self._check(intent, self._store.current)
        if reason is not None:
            logger.info("Rejecting %s: %s", intent.label, reason)
            return Rejected(intent_id=intent.id, reason=reason)

        delay = intent.duration * self.time_scale
        if delay > 0:
            try:
                await asyncio.wait_for(cancelled.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass

        if cancelled.is_set():
            return Cancelled(intent_id=intent.id, reason="cancelled during execution")

        state = self._store.current
        try:
            outcome = await self._hook(spec.execute, state, intent.args)
        except IntentRejectedError as exc:
            logger.info("Runtime hook rejected %s: %s", intent.label, exc.reason)
            return Rejected(intent_id=intent.id, reason=exc.reason)
        except Exception as exc:
            logger.warning("Runtime hook for %s failed: %s", intent.label, exc)
            return Failed(intent_id=intent.id, error=f"{type(exc).__name__}: {exc}")

        if cancelled.is_set():
            return Cancelled(intent_id=intent.id, reason="cancelled during execution")

        if isinstance(outcome, Mapping):
            effects: Mapping[Any, Any] = outcome
        else:
            effects = spec.effects_for(state, intent.args)
        facts = [Fact(subject=s, predicate=p, value=v) for (s, p), v in effects.items()]
        return Completed(intent_id=intent.id, effects=facts)

    def _check(self, intent: Intent, state: State) -> str | None:
        for fact in intent.preconditions:
            actual = state.get(fact.subject, fact.predicate)
            if actual != fact.value:
                return f"{fact.subject}.{fact.predicate} is {actual!r}, expected {fact.value!r}"
        return self._domain.get_action(intent.action).check(state, intent.args)

    async def _hook(self, hook: Any, state: State, args: tuple[Any, ...]) -> Any:
        if hook is None:
            return None
        outcome = hook(state, *args)
        if inspect.isawaitable(outcome):
            outcome = await outcome
        return outcome
