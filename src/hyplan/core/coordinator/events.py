"""Plan lifecycle events and the observational listener bus."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from hyplan.utils.telemetry import ATTR_NODE_ID, ATTR_REASON, add_span_event

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    PLAN_STARTED = "plan_started"
    NODE_SCHEDULED = "node_scheduled"
    NODE_COMPLETED = "node_completed"
    NODE_REJECTED = "node_rejected"
    REPLAN_TRIGGERED = "replan_triggered"
    PLAN_COMPLETED = "plan_completed"
    PLAN_FAILED = "plan_failed"


_WARNING_KINDS = frozenset({EventKind.NODE_REJECTED, EventKind.REPLAN_TRIGGERED})


class PlanEvent(BaseModel):
    """Something observable that happened to a plan."""

    kind: EventKind
    plan_id: str
    node_id: int | None = None
    reason: str = ""
    data: dict[str, Any] = {}
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def describe(self) -> str:
        parts = [self.kind.value]
        if self.node_id is not None:
            parts.append(f"node={self.node_id}")
        label = self.data.get("label")
        if label:
            parts.append(str(label))
        if self.reason:
            parts.append(f"({self.reason})")
        return " ".join(parts)


Listener = Callable[[PlanEvent], Any]


class EventBus:
    """Synchronous fan-out of :class:`PlanEvent` objects to listeners.

    Listeners are observational: an exception in one is logged and never
    reaches the control loop.  Every event is also logged and recorded on
    the active OpenTelemetry span.
    """

    def __init__(self, listeners: list[Listener] | None = None) -> None:
        self._listeners: list[Listener] = list(listeners or [])
        self.history: list[PlanEvent] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Add *listener*; return a callable that removes it again."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, event: PlanEvent) -> None:
        self.history.append(event)
        level = logging.WARNING if event.kind in _WARNING_KINDS else logging.INFO
        if event.kind is EventKind.PLAN_FAILED:
            level = logging.ERROR
        logger.log(level, "Plan %s: %s", event.plan_id, event.describe())
        add_span_event(
            f"hyplan.{event.kind.value}",
            {ATTR_NODE_ID: event.node_id, ATTR_REASON: event.reason or None},
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener %r failed on %s", listener, event.kind.value)
