"""Hybrid Coordinator — plan/execute/replan control loop and plan events."""

from hyplan.core.coordinator.coordinator import (
    DEFAULT_MAX_REPLANS,
    Coordinator,
    ExecutionReport,
)
from hyplan.core.coordinator.events import EventBus, EventKind, Listener, PlanEvent

__all__ = [
    "DEFAULT_MAX_REPLANS",
    "Coordinator",
    "EventBus",
    "EventKind",
    "ExecutionReport",
    "Listener",
    "PlanEvent",
]
