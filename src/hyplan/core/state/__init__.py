"""State Store — versioned subject/predicate/value fact base."""

from hyplan.core.state.models import Fact, StateSnapshot
from hyplan.core.state.state import FactKey, State, diff, freeze_value
from hyplan.core.state.store import StateStore

__all__ = [
    "Fact",
    "FactKey",
    "State",
    "StateSnapshot",
    "StateStore",
    "diff",
    "freeze_value",
]
