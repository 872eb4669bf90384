"""Domain definitions — actions, task, goal and multigoal methods consumed as data."""

from hyplan.core.domain.domain import Domain
from hyplan.core.domain.models import (
    ActionSpec,
    Condition,
    Goal,
    GoalMethodSpec,
    MethodSpec,
    Multigoal,
    MultigoalMethodSpec,
    bind,
    split_multigoal,
)

__all__ = [
    "ActionSpec",
    "Condition",
    "Domain",
    "Goal",
    "GoalMethodSpec",
    "MethodSpec",
    "Multigoal",
    "MultigoalMethodSpec",
    "bind",
    "split_multigoal",
]
