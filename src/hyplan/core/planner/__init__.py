"""HTN planner — goal/task decomposition into a temporally consistent plan."""

from hyplan.core.planner.htn import Blacklist, HTNPlanner, SearchStats
from hyplan.core.planner.models import (
    NodeKind,
    NodeStatus,
    Plan,
    PlanStatus,
    TaskNode,
)

__all__ = [
    "Blacklist",
    "HTNPlanner",
    "NodeKind",
    "NodeStatus",
    "Plan",
    "PlanStatus",
    "SearchStats",
    "TaskNode",
]
