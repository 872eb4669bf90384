"""hyplan SDK — problem files, settings and a ready-wired runner."""

from hyplan.sdk.errors import ProblemValidationError
from hyplan.sdk.models import (
    CoordinatorSettings,
    ExecutorSettings,
    PlannerSettings,
    ProblemSpec,
    TelemetrySettings,
    TemporalSettings,
)
from hyplan.sdk.problem import ProblemLoader, ProblemRunner, load_domain

__all__ = [
    "CoordinatorSettings",
    "ExecutorSettings",
    "PlannerSettings",
    "ProblemLoader",
    "ProblemRunner",
    "ProblemSpec",
    "ProblemValidationError",
    "TelemetrySettings",
    "TemporalSettings",
    "load_domain",
]
