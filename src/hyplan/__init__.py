"""hyplan — hybrid temporal HTN planner with idempotent intent execution."""

from __future__ import annotations

from typing import TYPE_CHECKING

__version__ = "0.1.0"

if TYPE_CHECKING:
    from hyplan.sdk.problem import ProblemLoader as ProblemLoader
    from hyplan.sdk.problem import ProblemRunner as ProblemRunner

_SDK_EXPORTS = {
    "ProblemRunner": "hyplan.sdk.problem",
    "ProblemLoader": "hyplan.sdk.problem",
}


def __getattr__(name: str) -> object:
    module_path = _SDK_EXPORTS.get(name)
    if module_path is not None:
        import importlib

        mod = importlib.import_module(module_path)
        return getattr(mod, name)
    raise AttributeError(f"module 'hyplan' has no attribute {name!r}")
