"""Pydantic models for the problem YAML schema consumed by ``hyplan run``.

Example::

    name: alex-to-park
    domain: hyplan.domains.travel:domain
    state:
      alex: {loc: home, cash: 20}
      park: {dist_from_home: 8}
    goals:
      - {subject: alex, predicate: loc, value: park, deadline: 60}
    executor:
      time_scale: 0.01
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from hyplan.core.domain.models import Goal
from hyplan.core.state.state import State, freeze_value
from hyplan.core.temporal.network import DEFAULT_FULL_RECOMPUTE_THRESHOLD


class TelemetrySettings(BaseModel):
    """Optional telemetry configuration."""

    enabled: bool = False
    otlp_endpoint: str | None = None


class TemporalSettings(BaseModel):
    full_recompute_threshold: int = Field(DEFAULT_FULL_RECOMPUTE_THRESHOLD, ge=1)
    horizon: float | None = Field(None, gt=0)


class PlannerSettings(BaseModel):
    max_depth: int = Field(64, ge=1)


class CoordinatorSettings(BaseModel):
    max_replans: int = Field(10, ge=0)


class ExecutorSettings(BaseModel):
    """Local executor and dispatcher-boundary configuration."""

    concurrency: int = Field(4, ge=1)
    time_scale: float = Field(0.0, ge=0)
    timeout: float | None = Field(None, gt=0)
    retry_attempts: int = Field(3, ge=1)
    retry_backoff: float = Field(0.5, ge=0)


class ProblemSpec(BaseModel):
    """Top-level problem specification parsed from YAML."""

    version: str = "1"
    name: str = ""
    domain: str
    state: dict[str, dict[str, Any]] = {}
    goals: list[Goal] = []
    tasks: list[list[Any]] = []
    temporal: TemporalSettings = Field(default_factory=TemporalSettings)
    planner: PlannerSettings = Field(default_factory=PlannerSettings)
    coordinator: CoordinatorSettings = Field(default_factory=CoordinatorSettings)
    executor: ExecutorSettings = Field(default_factory=ExecutorSettings)
    telemetry: TelemetrySettings | None = None

    @field_validator("domain")
    @classmethod
    def check_domain_path(cls, value: str) -> str:
        module, _, attr = value.partition(":")
        if not module or not attr:
            msg = f"domain must be an import path 'module:attribute', got {value!r}"
            raise ValueError(msg)
        return value

    @model_validator(mode="after")
    def check_agenda(self) -> ProblemSpec:
        if not self.goals and not self.tasks:
            msg = "problem requires at least one goal or task"
            raise ValueError(msg)
        for task in self.tasks:
            if not task or not isinstance(task[0], str):
                msg = f"task {task!r} must start with a task name"
                raise ValueError(msg)
        return self

    def initial_state(self) -> State:
        return State({(s, p): v for s, preds in self.state.items() for p, v in preds.items()})

    def agenda(self) -> list[Goal | tuple[Any, ...]]:
        """Goals followed by tasks, in declaration order."""
        items: list[Goal | tuple[Any, ...]] = list(self.goals)
        items.extend(freeze_value(t) for t in self.tasks)
        return items
