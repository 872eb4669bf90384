"""Tests for ProblemRunner."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import patch

import pytest

from hyplan.core.coordinator.events import EventKind, PlanEvent
from hyplan.core.domain.domain import Domain
from hyplan.core.errors import PlanningFailure
from hyplan.core.planner.models import PlanStatus
from hyplan.execution.dispatcher import RetryingDispatcher
from hyplan.sdk.models import ProblemSpec
from hyplan.sdk.problem import ProblemRunner

if TYPE_CHECKING:
    from pathlib import Path

_PROBLEM_YAML = """\
name: alex-moves
domain: hyplan.domains.travel:build_domain
state:
  alex: {position: [2, 0], speed: 4}
goals:
  - {subject: alex, predicate: position, value: [8, 0], deadline: 5}
planner:
  max_depth: 8
coordinator:
  max_replans: 2
executor:
  retry_attempts: 2
  retry_backoff: 0
"""


def _spec(**overrides: object) -> ProblemSpec:
    data: dict[str, object] = {
        "domain": "hyplan.domains.travel:domain",
        "state": {
            "alice": {"type": "person", "loc": "home_a", "cash": 20},
            "taxi1": {"type": "taxi", "loc": "taxi_lot"},
            "home_a": {"type": "location", "dist:park": 8},
            "park": {"type": "location"},
        },
        "goals": [{"subject": "alice", "predicate": "loc", "value": "park"}],
    }
    data.update(overrides)
    return ProblemSpec.model_validate(data)


class TestProblemRunner:
    def test_from_yaml(self, tmp_path: Path) -> None:
        f = tmp_path / "problem.yaml"
        f.write_text(_PROBLEM_YAML)

        runner = ProblemRunner.from_yaml(f)

        assert runner.spec.name == "alex-moves"
        assert runner.domain.name == "travel"
        assert runner.coordinator.max_replans == 2
        assert runner.coordinator.planner.max_depth == 8
        assert isinstance(runner.coordinator.dispatcher, RetryingDispatcher)
        assert runner.coordinator.dispatcher.attempts == 2
        assert runner.store.current.get("alex", "position") == (2, 0)

    def test_explicit_domain_skips_import(self) -> None:
        domain = Domain("custom")
        runner = ProblemRunner(_spec(domain="not.imported:anything"), domain=domain)
        assert runner.domain is domain

    def test_plan(self) -> None:
        plan = ProblemRunner(_spec()).plan()

        assert plan.status is PlanStatus.SCHEDULED
        assert [n.name for n in plan.schedule()] == ["call_taxi", "ride_taxi", "pay_driver"]

    def test_plan_failure(self) -> None:
        spec = _spec(goals=[{"subject": "alice", "predicate": "loc", "value": "moon"}])
        with pytest.raises(PlanningFailure):
            ProblemRunner(spec).plan()

    def test_validate_checks_domain(self) -> None:
        ProblemRunner(_spec()).validate()

    async def test_run(self, tmp_path: Path) -> None:
        f = tmp_path / "problem.yaml"
        f.write_text(_PROBLEM_YAML)
        events: list[PlanEvent] = []

        report = await ProblemRunner.from_yaml(f, listeners=[events.append]).run()

        assert report.status is PlanStatus.COMPLETED
        assert report.fact("alex", "position") == (8, 0)
        assert events[0].kind is EventKind.PLAN_STARTED
        assert events[-1].kind is EventKind.PLAN_COMPLETED

    async def test_run_configures_telemetry(self) -> None:
        spec = _spec(telemetry={"enabled": True, "otlp_endpoint": "http://collector:4317"})
        runner = ProblemRunner(spec)

        with patch("hyplan.sdk.problem.configure_telemetry") as mock_configure:
            report = await runner.run()

        mock_configure.assert_called_once_with(otlp_endpoint="http://collector:4317")
        assert report.status is PlanStatus.COMPLETED
        assert report.fact("alice", "loc") == "park"
