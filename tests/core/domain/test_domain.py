"""Tests for Domain registration, lookup and validation."""

from __future__ import annotations

from typing import Any

import pytest
from pydantic import ValidationError

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
from hyplan.core.errors import DomainValidationError
from hyplan.core.state.state import State


def _walk() -> ActionSpec:
    return ActionSpec(
        name="walk",
        params=["person", "src", "dst"],
        preconditions=[Condition(subject="$person", predicate="loc", value="$src")],
        effects=[Condition(subject="$person", predicate="loc", value="$dst")],
        duration="PT5S",
    )


class TestBind:
    def test_whole_placeholder_keeps_type(self) -> None:
        assert bind("$target", {"target": (8, 0)}) == (8, 0)
        assert bind("${n}", {"n": 3}) == 3

    def test_embedded_placeholder_is_text(self) -> None:
        assert bind("dist:$dst", {"dst": "park"}) == "dist:park"

    def test_unknown_placeholder_left_alone(self) -> None:
        assert bind("$missing", {}) == "$missing"

    def test_sequences(self) -> None:
        assert bind(["walk", "$p"], {"p": "alex"}) == ("walk", "alex")


class TestActionSpec:
    def test_check_and_effects(self) -> None:
        spec = _walk()
        state = State.from_triples([("alex", "loc", "home")])

        assert spec.check(state, ("alex", "home", "park")) is None
        assert spec.effects_for(state, ("alex", "home", "park")) == {("alex", "loc"): "park"}
        assert spec.duration_for(state, ("alex", "home", "park")) == 5000

    def test_check_reports_mismatch(self) -> None:
        spec = _walk()
        state = State.from_triples([("alex", "loc", "office")])
        reason = spec.check(state, ("alex", "home", "park"))
        assert reason is not None
        assert "alex.loc is 'office'" in reason

    def test_callable_precondition_reason(self) -> None:
        def is_open(state: State, place: str) -> bool:
            return False

        spec = ActionSpec(name="enter", params=["place"], preconditions=[is_open])
        assert spec.check(State(), ("shop",)) == "is_open does not hold for enter('shop',)"

    def test_expected_facts(self) -> None:
        facts = _walk().expected_facts(("alex", "home", "park"))
        assert [(f.subject, f.predicate, f.value) for f in facts] == [("alex", "loc", "home")]

    def test_duration_formula(self) -> None:
        spec = ActionSpec(
            name="move",
            params=["agent", "distance"],
            duration=lambda state, agent, distance: distance / 4,
        )
        assert spec.duration_for(State(), ("alex", 6)) == 1500

    def test_agent_defaults_to_first_param(self) -> None:
        spec = _walk()
        assert spec.agent_for(("alex", "home", "park")) == "alex"

    def test_explicit_agent_param(self) -> None:
        spec = ActionSpec(name="load", params=["item", "truck"], agent="truck")
        assert spec.agent_for(("box", "t1")) == "t1"

    def test_arity_mismatch(self) -> None:
        with pytest.raises(ValueError, match="expects 3 argument"):
            _walk().check(State(), ("alex",))

    def test_invalid_duration_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ActionSpec(name="bad", duration=-1)

    def test_unknown_agent_param_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ActionSpec(name="bad", params=["x"], agent="y")


class TestMethods:
    def test_static_subtasks_are_bound(self) -> None:
        method = MethodSpec(
            name="by_foot",
            task="travel",
            params=["p", "x", "y"],
            subtasks=[("walk", "$p", "$x", "$y")],
        )
        assert method.expand(State(), ("alex", "home", "park")) == [
            ("walk", "alex", "home", "park")
        ]

    def test_applicable_gate(self) -> None:
        method = MethodSpec(
            name="never",
            task="travel",
            applicable=lambda state, *args: False,
            subtasks=[("walk",)],
        )
        assert method.expand(State(), ()) is None

    def test_goal_method_binds_subject_and_value(self) -> None:
        method = GoalMethodSpec(
            name="go",
            predicate="loc",
            subtasks=[("walk", "$subject", "home", "$value")],
        )
        goal = Goal(subject="alex", predicate="loc", value="park")
        assert method.expand(State(), goal) == [("walk", "alex", "home", "park")]

    def test_goal_subtasks_are_bound(self) -> None:
        method = MethodSpec(
            name="fetch",
            task="deliver",
            params=["agent", "dest"],
            subtasks=[Goal(subject="$agent", predicate="loc", value="$dest", deadline=10)],
        )
        (goal,) = method.expand(State(), ("alex", "park")) or []
        assert goal == Goal(subject="alex", predicate="loc", value="park", deadline=10)


class TestGoal:
    def test_value_is_frozen(self) -> None:
        goal = Goal(subject="alex", predicate="position", value=[8, 0])
        assert goal.value == (8, 0)
        assert goal.holds_in(State.from_triples([("alex", "position", (8, 0))]))

    def test_str(self) -> None:
        assert str(Goal(subject="alex", predicate="loc", value="park")) == "alex.loc = 'park'"


class TestMultigoal:
    def test_requires_goals(self) -> None:
        with pytest.raises(ValidationError, match="at least one goal"):
            Multigoal(goals=())

    def test_holds_only_when_every_goal_holds(self) -> None:
        home = Goal(subject="alex", predicate="loc", value="home")
        awake = Goal(subject="alex", predicate="awake", value=True)
        multigoal = Multigoal(goals=(home, awake), name="morning")
        state = State.from_triples([("alex", "loc", "home")])

        assert not multigoal.holds_in(state)
        assert multigoal.unsatisfied(state) == [awake]
        assert split_multigoal(state, multigoal) == [awake]
        assert multigoal.holds_in(state.with_fact("alex", "awake", True))
        assert str(multigoal) == "morning[alex.loc = 'home'; alex.awake = True]"

    def test_static_multigoal_subtasks_are_bound(self) -> None:
        method = MethodSpec(
            name="gather",
            task="meet",
            params=["a", "b"],
            subtasks=[
                Multigoal(
                    goals=(
                        Goal(subject="$a", predicate="loc", value="park"),
                        Goal(subject="$b", predicate="loc", value="park"),
                    )
                )
            ],
        )
        (multigoal,) = method.expand(State(), ("alex", "bob")) or []
        assert [g.subject for g in multigoal.goals] == ["alex", "bob"]

    def test_method_applicable_gate(self) -> None:
        method = MultigoalMethodSpec(
            name="never", applicable=lambda state, mg: False, subtasks=[("walk",)]
        )
        multigoal = Multigoal(goals=(Goal(subject="x", predicate="p", value=1),))
        assert method.expand(State(), multigoal) is None


class TestDomain:
    def test_decorators_register(self) -> None:
        domain = Domain("test")

        @domain.action(params=["agent"], duration=1)
        def wait(state: State, agent: str) -> dict[Any, Any]:
            """Do nothing for a second."""
            return {}

        @domain.method("idle", params=["agent"], priority=1)
        def idle_twice(state: State, agent: str) -> list[Any]:
            return [("wait", agent), ("wait", agent)]

        @domain.method("idle", params=["agent"])
        def idle_once(state: State, agent: str) -> list[Any]:
            return [("wait", agent)]

        assert domain.is_action("wait")
        assert domain.is_task("idle")
        assert domain.get_action("wait").description == "Do nothing for a second."
        assert [m.name for m in domain.methods_for("idle")] == ["idle_once", "idle_twice"]

    def test_duplicate_action(self) -> None:
        domain = Domain()
        domain.add_action(_walk())
        with pytest.raises(DomainValidationError, match="Duplicate action"):
            domain.add_action(_walk())

    def test_unknown_action_lookup(self) -> None:
        with pytest.raises(KeyError, match="Unknown action"):
            Domain().get_action("fly")

    def test_validate_ok(self) -> None:
        domain = Domain()
        domain.add_action(_walk())
        domain.add_method(
            MethodSpec(name="m", task="travel", params=["p"], subtasks=[("walk", "$p", "a", "b")])
        )
        domain.validate()

    def test_validate_reports_every_problem(self) -> None:
        domain = Domain()
        domain.add_action(_walk())
        domain.add_method(MethodSpec(name="m1", task="travel", subtasks=[("fly", "x")]))
        domain.add_method(MethodSpec(name="m2", task="travel", subtasks=[("walk", "x")]))
        domain.add_method(
            MethodSpec(
                name="m3",
                task="travel",
                subtasks=[Goal(subject="x", predicate="mood", value="happy")],
            )
        )

        with pytest.raises(DomainValidationError) as exc_info:
            domain.validate()

        message = str(exc_info.value)
        assert "unknown task 'fly'" in message
        assert "'walk' expects 3 argument(s)" in message
        assert "no goal method for predicate 'mood'" in message

    def test_action_and_task_name_clash(self) -> None:
        domain = Domain()
        domain.add_action(_walk())
        domain.add_method(MethodSpec(name="m", task="walk", subtasks=[]))
        with pytest.raises(DomainValidationError, match="both an action and a compound task"):
            domain.validate()

    def test_multigoal_methods_register_in_priority_order(self) -> None:
        domain = Domain()

        @domain.multigoal_method(priority=1)
        def in_order(state: State, multigoal: Multigoal) -> list[Any]:
            return list(multigoal.unsatisfied(state))

        @domain.multigoal_method()
        def reversed_order(state: State, multigoal: Multigoal) -> list[Any]:
            return list(reversed(multigoal.unsatisfied(state)))

        assert [m.name for m in domain.multigoal_methods_for()] == ["reversed_order", "in_order"]
        with pytest.raises(DomainValidationError, match="Duplicate multigoal method"):
            domain.add_multigoal_method(MultigoalMethodSpec(name="in_order"))

    def test_validate_checks_multigoal_predicates(self) -> None:
        domain = Domain()
        domain.add_multigoal_method(
            MultigoalMethodSpec(
                name="static",
                subtasks=[
                    Multigoal(goals=(Goal(subject="x", predicate="mood", value="happy"),))
                ],
            )
        )

        with pytest.raises(DomainValidationError, match="multigoal method 'static'.*'mood'"):
            domain.validate()
