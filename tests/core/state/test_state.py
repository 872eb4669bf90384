"""Tests for the immutable, versioned State."""

from __future__ import annotations

from hyplan.core.state.models import Fact
from hyplan.core.state.state import State, diff, freeze_value


class TestFreezeValue:
    def test_list_becomes_tuple(self) -> None:
        assert freeze_value([1, [2, 3]]) == (1, (2, 3))

    def test_dict_becomes_sorted_items(self) -> None:
        assert freeze_value({"b": 2, "a": [1]}) == (("a", (1,)), ("b", 2))

    def test_set_becomes_frozenset(self) -> None:
        assert freeze_value({1, 2}) == frozenset({1, 2})

    def test_scalars_untouched(self) -> None:
        assert freeze_value("park") == "park"
        assert freeze_value(None) is None


class TestState:
    def test_get_and_default(self) -> None:
        state = State.from_triples([("alex", "loc", "home")])
        assert state.get("alex", "loc") == "home"
        assert state.get("alex", "cash") is None
        assert state.get("alex", "cash", 0) == 0
        assert state.has("alex", "loc")
        assert ("alex", "loc") in state

    def test_with_fact_is_a_new_version(self) -> None:
        state = State.from_triples([("alex", "loc", "home")])
        moved = state.with_fact("alex", "loc", "park")

        assert state.get("alex", "loc") == "home"
        assert moved.get("alex", "loc") == "park"
        assert moved.version == state.version + 1

    def test_with_facts_accepts_fact_models(self) -> None:
        state = State().with_facts([Fact(subject="alex", predicate="position", value=[2, 0])])
        assert state.get("alex", "position") == (2, 0)

    def test_without_fact(self) -> None:
        state = State.from_triples([("alex", "loc", "home"), ("alex", "cash", 5)])
        smaller = state.without_fact("alex", "cash")
        assert len(smaller) == 1
        assert len(state) == 2

    def test_matches(self) -> None:
        state = State.from_triples([("alex", "position", (2, 0))])
        assert state.matches({("alex", "position"): [2, 0]})
        assert not state.matches({("alex", "position"): (8, 0)})
        assert not state.matches({("bob", "position"): None})

    def test_signature_is_order_independent(self) -> None:
        a = State.from_triples([("x", "p", 1), ("y", "p", 2)])
        b = State.from_triples([("y", "p", 2), ("x", "p", 1)])
        assert a.signature() == b.signature()
        assert a == b
        assert hash(a) == hash(b)

    def test_signature_ignores_version(self) -> None:
        a = State.from_triples([("x", "p", 1)])
        b = a.with_fact("x", "p", 2).with_fact("x", "p", 1)
        assert b.version == 2
        assert a.signature() == b.signature()

    def test_subjects_with(self) -> None:
        state = State.from_triples(
            [("alice", "type", "person"), ("bob", "type", "person"), ("park", "type", "location")]
        )
        assert state.subjects_with("type", "person") == ["alice", "bob"]
        assert state.subjects() == ["alice", "bob", "park"]

    def test_diff(self) -> None:
        a = State.from_triples([("x", "p", 1), ("y", "p", 2)])
        b = a.with_fact("x", "p", 3).without_fact("y", "p").with_fact("z", "p", 0)
        assert diff(a, b) == {("x", "p"), ("y", "p"), ("z", "p")}
        assert a.diff(a) == set()

    def test_snapshot_restore(self) -> None:
        state = State.from_triples([("alex", "cash", 20), ("alex", "loc", "home")])
        state = state.with_fact("alex", "cash", 15)

        restored = State.restore(state.snapshot())

        assert restored == state
        assert restored.version == state.version
