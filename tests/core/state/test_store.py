"""Tests for StateStore."""

from __future__ import annotations

import pytest

from hyplan.core.state.state import State
from hyplan.core.state.store import StateStore


class TestStateStore:
    def test_defaults_to_empty_state(self) -> None:
        store = StateStore()
        assert store.version == 0
        assert len(store.current) == 0

    def test_apply_advances_version(self) -> None:
        store = StateStore(State.from_triples([("alex", "position", (2, 0))]))
        initial = store.current

        store.apply({("alex", "position"): (8, 0)})

        assert store.version == 1
        assert store.current.get("alex", "position") == (8, 0)
        assert initial.get("alex", "position") == (2, 0)

    def test_commit_rejects_stale_version(self) -> None:
        store = StateStore()
        stale = store.current
        store.apply({("x", "p"): 1})
        with pytest.raises(ValueError, match="Cannot commit"):
            store.commit(stale)

    def test_at_and_rollback(self) -> None:
        store = StateStore()
        store.apply({("x", "p"): 1})
        store.apply({("x", "p"): 2})

        assert store.at(1).get("x", "p") == 1

        store.rollback(1)

        assert store.version == 1
        assert store.current.get("x", "p") == 1
        assert len(store.history()) == 2

    def test_unknown_version(self) -> None:
        store = StateStore()
        with pytest.raises(KeyError):
            store.at(42)

    def test_max_history_trims_oldest(self) -> None:
        store = StateStore(max_history=2)
        for i in range(4):
            store.apply({("x", "p"): i})

        assert [s.version for s in store.history()] == [3, 4]
        with pytest.raises(KeyError):
            store.at(0)
