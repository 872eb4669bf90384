"""StateStore — the single mutable "current version" pointer over immutable states.

Reads of any :class:`State` version need no synchronisation.  Only the
*current* pointer moves, and it is moved exclusively by the owner of the
store (the coordinator's control loop), which is what keeps execution
callbacks and replanning from racing each other.
"""

from __future__ import annotations

import logging

from hyplan.core.state.state import FactUpdates, State

logger = logging.getLogger(__name__)


class StateStore:
    """Version history plus a current pointer.

    Usage::

        store = StateStore(State.from_triples([("alex", "position", (2, 0))]))
        store.apply({("alex", "position"): (8, 0)})
        store.current.get("alex", "position")   # (8, 0)
        store.rollback(0)
    """

    def __init__(self, initial: State | None = None, *, max_history: int | None = None) -> None:
        self._history: list[State] = [initial if initial is not None else State()]
        self.max_history = max_history

    @property
    def current(self) -> State:
        return self._history[-1]

    @property
    def version(self) -> int:
        return self.current.version

    def history(self) -> list[State]:
        """Return the retained versions, oldest first."""
        return list(self._history)

    def at(self, version: int) -> State:
        """Return the retained state with the given *version*.

        Raises:
            KeyError: If that version is not (or no longer) retained.
        """
        for state in reversed(self._history):
            if state.version == version:
                return state
        raise KeyError(f"State version {version} is not retained")

    def commit(self, state: State) -> State:
        """Make *state* the current version.

        Raises:
            ValueError: If *state* is not newer than the current version.
        """
        if state.version <= self.current.version:
            raise ValueError(
                f"Cannot commit version {state.version} over current version {self.current.version}"
            )
        self._history.append(state)
        if self.max_history is not None and len(self._history) > self.max_history:
            del self._history[: len(self._history) - self.max_history]
        return state

    def apply(self, updates: FactUpdates) -> State:
        """Derive a new version from the current one and commit it."""
        state = self.commit(self.current.with_facts(updates))
        logger.debug("State advanced to version %d", state.version)
        return state

    def rollback(self, version: int) -> State:
        """Make a retained older *version* current again, discarding newer ones."""
        target = self.at(version)
        while self._history[-1] is not target:
            self._history.pop()
        logger.debug("State rolled back to version %d", version)
        return target
