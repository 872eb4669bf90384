"""Immutable, versioned fact base.

A :class:`State` maps ``(subject, predicate)`` keys to values.  It is never
mutated in place: :meth:`State.with_fact` and friends return a *new*
version, leaving the original untouched, so any version can be read
concurrently without locking and kept around for rollback.

Values are frozen on the way in (lists become tuples, dicts become sorted
item tuples, sets become frozensets) so every state is hashable and its
:meth:`~State.signature` can key the planner's blacklist.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import Any, cast

from hyplan.core.state.models import Fact, StateSnapshot

FactKey = tuple[str, str]
FactUpdates = Mapping[FactKey, Any] | Iterable[Fact]


def freeze_value(value: Any) -> Any:
    """Return a hashable, immutable equivalent of *value*."""
    if isinstance(value, (list, tuple)):
        return tuple(freeze_value(v) for v in cast("Iterable[Any]", value))
    if isinstance(value, dict):
        items = cast("dict[Any, Any]", value).items()
        return tuple(sorted((k, freeze_value(v)) for k, v in items))
    if isinstance(value, (set, frozenset)):
        return frozenset(freeze_value(v) for v in cast("Iterable[Any]", value))
    return value


def _normalise(updates: FactUpdates) -> dict[FactKey, Any]:
    if isinstance(updates, Mapping):
        mapping = cast("Mapping[FactKey, Any]", updates)
        return {(str(s), str(p)): freeze_value(v) for (s, p), v in mapping.items()}
    return {fact.key: freeze_value(fact.value) for fact in updates}


class State:
    """One immutable version of the fact base."""

    __slots__ = ("_facts", "_signature", "_version")

    def __init__(self, facts: FactUpdates | None = None, *, version: int = 0) -> None:
        self._facts: dict[FactKey, Any] = _normalise(facts) if facts is not None else {}
        self._version = version
        self._signature: frozenset[tuple[FactKey, Any]] | None = None

    @classmethod
    def from_triples(cls, triples: Iterable[tuple[str, str, Any]]) -> State:
        """Build a state from ``(subject, predicate, value)`` triples."""
        return cls({(s, p): v for s, p, v in triples})

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    @property
    def version(self) -> int:
        return self._version

    def get(self, subject: str, predicate: str, default: Any = None) -> Any:
        """Return the value of ``(subject, predicate)``, or *default* if absent."""
        return self._facts.get((subject, predicate), default)

    def has(self, subject: str, predicate: str) -> bool:
        return (subject, predicate) in self._facts

    def matches(self, conditions: Mapping[FactKey, Any]) -> bool:
        """Return ``True`` if every ``key -> value`` in *conditions* holds."""
        missing = object()
        return all(
            self._facts.get(key, missing) == freeze_value(value)
            for key, value in conditions.items()
        )

    def subjects(self) -> list[str]:
        """Return the distinct subjects, in first-seen order."""
        return list(dict.fromkeys(s for s, _ in self._facts))

    def subjects_with(self, predicate: str, value: Any) -> list[str]:
        """Return the subjects whose *predicate* equals *value*."""
        frozen = freeze_value(value)
        return [s for (s, p), v in self._facts.items() if p == predicate and v == frozen]

    def facts(self) -> list[Fact]:
        return [Fact(subject=s, predicate=p, value=v) for (s, p), v in self._facts.items()]

    def items(self) -> Iterator[tuple[FactKey, Any]]:
        return iter(self._facts.items())

    def signature(self) -> frozenset[tuple[FactKey, Any]]:
        """Canonical, order-independent, hashable form of the facts."""
        if self._signature is None:
            self._signature = frozenset(self._facts.items())
        return self._signature

    def diff(self, other: State) -> set[FactKey]:
        """Return the keys whose value differs between *self* and *other*."""
        return diff(self, other)

    def __contains__(self, key: object) -> bool:
        return key in self._facts

    def __len__(self) -> int:
        return len(self._facts)

    def __iter__(self) -> Iterator[FactKey]:
        return iter(self._facts)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, State):
            return NotImplemented
        return self._facts == other._facts

    def __hash__(self) -> int:
        return hash(self.signature())

    def __repr__(self) -> str:
        return f"State(version={self._version}, facts={len(self._facts)})"

    # ------------------------------------------------------------------
    # Deriving new versions
    # ------------------------------------------------------------------

    def with_fact(self, subject: str, predicate: str, value: Any) -> State:
        """Return a new version with ``(subject, predicate)`` set to *value*."""
        return self.with_facts({(subject, predicate): value})

    def with_facts(self, updates: FactUpdates) -> State:
        """Return a new version with all *updates* applied at once."""
        facts = dict(self._facts)
        facts.update(_normalise(updates))
        return self._derive(facts)

    def without_fact(self, subject: str, predicate: str) -> State:
        """Return a new version with ``(subject, predicate)`` removed."""
        facts = dict(self._facts)
        facts.pop((subject, predicate), None)
        return self._derive(facts)

    def _derive(self, facts: dict[FactKey, Any]) -> State:
        derived = State(version=self._version + 1)
        derived._facts = facts
        return derived

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def snapshot(self) -> bytes:
        """Serialise this version to JSON bytes."""
        return StateSnapshot(version=self._version, facts=self.facts()).model_dump_json().encode()

    @classmethod
    def restore(cls, data: bytes) -> State:
        """Deserialise a version produced by :meth:`snapshot`."""
        snap = StateSnapshot.model_validate_json(data)
        return cls(snap.facts, version=snap.version)


def diff(a: State, b: State) -> set[FactKey]:
    """Return the set of ``(subject, predicate)`` keys that differ between *a* and *b*."""
    missing = object()
    keys = set(a) | set(b)
    return {k for k in keys if a.get(*k, missing) != b.get(*k, missing)}
