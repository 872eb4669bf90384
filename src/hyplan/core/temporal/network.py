"""Simple Temporal Network — time points, interval constraints, consistency.

The network is stored as its *distance graph*: a constraint
``to - from ∈ [lower, upper]`` becomes an edge ``from → to`` weighted
``upper`` and an edge ``to → from`` weighted ``-lower``.  The network is
consistent iff the distance graph has no negative cycle, and the
shortest-path matrix ``d`` yields every point's bounds relative to the
zero reference::

    earliest(tp) = -d[tp][ORIGIN]
    latest(tp)   =  d[ORIGIN][tp]

Small networks are recomputed with a full Floyd–Warshall pass on a scratch
matrix.  Above ``full_recompute_threshold`` time points each new edge is
relaxed incrementally over the affected rows and columns only, with an
undo journal so a rejected constraint leaves no trace.
"""

from __future__ import annotations

import logging
from collections.abc import Hashable, Iterable
from dataclasses import dataclass, field

from hyplan.core.errors import NetworkFrozenError, TemporalError, TemporalInconsistencyError
from hyplan.core.temporal.units import INFINITY, Seconds, from_ticks, to_ticks

logger = logging.getLogger(__name__)

ORIGIN = 0
"""Id of the distinguished zero time point present in every network."""

DEFAULT_FULL_RECOMPUTE_THRESHOLD = 24

Distance = int | float
Owner = Hashable | None


@dataclass(frozen=True)
class TemporalConstraint:
    """A single interval constraint ``target - source ∈ [lower, upper]`` in ticks."""

    source: int
    target: int
    lower: Distance
    upper: Distance
    owner: Owner = None

    @property
    def bounds(self) -> tuple[float, float]:
        """The constraint's bounds in seconds."""
        return from_ticks(self.lower), from_ticks(self.upper)


@dataclass
class NetworkSnapshot:
    """Opaque copy of a network's mutable state, see :meth:`TemporalNetwork.snapshot`."""

    dist: list[list[Distance]]
    constraints: list[TemporalConstraint]
    owners: list[Owner]
    retired: set[int] = field(default_factory=lambda: set[int]())


class TemporalNetwork:
    """Incremental Simple Temporal Network over integer time-point ids.

    Usage::

        net = TemporalNetwork()
        a = net.add_time_point()
        b = net.add_time_point()
        net.add_constraint(ORIGIN, a, 0, 0)
        net.add_constraint(a, b, 2, 2)
        net.bounds_of(b)          # (2.0, 2.0)
        net.add_constraint(a, b, 5, 5)   # raises TemporalInconsistencyError

    Every new time point is implicitly constrained to lie in
    ``[0, horizon]`` after :data:`ORIGIN`.
    """

    def __init__(
        self,
        *,
        full_recompute_threshold: int = DEFAULT_FULL_RECOMPUTE_THRESHOLD,
        horizon: Seconds | float = INFINITY,
    ) -> None:
        self.full_recompute_threshold = full_recompute_threshold
        self._horizon = to_ticks(horizon)
        self._dist: list[list[Distance]] = [[0]]
        self._constraints: list[TemporalConstraint] = []
        self._owners: list[Owner] = [None]
        self._retired: set[int] = set()
        self._frozen = False

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._dist)

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def horizon(self) -> float:
        return from_ticks(self._horizon)

    def time_points(self) -> list[int]:
        """Return the ids of all live (non-retired) time points, origin included."""
        return [tp for tp in range(len(self._dist)) if tp not in self._retired]

    def constraints(self, owner: Owner = None) -> list[TemporalConstraint]:
        """Return all constraints, or only those tagged with *owner*."""
        if owner is None:
            return list(self._constraints)
        return [c for c in self._constraints if c.owner == owner]

    def add_time_point(self, owner: Owner = None) -> int:
        """Create a new time point and return its id."""
        self._check_open()
        tp = len(self._dist)
        for row in self._dist:
            row.append(INFINITY)
        self._dist.append([INFINITY] * tp + [0])
        self._owners.append(owner)

        implicit = TemporalConstraint(ORIGIN, tp, 0, self._horizon, owner)
        # A fresh point has no other edges, so this can never be inconsistent.
        journal: list[tuple[int, int, Distance]] = []
        self._relax(ORIGIN, tp, implicit.upper, journal, implicit)
        self._relax(tp, ORIGIN, -implicit.lower, journal, implicit)
        self._constraints.append(implicit)
        return tp

    def add_constraint(
        self,
        source: int,
        target: int,
        lower: Seconds | float,
        upper: Seconds | float,
        *,
        owner: Owner = None,
    ) -> TemporalConstraint:
        """Add ``target - source ∈ [lower, upper]`` (seconds) and re-check consistency.

        Raises:
            TemporalInconsistencyError: If the constraint creates a negative
                cycle.  The network is left exactly as it was.
            NetworkFrozenError: If the network is frozen.
        """
        self._check_open()
        self._check_point(source)
        self._check_point(target)
        lo = to_ticks(lower)
        hi = to_ticks(upper)
        constraint = TemporalConstraint(source, target, lo, hi, owner)

        if lo > hi:
            raise TemporalInconsistencyError(source, target, from_ticks(lo), from_ticks(hi))

        if len(self._dist) <= self.full_recompute_threshold:
            dist = self._floyd_warshall([*self._constraints, constraint])
            if dist is None:
                raise TemporalInconsistencyError(source, target, from_ticks(lo), from_ticks(hi))
            self._dist = dist
        else:
            journal: list[tuple[int, int, Distance]] = []
            try:
                self._relax(source, target, hi, journal, constraint)
                self._relax(target, source, -lo, journal, constraint)
            except TemporalInconsistencyError:
                self._undo(journal)
                raise

        self._constraints.append(constraint)
        return constraint

    def remove_constraints(self, owner: Owner) -> int:
        """Retract every constraint tagged with *owner*; return how many were removed.

        Time points created for *owner* lose their implicit origin constraint
        and are retired: they stay in the arena (ids are stable) but no longer
        take part in :meth:`solve`.
        """
        return self.retract([owner])

    def retract(self, owners: Iterable[Owner]) -> int:
        """Like :meth:`remove_constraints` for several owners, with a single rebuild."""
        self._check_open()
        previous = self.snapshot()
        targets = set(owners)
        kept = [c for c in self._constraints if c.owner not in targets]
        removed = len(self._constraints) - len(kept)
        for tp, tp_owner in enumerate(self._owners):
            if tp != ORIGIN and tp_owner is not None and tp_owner in targets:
                self._retired.add(tp)
        if removed:
            self._constraints = kept
            try:
                self._rebuild()
            except TemporalError:
                self.restore(previous)
                raise
            logger.debug("Removed %d constraint(s) owned by %d owner(s)", removed, len(targets))
        return removed

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_consistent(self) -> bool:
        """Return ``True`` when the distance graph has no negative cycle."""
        return all(self._dist[i][i] >= 0 for i in range(len(self._dist)))

    def bounds_of(self, tp: int) -> tuple[float, float]:
        """Return ``(earliest, latest)`` of *tp* relative to :data:`ORIGIN`, in seconds."""
        self._check_point(tp)
        earliest = -self._dist[tp][ORIGIN]
        latest = self._dist[ORIGIN][tp]
        return from_ticks(earliest), from_ticks(latest)

    def distance(self, source: int, target: int) -> float:
        """Return the tightest upper bound on ``target - source`` in seconds."""
        self._check_point(source)
        self._check_point(target)
        return from_ticks(self._dist[source][target])

    def entails_before(self, first: int, second: int) -> bool:
        """Return ``True`` if ``first <= second`` holds in every solution."""
        return self._dist[second][first] <= 0

    def solve(self) -> dict[int, float]:
        """Return the earliest-time assignment for every live time point.

        The earliest-time assignment of a consistent STN satisfies every
        constraint simultaneously.
        """
        return {tp: from_ticks(-self._dist[tp][ORIGIN]) for tp in self.time_points()}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def freeze(self) -> None:
        """Freeze the network for dispatch; further mutation raises."""
        self._frozen = True

    def reopen(self) -> None:
        """Re-open a frozen network for incremental replanning."""
        self._frozen = False

    def snapshot(self) -> NetworkSnapshot:
        """Capture the mutable state so it can be restored on backtracking."""
        return NetworkSnapshot(
            dist=[row[:] for row in self._dist],
            constraints=list(self._constraints),
            owners=list(self._owners),
            retired=set(self._retired),
        )

    def restore(self, snapshot: NetworkSnapshot) -> None:
        """Roll back to a state captured by :meth:`snapshot`."""
        self._dist = [row[:] for row in snapshot.dist]
        self._constraints = list(snapshot.constraints)
        self._owners = list(snapshot.owners)
        self._retired = set(snapshot.retired)

    def copy(self) -> TemporalNetwork:
        """Return an independent copy of this network."""
        clone = TemporalNetwork(full_recompute_threshold=self.full_recompute_threshold)
        clone._horizon = self._horizon
        clone.restore(self.snapshot())
        clone._frozen = self._frozen
        return clone

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_open(self) -> None:
        if self._frozen:
            raise NetworkFrozenError()

    def _check_point(self, tp: int) -> None:
        if not 0 <= tp < len(self._dist):
            raise KeyError(f"Unknown time point: {tp}")

    def _relax(
        self,
        u: int,
        v: int,
        weight: Distance,
        journal: list[tuple[int, int, Distance]],
        constraint: TemporalConstraint,
    ) -> None:
        """Incrementally add edge ``u → v`` of *weight* to the distance matrix.

        Only sources that already reach *u* and targets reachable from *v*
        can improve, so the update is restricted to those rows/columns.
        """
        d = self._dist
        if weight >= d[u][v]:
            return
        if d[v][u] + weight < 0:
            lower, upper = constraint.bounds
            raise TemporalInconsistencyError(constraint.source, constraint.target, lower, upper)

        n = len(d)
        sources = [i for i in range(n) if d[i][u] < INFINITY]
        targets = [j for j in range(n) if d[v][j] < INFINITY]
        row_v = d[v]
        for i in sources:
            via = d[i][u] + weight
            row = d[i]
            for j in targets:
                candidate = via + row_v[j]
                if candidate < row[j]:
                    journal.append((i, j, row[j]))
                    row[j] = candidate

    def _undo(self, journal: list[tuple[int, int, Distance]]) -> None:
        for i, j, previous in reversed(journal):
            self._dist[i][j] = previous

    def _floyd_warshall(
        self, constraints: list[TemporalConstraint]
    ) -> list[list[Distance]] | None:
        """Compute all-pairs shortest paths; ``None`` if a negative cycle exists."""
        n = len(self._dist)
        d: list[list[Distance]] = [[INFINITY] * n for _ in range(n)]
        for i in range(n):
            d[i][i] = 0
        for c in constraints:
            if c.upper < d[c.source][c.target]:
                d[c.source][c.target] = c.upper
            if -c.lower < d[c.target][c.source]:
                d[c.target][c.source] = -c.lower

        for k in range(n):
            row_k = d[k]
            for i in range(n):
                d_ik = d[i][k]
                if d_ik == INFINITY:
                    continue
                row_i = d[i]
                for j in range(n):
                    candidate = d_ik + row_k[j]
                    if candidate < row_i[j]:
                        row_i[j] = candidate
            if any(d[i][i] < 0 for i in range(n)):
                return None
        return d

    def _rebuild(self) -> None:
        """Recompute the distance matrix from the current constraint set."""
        if len(self._dist) <= self.full_recompute_threshold:
            dist = self._floyd_warshall(self._constraints)
            if dist is None:
                raise TemporalError("Remaining constraints form a negative cycle")
            self._dist = dist
            return

        n = len(self._dist)
        self._dist = [[INFINITY] * n for _ in range(n)]
        for i in range(n):
            self._dist[i][i] = 0
        journal: list[tuple[int, int, Distance]] = []
        for c in self._constraints:
            self._relax(c.source, c.target, c.upper, journal, c)
            self._relax(c.target, c.source, -c.lower, journal, c)
