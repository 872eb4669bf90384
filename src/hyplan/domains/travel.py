"""Simple travel domain — walking, taxis and positional moves.

People travel between named locations either on foot (short distances)
or by taxi (if they can afford the fare).  Agents with a ``position`` and
a ``speed`` can also ``move`` to a coordinate, taking ``distance / speed``
seconds.

Facts used:

* ``(person, "loc")`` — a location name or the taxi the person sits in
* ``(name, "type")`` — ``"person"``, ``"location"`` or ``"taxi"``
* ``(x, "dist:<y>")`` — road distance between two locations
* ``(person, "cash")`` / ``(person, "owe")``
* ``(agent, "position")`` / ``(agent, "speed")``
"""

from __future__ import annotations

import math
from typing import Any

from hyplan.core.domain.domain import Domain
from hyplan.core.domain.models import Condition, Goal
from hyplan.core.state.state import State

WALK_SPEED = 1.0
TAXI_SPEED = 4.0
MAX_WALK_DISTANCE = 2
TAXI = "taxi1"


def taxi_rate(distance: float) -> float:
    return 1.5 + 0.5 * distance


def distance(state: State, x: Any, y: Any) -> float | None:
    """Road distance between two locations, in either direction."""
    found = state.get(x, f"dist:{y}")
    if found is None:
        found = state.get(y, f"dist:{x}")
    return found


def is_a(state: State, name: Any, kind: str) -> bool:
    return state.get(str(name), "type") == kind


# ---------------------------------------------------------------------------
# Preconditions
# ---------------------------------------------------------------------------


def can_walk(state: State, p: str, x: str, y: str) -> bool:
    return is_a(state, p, "person") and is_a(state, y, "location") and x != y


def can_call_taxi(state: State, p: str, x: str) -> bool:
    return is_a(state, p, "person") and is_a(state, x, "location")


def in_taxi(state: State, p: str, y: str) -> bool:
    taxi = state.get(p, "loc")
    if not is_a(state, taxi, "taxi"):
        return False
    x = state.get(taxi, "loc")
    return x != y and distance(state, x, y) is not None


def can_pay(state: State, p: str, y: str) -> bool:
    return state.get(p, "cash", 0) >= state.get(p, "owe", 0)


def has_position(state: State, agent: str, target: Any) -> bool:
    return state.get(agent, "position") is not None and state.get(agent, "speed", 0) > 0


# ---------------------------------------------------------------------------
# Durations
# ---------------------------------------------------------------------------


def walk_time(state: State, p: str, x: str, y: str) -> float:
    return (distance(state, x, y) or 0) / WALK_SPEED


def ride_time(state: State, p: str, y: str) -> float:
    taxi = state.get(p, "loc")
    return (distance(state, state.get(taxi, "loc"), y) or 0) / TAXI_SPEED


def move_time(state: State, agent: str, target: Any) -> float:
    here = state.get(agent, "position")
    return math.dist(here, target) / state.get(agent, "speed")


def build_domain() -> Domain:
    """Return a fresh travel domain."""
    domain = Domain("travel")

    @domain.action(
        params=["p", "x", "y"],
        preconditions=[Condition(subject="$p", predicate="loc", value="$x"), can_walk],
        duration=walk_time,
    )
    def walk(state: State, p: str, x: str, y: str) -> dict[Any, Any]:
        """Walk from one location to another."""
        return {(p, "loc"): y}

    @domain.action(params=["p", "x"], preconditions=[can_call_taxi], duration="PT2S")
    def call_taxi(state: State, p: str, x: str) -> dict[Any, Any]:
        """Bring the taxi to the person's location and get in."""
        return {(TAXI, "loc"): x, (p, "loc"): TAXI}

    @domain.action(params=["p", "y"], preconditions=[in_taxi], duration=ride_time)
    def ride_taxi(state: State, p: str, y: str) -> dict[Any, Any]:
        """Ride to the destination; the fare is owed on arrival."""
        taxi = state.get(p, "loc")
        fare = taxi_rate(distance(state, state.get(taxi, "loc"), y) or 0)
        return {(taxi, "loc"): y, (p, "owe"): fare}

    @domain.action(params=["p", "y"], preconditions=[can_pay], duration=1)
    def pay_driver(state: State, p: str, y: str) -> dict[Any, Any]:
        """Pay what is owed and step out at the destination."""
        cash = state.get(p, "cash", 0) - state.get(p, "owe", 0)
        return {(p, "cash"): cash, (p, "owe"): 0, (p, "loc"): y}

    @domain.action(params=["agent", "target"], preconditions=[has_position], duration=move_time)
    def move(state: State, agent: str, target: Any) -> dict[Any, Any]:
        """Move in a straight line to a coordinate."""
        return {(agent, "position"): target}

    @domain.method("travel", params=["p", "y"])
    def travel_by_foot(state: State, p: str, y: str) -> list[Any] | None:
        x = state.get(p, "loc")
        d = distance(state, x, y)
        if x == y or d is None or d > MAX_WALK_DISTANCE:
            return None
        return [("walk", p, x, y)]

    @domain.method("travel", params=["p", "y"])
    def travel_by_taxi(state: State, p: str, y: str) -> list[Any] | None:
        x = state.get(p, "loc")
        d = distance(state, x, y)
        if x == y or d is None or state.get(p, "cash", 0) < taxi_rate(d):
            return None
        return [("call_taxi", p, x), ("ride_taxi", p, y), ("pay_driver", p, y)]

    @domain.goal_method("loc")
    def achieve_location(state: State, p: str, y: str) -> list[Any] | None:
        if not is_a(state, p, "person"):
            return None
        return [("travel", p, y)]

    @domain.goal_method("position")
    def go_to(state: State, agent: str, target: Any) -> list[Any]:
        return [("move", agent, target)]

    return domain


domain = build_domain()


def initial_state() -> State:
    """Alice and Bob at home, one taxi at the lot."""
    triples: list[tuple[str, str, Any]] = [
        ("alice", "type", "person"),
        ("bob", "type", "person"),
        (TAXI, "type", "taxi"),
        ("home_a", "type", "location"),
        ("home_b", "type", "location"),
        ("park", "type", "location"),
        ("taxi_lot", "type", "location"),
        ("alice", "loc", "home_a"),
        ("bob", "loc", "home_b"),
        (TAXI, "loc", "taxi_lot"),
        ("alice", "cash", 20),
        ("bob", "cash", 15),
        ("alice", "owe", 0),
        ("bob", "owe", 0),
        ("home_a", "dist:park", 8),
        ("home_b", "dist:park", 2),
        ("home_a", "dist:home_b", 6),
        ("taxi_lot", "dist:home_a", 3),
        ("taxi_lot", "dist:home_b", 4),
        ("taxi_lot", "dist:park", 5),
    ]
    return State.from_triples(triples)


EXAMPLE_PROBLEMS: dict[str, list[Goal]] = {
    "alice_to_park": [Goal(subject="alice", predicate="loc", value="park")],
    "bob_short_walk": [Goal(subject="bob", predicate="loc", value="park")],
    "multi_person": [
        Goal(subject="alice", predicate="loc", value="park"),
        Goal(subject="bob", predicate="loc", value="park"),
    ],
}
