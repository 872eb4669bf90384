"""Shared error types for the planning core."""


class PlanningError(Exception):
    """Base error for all planning-core failures.

    Every subclass carries a human-readable ``reason`` alongside its type so
    callers can narrate what happened without parsing the message.
    """

    def __init__(self, reason: str = "") -> None:
        self.reason = reason
        super().__init__(reason)


class PlanningFailure(PlanningError):
    """No decomposition satisfies the requested goals."""

    def __init__(self, reason: str = "", *, node_id: int | None = None) -> None:
        self.node_id = node_id
        super().__init__("Planning failed" + (f": {reason}" if reason else ""))
        self.reason = reason


class TemporalError(PlanningError):
    """Base error for Temporal Network failures."""


class TemporalInconsistencyError(TemporalError):
    """A constraint would introduce a negative cycle into the network."""

    def __init__(self, source: int, target: int, lower: float, upper: float) -> None:
        self.source = source
        self.target = target
        self.lower = lower
        self.upper = upper
        super().__init__(
            f"Constraint {source}->{target} in [{lower}, {upper}] is inconsistent"
        )


class NetworkFrozenError(TemporalError):
    """The network has been frozen for dispatch and must be re-opened first."""

    def __init__(self) -> None:
        super().__init__("Temporal network is frozen; call reopen() before adding constraints")


class DomainValidationError(PlanningError):
    """A domain definition is malformed."""
