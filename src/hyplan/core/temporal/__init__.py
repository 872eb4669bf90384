"""Temporal Network Engine — time points, interval constraints, consistency."""

from hyplan.core.temporal.network import (
    ORIGIN,
    NetworkSnapshot,
    TemporalConstraint,
    TemporalNetwork,
)
from hyplan.core.temporal.units import (
    TICKS_PER_SECOND,
    from_ticks,
    parse_iso_duration,
    to_duration,
    to_seconds,
    to_ticks,
)

__all__ = [
    "ORIGIN",
    "TICKS_PER_SECOND",
    "NetworkSnapshot",
    "TemporalConstraint",
    "TemporalNetwork",
    "from_ticks",
    "parse_iso_duration",
    "to_duration",
    "to_seconds",
    "to_ticks",
]
