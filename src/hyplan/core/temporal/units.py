"""Time-unit normalisation for the Temporal Network.

All bounds and durations cross into the engine as *seconds* and are stored
as integer ticks so arithmetic on the distance graph is exact.  One tick is
one millisecond, well below the 0.1 s resolution the planner must honour.

Accepted inputs::

    to_ticks(2)            # int seconds
    to_ticks(1.5)          # float seconds
    to_ticks(Decimal("0.1"))
    to_ticks("PT1M30S")    # ISO-8601 duration
    to_ticks(timedelta(seconds=4))
"""

from __future__ import annotations

import math
import re
from datetime import timedelta
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from typing import Union

TICKS_PER_SECOND = 1000
INFINITY = math.inf

Seconds = Union[int, float, Decimal, str, timedelta]

_ISO_DURATION = re.compile(
    r"^(?P<sign>-)?P"
    r"(?:(?P<weeks>\d+(?:\.\d+)?)W)?"
    r"(?:(?P<days>\d+(?:\.\d+)?)D)?"
    r"(?:T"
    r"(?:(?P<hours>\d+(?:\.\d+)?)H)?"
    r"(?:(?P<minutes>\d+(?:\.\d+)?)M)?"
    r"(?:(?P<seconds>\d+(?:\.\d+)?)S)?"
    r")?$"
)

_UNIT_SECONDS = {
    "weeks": Decimal(604800),
    "days": Decimal(86400),
    "hours": Decimal(3600),
    "minutes": Decimal(60),
    "seconds": Decimal(1),
}


def parse_iso_duration(text: str) -> Decimal:
    """Parse an ISO-8601 duration (``PnWnDTnHnMnS``) into seconds.

    Years and months are rejected because their length in seconds is not
    fixed.

    Raises:
        ValueError: If *text* is not a supported ISO-8601 duration.
    """
    match = _ISO_DURATION.match(text.strip())
    if match is None or text.strip() in ("P", "PT", "-P", "-PT"):
        raise ValueError(f"Unsupported ISO-8601 duration: {text!r}")

    total = Decimal(0)
    for unit, factor in _UNIT_SECONDS.items():
        raw = match.group(unit)
        if raw is not None:
            total += Decimal(raw) * factor
    return -total if match.group("sign") else total


def to_seconds(value: Seconds) -> Decimal:
    """Normalise *value* to an exact :class:`~decimal.Decimal` number of seconds."""
    if isinstance(value, bool):
        raise TypeError("Booleans are not valid time values")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        if math.isnan(value):
            raise ValueError("NaN is not a valid time value")
        # repr() keeps the shortest round-tripping form, so 0.1 stays 0.1
        return Decimal(repr(value))
    if isinstance(value, timedelta):
        return Decimal(value.days * 86400 + value.seconds) + Decimal(value.microseconds) / Decimal(
            1_000_000
        )
    if isinstance(value, str):
        text = value.strip()
        if text.upper().lstrip("-").startswith("P"):
            return parse_iso_duration(text.upper())
        try:
            return Decimal(text)
        except InvalidOperation as exc:
            raise ValueError(f"Not a number of seconds: {value!r}") from exc
    raise TypeError(f"Expected seconds, got {type(value).__name__}")


def to_ticks(value: Seconds | float) -> int | float:
    """Convert seconds to integer ticks; infinities pass through unchanged."""
    if isinstance(value, float) and math.isinf(value):
        return value
    seconds = to_seconds(value)
    if seconds.is_infinite():
        return -INFINITY if seconds < 0 else INFINITY
    ticks = (seconds * TICKS_PER_SECOND).quantize(Decimal(1), rounding=ROUND_HALF_EVEN)
    return int(ticks)


def from_ticks(ticks: int | float) -> float:
    """Convert ticks back to (float) seconds for the public API."""
    if isinstance(ticks, float) and math.isinf(ticks):
        return ticks
    return ticks / TICKS_PER_SECOND


def to_duration(value: Seconds) -> int:
    """Normalise a duration to ticks, rejecting negative and infinite values."""
    ticks = to_ticks(value)
    if isinstance(ticks, float):
        raise ValueError("Durations must be finite")
    if ticks < 0:
        raise ValueError(f"Durations must be non-negative, got {value!r}")
    return ticks
