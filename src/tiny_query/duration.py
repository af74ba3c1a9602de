"""Duration parsing utilities."""

import re
from datetime import timedelta

from tiny_query.types import Duration

_DURATION_PATTERN = re.compile(r"^(\d+)(ms|s|m|h|d)$")
_UNITS: dict[str, int] = {
    "ms": 1,
    "s": 1000,
    "m": 60_000,
    "h": 3_600_000,
    "d": 86_400_000,
}


def parse_duration(duration: Duration | None, default: int = 0) -> int:
    """Parse a duration to milliseconds.

    Ints are taken as milliseconds, timedeltas are converted, and None
    falls back to ``default``.
    """
    if duration is None:
        return default

    if isinstance(duration, timedelta):
        millis = int(duration.total_seconds() * 1000)
    elif isinstance(duration, int):
        millis = duration
    else:
        match = _DURATION_PATTERN.match(duration)
        if not match:
            raise ValueError(f"Invalid duration: {duration!r}")
        value, unit = match.groups()
        millis = int(value) * _UNITS[unit]

    if millis < 0:
        raise ValueError(f"Duration must not be negative: {duration!r}")
    return millis
