"""Recurrence interval parsing and next-run calculation.

Intervals are fixed durations (`30m`, `2h`, `1d`, ...). Days and weeks are
always 86,400,000 and 604,800,000 milliseconds; there is no calendar or
timezone awareness, so a daily task drifts across DST changes.
"""

import re

from lifesync.errors import InvalidIntervalError

UNIT_MILLISECONDS: dict[str, int] = {
    "s": 1_000,
    "m": 60 * 1_000,
    "h": 60 * 60 * 1_000,
    "d": 24 * 60 * 60 * 1_000,
    "w": 7 * 24 * 60 * 60 * 1_000,
}

_INTERVAL_RE = re.compile(r"([0-9]+)([smhdw])")


def parse_interval(interval: str) -> int:
    """Return the length of an interval string in milliseconds.

    Raises:
        InvalidIntervalError: If the string is not `<integer><unit>`.
    """
    if not isinstance(interval, str):
        raise InvalidIntervalError(interval)
    match = _INTERVAL_RE.fullmatch(interval)
    if match is None:
        raise InvalidIntervalError(interval)
    value, unit = match.groups()
    return int(value) * UNIT_MILLISECONDS[unit]


def compute_next_run(last_run: int, interval: str) -> int:
    """Timestamp of the next run for a task that last ran at `last_run`."""
    return last_run + parse_interval(interval)
