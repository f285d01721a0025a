"""
Repeat-interval parsing and dosing-frequency heuristics.

Both functions are permissive by contract: malformed user input falls back to
a daily cadence instead of failing the operation.
"""

import re
from datetime import timedelta

DEFAULT_INTERVAL = timedelta(hours=24)
DEFAULT_INTERVAL_HOURS = 24

_INTERVAL_PATTERN = re.compile(r"(\d+)([hdwm])")

# "m" is a 30-day month
_UNIT_DURATIONS: dict[str, timedelta] = {
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
    "w": timedelta(weeks=1),
    "m": timedelta(days=30),
}

# Checked in order, first match wins. "12" contains "2" and maps to 12 hours.
_FREQUENCY_RULES: tuple[tuple[tuple[str, ...], int], ...] = (
    (("twice", "2"), 12),
    (("thrice", "3"), 8),
    (("four", "4"), 6),
)


def parse_interval(expression: str | None) -> timedelta:
    """
    Parse a compact interval such as ``"12h"``, ``"7d"``, ``"2w"`` or ``"1m"``.

    The first ``<integer><unit>`` found anywhere in the expression is used, so
    ``"every 12h"`` is twelve hours. Anything else returns ``DEFAULT_INTERVAL``.
    """
    if not expression:
        return DEFAULT_INTERVAL

    match = _INTERVAL_PATTERN.search(expression)
    if match is None:
        return DEFAULT_INTERVAL

    count, unit = match.groups()
    return int(count) * _UNIT_DURATIONS[unit]


def interval_hours_for_frequency(frequency: str | None) -> int:
    """Map free-text dosing frequency ("twice daily", "1-0-1 x3") to hours between doses."""
    text = (frequency or "").casefold()
    for keywords, hours in _FREQUENCY_RULES:
        if any(keyword in text for keyword in keywords):
            return hours
    return DEFAULT_INTERVAL_HOURS


def format_interval_hours(hours: int) -> str:
    return f"{hours}h"
