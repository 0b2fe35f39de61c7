"""Circular time-of-day windows over the minute buckets."""

from __future__ import annotations

from typing import Tuple

MINUTES_PER_DAY = 1440
NO_FILTER = -1
DEFAULT_RADIUS_MINUTES = 60


def validate_time_filter(filter_minute: int) -> int:
    value = int(filter_minute)
    if value < NO_FILTER or value >= MINUTES_PER_DAY:
        raise ValueError(
            f"time filter must be -1 or a minute of day in [0, {MINUTES_PER_DAY - 1}]: {filter_minute!r}"
        )
    return value


def select_range(
    filter_minute: int, radius_minutes: int = DEFAULT_RADIUS_MINUTES
) -> Tuple[range, ...]:
    """
    Return the bucket ranges covered by a time filter.

    ``-1`` selects the whole day. Any other minute selects ``radius_minutes``
    on each side of it, inclusive, wrapping across midnight. A wrapped window
    is returned as two ranges, the late-evening part first.
    """
    minute = validate_time_filter(filter_minute)
    if minute == NO_FILTER:
        return (range(0, MINUTES_PER_DAY),)
    if radius_minutes < 0 or 2 * radius_minutes + 1 > MINUTES_PER_DAY:
        raise ValueError(f"radius_minutes out of range: {radius_minutes!r}")
    low = (minute - radius_minutes + MINUTES_PER_DAY) % MINUTES_PER_DAY
    high = (minute + radius_minutes) % MINUTES_PER_DAY
    if low <= high:
        return (range(low, high + 1),)
    return (range(low, MINUTES_PER_DAY), range(0, high + 1))


def window_width(ranges: Tuple[range, ...]) -> int:
    return sum(len(r) for r in ranges)


def parse_time_filter(token: object) -> int:
    """
    Parse a CLI/config time filter.

    Accepts ``-1`` (no filter), an integer minute of day, or an ``HH:MM``
    string. 24:00 is rejected since it is not a bucket.
    """
    if isinstance(token, bool):
        raise TypeError("time filter must be an int or HH:MM string")
    if isinstance(token, int):
        return validate_time_filter(token)
    if not isinstance(token, str) or not token.strip():
        raise ValueError("time filter must be a non-empty string")
    text = token.strip()
    if ":" not in text:
        try:
            return validate_time_filter(int(text))
        except ValueError as exc:
            raise ValueError(f"time filter must be -1, a minute or HH:MM: {text!r}") from exc
    hour_str, minute_str = text.split(":", 1)
    if not hour_str.isdigit() or not minute_str.isdigit():
        raise ValueError(f"time filter must be numeric HH:MM: {text!r}")
    hour = int(hour_str)
    minute = int(minute_str)
    if hour > 23 or minute > 59:
        raise ValueError(f"time filter out of range: {text!r}")
    return hour * 60 + minute


def format_time_filter(filter_minute: int) -> str:
    minute = validate_time_filter(filter_minute)
    if minute == NO_FILTER:
        return "any time"
    hours, mins = divmod(minute, 60)
    return f"{hours:02d}:{mins:02d}"


__all__ = [
    "DEFAULT_RADIUS_MINUTES",
    "MINUTES_PER_DAY",
    "NO_FILTER",
    "format_time_filter",
    "parse_time_filter",
    "select_range",
    "validate_time_filter",
    "window_width",
]
