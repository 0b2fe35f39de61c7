"""Per-minute bucket index over departures and arrivals."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Iterator, List, Sequence, Tuple

import pandas as pd

from .domain_types import Trip
from .window import DEFAULT_RADIUS_MINUTES, MINUTES_PER_DAY, select_range

logger = logging.getLogger(__name__)

TIMESTAMP_POLICIES = ("skip", "raise")


class TripParseError(ValueError):
    """Raised when a trip timestamp cannot be turned into a minute of day."""


def minute_of_day(value: object) -> int:
    """Return ``hour * 60 + minute`` for a datetime or a parseable timestamp string."""
    if value is None or (not isinstance(value, datetime) and pd.isna(value)):
        raise TripParseError("timestamp is missing")
    if isinstance(value, datetime):
        if pd.isna(value):
            raise TripParseError("timestamp is NaT")
        dt = value
    elif isinstance(value, str):
        try:
            dt = pd.Timestamp(value.strip())
        except (ValueError, TypeError) as exc:
            raise TripParseError(f"unparseable timestamp {value!r}") from exc
        if pd.isna(dt):
            raise TripParseError(f"unparseable timestamp {value!r}")
    else:
        raise TripParseError(f"unsupported timestamp type {type(value).__name__}")
    minute = dt.hour * 60 + dt.minute
    if minute < 0 or minute >= MINUTES_PER_DAY:
        raise TripParseError(f"minute of day out of range for {value!r}")
    return int(minute)


class MinuteBucketIndex:
    """Immutable 1440-slot departure and arrival buckets for a trip set."""

    def __init__(
        self,
        departures_by_minute: Sequence[Sequence[Trip]],
        arrivals_by_minute: Sequence[Sequence[Trip]],
        skipped_trips: int = 0,
    ):
        if len(departures_by_minute) != MINUTES_PER_DAY or len(arrivals_by_minute) != MINUTES_PER_DAY:
            raise ValueError(f"bucket indexes must hold exactly {MINUTES_PER_DAY} minutes")
        self._departures: Tuple[Tuple[Trip, ...], ...] = tuple(tuple(b) for b in departures_by_minute)
        self._arrivals: Tuple[Tuple[Trip, ...], ...] = tuple(tuple(b) for b in arrivals_by_minute)
        self.skipped_trips = int(skipped_trips)

    # ------------------------------------------------------------------ builders
    @classmethod
    def build(cls, trips: Iterable[Trip], *, on_parse_error: str = "skip") -> "MinuteBucketIndex":
        """
        Bucket every trip by the minute of day of its start and end.

        Trips whose timestamps cannot be parsed are excluded from both indexes
        and counted when ``on_parse_error`` is ``"skip"``; with ``"raise"`` the
        first bad trip aborts the build.
        """
        if on_parse_error not in TIMESTAMP_POLICIES:
            raise ValueError(f"on_parse_error must be one of {TIMESTAMP_POLICIES}: {on_parse_error!r}")
        departures: List[List[Trip]] = [[] for _ in range(MINUTES_PER_DAY)]
        arrivals: List[List[Trip]] = [[] for _ in range(MINUTES_PER_DAY)]
        accepted = 0
        skipped = 0
        for trip in trips:
            try:
                start_minute = minute_of_day(trip.started_at)
                end_minute = minute_of_day(trip.ended_at)
            except TripParseError as exc:
                if on_parse_error == "raise":
                    raise TripParseError(f"invalid trip {trip!r}: {exc}") from exc
                skipped += 1
                logger.debug("Skipping trip with bad timestamp: %s (%s)", trip, exc)
                continue
            departures[start_minute].append(trip)
            arrivals[end_minute].append(trip)
            accepted += 1
        if skipped:
            logger.warning("Skipped %d trips with unparseable timestamps", skipped)
        logger.info("Indexed %d trips into %d minute buckets", accepted, MINUTES_PER_DAY)
        return cls(departures, arrivals, skipped_trips=skipped)

    # ---------------------------------------------------------------- properties
    @property
    def num_buckets(self) -> int:
        return MINUTES_PER_DAY

    @property
    def trip_count(self) -> int:
        return sum(len(bucket) for bucket in self._departures)

    @property
    def departures_by_minute(self) -> Tuple[Tuple[Trip, ...], ...]:
        return self._departures

    @property
    def arrivals_by_minute(self) -> Tuple[Tuple[Trip, ...], ...]:
        return self._arrivals

    # ----------------------------------------------------------------- scanning
    def iter_departures(self, ranges: Iterable[range]) -> Iterator[Trip]:
        return self._iter_buckets(self._departures, ranges)

    def iter_arrivals(self, ranges: Iterable[range]) -> Iterator[Trip]:
        return self._iter_buckets(self._arrivals, ranges)

    def window(
        self, filter_minute: int, radius_minutes: int = DEFAULT_RADIUS_MINUTES
    ) -> Tuple[Iterator[Trip], Iterator[Trip]]:
        """Departures and arrivals selected by a time filter."""
        ranges = select_range(filter_minute, radius_minutes)
        return self.iter_departures(ranges), self.iter_arrivals(ranges)

    @staticmethod
    def _iter_buckets(
        buckets: Tuple[Tuple[Trip, ...], ...], ranges: Iterable[range]
    ) -> Iterator[Trip]:
        for minute_range in ranges:
            for minute in minute_range:
                yield from buckets[minute]


__all__ = ["MinuteBucketIndex", "TripParseError", "minute_of_day"]
