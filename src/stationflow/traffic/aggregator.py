"""Per-station departure and arrival counts over a time window."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Iterable, List, Optional, Sequence

from .domain_types import Station, StationTraffic, Trip, normalize_station_id
from .minute_index import MinuteBucketIndex
from .window import DEFAULT_RADIUS_MINUTES, select_range

logger = logging.getLogger(__name__)


def count_departures(trips: Iterable[Trip]) -> Counter:
    counts = Counter(normalize_station_id(trip.start_station_id) for trip in trips)
    counts.pop(None, None)
    return counts


def count_arrivals(trips: Iterable[Trip]) -> Counter:
    counts = Counter(normalize_station_id(trip.end_station_id) for trip in trips)
    counts.pop(None, None)
    return counts


def aggregate(
    stations: Sequence[Station],
    index: MinuteBucketIndex,
    filter_minute: int,
    *,
    radius_minutes: int = DEFAULT_RADIUS_MINUTES,
) -> List[StationTraffic]:
    """
    Annotate stations with the traffic falling inside the selected window.

    Only the buckets chosen by :func:`select_range` are scanned. The input
    stations are left untouched; a new ``StationTraffic`` is returned for each
    one, in the same order. Stations without an identifier get zero counts.
    """
    ranges = select_range(filter_minute, radius_minutes)
    departure_counts = count_departures(index.iter_departures(ranges))
    arrival_counts = count_arrivals(index.iter_arrivals(ranges))
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "Window %s selected %d departures and %d arrivals",
            [(r.start, r.stop - 1) for r in ranges],
            sum(departure_counts.values()),
            sum(arrival_counts.values()),
        )
    return [
        _annotate(station, departure_counts, arrival_counts) for station in stations
    ]


def count_unidentified(stations: Iterable[Station]) -> int:
    return sum(1 for station in stations if station.id is None)


def _annotate(station: Station, departures: Counter, arrivals: Counter) -> StationTraffic:
    station_id: Optional[str] = station.id
    if station_id is None:
        return StationTraffic(station=station)
    return StationTraffic(
        station=station,
        departures=departures.get(station_id, 0),
        arrivals=arrivals.get(station_id, 0),
    )


__all__ = ["aggregate", "count_arrivals", "count_departures", "count_unidentified"]
