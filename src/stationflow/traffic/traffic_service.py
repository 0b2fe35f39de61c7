"""Owning context that recomputes station traffic as the time filter moves."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, Optional, Sequence, Tuple

import pandas as pd

from .aggregator import aggregate, count_unidentified
from .domain_types import Station, StationTraffic, Trip, normalize_station_id
from .minute_index import MinuteBucketIndex
from .scales import (
    FILTERED_RADIUS_RANGE,
    UNFILTERED_RADIUS_RANGE,
    FlowScale,
    RadiusScale,
)
from .window import DEFAULT_RADIUS_MINUTES, NO_FILTER, validate_time_filter

logger = logging.getLogger(__name__)

SNAPSHOT_COLUMNS = [
    "station_id",
    "name",
    "lat",
    "lon",
    "departures",
    "arrivals",
    "total_traffic",
    "radius",
    "flow",
    "time_filter",
]


@dataclass(frozen=True)
class TrafficSnapshot:
    """Annotated stations plus the scales that go with one time filter."""

    time_filter: int
    stations: Tuple[StationTraffic, ...]
    radius_scale: RadiusScale
    flow_scale: FlowScale
    unidentified_stations: int = 0
    _by_id: Dict[str, StationTraffic] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        by_id: Dict[str, StationTraffic] = {}
        for station in self.stations:
            if station.id is not None:
                by_id.setdefault(station.id, station)
        object.__setattr__(self, "_by_id", by_id)

    @property
    def filtered(self) -> bool:
        return self.time_filter != NO_FILTER

    @property
    def total_departures(self) -> int:
        return sum(s.departures for s in self.stations)

    @property
    def total_arrivals(self) -> int:
        return sum(s.arrivals for s in self.stations)

    def get(self, station_id: object) -> Optional[StationTraffic]:
        """Look up a station by id; the first station wins when ids repeat."""
        key = normalize_station_id(station_id)
        if key is None:
            return None
        return self._by_id.get(key)

    def to_dataframe(self) -> pd.DataFrame:
        """One row per station with counts, radius and flow level."""
        rows = [
            {
                "station_id": s.id,
                "name": s.station.name,
                "lat": s.station.lat,
                "lon": s.station.lon,
                "departures": s.departures,
                "arrivals": s.arrivals,
                "total_traffic": s.total_traffic,
                "departure_ratio": s.departure_ratio,
            }
            for s in self.stations
        ]
        frame = pd.DataFrame(rows, columns=SNAPSHOT_COLUMNS[:7] + ["departure_ratio"])
        frame["radius"] = self.radius_scale.apply(frame["total_traffic"].to_numpy())
        frame["flow"] = self.flow_scale.apply(frame["departure_ratio"].to_numpy())
        frame["time_filter"] = self.time_filter
        return frame[SNAPSHOT_COLUMNS]


class TrafficContext:
    """
    Holds the loaded stations, the bucket index and the current time filter.

    ``set_time_filter`` is the only writer; every call replaces the current
    snapshot with a freshly aggregated one.
    """

    def __init__(
        self,
        stations: Sequence[Station],
        index: MinuteBucketIndex,
        *,
        radius_minutes: int = DEFAULT_RADIUS_MINUTES,
        unfiltered_radius_range: Tuple[float, float] = UNFILTERED_RADIUS_RANGE,
        filtered_radius_range: Tuple[float, float] = FILTERED_RADIUS_RANGE,
    ):
        self.stations: Tuple[Station, ...] = tuple(stations)
        self.index = index
        self.radius_minutes = int(radius_minutes)
        self.unfiltered_radius_range = tuple(unfiltered_radius_range)
        self.filtered_radius_range = tuple(filtered_radius_range)
        self.flow_scale = FlowScale()
        self._unidentified = count_unidentified(self.stations)
        if self._unidentified:
            logger.warning(
                "%d of %d stations have no short_name, station_id or Number; their traffic stays at zero",
                self._unidentified,
                len(self.stations),
            )
        self._time_filter = NO_FILTER
        self._snapshot = self._recompute(NO_FILTER)

    @classmethod
    def from_records(
        cls,
        stations: Iterable[Station],
        trips: Iterable[Trip],
        *,
        on_parse_error: str = "skip",
        **kwargs,
    ) -> "TrafficContext":
        index = MinuteBucketIndex.build(trips, on_parse_error=on_parse_error)
        return cls(list(stations), index, **kwargs)

    # ---------------------------------------------------------------- properties
    @property
    def time_filter(self) -> int:
        return self._time_filter

    @property
    def snapshot(self) -> TrafficSnapshot:
        return self._snapshot

    @property
    def unidentified_stations(self) -> int:
        return self._unidentified

    # ------------------------------------------------------------------ updates
    def set_time_filter(self, filter_minute: int) -> TrafficSnapshot:
        minute = validate_time_filter(filter_minute)
        self._snapshot = self._recompute(minute)
        self._time_filter = minute
        return self._snapshot

    def sweep_minutes(self, step_minutes: int = 60) -> range:
        if step_minutes <= 0:
            raise ValueError("step_minutes must be positive")
        return range(0, self.index.num_buckets, step_minutes)

    def sweep(self, step_minutes: int = 60) -> Iterator[TrafficSnapshot]:
        """Lazily yield snapshots every ``step_minutes`` across the day; leaves the filter unchanged."""
        minutes = self.sweep_minutes(step_minutes)
        return (self._recompute(minute) for minute in minutes)

    def _recompute(self, filter_minute: int) -> TrafficSnapshot:
        annotated = tuple(
            aggregate(self.stations, self.index, filter_minute, radius_minutes=self.radius_minutes)
        )
        radius_scale = RadiusScale.for_stations(
            annotated,
            filtered=filter_minute != NO_FILTER,
            unfiltered_range=self.unfiltered_radius_range,
            filtered_range=self.filtered_radius_range,
        )
        return TrafficSnapshot(
            time_filter=filter_minute,
            stations=annotated,
            radius_scale=radius_scale,
            flow_scale=self.flow_scale,
            unidentified_stations=self._unidentified,
        )


__all__ = ["SNAPSHOT_COLUMNS", "TrafficContext", "TrafficSnapshot"]
