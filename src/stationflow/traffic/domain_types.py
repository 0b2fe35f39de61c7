"""Core dataclasses shared across the traffic package."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Mapping, Optional, Union

TimestampLike = Union[datetime, str]

# Candidate identifier fields, in resolution order.
STATION_ID_FIELDS = ("short_name", "station_id", "Number")


def normalize_station_id(value: object) -> Optional[str]:
    """Coerce a raw identifier to the string form shared by stations and trips."""
    if value is None:
        return None
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if value.is_integer():
            value = int(value)
    text = str(value).strip()
    return text or None


def resolve_station_id(record: Mapping[str, object]) -> Optional[str]:
    """Return the first non-null of short_name, station_id, Number."""
    for key in STATION_ID_FIELDS:
        station_id = normalize_station_id(record.get(key))
        if station_id is not None:
            return station_id
    return None


@dataclass(frozen=True)
class Trip:
    """Single bike-share trip with the fields needed for bucketing."""

    start_station_id: Optional[str]
    end_station_id: Optional[str]
    started_at: TimestampLike
    ended_at: TimestampLike


@dataclass(frozen=True)
class Station:
    """Station location; ``id`` is None when no identifier field is set."""

    id: Optional[str]
    lat: float
    lon: float
    name: Optional[str] = None
    metadata: Dict[str, object] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> "Station":
        lat = data.get("lat", data.get("Lat"))
        lon = data.get("lon", data.get("lng", data.get("Long")))
        if lat is None or lon is None:
            raise ValueError(f"Station record missing coordinates: {dict(data)!r}")
        name = data.get("name", data.get("NAME"))
        return cls(
            id=resolve_station_id(data),
            lat=float(lat),
            lon=float(lon),
            name=str(name) if name is not None else None,
            metadata=dict(data),
        )


@dataclass(frozen=True)
class StationTraffic:
    """Station annotated with the traffic counted in the active time window."""

    station: Station
    departures: int = 0
    arrivals: int = 0

    @property
    def id(self) -> Optional[str]:
        return self.station.id

    @property
    def total_traffic(self) -> int:
        return self.departures + self.arrivals

    @property
    def departure_ratio(self) -> float:
        """Share of traffic that departs from the station, 0 when idle."""
        total = self.total_traffic
        if total == 0:
            return 0.0
        return self.departures / total
