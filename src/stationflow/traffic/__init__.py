"""Traffic package exports."""

from .aggregator import aggregate
from .domain_types import Station, StationTraffic, Trip, resolve_station_id
from .minute_index import MinuteBucketIndex, TripParseError
from .scales import FlowScale, RadiusScale
from .traffic_service import TrafficContext, TrafficSnapshot
from .window import NO_FILTER, parse_time_filter, select_range

__all__ = [
    "FlowScale",
    "MinuteBucketIndex",
    "NO_FILTER",
    "RadiusScale",
    "Station",
    "StationTraffic",
    "TrafficContext",
    "TrafficSnapshot",
    "Trip",
    "TripParseError",
    "aggregate",
    "parse_time_filter",
    "resolve_station_id",
    "select_range",
]
