"""Loading, configuration and CSV export for station traffic."""

from .config import TrafficConfig
from .data_sources import (
    LoadError,
    StationLoadError,
    TripLoadError,
    iter_trips,
    load_network,
    load_stations,
    load_trips,
)

__all__ = [
    "LoadError",
    "StationLoadError",
    "TrafficConfig",
    "TripLoadError",
    "iter_trips",
    "load_network",
    "load_stations",
    "load_trips",
]
