"""Marker radius and flow scales re-parameterized per time filter."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from .domain_types import StationTraffic

UNFILTERED_RADIUS_RANGE: Tuple[float, float] = (0.0, 25.0)
FILTERED_RADIUS_RANGE: Tuple[float, float] = (3.0, 50.0)
FLOW_LEVELS: Tuple[float, ...] = (0.0, 0.5, 1.0)


@dataclass(frozen=True)
class RadiusScale:
    """Square-root scale from total traffic to marker radius."""

    domain_max: float
    range_min: float
    range_max: float

    @classmethod
    def for_stations(
        cls,
        stations: Sequence[StationTraffic],
        *,
        filtered: bool,
        unfiltered_range: Tuple[float, float] = UNFILTERED_RADIUS_RANGE,
        filtered_range: Tuple[float, float] = FILTERED_RADIUS_RANGE,
    ) -> "RadiusScale":
        domain_max = max((s.total_traffic for s in stations), default=0)
        low, high = filtered_range if filtered else unfiltered_range
        return cls(domain_max=float(domain_max), range_min=float(low), range_max=float(high))

    def __call__(self, total_traffic: float) -> float:
        return float(self.apply(np.asarray(total_traffic, dtype=float)))

    def apply(self, values) -> np.ndarray:
        """Vectorized form; a zero domain collapses onto ``range_min``."""
        values = np.asarray(values, dtype=float)
        if self.domain_max <= 0:
            return np.full_like(values, self.range_min)
        t = np.sqrt(np.clip(values, 0.0, None)) / math.sqrt(self.domain_max)
        return self.range_min + t * (self.range_max - self.range_min)


@dataclass(frozen=True)
class FlowScale:
    """Quantizes the departure share over [0, 1] into discrete flow levels."""

    levels: Tuple[float, ...] = FLOW_LEVELS

    @property
    def thresholds(self) -> np.ndarray:
        n = len(self.levels)
        return np.arange(1, n) / n

    def __call__(self, departure_ratio: float) -> float:
        return float(self.apply(np.asarray(departure_ratio, dtype=float)))

    def apply(self, ratios) -> np.ndarray:
        ratios = np.asarray(ratios, dtype=float)
        buckets = np.searchsorted(self.thresholds, ratios, side="right")
        return np.asarray(self.levels, dtype=float)[buckets]

    def for_station(self, station: StationTraffic) -> float:
        return self(station.departure_ratio)


__all__ = [
    "FILTERED_RADIUS_RANGE",
    "FLOW_LEVELS",
    "FlowScale",
    "RadiusScale",
    "UNFILTERED_RADIUS_RANGE",
]
