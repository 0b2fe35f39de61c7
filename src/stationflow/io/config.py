from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Tuple

import yaml

from stationflow.traffic.minute_index import TIMESTAMP_POLICIES
from stationflow.traffic.scales import FILTERED_RADIUS_RANGE, UNFILTERED_RADIUS_RANGE
from stationflow.traffic.window import DEFAULT_RADIUS_MINUTES, MINUTES_PER_DAY

logger = logging.getLogger(__name__)

_KNOWN_KEYS = {
    "version",
    "window_radius_minutes",
    "unfiltered_radius_range",
    "filtered_radius_range",
    "timestamp_policy",
    "stations_path",
    "trips_path",
}


def _parse_radius_range(value: object, label: str) -> Tuple[float, float]:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ValueError(f"{label} must be a two-element [min, max] list")
    low, high = float(value[0]), float(value[1])
    if low < 0 or high < low:
        raise ValueError(f"{label} must satisfy 0 <= min <= max: {list(value)!r}")
    return low, high


@dataclass
class TrafficConfig:
    """Settings for the traffic aggregation and the marker scales."""

    window_radius_minutes: int = DEFAULT_RADIUS_MINUTES
    unfiltered_radius_range: Tuple[float, float] = UNFILTERED_RADIUS_RANGE
    filtered_radius_range: Tuple[float, float] = FILTERED_RADIUS_RANGE
    timestamp_policy: str = "skip"
    stations_path: str | None = None
    trips_path: str | None = None
    version: str | None = None

    def __post_init__(self) -> None:
        self.window_radius_minutes = int(self.window_radius_minutes)
        if self.window_radius_minutes < 0 or 2 * self.window_radius_minutes + 1 > MINUTES_PER_DAY:
            raise ValueError(
                f"window_radius_minutes must be in [0, {(MINUTES_PER_DAY - 1) // 2}]"
            )
        self.unfiltered_radius_range = _parse_radius_range(
            self.unfiltered_radius_range, "unfiltered_radius_range"
        )
        self.filtered_radius_range = _parse_radius_range(
            self.filtered_radius_range, "filtered_radius_range"
        )
        if self.timestamp_policy not in TIMESTAMP_POLICIES:
            raise ValueError(
                f"timestamp_policy must be one of {TIMESTAMP_POLICIES}: {self.timestamp_policy!r}"
            )

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> "TrafficConfig":
        if not isinstance(data, Mapping):
            raise TypeError("Traffic config must be a mapping")
        unknown = sorted(set(data) - _KNOWN_KEYS)
        if unknown:
            logger.warning("Ignoring unknown traffic config keys: %s", ", ".join(unknown))
        version = data.get("version")
        return cls(
            window_radius_minutes=data.get("window_radius_minutes", DEFAULT_RADIUS_MINUTES),
            unfiltered_radius_range=data.get("unfiltered_radius_range", UNFILTERED_RADIUS_RANGE),
            filtered_radius_range=data.get("filtered_radius_range", FILTERED_RADIUS_RANGE),
            timestamp_policy=str(data.get("timestamp_policy", "skip")),
            stations_path=data.get("stations_path"),
            trips_path=data.get("trips_path"),
            version=str(version) if version is not None else None,
        )

    @classmethod
    def from_yaml(cls, path: str | Path) -> "TrafficConfig":
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Traffic config YAML not found at {config_path}")
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        if not isinstance(data, Mapping):
            raise TypeError("Traffic config YAML must contain a mapping at the top level")
        return cls.from_mapping(data)

    def to_yaml(self, path: str | Path) -> None:
        output: Dict[str, object] = {
            "window_radius_minutes": self.window_radius_minutes,
            "unfiltered_radius_range": list(self.unfiltered_radius_range),
            "filtered_radius_range": list(self.filtered_radius_range),
            "timestamp_policy": self.timestamp_policy,
        }
        if self.version is not None:
            output["version"] = self.version
        if self.stations_path is not None:
            output["stations_path"] = self.stations_path
        if self.trips_path is not None:
            output["trips_path"] = self.trips_path
        dest = Path(path)
        dest.parent.mkdir(parents=True, exist_ok=True)
        with dest.open("w", encoding="utf-8") as handle:
            yaml.safe_dump(output, handle, sort_keys=True)

    def context_kwargs(self) -> Dict[str, object]:
        """Keyword arguments accepted by ``TrafficContext``."""
        return {
            "radius_minutes": self.window_radius_minutes,
            "unfiltered_radius_range": self.unfiltered_radius_range,
            "filtered_radius_range": self.filtered_radius_range,
        }


__all__ = ["TrafficConfig"]
