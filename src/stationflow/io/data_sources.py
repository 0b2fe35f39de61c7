"""Loaders for station lists and trip CSVs."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Iterator, List, Mapping, Optional, Sequence

import pandas as pd

from stationflow.io.config import TrafficConfig
from stationflow.traffic.domain_types import STATION_ID_FIELDS, Station, Trip, normalize_station_id
from stationflow.traffic.traffic_service import TrafficContext

logger = logging.getLogger(__name__)


TRIP_COLUMNS: Sequence[str] = [
    "start_station_id",
    "end_station_id",
    "started_at",
    "ended_at",
]

TIMESTAMP_COLUMNS: Sequence[str] = ["started_at", "ended_at"]


class LoadError(RuntimeError):
    """A station or trip source could not be read."""


class StationLoadError(LoadError):
    pass


class TripLoadError(LoadError):
    pass


# ---------------------------------------------------------------------- stations
def load_stations(path: str | Path) -> List[Station]:
    """
    Load stations from GBFS-style JSON, a JSON list, or a CSV file.

    GBFS payloads keep the list under ``data.stations``; a top-level
    ``stations`` key is accepted too.
    """
    station_path = Path(path)
    if not station_path.exists():
        raise StationLoadError(f"Station file not found at {station_path}")
    if station_path.suffix.lower() == ".json":
        records = _read_station_json(station_path)
    else:
        records = _read_station_csv(station_path)
    stations: List[Station] = []
    for position, record in enumerate(records):
        if not isinstance(record, Mapping):
            raise StationLoadError(f"Station entry {position} in {station_path} is not a mapping")
        try:
            stations.append(Station.from_mapping(record))
        except (TypeError, ValueError) as exc:
            raise StationLoadError(f"Invalid station entry {position} in {station_path}: {exc}") from exc
    logger.info("Loaded %d stations from %s", len(stations), station_path)
    return stations


def _read_station_json(path: Path) -> List[object]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except json.JSONDecodeError as exc:
        raise StationLoadError(f"Malformed station JSON in {path}: {exc}") from exc
    if isinstance(payload, list):
        return payload
    if isinstance(payload, Mapping):
        data = payload.get("data")
        if isinstance(data, Mapping) and isinstance(data.get("stations"), list):
            return data["stations"]
        if isinstance(payload.get("stations"), list):
            return payload["stations"]
    raise StationLoadError(f"No station list found in {path}")


def _read_station_csv(path: Path) -> List[Mapping[str, object]]:
    try:
        header_df = pd.read_csv(path, nrows=0)
        # Ids stay as text so they resolve like the trip-side ids.
        id_dtypes = {column: str for column in STATION_ID_FIELDS if column in header_df.columns}
        frame = pd.read_csv(path, dtype=id_dtypes)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as exc:
        raise StationLoadError(f"Malformed station CSV {path}: {exc}") from exc
    frame = frame.astype(object).where(frame.notna(), None)
    return frame.to_dict("records")


# ------------------------------------------------------------------------- trips
def _check_trip_columns(csv_path: Path) -> None:
    try:
        header_df = pd.read_csv(csv_path, nrows=0)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as exc:
        raise TripLoadError(f"Malformed trip CSV {csv_path}: {exc}") from exc
    missing = [column for column in TRIP_COLUMNS if column not in header_df.columns]
    if missing:
        raise TripLoadError(f"{csv_path} is missing required columns: {', '.join(missing)}")


def iter_trips(path: str | Path, *, chunksize: int = 100_000) -> Iterator[Trip]:
    """
    Stream trips from a CSV or CSV.GZ file.

    Timestamps that pandas cannot parse become NaT and are left for the
    bucket index to skip or reject.
    """
    csv_path = Path(path)
    if not csv_path.exists():
        raise TripLoadError(f"Trip file not found at {csv_path}")
    _check_trip_columns(csv_path)
    reader = pd.read_csv(
        csv_path,
        usecols=list(TRIP_COLUMNS),
        dtype={"start_station_id": str, "end_station_id": str},
        chunksize=chunksize,
    )
    chunk_idx = 0
    try:
        for chunk in reader:
            chunk_idx += 1
            for column in TIMESTAMP_COLUMNS:
                chunk[column] = pd.to_datetime(chunk[column], format="mixed", errors="coerce")
            if logger.isEnabledFor(logging.DEBUG):
                bad = int(chunk[list(TIMESTAMP_COLUMNS)].isna().any(axis=1).sum())
                logger.debug(
                    "iter_trips file=%s chunk=%s rows=%s bad_timestamps=%s",
                    os.path.basename(csv_path),
                    chunk_idx,
                    len(chunk),
                    bad,
                )
            for row in chunk.itertuples(index=False):
                yield Trip(
                    start_station_id=normalize_station_id(row.start_station_id),
                    end_station_id=normalize_station_id(row.end_station_id),
                    started_at=row.started_at,
                    ended_at=row.ended_at,
                )
    except (pd.errors.ParserError, UnicodeDecodeError) as exc:
        raise TripLoadError(f"Malformed trip CSV {csv_path} (chunk {chunk_idx + 1}): {exc}") from exc


def load_trips(path: str | Path, *, chunksize: int = 100_000) -> List[Trip]:
    trips = list(iter_trips(path, chunksize=chunksize))
    logger.info("Loaded %d trips from %s", len(trips), path)
    return trips


# ----------------------------------------------------------------------- network
def load_network(
    stations_path: str | Path,
    trips_path: str | Path,
    config: Optional[TrafficConfig] = None,
    *,
    chunksize: int = 100_000,
) -> TrafficContext:
    """Load stations and trips, then build the bucket index; either load failing aborts."""
    config = config or TrafficConfig()
    stations = load_stations(stations_path)
    trips = load_trips(trips_path, chunksize=chunksize)
    return TrafficContext.from_records(
        stations,
        trips,
        on_parse_error=config.timestamp_policy,
        **config.context_kwargs(),
    )


__all__ = [
    "LoadError",
    "StationLoadError",
    "TRIP_COLUMNS",
    "TripLoadError",
    "iter_trips",
    "load_network",
    "load_stations",
    "load_trips",
]
