from __future__ import annotations

import csv
import json
import textwrap
from pathlib import Path

import pandas as pd
import pytest

from stationflow.io.config import TrafficConfig
from stationflow.io.data_sources import (
    StationLoadError,
    TripLoadError,
    load_network,
    load_stations,
    load_trips,
)
from stationflow.io.traffic_cli import _sweep_with_progress, main as traffic_main
from stationflow.traffic.minute_index import TripParseError


def test_traffic_config_roundtrip(tmp_path):
    yaml_text = textwrap.dedent(
        """
        version: test
        window_radius_minutes: 30
        filtered_radius_range: [2, 40]
        timestamp_policy: raise
        """
    ).strip()
    config_path = tmp_path / "traffic.yaml"
    config_path.write_text(yaml_text, encoding="utf-8")
    config = TrafficConfig.from_yaml(config_path)
    assert config.window_radius_minutes == 30
    assert config.filtered_radius_range == (2.0, 40.0)
    # Defaults applied to keys that are omitted
    assert config.unfiltered_radius_range == (0.0, 25.0)
    assert config.timestamp_policy == "raise"

    roundtrip_path = tmp_path / "roundtrip.yaml"
    config.to_yaml(roundtrip_path)
    roundtrip = TrafficConfig.from_yaml(roundtrip_path)
    assert roundtrip == config


@pytest.mark.parametrize(
    "mapping",
    [
        {"window_radius_minutes": 720},
        {"filtered_radius_range": [50, 3]},
        {"unfiltered_radius_range": [0]},
        {"timestamp_policy": "ignore"},
    ],
)
def test_traffic_config_rejects_invalid_values(mapping):
    with pytest.raises(ValueError):
        TrafficConfig.from_mapping(mapping)


def test_traffic_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        TrafficConfig.from_yaml(tmp_path / "missing.yaml")


def test_load_stations_from_gbfs_json(tmp_path):
    path = tmp_path / "stations.json"
    _write_gbfs_json(path)
    stations = load_stations(path)
    assert [s.id for s in stations] == ["A32000", "S2", "N3"]
    assert stations[0].lat == pytest.approx(42.36)


def test_load_stations_from_csv(tmp_path):
    path = tmp_path / "stations.csv"
    pd.DataFrame(
        [
            {"Number": "A32000", "NAME": "Alpha", "Lat": 42.36, "Long": -71.09},
            {"Number": None, "NAME": "Nameless", "Lat": 42.35, "Long": -71.06},
        ]
    ).to_csv(path, index=False)
    stations = load_stations(path)
    assert stations[0].id == "A32000"
    assert stations[0].name == "Alpha"
    assert stations[1].id is None


def test_load_stations_rejects_malformed_json(tmp_path):
    path = tmp_path / "stations.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(StationLoadError):
        load_stations(path)


def test_load_stations_rejects_missing_coordinates(tmp_path):
    path = tmp_path / "stations.json"
    path.write_text(json.dumps([{"short_name": "A"}]), encoding="utf-8")
    with pytest.raises(StationLoadError):
        load_stations(path)


def test_load_trips_requires_columns(tmp_path):
    path = tmp_path / "trips.csv"
    path.write_text("start_station_id,started_at\nA,2024-03-01 08:00:00\n", encoding="utf-8")
    with pytest.raises(TripLoadError):
        load_trips(path)


def test_load_trips_missing_file(tmp_path):
    with pytest.raises(TripLoadError):
        load_trips(tmp_path / "nope.csv")


def test_load_network_skips_bad_timestamps(tmp_path):
    stations_path = tmp_path / "stations.json"
    trips_path = tmp_path / "trips.csv"
    _write_gbfs_json(stations_path)
    _write_trips_csv(trips_path, extra_rows=[("A32000", "S2", "yesterday-ish", "2024-03-01 08:10:00")])

    trips = load_trips(trips_path, chunksize=2)
    assert len(trips) == 4

    context = load_network(stations_path, trips_path)
    assert context.index.skipped_trips == 1
    assert context.index.trip_count == 3
    snapshot = context.set_time_filter(8 * 60)
    assert snapshot.get("A32000").departures == 1
    assert snapshot.get("S2").arrivals == 1
    assert snapshot.get("N3").total_traffic == 0


def test_load_network_strict_policy_aborts(tmp_path):
    stations_path = tmp_path / "stations.json"
    trips_path = tmp_path / "trips.csv"
    _write_gbfs_json(stations_path)
    _write_trips_csv(trips_path, extra_rows=[("A32000", "S2", "bad", "bad")])
    with pytest.raises(TripParseError):
        load_network(stations_path, trips_path, TrafficConfig(timestamp_policy="raise"))


def test_load_trips_accepts_mixed_timestamp_precision(tmp_path):
    stations_path = tmp_path / "stations.json"
    trips_path = tmp_path / "trips.csv"
    _write_gbfs_json(stations_path)
    _write_trips_csv(
        trips_path,
        extra_rows=[
            ("A32000", "S2", "2024-03-01 08:03:11.532", "2024-03-01 08:20:05.1"),
            ("S2", "N3", "2024-03-01T09:00:00", "2024-03-01 09:12"),
        ],
    )

    context = load_network(stations_path, trips_path)
    assert context.index.skipped_trips == 0
    assert context.index.trip_count == 5
    snapshot = context.set_time_filter(8 * 60)
    assert snapshot.get("A32000").departures == 2
    assert snapshot.get("S2").arrivals == 2


def test_station_csv_ids_match_trip_ids_verbatim(tmp_path):
    stations_path = tmp_path / "stations.csv"
    trips_path = tmp_path / "trips.csv"
    stations_path.write_text(
        "short_name,station_id,name,lat,lon\n"
        "6140.10,,Decimal Dock,42.36,-71.09\n"
        ",05,Padded Dock,42.35,-71.06\n",
        encoding="utf-8",
    )
    with trips_path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(["start_station_id", "end_station_id", "started_at", "ended_at"])
        writer.writerow(["6140.10", "6140.10", "2024-03-01 08:00:00", "2024-03-01 08:10:00"])
        writer.writerow(["05", "6140.10", "2024-03-01 09:00:00", "2024-03-01 09:10:00"])

    stations = load_stations(stations_path)
    assert [s.id for s in stations] == ["6140.10", "05"]

    snapshot = load_network(stations_path, trips_path).snapshot
    assert snapshot.get("6140.10").total_traffic == 3
    assert snapshot.get("05").departures == 1


def test_traffic_cli_sweep_leaves_context_filter_unchanged(tmp_path):
    stations_path = tmp_path / "stations.json"
    trips_path = tmp_path / "trips.csv"
    _write_gbfs_json(stations_path)
    _write_trips_csv(trips_path)
    context = load_network(stations_path, trips_path)

    frame = _sweep_with_progress(context, 720)
    assert sorted(frame["time_filter"].unique()) == [0, 720]
    assert context.time_filter == -1
    with pytest.raises(SystemExit):
        _sweep_with_progress(context, 0)


def test_traffic_cli_writes_filtered_csv(tmp_path):
    stations_path = tmp_path / "stations.json"
    trips_path = tmp_path / "trips.csv"
    output_all = tmp_path / "all.csv"
    output_evening = tmp_path / "evening.csv"
    _write_gbfs_json(stations_path)
    _write_trips_csv(trips_path)

    base_args = ["--stations", str(stations_path), "--trips", str(trips_path), "--log-level", "ERROR"]
    traffic_main(base_args + ["--output-csv", str(output_all)])
    traffic_main(base_args + ["--time", "18:00", "--output-csv", str(output_evening)])

    unfiltered = _load_totals(output_all)
    evening = _load_totals(output_evening)
    assert unfiltered == {"A32000": 2, "S2": 3, "N3": 1}
    assert evening == {"A32000": 0, "S2": 1, "N3": 1}


def test_traffic_cli_sweep(tmp_path):
    stations_path = tmp_path / "stations.json"
    trips_path = tmp_path / "trips.csv"
    output = tmp_path / "sweep.csv"
    _write_gbfs_json(stations_path)
    _write_trips_csv(trips_path)

    traffic_main(
        [
            "--stations",
            str(stations_path),
            "--trips",
            str(trips_path),
            "--sweep-step-minutes",
            "360",
            "--output-csv",
            str(output),
            "--log-level",
            "ERROR",
        ]
    )
    frame = pd.read_csv(output)
    assert sorted(frame["time_filter"].unique()) == [0, 360, 720, 1080]
    assert len(frame) == 4 * 3


def test_traffic_cli_exits_on_load_failure(tmp_path):
    trips_path = tmp_path / "trips.csv"
    _write_trips_csv(trips_path)
    with pytest.raises(SystemExit):
        traffic_main(
            [
                "--stations",
                str(tmp_path / "missing.json"),
                "--trips",
                str(trips_path),
                "--output-csv",
                str(tmp_path / "out.csv"),
                "--log-level",
                "ERROR",
            ]
        )
    assert not (tmp_path / "out.csv").exists()


def _write_gbfs_json(path: Path) -> None:
    payload = {
        "last_updated": 1709251200,
        "data": {
            "stations": [
                {"short_name": "A32000", "station_id": "uuid-1", "name": "Alpha", "lat": 42.36, "lon": -71.09},
                {"station_id": "S2", "name": "Beta", "lat": 42.35, "lon": -71.06},
                {"Number": "N3", "name": "Gamma", "lat": 42.37, "lon": -71.10},
            ]
        },
    }
    path.write_text(json.dumps(payload), encoding="utf-8")


def _write_trips_csv(path: Path, extra_rows=()) -> None:
    rows = [
        ("A32000", "S2", "2024-03-01 08:02:11", "2024-03-01 08:15:40"),
        ("S2", "A32000", "2024-03-01 12:30:00", "2024-03-01 12:41:05"),
        ("S2", "N3", "2024-03-01 17:45:00", "2024-03-01 18:05:00"),
    ]
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(["ride_id", "start_station_id", "end_station_id", "started_at", "ended_at"])
        for idx, row in enumerate(list(rows) + list(extra_rows)):
            writer.writerow([f"R{idx}", *row])


def _load_totals(path: Path) -> dict[str, int]:
    with path.open("r", newline="", encoding="utf-8") as handle:
        reader = csv.DictReader(handle)
        return {row["station_id"]: int(row["total_traffic"]) for row in reader}
