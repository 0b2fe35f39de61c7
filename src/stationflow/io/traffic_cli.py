"""CLI helper that exports time-filtered station traffic to CSV."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Sequence

import pandas as pd
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from stationflow.io.config import TrafficConfig
from stationflow.io.data_sources import LoadError, load_network
from stationflow.traffic.minute_index import TripParseError
from stationflow.traffic.traffic_service import TrafficContext
from stationflow.traffic.window import format_time_filter, parse_time_filter

logger = logging.getLogger(__name__)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--stations",
        default=None,
        help="Station list (GBFS JSON, JSON list or CSV). Overrides stations_path from --config.",
    )
    parser.add_argument(
        "--trips",
        default=None,
        help="Trip CSV(.gz) with start/end station ids and timestamps. Overrides trips_path from --config.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Optional YAML traffic config (window radius, marker radius ranges, timestamp policy).",
    )
    parser.add_argument(
        "--time",
        default="-1",
        help="Window centre as HH:MM or minute of day; -1 aggregates all trips.",
    )
    parser.add_argument(
        "--sweep-step-minutes",
        type=int,
        default=None,
        help="Export one window every N minutes across the day instead of a single --time.",
    )
    parser.add_argument(
        "--output-csv",
        default="output/station_traffic.csv",
        help="Destination CSV for annotated stations.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))
    config = TrafficConfig.from_yaml(args.config) if args.config else TrafficConfig()
    stations_path = args.stations or config.stations_path
    trips_path = args.trips or config.trips_path
    if not stations_path or not trips_path:
        raise SystemExit("Both a station list and a trip file are required (--stations/--trips or config).")
    try:
        time_filter = parse_time_filter(args.time)
    except (TypeError, ValueError) as exc:
        raise SystemExit(str(exc)) from exc
    try:
        context = load_network(stations_path, trips_path, config)
    except (LoadError, TripParseError) as exc:
        logger.error("Initialization failed: %s", exc)
        raise SystemExit(str(exc)) from exc
    if context.index.skipped_trips:
        logger.warning("%d trips were excluded from the index", context.index.skipped_trips)

    if args.sweep_step_minutes is not None:
        dataframe = _sweep_with_progress(context, args.sweep_step_minutes)
    else:
        snapshot = context.set_time_filter(time_filter)
        logger.info(
            "Window %s: %d departures, %d arrivals",
            format_time_filter(time_filter),
            snapshot.total_departures,
            snapshot.total_arrivals,
        )
        dataframe = snapshot.to_dataframe()
    _write_traffic_csv(args.output_csv, dataframe)
    logger.info("Wrote station traffic CSV with %d rows to %s", len(dataframe), args.output_csv)


def _write_traffic_csv(path: str | Path, dataframe: pd.DataFrame) -> None:
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    dataframe.to_csv(output_path, index=False)


def _sweep_with_progress(context: TrafficContext, step_minutes: int) -> pd.DataFrame:
    """Slide the window across the day while displaying a progress bar."""
    try:
        minutes = context.sweep_minutes(step_minutes)
    except ValueError as exc:
        raise SystemExit(f"--sweep-step-minutes: {exc}") from exc
    frames: List[pd.DataFrame] = []
    progress = Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        TimeElapsedColumn(),
        transient=True,
    )
    with progress:
        task_id = progress.add_task("Sweeping time windows", total=len(minutes))
        for snapshot in context.sweep(step_minutes):
            frames.append(snapshot.to_dataframe())
            progress.advance(task_id)
    return pd.concat(frames, ignore_index=True)


if __name__ == "__main__":
    main()
