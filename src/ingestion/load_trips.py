"""Command-line entry point that loads one trip CSV into the trips table."""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
import threading
from typing import Any

import pandas as pd
from sqlalchemy.engine import Engine

from src.common.db import create_db_engine
from src.common.etl_config import DEFAULT_CONFIG_PATH, EtlConfig, load_etl_config
from src.common.logging import configure_logging
from src.common.settings import get_settings
from src.ingestion.ddl import apply_trips_ddl
from src.ingestion.pipeline import build_pipeline
from src.ingestion.trip_queries import (
    average_tip_by_pickup_zone,
    longest_trips_by_distance,
    longest_trips_by_duration,
)

LOGGER = logging.getLogger("ingestion.load_trips")


def _records(frame: pd.DataFrame) -> list[dict[str, Any]]:
    return json.loads(frame.to_json(orient="records", date_format="iso", default_handler=str))


def build_report(engine: Engine) -> dict[str, Any]:
    """Run the three trip reports and return them as JSON-ready records."""

    return {
        "top_avg_tip_pickup_zone": _records(average_tip_by_pickup_zone(engine)),
        "longest_trips_by_distance": _records(longest_trips_by_distance(engine)),
        "longest_trips_by_duration": _records(longest_trips_by_duration(engine)),
    }


def run_trip_etl(
    config: EtlConfig,
    engine: Engine,
    *,
    apply_ddl: bool = True,
    include_report: bool = False,
    cancel_event: threading.Event | None = None,
) -> dict[str, Any]:
    """Load ``config.input_csv_path`` and return the run summary."""

    if apply_ddl:
        apply_trips_ddl(engine)

    LOGGER.info(
        "Loading %s (batch size %s, timezone conversion %s)",
        config.input_csv_path,
        config.batch_size,
        "on" if config.enable_timezone_conversion else "off",
    )
    stats = build_pipeline(config, engine).run(cancel_event)

    summary: dict[str, Any] = {
        "input_csv_path": str(config.input_csv_path),
        "duplicates_csv_path": str(config.duplicates_csv_path),
        "stats": stats.to_dict(),
    }
    if include_report:
        summary["report"] = build_report(engine)
    return summary


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Load a yellow-taxi trip CSV into the trips table")
    parser.add_argument("--input", dest="input_csv_path", default=None)
    parser.add_argument("--duplicates", dest="duplicates_csv_path", default=None)
    parser.add_argument("--batch-size", type=int, default=None)
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH)
    parser.add_argument("--skip-ddl", action="store_true")
    parser.add_argument("--report", action="store_true", help="Print the tip/distance/duration reports after loading")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    cancel_event = threading.Event()

    def _request_cancel(signum: int, _frame: Any) -> None:
        LOGGER.warning("Received signal %s; cancelling after the current row", signum)
        cancel_event.set()

    previous_handler = signal.signal(signal.SIGINT, _request_cancel)
    try:
        settings = get_settings()
        configure_logging(settings.LOG_LEVEL)
        config = load_etl_config(
            config_path=args.config,
            overrides={
                "input_csv_path": args.input_csv_path,
                "duplicates_csv_path": args.duplicates_csv_path,
                "batch_size": args.batch_size,
            },
        )
        engine = create_db_engine(settings.DATABASE_URL)
        summary = run_trip_etl(
            config,
            engine,
            apply_ddl=not args.skip_ddl,
            include_report=args.report,
            cancel_event=cancel_event,
        )
    except Exception as exc:  # noqa: BLE001
        LOGGER.error("Trip ETL failed: %s", exc)
        print(json.dumps({"status": "failed", "error_type": type(exc).__name__, "error": str(exc)}), file=sys.stderr)
        return 1
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    print(json.dumps({"status": "succeeded", **summary}, indent=2, default=str))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
