"""
Read-side queries over the loaded trips table.
Each query returns a pandas DataFrame so results can be printed, exported or joined downstream.
"""

from __future__ import annotations

import pandas as pd
from sqlalchemy import text
from sqlalchemy.engine import Engine

from src.common.schema_map import TRAVEL_TIME_COLUMN, TRIPS_TABLE, TRIPS_TABLE_COLUMNS

TRIP_DETAIL_COLUMNS = (*TRIPS_TABLE_COLUMNS, TRAVEL_TIME_COLUMN)


def _check_limit(limit: int) -> int:
    if limit <= 0:
        raise ValueError(f"limit must be a positive integer, got {limit}")
    return limit


def average_tip_by_pickup_zone(engine: Engine, limit: int = 1) -> pd.DataFrame:
    """Pickup locations ranked by their average tip, highest first."""

    sql = text(
        f"""
        SELECT
            pickup_location_id,
            AVG(tip_amount) AS avg_tip_amount,
            COUNT(*) AS trip_count
        FROM {TRIPS_TABLE}
        GROUP BY pickup_location_id
        ORDER BY avg_tip_amount DESC, pickup_location_id
        LIMIT :limit
        """
    )
    with engine.connect() as connection:
        frame = pd.read_sql(sql, connection, params={"limit": _check_limit(limit)})
    frame["avg_tip_amount"] = frame["avg_tip_amount"].astype(float)
    return frame


def _longest_trips(engine: Engine, order_column: str, limit: int) -> pd.DataFrame:
    columns = ", ".join(TRIP_DETAIL_COLUMNS)
    sql = text(
        f"""
        SELECT id, {columns}
        FROM {TRIPS_TABLE}
        ORDER BY {order_column} DESC, id
        LIMIT :limit
        """
    )
    with engine.connect() as connection:
        return pd.read_sql(sql, connection, params={"limit": _check_limit(limit)})


def longest_trips_by_distance(engine: Engine, limit: int = 100) -> pd.DataFrame:
    return _longest_trips(engine, "trip_distance", limit)


def longest_trips_by_duration(engine: Engine, limit: int = 100) -> pd.DataFrame:
    return _longest_trips(engine, TRAVEL_TIME_COLUMN, limit)
