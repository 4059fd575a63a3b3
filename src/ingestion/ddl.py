"""DDL helpers for the trips table."""

from __future__ import annotations

import logging

from sqlalchemy import (
    BigInteger,
    Column,
    Computed,
    DateTime,
    Index,
    Integer,
    MetaData,
    Numeric,
    SmallInteger,
    String,
    Table,
)
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine

from src.common.schema_map import TRAVEL_TIME_COLUMN, TRIPS_TABLE

LOGGER = logging.getLogger("ingestion.ddl")

_TRAVEL_TIME_EXPRESSIONS = {
    "postgresql": "CAST(EXTRACT(EPOCH FROM (dropoff_datetime - pickup_datetime)) AS INTEGER)",
    "sqlite": "CAST(strftime('%s', dropoff_datetime) AS INTEGER) - CAST(strftime('%s', pickup_datetime) AS INTEGER)",
}

# Second precision on Postgres; SQLite stores text and is truncated by the loader.
_TIMESTAMP = DateTime(timezone=False).with_variant(postgresql.TIMESTAMP(precision=0), "postgresql")
_ROW_ID = BigInteger().with_variant(sqlite.INTEGER(), "sqlite")


def travel_time_expression(dialect_name: str) -> str:
    try:
        return _TRAVEL_TIME_EXPRESSIONS[dialect_name]
    except KeyError as exc:
        raise ValueError(f"Unsupported database dialect for trips table: {dialect_name}") from exc


def build_trips_table(metadata: MetaData, dialect_name: str = "postgresql") -> Table:
    """Define the trips table for the given dialect.

    Only the generated ``travel_time_seconds`` expression differs by dialect.
    """

    table = Table(
        TRIPS_TABLE,
        metadata,
        Column("id", _ROW_ID, primary_key=True, autoincrement=True),
        Column("pickup_datetime", _TIMESTAMP, nullable=False),
        Column("dropoff_datetime", _TIMESTAMP, nullable=False),
        Column("passenger_count", SmallInteger, nullable=False),
        Column("trip_distance", Numeric(9, 3), nullable=False),
        Column("store_and_fwd_flag", String(3), nullable=False),
        Column("pickup_location_id", Integer, nullable=False),
        Column("dropoff_location_id", Integer, nullable=False),
        Column("fare_amount", Numeric(10, 2), nullable=False),
        Column("tip_amount", Numeric(10, 2), nullable=False),
        Column(TRAVEL_TIME_COLUMN, Integer, Computed(travel_time_expression(dialect_name), persisted=True)),
    )
    Index(
        "ix_trips_pickup_location_tip",
        table.c.pickup_location_id,
        postgresql_include=["tip_amount"],
    )
    Index("ix_trips_trip_distance", table.c.trip_distance)
    Index("ix_trips_travel_time_seconds", table.c[TRAVEL_TIME_COLUMN])
    return table


def apply_trips_ddl(engine: Engine) -> Table:
    """Create the trips table and its indexes if they do not exist yet."""

    metadata = MetaData()
    table = build_trips_table(metadata, engine.dialect.name)
    metadata.create_all(engine, checkfirst=True)
    LOGGER.info("Ensured table %s exists (%s)", TRIPS_TABLE, engine.dialect.name)
    return table
