"""
Bulk insert of trip batches into the trips table.
One batch is written as a single multi-row INSERT inside one transaction.
Transient connection errors are retried here; callers only see success or BulkLoadError.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from datetime import UTC
from typing import Any

from sqlalchemy import MetaData, Table, insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from src.ingestion.ddl import build_trips_table
from src.ingestion.trip_models import Trip

LOGGER = logging.getLogger("ingestion.loader")

# SQLSTATE classes: connection exception, transaction rollback, insufficient resources, operator intervention.
TRANSIENT_SQLSTATE_PREFIXES = ("08", "40", "53", "57P")


class BulkLoadError(RuntimeError):
    """Raised when a batch could not be written to the trips table."""


class _TransientLoadError(Exception):
    def __init__(self, error: OperationalError) -> None:
        super().__init__(str(error))
        self.error = error


def is_transient_error(error: OperationalError) -> bool:
    """True when a failed statement is worth retrying on a fresh connection.

    Schema and data errors (a missing table, a bad value) are not transient.
    """

    if error.connection_invalidated:
        return True
    sqlstate = getattr(error.orig, "pgcode", None) or getattr(error.orig, "sqlstate", None)
    return bool(sqlstate) and str(sqlstate).startswith(TRANSIENT_SQLSTATE_PREFIXES)


def trip_to_params(trip: Trip) -> dict[str, Any]:
    """Map a Trip to insert parameters; timestamps become naive UTC at second precision."""

    return {
        "pickup_datetime": trip.pickup_utc.astimezone(UTC).replace(tzinfo=None, microsecond=0),
        "dropoff_datetime": trip.dropoff_utc.astimezone(UTC).replace(tzinfo=None, microsecond=0),
        "passenger_count": trip.passenger_count,
        "trip_distance": trip.trip_distance,
        "store_and_fwd_flag": trip.store_and_fwd_flag.value,
        "pickup_location_id": trip.pickup_location_id,
        "dropoff_location_id": trip.dropoff_location_id,
        "fare_amount": trip.fare_amount,
        "tip_amount": trip.tip_amount,
    }


class SqlBulkTripLoader:
    def __init__(
        self,
        engine: Engine,
        *,
        table: Table | None = None,
        max_retries: int = 3,
        retry_delay_seconds: float = 2.0,
    ) -> None:
        if max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {max_retries}")
        self._engine = engine
        self._table = table if table is not None else build_trips_table(MetaData(), engine.dialect.name)
        self._max_retries = max_retries
        self._retry_delay_seconds = retry_delay_seconds

    def _insert_once(self, params: list[dict[str, Any]]) -> None:
        try:
            connection = self._engine.connect()
        except OperationalError as exc:
            # No connection could be opened at all.
            raise _TransientLoadError(exc) from exc

        with connection, connection.begin():
            try:
                connection.execute(insert(self._table), params)
            except OperationalError as exc:
                if is_transient_error(exc):
                    raise _TransientLoadError(exc) from exc
                raise

    def insert_batch(self, trips: Sequence[Trip]) -> int:
        """Insert all trips and return the number written."""

        if not trips:
            LOGGER.debug("insert_batch called with an empty batch; skipping")
            return 0

        params = [trip_to_params(trip) for trip in trips]
        attempts = 0
        while True:
            attempts += 1
            try:
                self._insert_once(params)
            except _TransientLoadError as exc:
                if attempts >= self._max_retries:
                    LOGGER.error(
                        "Bulk insert of %s trips into %s failed after %s attempts: %s",
                        len(params),
                        self._table.name,
                        attempts,
                        exc.error,
                    )
                    raise BulkLoadError(
                        f"Bulk insert into {self._table.name} failed after {attempts} attempts: {exc.error}"
                    ) from exc.error
                LOGGER.warning(
                    "Transient error inserting %s trips (attempt %s/%s): %s",
                    len(params),
                    attempts,
                    self._max_retries,
                    exc.error,
                )
                time.sleep(self._retry_delay_seconds)
                continue
            except SQLAlchemyError as exc:
                LOGGER.exception("Bulk insert of %s trips into %s failed", len(params), self._table.name)
                raise BulkLoadError(f"Bulk insert into {self._table.name} failed: {exc}") from exc

            LOGGER.info("Inserted %s trips into %s", len(params), self._table.name)
            return len(params)
