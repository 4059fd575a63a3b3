# This file provides shared builders for trip loader tests.
# It exists so CSV fixtures and fake collaborators look the same across unit and integration tests.
# The fakes record every call so tests can assert on ordering and batch boundaries.

from __future__ import annotations

from collections.abc import Iterator, Sequence
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path

from src.common.schema_map import TRIP_CSV_COLUMNS
from src.ingestion.trip_models import RawTripRow, StoreAndFwdFlag, Trip

TRIP_HEADER = ",".join(TRIP_CSV_COLUMNS)


def trip_line(
    pickup: str = "01/01/2020 12:28:15 AM",
    dropoff: str = "01/01/2020 12:33:03 AM",
    passengers: str = "1",
    distance: str = "1.20",
    flag: str = "N",
    pu_location: str = "238",
    do_location: str = "239",
    fare: str = "6.00",
    tip: str = "1.47",
) -> str:
    return ",".join([pickup, dropoff, passengers, distance, flag, pu_location, do_location, fare, tip])


def write_trip_csv(path: Path, lines: list[str], header: str = TRIP_HEADER) -> Path:
    path.write_text("\n".join([header, *lines]) + "\n", encoding="utf-8")
    return path


def raw_row(line_number: int = 1, **overrides: str | None) -> RawTripRow:
    values: dict[str, str | None] = {
        "pickup_datetime": "2020-01-01 00:28:15",
        "dropoff_datetime": "2020-01-01 00:33:03",
        "passenger_count": "1",
        "trip_distance": "1.20",
        "store_and_fwd_flag": "N",
        "pickup_location_id": "238",
        "dropoff_location_id": "239",
        "fare_amount": "6.00",
        "tip_amount": "1.47",
    }
    values.update(overrides)
    return RawTripRow(line_number=line_number, **values)


def make_trip(
    pickup: datetime = datetime(2020, 1, 1, 5, 28, 15, tzinfo=UTC),
    dropoff: datetime = datetime(2020, 1, 1, 5, 33, 3, tzinfo=UTC),
    passenger_count: int = 1,
    fare_amount: str = "6.00",
    tip_amount: str = "1.47",
) -> Trip:
    return Trip(
        pickup_utc=pickup,
        dropoff_utc=dropoff,
        passenger_count=passenger_count,
        trip_distance=Decimal("1.20"),
        store_and_fwd_flag=StoreAndFwdFlag.NO,
        pickup_location_id=238,
        dropoff_location_id=239,
        fare_amount=Decimal(fare_amount),
        tip_amount=Decimal(tip_amount),
    )


class ListReader:
    def __init__(self, rows: list[RawTripRow]) -> None:
        self.rows = rows

    def read(self) -> Iterator[RawTripRow]:
        return iter(self.rows)


class RecordingSink:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.rows: list[RawTripRow] = []

    def write_duplicate(self, row: RawTripRow) -> None:
        if self.fail:
            raise OSError("disk full")
        self.rows.append(row)


class RecordingLoader:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.batches: list[list[Trip]] = []

    def insert_batch(self, trips: Sequence[Trip]) -> int:
        if self.error is not None:
            raise self.error
        self.batches.append(list(trips))
        return len(trips)

    @property
    def inserted(self) -> list[Trip]:
        return [trip for batch in self.batches for trip in batch]
