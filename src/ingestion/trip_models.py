"""
Record types that flow through the trip CSV loader.
A row moves from RawTripRow (strings) to ParsedTripRow (typed, local time) to Trip (UTC, validated).
Trip is the only type that enforces domain invariants; the others are plain carriers.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, NamedTuple


class TripValidationError(ValueError):
    """Raised when a Trip would violate a domain invariant."""


class StoreAndFwdFlag(str, Enum):
    NO = "No"
    YES = "Yes"


@dataclass(frozen=True)
class RawTripRow:
    """One data line of the input CSV, values exactly as read (untrimmed)."""

    line_number: int
    pickup_datetime: str | None = None
    dropoff_datetime: str | None = None
    passenger_count: str | None = None
    trip_distance: str | None = None
    store_and_fwd_flag: str | None = None
    pickup_location_id: str | None = None
    dropoff_location_id: str | None = None
    fare_amount: str | None = None
    tip_amount: str | None = None


@dataclass(frozen=True)
class ParsedTripRow:
    line_number: int
    pickup_local: datetime
    dropoff_local: datetime
    passenger_count: int
    trip_distance: Decimal
    store_and_fwd_flag_raw: str
    pickup_location_id: int
    dropoff_location_id: int
    fare_amount: Decimal
    tip_amount: Decimal


class DuplicateKey(NamedTuple):
    pickup_utc: datetime
    dropoff_utc: datetime
    passenger_count: int


def _is_utc(value: datetime) -> bool:
    return value.tzinfo is not None and value.utcoffset() == timedelta(0)


@dataclass(frozen=True)
class Trip:
    """A validated trip ready for loading.

    Both timestamps must be timezone-aware UTC and the dropoff may not precede
    the pickup. Violations raise TripValidationError during construction.
    """

    pickup_utc: datetime
    dropoff_utc: datetime
    passenger_count: int
    trip_distance: Decimal
    store_and_fwd_flag: StoreAndFwdFlag
    pickup_location_id: int
    dropoff_location_id: int
    fare_amount: Decimal
    tip_amount: Decimal

    def __post_init__(self) -> None:
        if not _is_utc(self.pickup_utc):
            raise TripValidationError("pickup timestamp must be timezone-aware UTC.")
        if not _is_utc(self.dropoff_utc):
            raise TripValidationError("dropoff timestamp must be timezone-aware UTC.")
        if self.dropoff_utc < self.pickup_utc:
            raise TripValidationError(
                f"dropoff time {self.dropoff_utc.isoformat()} is earlier than "
                f"pickup time {self.pickup_utc.isoformat()}."
            )

    @property
    def travel_time_seconds(self) -> int:
        return int((self.dropoff_utc - self.pickup_utc).total_seconds())

    @property
    def duplicate_key(self) -> DuplicateKey:
        return DuplicateKey(self.pickup_utc, self.dropoff_utc, self.passenger_count)


@dataclass(frozen=True)
class ParseResult:
    parsed_row: ParsedTripRow | None = None
    error_message: str | None = None

    @property
    def is_success(self) -> bool:
        return self.parsed_row is not None

    @classmethod
    def success(cls, parsed_row: ParsedTripRow) -> ParseResult:
        return cls(parsed_row=parsed_row)

    @classmethod
    def failure(cls, error_message: str) -> ParseResult:
        return cls(error_message=error_message)


@dataclass(frozen=True)
class NormalizationResult:
    trip: Trip | None = None
    error_message: str | None = None

    @property
    def is_success(self) -> bool:
        return self.trip is not None

    @classmethod
    def success(cls, trip: Trip) -> NormalizationResult:
        return cls(trip=trip)

    @classmethod
    def failure(cls, error_message: str) -> NormalizationResult:
        return cls(error_message=error_message)


@dataclass
class ImportStats:
    """Counters for one pipeline run."""

    total_rows_read: int = 0
    parsed_rows: int = 0
    invalid_rows: int = 0
    duplicate_rows: int = 0
    inserted_rows: int = 0
    duplicates_file_rows: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
