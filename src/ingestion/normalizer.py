"""
Normalization of parsed trip rows into validated Trip records.
Local timestamps are converted to UTC with the configured IANA zone, the store-and-forward flag is mapped,
and the Trip invariants are checked. Failures come back as NormalizationResult, never as exceptions.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from src.common.schema_map import STORE_AND_FWD_FLAG
from src.ingestion.trip_models import (
    NormalizationResult,
    ParsedTripRow,
    StoreAndFwdFlag,
    Trip,
    TripValidationError,
)

LOGGER = logging.getLogger("ingestion.normalizer")

FLAG_VALUES: dict[str, StoreAndFwdFlag] = {
    "N": StoreAndFwdFlag.NO,
    "Y": StoreAndFwdFlag.YES,
}


class TimeZoneConversionError(ValueError):
    """Raised when a local wall-clock time has no UTC equivalent in the input zone."""


def resolve_timezone(timezone_id: str | None) -> ZoneInfo:
    if timezone_id is None or not timezone_id.strip():
        raise ValueError("input_timezone must be provided when time zone conversion is enabled.")
    try:
        return ZoneInfo(timezone_id.strip())
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Invalid input time zone id '{timezone_id}'.") from exc


def local_to_utc(local_time: datetime, zone: tzinfo) -> datetime:
    """Convert a naive wall-clock time in ``zone`` to aware UTC.

    Times skipped by a DST jump raise TimeZoneConversionError. Times repeated
    by a DST fall-back resolve to the zone's standard-time reading.
    """

    if local_time.tzinfo is not None:
        return local_time.astimezone(UTC)

    early = local_time.replace(tzinfo=zone, fold=0)
    late = local_time.replace(tzinfo=zone, fold=1)
    early_offset = early.utcoffset()
    late_offset = late.utcoffset()
    if early_offset != late_offset:
        # Gap: the fold=0 reading does not round-trip to the same wall time.
        round_trip = early.astimezone(UTC).astimezone(zone).replace(tzinfo=None)
        if round_trip != local_time:
            raise TimeZoneConversionError(
                f"local time {local_time.isoformat()} does not exist in time zone '{zone}'."
            )
        # Overlap: prefer standard time, the reading whose DST offset is zero.
        standard = late if (late.dst() or timedelta(0)) == timedelta(0) else early
        return standard.astimezone(UTC)
    return early.astimezone(UTC)


def as_utc(value: datetime) -> datetime:
    """Reinterpret a timestamp as UTC without shifting its wall-clock value.

    A value already marked UTC is returned as is. Any other offset is dropped,
    not applied.
    """

    return value.replace(tzinfo=UTC)


class TripRowNormalizer:
    """Turns ParsedTripRow into Trip.

    With conversion disabled, every wall-clock time is taken to already be UTC;
    with it enabled, a timestamp carrying its own offset is converted by that offset.
    The zone is resolved once here, so a bad zone id fails construction.
    """

    def __init__(self, *, enable_timezone_conversion: bool, input_timezone: str | None = None) -> None:
        self._zone: ZoneInfo | None = (
            resolve_timezone(input_timezone) if enable_timezone_conversion else None
        )

    def to_utc(self, value: datetime) -> datetime:
        if self._zone is None:
            return as_utc(value)
        return local_to_utc(value, self._zone)

    def normalize(self, parsed_row: ParsedTripRow) -> NormalizationResult:
        line_number = parsed_row.line_number

        try:
            pickup_utc = self.to_utc(parsed_row.pickup_local)
            dropoff_utc = self.to_utc(parsed_row.dropoff_local)
        except Exception as exc:  # noqa: BLE001
            message = f"failed to convert timestamps to UTC: {exc}"
            LOGGER.debug("Line %s: %s", line_number, message)
            return NormalizationResult.failure(message)

        flag_value = (parsed_row.store_and_fwd_flag_raw or "").strip().upper()
        flag = FLAG_VALUES.get(flag_value)
        if flag is None:
            return NormalizationResult.failure(
                f"invalid {STORE_AND_FWD_FLAG} value '{flag_value}'. Expected 'N' or 'Y'."
            )

        try:
            trip = Trip(
                pickup_utc=pickup_utc,
                dropoff_utc=dropoff_utc,
                passenger_count=parsed_row.passenger_count,
                trip_distance=parsed_row.trip_distance,
                store_and_fwd_flag=flag,
                pickup_location_id=parsed_row.pickup_location_id,
                dropoff_location_id=parsed_row.dropoff_location_id,
                fare_amount=parsed_row.fare_amount,
                tip_amount=parsed_row.tip_amount,
            )
        except TripValidationError as exc:
            return NormalizationResult.failure(f"domain validation failed: {exc}")
        except Exception as exc:  # noqa: BLE001
            LOGGER.debug("Line %s: unexpected normalization error", line_number, exc_info=True)
            return NormalizationResult.failure(f"normalization failed: {exc}")

        return NormalizationResult.success(trip)
