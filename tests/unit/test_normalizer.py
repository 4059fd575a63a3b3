"""
Unit tests for trip normalization.
Time zone handling is checked around both 2020 America/New_York DST transitions.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from src.ingestion.normalizer import TripRowNormalizer, local_to_utc, resolve_timezone
from src.ingestion.trip_models import ParsedTripRow, StoreAndFwdFlag


def _parsed(
    pickup: datetime = datetime(2020, 1, 1, 0, 28, 15),
    dropoff: datetime = datetime(2020, 1, 1, 0, 33, 3),
    flag: str = "N",
) -> ParsedTripRow:
    return ParsedTripRow(
        line_number=1,
        pickup_local=pickup,
        dropoff_local=dropoff,
        passenger_count=1,
        trip_distance=Decimal("1.20"),
        store_and_fwd_flag_raw=flag,
        pickup_location_id=238,
        dropoff_location_id=239,
        fare_amount=Decimal("6.00"),
        tip_amount=Decimal("1.47"),
    )


@pytest.fixture
def new_york() -> TripRowNormalizer:
    return TripRowNormalizer(enable_timezone_conversion=True, input_timezone="America/New_York")


def test_local_times_converted_to_utc(new_york: TripRowNormalizer) -> None:
    result = new_york.normalize(_parsed())

    assert result.is_success
    trip = result.trip
    assert trip.pickup_utc == datetime(2020, 1, 1, 5, 28, 15, tzinfo=UTC)
    assert trip.dropoff_utc == datetime(2020, 1, 1, 5, 33, 3, tzinfo=UTC)
    assert trip.travel_time_seconds == 288
    assert trip.store_and_fwd_flag is StoreAndFwdFlag.NO


def test_yes_flag_mapped(new_york: TripRowNormalizer) -> None:
    result = new_york.normalize(_parsed(flag="Y"))
    assert result.trip.store_and_fwd_flag is StoreAndFwdFlag.YES
    assert result.trip.store_and_fwd_flag.value == "Yes"


def test_unknown_flag_rejected(new_york: TripRowNormalizer) -> None:
    result = new_york.normalize(_parsed(flag="X"))

    assert not result.is_success
    assert result.error_message == "invalid store_and_fwd_flag value 'X'. Expected 'N' or 'Y'."


def test_dropoff_before_pickup_fails_domain_validation(new_york: TripRowNormalizer) -> None:
    result = new_york.normalize(
        _parsed(pickup=datetime(2020, 1, 1, 1, 0, 0), dropoff=datetime(2020, 1, 1, 0, 59, 59))
    )

    assert not result.is_success
    assert result.error_message.startswith("domain validation failed: dropoff time")


def test_zero_length_trip_allowed(new_york: TripRowNormalizer) -> None:
    moment = datetime(2020, 1, 1, 1, 0, 0)
    result = new_york.normalize(_parsed(pickup=moment, dropoff=moment))
    assert result.is_success
    assert result.trip.travel_time_seconds == 0


def test_spring_forward_gap_fails(new_york: TripRowNormalizer) -> None:
    result = new_york.normalize(
        _parsed(pickup=datetime(2020, 3, 8, 2, 30, 0), dropoff=datetime(2020, 3, 8, 3, 10, 0))
    )

    assert not result.is_success
    assert result.error_message.startswith("failed to convert timestamps to UTC:")
    assert "does not exist" in result.error_message


def test_fall_back_overlap_resolves_to_standard_time() -> None:
    zone = resolve_timezone("America/New_York")
    converted = local_to_utc(datetime(2020, 11, 1, 1, 30, 0), zone)
    assert converted == datetime(2020, 11, 1, 6, 30, 0, tzinfo=UTC)


def test_summer_time_offset_applied() -> None:
    zone = resolve_timezone("America/New_York")
    assert local_to_utc(datetime(2020, 7, 1, 12, 0, 0), zone) == datetime(2020, 7, 1, 16, 0, 0, tzinfo=UTC)


def test_conversion_disabled_treats_naive_as_utc() -> None:
    normalizer = TripRowNormalizer(enable_timezone_conversion=False)
    result = normalizer.normalize(_parsed())

    assert result.trip.pickup_utc == datetime(2020, 1, 1, 0, 28, 15, tzinfo=UTC)


def _with_offset(hours: int) -> ParsedTripRow:
    offset = timezone(timedelta(hours=hours))
    return replace(
        _parsed(),
        pickup_local=datetime(2020, 1, 1, 0, 28, 15, tzinfo=offset),
        dropoff_local=datetime(2020, 1, 1, 0, 33, 3, tzinfo=offset),
    )


def test_explicit_offset_used_when_conversion_enabled() -> None:
    normalizer = TripRowNormalizer(enable_timezone_conversion=True, input_timezone="Europe/Berlin")

    result = normalizer.normalize(_with_offset(-5))

    assert result.trip.pickup_utc == datetime(2020, 1, 1, 5, 28, 15, tzinfo=UTC)


@pytest.mark.parametrize("hours", [-5, 0, 3])
def test_conversion_disabled_never_shifts_wall_clock(hours: int) -> None:
    normalizer = TripRowNormalizer(enable_timezone_conversion=False)

    result = normalizer.normalize(_with_offset(hours))

    assert result.trip.pickup_utc == datetime(2020, 1, 1, 0, 28, 15, tzinfo=UTC)
    assert result.trip.travel_time_seconds == 288


def test_invalid_zone_fails_construction() -> None:
    with pytest.raises(ValueError, match="Invalid input time zone id 'Nowhere/Special'"):
        TripRowNormalizer(enable_timezone_conversion=True, input_timezone="Nowhere/Special")


def test_blank_zone_fails_construction_when_enabled() -> None:
    with pytest.raises(ValueError, match="input_timezone must be provided"):
        TripRowNormalizer(enable_timezone_conversion=True, input_timezone=" ")
