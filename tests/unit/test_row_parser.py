"""
Unit tests for field-level trip row parsing.
Each failure is reported as a single message naming the first bad column.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from src.ingestion.row_parser import (
    FieldParseError,
    TripRowParser,
    parse_bounded_int,
    parse_non_negative_decimal,
)
from tests.support import raw_row


def test_parse_valid_row_trims_and_converts() -> None:
    row = raw_row(
        line_number=7,
        pickup_datetime=" 01/01/2020 12:28:15 AM ",
        passenger_count=" 2 ",
        trip_distance="1,234.500",
        store_and_fwd_flag=" y ",
    )

    result = TripRowParser().parse(row)

    assert result.is_success
    parsed = result.parsed_row
    assert parsed.line_number == 7
    assert parsed.pickup_local == datetime(2020, 1, 1, 0, 28, 15)
    assert parsed.dropoff_local == datetime(2020, 1, 1, 0, 33, 3)
    assert parsed.passenger_count == 2
    assert parsed.trip_distance == Decimal("1234.500")
    assert parsed.store_and_fwd_flag_raw == "Y"
    assert parsed.pickup_location_id == 238
    assert parsed.tip_amount == Decimal("1.47")


def test_explicit_offset_is_kept() -> None:
    result = TripRowParser().parse(raw_row(pickup_datetime="2020-01-01T00:28:15-05:00"))

    assert result.is_success
    assert result.parsed_row.pickup_local.utcoffset() == timedelta(hours=-5)


def test_explicit_datetime_format() -> None:
    parser = TripRowParser("%d.%m.%Y %H:%M")
    result = parser.parse(raw_row(pickup_datetime="31.01.2020 23:05", dropoff_datetime="31.01.2020 23:40"))

    assert result.is_success
    assert result.parsed_row.pickup_local == datetime(2020, 1, 31, 23, 5)


def test_explicit_datetime_format_mismatch() -> None:
    result = TripRowParser("%d.%m.%Y %H:%M").parse(raw_row())

    assert not result.is_success
    assert result.error_message == (
        "invalid tpep_pickup_datetime value: '2020-01-01 00:28:15' does not match expected format '%d.%m.%Y %H:%M'."
    )


@pytest.mark.parametrize(
    ("overrides", "expected"),
    [
        ({"pickup_datetime": None}, "invalid tpep_pickup_datetime value: value is missing or empty."),
        ({"dropoff_datetime": "yesterday-ish"}, "invalid tpep_dropoff_datetime value: 'yesterday-ish' is not a valid date/time value."),
        ({"passenger_count": "1.5"}, "invalid passenger_count value: '1.5' is not a valid integer."),
        ({"passenger_count": "-1"}, "invalid passenger_count value: '-1' is less than the minimum allowed value 0."),
        ({"trip_distance": "NaN"}, "invalid trip_distance value: 'NaN' is not a valid decimal number."),
        ({"store_and_fwd_flag": "  "}, "invalid store_and_fwd_flag value: value is missing or empty."),
        ({"pickup_location_id": "abc"}, "invalid PULocationID value: 'abc' is not a valid integer."),
        ({"dropoff_location_id": ""}, "invalid DOLocationID value: value is missing or empty."),
        ({"fare_amount": "-2.50"}, "invalid fare_amount value: '-2.50' is less than the minimum allowed value 0."),
        ({"tip_amount": "1,23"}, "invalid tip_amount value: '1,23' is not a valid decimal number."),
    ],
)
def test_field_failures_name_the_column(overrides: dict[str, str | None], expected: str) -> None:
    result = TripRowParser().parse(raw_row(**overrides))

    assert not result.is_success
    assert result.parsed_row is None
    assert result.error_message == expected


def test_first_failing_field_wins() -> None:
    result = TripRowParser().parse(raw_row(passenger_count="x", fare_amount="y"))
    assert result.error_message.startswith("invalid passenger_count value:")


def test_passenger_count_above_byte_range() -> None:
    with pytest.raises(FieldParseError, match="out of range"):
        parse_bounded_int("256", min_value=0, max_value=255)


def test_bounded_int_accepts_plus_sign() -> None:
    assert parse_bounded_int("+7", min_value=0, max_value=255) == 7


@pytest.mark.parametrize(("raw", "expected"), [("0", "0"), ("12.", "12"), (".5", "0.5"), ("1e3", "1E+3"), ("1,000,000.25", "1000000.25")])
def test_decimal_forms(raw: str, expected: str) -> None:
    assert parse_non_negative_decimal(raw) == Decimal(expected)


@pytest.mark.parametrize("raw", [".", "Infinity", "1..2", "--1"])
def test_decimal_rejects_non_numbers(raw: str) -> None:
    with pytest.raises(FieldParseError, match="not a valid decimal number"):
        parse_non_negative_decimal(raw)


@pytest.mark.parametrize("raw", ["now", "today", "Today", "tomorrow", "noon", "2020", "20200101", "7", "1.5", "5pm"])
def test_flexible_datetime_rejects_text_without_a_calendar_date(raw: str) -> None:
    with pytest.raises(FieldParseError, match="is not a valid date/time value"):
        TripRowParser().parse_datetime(raw)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("2020-01-31 23:05:00", datetime(2020, 1, 31, 23, 5)),
        ("01/31/2020 11:05:00 PM", datetime(2020, 1, 31, 23, 5)),
        ("Jan 31 2020 23:05", datetime(2020, 1, 31, 23, 5)),
        ("31 January 2020 23:05", datetime(2020, 1, 31, 23, 5)),
    ],
)
def test_flexible_datetime_accepts_common_layouts(raw: str, expected: datetime) -> None:
    assert TripRowParser().parse_datetime(raw) == expected


def test_row_with_keyword_timestamp_is_invalid() -> None:
    result = TripRowParser().parse(raw_row(pickup_datetime="now", dropoff_datetime="now"))

    assert not result.is_success
    assert result.error_message == "invalid tpep_pickup_datetime value: 'now' is not a valid date/time value."
