"""
Field-level parsing of raw trip rows.
Each field is trimmed and converted to its native type; the first failing field ends parsing.
Timestamps stay in the source's local time here and are converted to UTC by the normalizer.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import TypeVar

import pandas as pd

from src.common.schema_map import (
    DO_LOCATION_ID,
    DROPOFF_DATETIME,
    FARE_AMOUNT,
    PASSENGER_COUNT,
    PICKUP_DATETIME,
    PU_LOCATION_ID,
    STORE_AND_FWD_FLAG,
    TIP_AMOUNT,
    TRIP_DISTANCE,
)
from src.ingestion.trip_models import ParsedTripRow, ParseResult, RawTripRow

T = TypeVar("T")

MISSING_VALUE = "value is missing or empty."

PASSENGER_COUNT_MAX = 255
LOCATION_ID_MAX = 2_147_483_647

_INTEGER_RE = re.compile(r"^[+-]?[0-9]+$")
_DECIMAL_RE = re.compile(r"^[+-]?(?:[0-9]{1,3}(?:,[0-9]{3})+|[0-9]*)(?:\.[0-9]*)?(?:[eE][+-]?[0-9]+)?$")
# Flexible parsing needs a calendar date in the text; pandas would fill one in for "now", "today" or "2020".
_DATE_COMPONENT_RE = re.compile(
    r"\d{1,4}[-/.]\d{1,2}"
    r"|\b(?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?,?\s*\d"
    r"|\d\s*(?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)",
    re.IGNORECASE,
)


class FieldParseError(ValueError):
    """Carries the human-readable reason a single field could not be parsed."""


class _FieldError(Exception):
    """A FieldParseError prefixed with the offending column name."""


def _require_text(raw_value: str | None) -> str:
    if raw_value is None or not raw_value.strip():
        raise FieldParseError(MISSING_VALUE)
    return raw_value.strip()


def parse_bounded_int(raw_value: str | None, *, min_value: int, max_value: int) -> int:
    trimmed = _require_text(raw_value)
    if not _INTEGER_RE.match(trimmed):
        raise FieldParseError(f"'{trimmed}' is not a valid integer.")
    parsed = int(trimmed)
    if parsed > max_value or parsed < -max_value - 1:
        raise FieldParseError(f"'{trimmed}' is out of range for this field (maximum {max_value}).")
    if parsed < min_value:
        raise FieldParseError(f"'{parsed}' is less than the minimum allowed value {min_value}.")
    return parsed


def parse_non_negative_decimal(raw_value: str | None) -> Decimal:
    trimmed = _require_text(raw_value)
    if not _DECIMAL_RE.match(trimmed) or not any(char.isdigit() for char in trimmed):
        raise FieldParseError(f"'{trimmed}' is not a valid decimal number.")
    try:
        parsed = Decimal(trimmed.replace(",", ""))
    except InvalidOperation as exc:
        raise FieldParseError(f"'{trimmed}' is not a valid decimal number.") from exc
    if parsed < 0:
        raise FieldParseError(f"'{parsed}' is less than the minimum allowed value 0.")
    return parsed


def parse_flag_text(raw_value: str | None) -> str:
    return _require_text(raw_value).upper()


class TripRowParser:
    """Converts RawTripRow values into a ParsedTripRow.

    ``datetime_format`` is a ``strptime`` pattern. When it is omitted,
    timestamps go through pandas' flexible parser, which accepts ISO 8601
    as well as the TLC ``MM/DD/YYYY hh:mm:ss AM`` layout.
    """

    def __init__(self, datetime_format: str | None = None) -> None:
        self._datetime_format = datetime_format.strip() if datetime_format and datetime_format.strip() else None

    def parse_datetime(self, raw_value: str | None) -> datetime:
        trimmed = _require_text(raw_value)
        if self._datetime_format:
            try:
                return datetime.strptime(trimmed, self._datetime_format)
            except ValueError as exc:
                raise FieldParseError(
                    f"'{trimmed}' does not match expected format '{self._datetime_format}'."
                ) from exc

        if _DECIMAL_RE.match(trimmed) or not _DATE_COMPONENT_RE.search(trimmed):
            raise FieldParseError(f"'{trimmed}' is not a valid date/time value.")
        try:
            parsed = pd.to_datetime(trimmed)
        except (ValueError, OverflowError, TypeError) as exc:
            raise FieldParseError(f"'{trimmed}' is not a valid date/time value.") from exc
        if pd.isna(parsed):
            raise FieldParseError(f"'{trimmed}' is not a valid date/time value.")
        return parsed.to_pydatetime()

    def parse(self, raw_row: RawTripRow) -> ParseResult:
        """Parse every field in order, stopping at the first failure."""

        try:
            pickup_local = _field(PICKUP_DATETIME, self.parse_datetime, raw_row.pickup_datetime)
            dropoff_local = _field(DROPOFF_DATETIME, self.parse_datetime, raw_row.dropoff_datetime)
            passenger_count = _field(
                PASSENGER_COUNT,
                lambda value: parse_bounded_int(value, min_value=0, max_value=PASSENGER_COUNT_MAX),
                raw_row.passenger_count,
            )
            trip_distance = _field(TRIP_DISTANCE, parse_non_negative_decimal, raw_row.trip_distance)
            flag_raw = _field(STORE_AND_FWD_FLAG, parse_flag_text, raw_row.store_and_fwd_flag)
            pickup_location_id = _field(
                PU_LOCATION_ID,
                lambda value: parse_bounded_int(value, min_value=0, max_value=LOCATION_ID_MAX),
                raw_row.pickup_location_id,
            )
            dropoff_location_id = _field(
                DO_LOCATION_ID,
                lambda value: parse_bounded_int(value, min_value=0, max_value=LOCATION_ID_MAX),
                raw_row.dropoff_location_id,
            )
            fare_amount = _field(FARE_AMOUNT, parse_non_negative_decimal, raw_row.fare_amount)
            tip_amount = _field(TIP_AMOUNT, parse_non_negative_decimal, raw_row.tip_amount)
        except _FieldError as exc:
            return ParseResult.failure(str(exc))

        return ParseResult.success(
            ParsedTripRow(
                line_number=raw_row.line_number,
                pickup_local=pickup_local,
                dropoff_local=dropoff_local,
                passenger_count=passenger_count,
                trip_distance=trip_distance,
                store_and_fwd_flag_raw=flag_raw,
                pickup_location_id=pickup_location_id,
                dropoff_location_id=dropoff_location_id,
                fare_amount=fare_amount,
                tip_amount=tip_amount,
            )
        )


def _field(field_name: str, parser: Callable[[str | None], T], raw_value: str | None) -> T:
    try:
        return parser(raw_value)
    except FieldParseError as exc:
        raise _FieldError(f"invalid {field_name} value: {exc}") from exc
