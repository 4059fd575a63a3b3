"""
CSV sink for rows rejected as duplicates.
Each call appends one line; the header is written only when the file is first created.
Fields are escaped RFC 4180 style so the original raw values survive a round trip.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Sequence
from pathlib import Path

import pandas as pd

from src.common.schema_map import DUPLICATE_CSV_COLUMNS
from src.ingestion.trip_models import RawTripRow

OUTPUT_DELIMITER = ","
# CRLF keeps both CR and LF in the csv writer's quoting set on every supported Python.
LINE_TERMINATOR = "\r\n"


class DuplicateSinkError(RuntimeError):
    """Raised when a duplicate row could not be written."""


def to_csv_line(values: Sequence[str | None], delimiter: str = OUTPUT_DELIMITER) -> str:
    """Render one CSV record, terminator included.

    A value is quoted when it contains the delimiter, a double quote, CR or LF;
    embedded quotes are doubled. ``None`` becomes an empty field.
    """

    frame = pd.DataFrame([["" if value is None else value for value in values]], dtype=object)
    buffer = io.StringIO()
    frame.to_csv(
        buffer,
        sep=delimiter,
        header=False,
        index=False,
        quoting=csv.QUOTE_MINIMAL,
        lineterminator=LINE_TERMINATOR,
    )
    return buffer.getvalue()


def duplicate_row_values(row: RawTripRow) -> list[str | None]:
    return [
        str(row.line_number),
        row.pickup_datetime,
        row.dropoff_datetime,
        row.passenger_count,
        row.trip_distance,
        row.store_and_fwd_flag,
        row.pickup_location_id,
        row.dropoff_location_id,
        row.fare_amount,
        row.tip_amount,
    ]


class CsvDuplicateTripWriter:
    """Appends duplicate raw rows to a CSV file, creating its directory on demand."""

    def __init__(self, output_path: Path | str) -> None:
        if output_path is None or not str(output_path).strip():
            raise ValueError("duplicates_csv_path must be provided.")
        self._output_path = Path(output_path).expanduser()

    @property
    def output_path(self) -> Path:
        return self._output_path

    def write_duplicate(self, row: RawTripRow) -> None:
        try:
            self._output_path.parent.mkdir(parents=True, exist_ok=True)
            file_exists = self._output_path.exists()
            with self._output_path.open("a", encoding="utf-8", newline="") as handle:
                if not file_exists:
                    handle.write(to_csv_line(DUPLICATE_CSV_COLUMNS))
                handle.write(to_csv_line(duplicate_row_values(row)))
        except OSError as exc:
            raise DuplicateSinkError(
                f"Failed to write duplicate row for line {row.line_number} to {self._output_path}: {exc}"
            ) from exc
