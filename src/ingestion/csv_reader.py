"""
Streaming reader for the trip CSV.
It resolves required columns from the header by name and yields one RawTripRow per data line.
Values are split on a single delimiter character without quote handling, matching the TLC extracts.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

from src.common.schema_map import CSV_COLUMN_ALIASES, TRIP_CSV_COLUMNS
from src.ingestion.trip_models import RawTripRow

LOGGER = logging.getLogger("ingestion.reader")

DEFAULT_DELIMITER = ","


class CsvStructureError(RuntimeError):
    """Raised when the input file cannot be read as a trip CSV at all."""


def resolve_column_map(header_line: str, delimiter: str) -> dict[str, int]:
    """Map each RawTripRow attribute to its column position.

    Header names are compared case-insensitively after trimming. When a name
    repeats, the first occurrence wins.
    """

    positions: dict[str, int] = {}
    for index, name in enumerate(header_line.split(delimiter)):
        normalized = name.strip().lower()
        if normalized and normalized not in positions:
            positions[normalized] = index

    column_map: dict[str, int] = {}
    for column in TRIP_CSV_COLUMNS:
        index = positions.get(column.lower())
        if index is None:
            raise CsvStructureError(f"Input CSV is missing required column '{column}'.")
        column_map[CSV_COLUMN_ALIASES[column]] = index
    return column_map


def _build_row(line: str, delimiter: str, column_map: dict[str, int], line_number: int) -> RawTripRow:
    values = line.split(delimiter)
    fields = {
        attribute: values[index] if index < len(values) else None
        for attribute, index in column_map.items()
    }
    return RawTripRow(line_number=line_number, **fields)


class CsvTripReader:
    """Reads raw trip rows from a delimited file, one line at a time."""

    def __init__(self, csv_path: Path | str, delimiter: str | None = None) -> None:
        self._csv_path = Path(csv_path).expanduser()
        self._delimiter = delimiter[0] if delimiter else DEFAULT_DELIMITER

    @property
    def csv_path(self) -> Path:
        return self._csv_path

    def read(self) -> Iterator[RawTripRow]:
        """Return a lazy, single-pass iterator of data rows.

        Raises FileNotFoundError immediately if the input is missing. Header
        problems raise CsvStructureError before the first row is produced.
        """

        if not self._csv_path.is_file():
            raise FileNotFoundError(f"Input CSV file not found: {self._csv_path}")
        return self._iter_rows()

    def _iter_rows(self) -> Iterator[RawTripRow]:
        LOGGER.info("Opening input CSV file: %s", self._csv_path)
        data_row_number = 0
        with self._csv_path.open("r", encoding="utf-8-sig", newline=None) as handle:
            column_map: dict[str, int] | None = None
            for line in handle:
                line = line.rstrip("\r\n")
                if not line.strip():
                    continue
                if column_map is None:
                    column_map = resolve_column_map(line, self._delimiter)
                    LOGGER.info("CSV header parsed; streaming data rows from %s", self._csv_path)
                    continue
                data_row_number += 1
                yield _build_row(line, self._delimiter, column_map, data_row_number)

            if column_map is None:
                raise CsvStructureError("Input CSV file is empty or missing header row.")

        LOGGER.info(
            "Finished streaming input CSV file: %s. Total data rows read: %s",
            self._csv_path,
            data_row_number,
        )
