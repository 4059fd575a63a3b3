"""
Trip CSV load orchestration.
Rows are pulled one at a time from the reader and pushed through parse, normalize and duplicate detection.
New trips are batched into the bulk loader; duplicates go to the duplicates CSV; rejected rows are counted and logged.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator, Sequence
from typing import Protocol

from sqlalchemy.engine import Engine

from src.common.etl_config import EtlConfig
from src.ingestion.bulk_loader import SqlBulkTripLoader
from src.ingestion.csv_reader import CsvTripReader
from src.ingestion.dedup import DuplicateDetector, InMemoryDuplicateDetector
from src.ingestion.duplicate_writer import CsvDuplicateTripWriter
from src.ingestion.normalizer import TripRowNormalizer
from src.ingestion.row_parser import TripRowParser
from src.ingestion.trip_models import (
    ImportStats,
    NormalizationResult,
    ParsedTripRow,
    ParseResult,
    RawTripRow,
    Trip,
)

LOGGER = logging.getLogger("ingestion.pipeline")


class PipelineCancelledError(RuntimeError):
    """Raised when a run is cancelled; no statistics are produced and the pending batch is dropped."""


class RawRowSource(Protocol):
    def read(self) -> Iterator[RawTripRow]: ...


class RowParser(Protocol):
    def parse(self, raw_row: RawTripRow) -> ParseResult: ...


class RowNormalizer(Protocol):
    def normalize(self, parsed_row: ParsedTripRow) -> NormalizationResult: ...


class DuplicateSink(Protocol):
    def write_duplicate(self, row: RawTripRow) -> None: ...


class BulkLoader(Protocol):
    def insert_batch(self, trips: Sequence[Trip]) -> int: ...


class TripEtlPipeline:
    """Single-pass, single-threaded load of one trip CSV.

    The detector and the batch buffer belong to the run; a new detector should
    be supplied for every run so duplicate state never leaks between files.
    """

    def __init__(
        self,
        *,
        reader: RawRowSource,
        parser: RowParser,
        normalizer: RowNormalizer,
        duplicate_detector: DuplicateDetector,
        duplicate_sink: DuplicateSink,
        loader: BulkLoader,
        batch_size: int,
    ) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be a positive integer, got {batch_size}")
        self._reader = reader
        self._parser = parser
        self._normalizer = normalizer
        self._duplicate_detector = duplicate_detector
        self._duplicate_sink = duplicate_sink
        self._loader = loader
        self._batch_size = batch_size

    def run(self, cancel_event: threading.Event | None = None) -> ImportStats:
        """Load every row and return the run statistics.

        Reader and loader failures propagate unchanged. Cancellation is checked
        before each row is read and raises PipelineCancelledError.
        """

        LOGGER.info("Starting trip ETL run with batch size %s", self._batch_size)
        stats = ImportStats()
        batch: list[Trip] = []
        rows = self._reader.read()
        try:
            self._consume(rows, stats, batch, cancel_event)
        finally:
            close = getattr(rows, "close", None)
            if close is not None:
                close()

        if batch:
            stats.inserted_rows += self._flush(batch)

        LOGGER.info(
            "Trip ETL run completed. total=%s parsed=%s invalid=%s duplicates=%s inserted=%s duplicates_file=%s",
            stats.total_rows_read,
            stats.parsed_rows,
            stats.invalid_rows,
            stats.duplicate_rows,
            stats.inserted_rows,
            stats.duplicates_file_rows,
        )
        return stats

    def _consume(
        self,
        rows: Iterator[RawTripRow],
        stats: ImportStats,
        batch: list[Trip],
        cancel_event: threading.Event | None,
    ) -> None:
        while True:
            if cancel_event is not None and cancel_event.is_set():
                LOGGER.warning(
                    "Trip ETL run cancelled after %s rows; %s pending trips were not loaded",
                    stats.total_rows_read,
                    len(batch),
                )
                raise PipelineCancelledError("Trip ETL run was cancelled.")

            raw_row = next(rows, None)
            if raw_row is None:
                break
            stats.total_rows_read += 1

            parse_result = self._parser.parse(raw_row)
            if not parse_result.is_success:
                stats.invalid_rows += 1
                LOGGER.warning(
                    "Line %s: parsing failed - %s",
                    raw_row.line_number,
                    parse_result.error_message or "unknown error",
                )
                continue
            stats.parsed_rows += 1

            normalize_result = self._normalizer.normalize(parse_result.parsed_row)
            if not normalize_result.is_success:
                stats.invalid_rows += 1
                LOGGER.warning(
                    "Line %s: normalization failed - %s",
                    raw_row.line_number,
                    normalize_result.error_message or "unknown error",
                )
                continue

            trip = normalize_result.trip
            if not self._duplicate_detector.try_register(trip):
                stats.duplicate_rows += 1
                self._write_duplicate(raw_row, stats)
                continue

            batch.append(trip)
            if len(batch) >= self._batch_size:
                stats.inserted_rows += self._flush(batch)

    def _write_duplicate(self, raw_row: RawTripRow, stats: ImportStats) -> None:
        try:
            self._duplicate_sink.write_duplicate(raw_row)
        except Exception:  # noqa: BLE001
            LOGGER.exception("Failed to write duplicate row for line %s to duplicates file", raw_row.line_number)
            return
        stats.duplicates_file_rows += 1

    def _flush(self, batch: list[Trip]) -> int:
        count = len(batch)
        LOGGER.debug("Flushing batch of %s trips to bulk loader", count)
        self._loader.insert_batch(batch)
        batch.clear()
        return count


def build_pipeline(config: EtlConfig, engine: Engine) -> TripEtlPipeline:
    """Wire the default CSV, SQL and duplicates-file collaborators for one run."""

    return TripEtlPipeline(
        reader=CsvTripReader(config.input_csv_path, config.delimiter),
        parser=TripRowParser(config.input_datetime_format),
        normalizer=TripRowNormalizer(
            enable_timezone_conversion=config.enable_timezone_conversion,
            input_timezone=config.input_timezone,
        ),
        duplicate_detector=InMemoryDuplicateDetector(expected_size=config.batch_size),
        duplicate_sink=CsvDuplicateTripWriter(config.duplicates_csv_path),
        loader=SqlBulkTripLoader(
            engine,
            max_retries=config.bulk_insert_max_retries,
            retry_delay_seconds=config.bulk_insert_retry_delay_seconds,
        ),
        batch_size=config.batch_size,
    )
