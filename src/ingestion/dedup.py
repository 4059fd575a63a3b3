"""
Run-scoped duplicate detection for trips.
Two trips are duplicates when pickup time, dropoff time (both UTC) and passenger count match;
fare, tip and every other field are ignored. The first occurrence is always the one kept.
"""

from __future__ import annotations

from typing import Protocol

from src.ingestion.trip_models import DuplicateKey, Trip


class DuplicateDetector(Protocol):
    def try_register(self, trip: Trip) -> bool:
        """Record the trip's key; return False when the key was already seen."""
        ...


class InMemoryDuplicateDetector:
    """Set-backed detector owned by a single pipeline run.

    Memory grows with the number of distinct keys. Inputs whose distinct keys
    do not fit in memory need a store-backed detector behind the same
    ``try_register`` contract (for example a staging table with a unique index).
    ``expected_size`` is advisory; CPython sets cannot be pre-allocated, so it
    is only kept for reporting.
    """

    def __init__(self, expected_size: int | None = None) -> None:
        self._seen_keys: set[DuplicateKey] = set()
        self.expected_size = expected_size

    def __len__(self) -> int:
        return len(self._seen_keys)

    def try_register(self, trip: Trip) -> bool:
        key = trip.duplicate_key
        if key in self._seen_keys:
            return False
        self._seen_keys.add(key)
        return True
