"""
Column names shared by the trip CSV, the duplicates file and the `trips` table.
The CSV side keeps the TLC yellow-taxi header spelling; the table side uses canonical snake case.
"""

from __future__ import annotations

from typing import Final

PICKUP_DATETIME: Final = "tpep_pickup_datetime"
DROPOFF_DATETIME: Final = "tpep_dropoff_datetime"
PASSENGER_COUNT: Final = "passenger_count"
TRIP_DISTANCE: Final = "trip_distance"
STORE_AND_FWD_FLAG: Final = "store_and_fwd_flag"
PU_LOCATION_ID: Final = "PULocationID"
DO_LOCATION_ID: Final = "DOLocationID"
FARE_AMOUNT: Final = "fare_amount"
TIP_AMOUNT: Final = "tip_amount"

LINE_NUMBER_COLUMN: Final = "LineNumber"

# Required input columns in the order RawTripRow stores them.
TRIP_CSV_COLUMNS: Final[tuple[str, ...]] = (
    PICKUP_DATETIME,
    DROPOFF_DATETIME,
    PASSENGER_COUNT,
    TRIP_DISTANCE,
    STORE_AND_FWD_FLAG,
    PU_LOCATION_ID,
    DO_LOCATION_ID,
    FARE_AMOUNT,
    TIP_AMOUNT,
)

DUPLICATE_CSV_COLUMNS: Final[tuple[str, ...]] = (LINE_NUMBER_COLUMN, *TRIP_CSV_COLUMNS)

# CSV header name -> RawTripRow attribute.
CSV_COLUMN_ALIASES: Final[dict[str, str]] = {
    PICKUP_DATETIME: "pickup_datetime",
    DROPOFF_DATETIME: "dropoff_datetime",
    PASSENGER_COUNT: "passenger_count",
    TRIP_DISTANCE: "trip_distance",
    STORE_AND_FWD_FLAG: "store_and_fwd_flag",
    PU_LOCATION_ID: "pickup_location_id",
    DO_LOCATION_ID: "dropoff_location_id",
    FARE_AMOUNT: "fare_amount",
    TIP_AMOUNT: "tip_amount",
}

TRIPS_TABLE: Final = "trips"

TRIPS_TABLE_COLUMNS: Final[tuple[str, ...]] = (
    "pickup_datetime",
    "dropoff_datetime",
    "passenger_count",
    "trip_distance",
    "store_and_fwd_flag",
    "pickup_location_id",
    "dropoff_location_id",
    "fare_amount",
    "tip_amount",
)

TRAVEL_TIME_COLUMN: Final = "travel_time_seconds"
