"""
tip_estimator/data_contract.py

Single Source of Truth for trip quality rules and bucket definitions.
"""

# Versioning allows us to track which rules were active
# for a specific aggregate table.
CONTRACT_VERSION = "2.0.0"

# -------------------------------------------------------------------
# System Limits
# -------------------------------------------------------------------
# If >15% of trips are malformed, we assume a systemic upstream failure.
MAX_UNCLEAN_RATIO = 0.15


# -------------------------------------------------------------------
# Raw Trip Schema
# -------------------------------------------------------------------
PICKUP_COLUMN = "tpep_pickup_datetime"
DROPOFF_COLUMN = "tpep_dropoff_datetime"
ZONE_COLUMN = "PULocationID"

REQUIRED_COLUMNS = [
    PICKUP_COLUMN,
    DROPOFF_COLUMN,
    "passenger_count",
    "trip_distance",
    "fare_amount",
    "tip_amount",
    ZONE_COLUMN,
]


# -------------------------------------------------------------------
# Domain Rules (Inclusive Boundaries)
# -------------------------------------------------------------------
# Financials and distance must not be negative.
TRIP_DISTANCE_MIN = 0.0
FARE_AMOUNT_MIN = 0.0
TIP_AMOUNT_MIN = 0.0

# Raw TLC files carry a handful of rides stamped years away from the
# file's month. Overridden by params.yaml.
PICKUP_YEAR_MIN = 2009
PICKUP_YEAR_MAX = 2100


# -------------------------------------------------------------------
# Zone Lookup
# -------------------------------------------------------------------
ZONE_ID_COLUMN = "LocationID"
BOROUGH_COLUMN = "Borough"

# Zones 264/265 of the lookup carry these placeholders.
EXCLUDED_BOROUGHS = ["Unknown", "N/A"]


# -------------------------------------------------------------------
# Buckets
# -------------------------------------------------------------------
DAYS_OF_WEEK = [
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
]

# Ordered chronologically. Each label covers six hours starting at
# the hour paired with it.
PERIOD_STARTS = [
    (0, "Late Night"),
    (6, "Morning"),
    (12, "Afternoon"),
    (18, "Evening"),
]
TIME_PERIODS = [label for _, label in PERIOD_STARTS]


# -------------------------------------------------------------------
# Aggregate Table Schema
# -------------------------------------------------------------------
GROUP_KEYS = [ZONE_COLUMN, "day_of_week", "period", BOROUGH_COLUMN]

AGGREGATE_COLUMNS = GROUP_KEYS + ["total_rides", "avg_fare", "avg_tip"]

QUANTILES = {"q10": 0.1, "q50": 0.5, "q90": 0.9}
