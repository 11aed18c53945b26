import logging

import pandas as pd

import tip_estimator.data_contract as dc
from tip_estimator.errors import UpstreamUnavailableError
from tip_estimator.periods import assign_periods

logger = logging.getLogger(__name__)


class Aggregator:
    """Builds the aggregate table: mean fare and tip per zone-level bucket."""

    def __init__(self, excluded_boroughs=None):
        self.excluded_boroughs = list(dc.EXCLUDED_BOROUGHS if excluded_boroughs is None else excluded_boroughs)

    def add_buckets(self, trips: pd.DataFrame) -> pd.DataFrame:
        """Derive day_of_week and period from the pickup timestamp."""
        trips = trips.copy()
        pickup = pd.to_datetime(trips[dc.PICKUP_COLUMN])
        trips["day_of_week"] = pickup.dt.day_name()
        trips["period"] = assign_periods(pickup.dt.hour)
        return trips

    def aggregate(self, trips: pd.DataFrame, zones: pd.DataFrame) -> pd.DataFrame:
        trip_cols = [dc.PICKUP_COLUMN, dc.ZONE_COLUMN, "fare_amount", "tip_amount"]
        missing = [c for c in trip_cols if c not in trips.columns]
        missing += [c for c in [dc.ZONE_ID_COLUMN, dc.BOROUGH_COLUMN] if c not in zones.columns]
        if missing:
            raise UpstreamUnavailableError(f"Cannot aggregate, missing columns {missing}")

        logger.info(f"Aggregating {len(trips)} trips over {len(zones)} zones...")

        # Inner join: trips whose zone is absent from the lookup have no borough.
        joined = trips[trip_cols].merge(
            zones[[dc.ZONE_ID_COLUMN, dc.BOROUGH_COLUMN]],
            left_on=dc.ZONE_COLUMN,
            right_on=dc.ZONE_ID_COLUMN,
            how="inner",
        )
        unmatched = len(trips) - len(joined)
        if unmatched:
            logger.warning(f"{unmatched} trips reference zones missing from the lookup")

        joined = joined[~joined[dc.BOROUGH_COLUMN].isin(self.excluded_boroughs)]
        joined = self.add_buckets(joined)

        table = (
            joined.groupby(dc.GROUP_KEYS, sort=True)
            .agg(
                total_rides=("fare_amount", "size"),
                avg_fare=("fare_amount", "mean"),
                avg_tip=("tip_amount", "mean"),
            )
            .reset_index()
        )

        table[dc.ZONE_COLUMN] = table[dc.ZONE_COLUMN].astype("int64")
        table["total_rides"] = table["total_rides"].astype("int64")
        table = table[dc.AGGREGATE_COLUMNS].sort_values(dc.GROUP_KEYS, ignore_index=True)

        logger.info(f"Aggregate table has {len(table)} buckets")
        return table
