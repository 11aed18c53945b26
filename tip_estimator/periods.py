import numbers

import pandas as pd

import tip_estimator.data_contract as dc
from tip_estimator.errors import InvalidInputError


def time_period(hour: int) -> str:
    """Map an hour of day (0-23) to its time-period label."""
    if isinstance(hour, bool) or not isinstance(hour, numbers.Integral):
        raise InvalidInputError(f"Hour must be an integer, got {hour!r}")
    if not 0 <= hour <= 23:
        raise InvalidInputError(f"Hour must be in [0, 23], got {hour}")

    label = dc.PERIOD_STARTS[0][1]
    for start, name in dc.PERIOD_STARTS:
        if hour >= start:
            label = name
    return label


def assign_periods(hours: pd.Series) -> pd.Series:
    """Vectorised time_period() for a Series of hours.

    Uses the same boundaries as time_period() so the aggregate table and
    the callers that convert an hour before querying agree on buckets.
    """
    starts = [start for start, _ in dc.PERIOD_STARTS]
    bins = [s - 0.5 for s in starts] + [23.5]
    labels = pd.cut(hours, bins=bins, labels=dc.TIME_PERIODS, right=False)

    if labels.isna().any():
        bad = hours[labels.isna()].unique().tolist()
        raise InvalidInputError(f"Hours outside [0, 23]: {bad}")

    return labels.astype(str)


def validate_day_of_week(day_of_week: str) -> str:
    if day_of_week not in dc.DAYS_OF_WEEK:
        raise InvalidInputError(
            f"Unknown day of week {day_of_week!r}. Expected one of {dc.DAYS_OF_WEEK}"
        )
    return day_of_week


def validate_period(period: str) -> str:
    if period not in dc.TIME_PERIODS:
        raise InvalidInputError(
            f"Unknown period {period!r}. Expected one of {dc.TIME_PERIODS}"
        )
    return period
