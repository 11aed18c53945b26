import logging
from typing import List

import numpy as np

import tip_estimator.data_contract as dc
from tip_estimator.errors import NotFoundError
from tip_estimator.models import TipQuantiles
from tip_estimator.periods import validate_day_of_week, validate_period
from tip_estimator.table_store import AggregateTable

logger = logging.getLogger(__name__)


class Predictor:
    """Answers bucket queries against one published aggregate table.

    Quantiles are taken over the zone-level mean tips that fall in the
    bucket, using linear interpolation between order statistics
    (numpy's default "linear" method, Hyndman & Fan type 7).
    """

    def __init__(self, table: AggregateTable):
        self.table = table
        self._frame = table.frame

    def predict(self, day_of_week: str, period: str, borough: str) -> TipQuantiles:
        validate_day_of_week(day_of_week)
        validate_period(period)

        frame = self._frame
        mask = (
            (frame["day_of_week"] == day_of_week)
            & (frame["period"] == period)
            & (frame[dc.BOROUGH_COLUMN] == borough)
        )
        tips = frame.loc[mask, "avg_tip"].dropna().to_numpy(dtype=float)

        if tips.size == 0:
            raise NotFoundError(f"No trips recorded for {day_of_week} / {period} / {borough}")

        values = np.quantile(tips, list(dc.QUANTILES.values()), method="linear")
        result = TipQuantiles(**{k: float(v) for k, v in zip(dc.QUANTILES, values)})

        logger.debug(f"{day_of_week}/{period}/{borough}: {tips.size} rows -> {result}")
        return result

    def boroughs(self) -> List[str]:
        return sorted(self._frame[dc.BOROUGH_COLUMN].unique().tolist())

    def periods(self) -> List[str]:
        return list(dc.TIME_PERIODS)
