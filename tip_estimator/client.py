import logging
from typing import List

import requests

from tip_estimator.models import TipEstimate, TipQuantiles
from tip_estimator.periods import time_period

logger = logging.getLogger(__name__)

# Shown only when the service cannot be reached, always with status="placeholder".
PLACEHOLDER_TIPS = {"q10": 3.5, "q50": 5.0, "q90": 6.5}


class TipEstimatorClient:
    """Thin HTTP client for the prediction API."""

    def __init__(self, base_url: str, timeout: float = 5.0, session: requests.Session | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def predict(self, day_of_week: str, period: str, borough: str) -> TipQuantiles:
        response = self.session.post(
            f"{self.base_url}/predict",
            json={"day_of_week": day_of_week, "period": period, "borough": borough},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return TipQuantiles(**response.json())

    def boroughs(self) -> List[str]:
        response = self.session.get(f"{self.base_url}/boroughs", timeout=self.timeout)
        response.raise_for_status()
        return response.json()["boroughs"]

    def periods(self) -> List[str]:
        response = self.session.get(f"{self.base_url}/periods", timeout=self.timeout)
        response.raise_for_status()
        return response.json()["periods"]


def estimate_tips(client: TipEstimatorClient, day_of_week: str, hour: int, borough: str) -> TipEstimate:
    """Ask the service for a tip range at a given hour of day.

    An unknown bucket comes back as status "not_found" with no numbers. Only
    when the service is unreachable or failing does this fall back to the
    placeholder values, flagged as status "placeholder".
    """
    period = time_period(hour)

    try:
        quantiles = client.predict(day_of_week, period, borough)
    except requests.HTTPError as e:
        status_code = e.response.status_code if e.response is not None else None
        if status_code == 404:
            return TipEstimate(status="not_found", detail=f"No history for {day_of_week} {period} in {borough}")
        if status_code is not None and 400 <= status_code < 500:
            # Bad input is a caller bug, not an outage.
            raise
        logger.warning(f"Tip service error ({status_code}), showing placeholder: {e}")
        return TipEstimate(status="placeholder", detail=f"Service error: {e}", **PLACEHOLDER_TIPS)
    except requests.RequestException as e:
        logger.warning(f"Tip service unreachable, showing placeholder: {e}")
        return TipEstimate(status="placeholder", detail=f"Service unreachable: {e}", **PLACEHOLDER_TIPS)

    return TipEstimate(status="live", q10=quantiles.q10, q50=quantiles.q50, q90=quantiles.q90)
