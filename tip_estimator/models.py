from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

import tip_estimator.data_contract as dc


class AggregateRow(BaseModel):
    """One bucket of the aggregate table, validated at publish time."""

    model_config = ConfigDict(frozen=True)

    PULocationID: int
    day_of_week: str
    period: str
    Borough: str
    total_rides: int = Field(..., gt=0)
    avg_fare: float = Field(..., ge=0.0)
    avg_tip: float

    @field_validator("day_of_week")
    @classmethod
    def check_day(cls, v: str) -> str:
        if v not in dc.DAYS_OF_WEEK:
            raise ValueError(f"Invalid day_of_week: {v}")
        return v

    @field_validator("period")
    @classmethod
    def check_period(cls, v: str) -> str:
        if v not in dc.TIME_PERIODS:
            raise ValueError(f"Invalid period: {v}")
        return v

    @field_validator("Borough")
    @classmethod
    def check_borough(cls, v: str) -> str:
        if v in dc.EXCLUDED_BOROUGHS:
            raise ValueError(f"Excluded borough in aggregate table: {v}")
        return v


class PredictionRequest(BaseModel):
    day_of_week: str
    period: str
    borough: str


class TipQuantiles(BaseModel):
    q10: float
    q50: float
    q90: float


class BoroughsResponse(BaseModel):
    boroughs: List[str]


class PeriodsResponse(BaseModel):
    periods: List[str]


class HealthResponse(BaseModel):
    status: str
    table_name: str
    table_version: str
    rows: int


class TipEstimate(BaseModel):
    """What the presentation layer shows.

    status is "live" for a real prediction, "not_found" when the bucket has
    no history (no numbers), and "placeholder" when the service could not be
    reached and the numbers are stand-ins.
    """

    status: Literal["live", "not_found", "placeholder"]
    q10: Optional[float] = None
    q50: Optional[float] = None
    q90: Optional[float] = None
    detail: str = ""
