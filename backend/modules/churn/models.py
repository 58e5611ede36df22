from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class AggregationMode(str, Enum):
    DAY = "day"
    MONTH = "month"

    @classmethod
    def normalize(cls, value: Any) -> "AggregationMode":
        """Unknown or missing values fall back to DAY; never rejected."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.DAY


AGGREGATE_OPTIONS = {
    AggregationMode.DAY: {"title": "Daily"},
    AggregationMode.MONTH: {"title": "Monthly"},
}


class RawSubscriptionEvent(BaseModel):
    """One subscription instance; it churns on the day it is deactivated."""
    model_config = ConfigDict(frozen=True)

    created_at: date
    deactivated_at: Optional[date] = None
    monthly_recurring_revenue_cents: int = Field(default=0, ge=0)


class DailySeries(BaseModel):
    """
    Per-day subscription activity over [since, to].

    The *_by_day maps are sparse: a day with no events has no key, and an
    absent key means zero. `active_by_day` is dense over [since, to].
    """
    model_config = ConfigDict(frozen=True)

    since: date
    to: date
    base_active_at_since: int
    new_by_day: Dict[date, int] = Field(default_factory=dict)
    churned_by_day: Dict[date, int] = Field(default_factory=dict)
    churned_revenue_by_day: Dict[date, int] = Field(default_factory=dict)
    active_by_day: Dict[date, int] = Field(default_factory=dict)


class MetricPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: date
    churn_rate_percent: float
    churned_subscribers: int
    churned_revenue_cents: int


class MetricsTotals(BaseModel):
    model_config = ConfigDict(frozen=True)

    churn_rate_percent: float
    last_period_churn_rate_percent: float
    churned_subscribers: int
    churned_revenue_cents: int


class MetricsResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    start_date: date
    end_date: date
    aggregate_by: AggregationMode
    totals: MetricsTotals
    points: List[MetricPoint] = Field(default_factory=list)


class ChurnRequest(BaseModel):
    tenant_id: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    aggregate_by: AggregationMode = AggregationMode.DAY
    product_filter: List[str] = Field(default_factory=list)

    @field_validator("aggregate_by", mode="before")
    @classmethod
    def _normalize_aggregate_by(cls, value):
        return AggregationMode.normalize(value)

    @field_validator("product_filter", mode="before")
    @classmethod
    def _normalize_product_filter(cls, value):
        # Missing, empty or malformed filters mean "all products"
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, (list, tuple, set)):
            return []
        return sorted({str(v).strip() for v in value if v is not None and str(v).strip()})


# Response schema

class ChurnMetrics(BaseModel):
    customer_churn_rate: float
    last_period_churn_rate: float
    churned_subscribers: int
    churned_mrr_cents: int


class ChurnDataPoint(BaseModel):
    date: str
    customer_churn_rate: float
    churned_subscribers: int
    churned_mrr_cents: int


class ChurnResponse(BaseModel):
    start_date: str
    end_date: str
    aggregate_by: str
    metrics: ChurnMetrics
    daily_data: List[ChurnDataPoint] = Field(default_factory=list)


class ProductOption(BaseModel):
    id: str
    name: Optional[str] = Field(default=None)
    alive: bool = Field(default=True)
    permalink: Optional[str] = Field(default=None)
