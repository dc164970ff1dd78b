"""
Churn report schemas.

Shapes of the document returned to the reporting layer: period level
metrics, one chart point per calendar day and the product options a
merchant can filter on.
"""

from datetime import date as Date
from typing import Any, Dict, List, Optional

from pydantic import Field, model_validator

from churn_analytics.schemas.base import BaseSchema

__all__ = [
    "ChurnMetrics",
    "ChurnDailyPoint",
    "ChurnReport",
    "ChurnProductOption",
]


class ChurnMetrics(BaseSchema):
    """Period level churn figures."""

    customer_churn_rate: float = Field(
        ...,
        ge=0,
        le=100,
        description="Churned / (active at start + new) as a percentage",
    )
    last_period_churn_rate: float = Field(
        ...,
        ge=0,
        le=100,
        description="Churn rate of the preceding period of equal length",
    )
    churned_subscribers: int = Field(..., ge=0, description="Subscriptions ended in the period")
    churned_mrr_cents: int = Field(..., ge=0, description="Monthly recurring revenue lost, in cents")


class ChurnDailyPoint(BaseSchema):
    """Churn figures of a single calendar day."""

    date: Date
    month: str = Field(..., description="Human label such as 'December 2023'")
    month_index: int = Field(..., ge=0, description="Months elapsed since the start month")
    customer_churn_rate: float = Field(..., ge=0, le=100)
    churned_subscribers: int = Field(..., ge=0)
    churned_mrr_cents: int = Field(..., ge=0)
    active_at_start: int = Field(..., ge=0)
    new_subscribers: int = Field(..., ge=0)


class ChurnReport(BaseSchema):
    """
    Churn report for one account and period.

    daily_data holds exactly one entry per day of the period, in order.
    """

    start_date: Date
    end_date: Date
    metrics: ChurnMetrics
    daily_data: List[ChurnDailyPoint]

    @model_validator(mode="after")
    def check_daily_data_covers_period(self) -> "ChurnReport":
        expected = (self.end_date - self.start_date).days + 1
        if len(self.daily_data) != expected:
            raise ValueError(
                f"daily_data must contain {expected} days, got {len(self.daily_data)}"
            )
        return self

    def to_document(self) -> Dict[str, Any]:
        """JSON-ready document with ISO formatted dates."""
        return self.model_dump(mode="json")


class ChurnProductOption(BaseSchema):
    """Recurring product a merchant can filter the report by."""

    id: int
    name: str
    unique_permalink: Optional[str] = None
    alive: bool
