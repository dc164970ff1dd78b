"""Pydantic schemas for churn reports."""

from churn_analytics.schemas.base import BaseSchema
from churn_analytics.schemas.churn import (
    ChurnDailyPoint,
    ChurnMetrics,
    ChurnProductOption,
    ChurnReport,
)

__all__ = [
    "BaseSchema",
    "ChurnDailyPoint",
    "ChurnMetrics",
    "ChurnProductOption",
    "ChurnReport",
]
