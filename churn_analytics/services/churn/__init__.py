"""
Churn computation services.

Time normalization, subscription classification, aggregation, the
daily running-balance series, data sources and the per-day cache.
"""

from churn_analytics.services.churn.churn_service import ChurnService
from churn_analytics.services.churn.day_cache import ChurnDayCache
from churn_analytics.services.churn.entities import (
    DailyChurnBucket,
    DayCounts,
    PeriodChurnMetrics,
    RawChurnData,
)
from churn_analytics.services.churn.time_normalization import ChurnPeriod, resolve_period

__all__ = [
    "ChurnService",
    "ChurnDayCache",
    "ChurnPeriod",
    "DailyChurnBucket",
    "DayCounts",
    "PeriodChurnMetrics",
    "RawChurnData",
    "resolve_period",
]
