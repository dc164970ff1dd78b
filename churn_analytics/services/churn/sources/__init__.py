"""Churn data sources."""

from churn_analytics.services.churn.sources.base import ChurnDataSource
from churn_analytics.services.churn.sources.index import IndexAggregationSource
from churn_analytics.services.churn.sources.relational import RelationalScanSource

__all__ = [
    "ChurnDataSource",
    "IndexAggregationSource",
    "RelationalScanSource",
]
