"""
Models package.

SQLAlchemy models read by the churn engine plus the relational churn
day cache table.
"""

from churn_analytics.models.base import Base, TimestampMixin
from churn_analytics.models.account import Account, LargeAccount
from churn_analytics.models.subscription import Product, RecurrenceUnit, Subscription
from churn_analytics.models.analytics import ComputedChurnDay

__all__ = [
    "Base",
    "TimestampMixin",
    "Account",
    "LargeAccount",
    "Product",
    "RecurrenceUnit",
    "Subscription",
    "ComputedChurnDay",
]
