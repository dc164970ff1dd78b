"""Data access repositories for the churn engine."""

from churn_analytics.repositories.base_repository import BaseRepository
from churn_analytics.repositories.account_repository import AccountRepository
from churn_analytics.repositories.subscription_repository import SubscriptionRepository
from churn_analytics.repositories.computed_churn_day_repository import ComputedChurnDayRepository

__all__ = [
    "BaseRepository",
    "AccountRepository",
    "SubscriptionRepository",
    "ComputedChurnDayRepository",
]
