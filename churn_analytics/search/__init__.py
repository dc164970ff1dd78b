"""Search index maintenance."""

from churn_analytics.search.subscription_index import (
    SUBSCRIPTIONS_INDEX_BODY,
    SubscriptionIndexer,
    build_subscription_document,
)

__all__ = [
    "SUBSCRIPTIONS_INDEX_BODY",
    "SubscriptionIndexer",
    "build_subscription_document",
]
