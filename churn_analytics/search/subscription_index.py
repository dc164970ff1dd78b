"""
Subscriptions search index.

Documents mirror subscription rows and carry the monthly recurring
revenue precomputed by the classifier, so the index source can sum it
without knowing about billing recurrences.
"""

from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from churn_analytics.config.elasticsearch import ElasticClient
from churn_analytics.core.logging import get_logger
from churn_analytics.models.subscription import Subscription
from churn_analytics.repositories.subscription_repository import SubscriptionRepository
from churn_analytics.services.churn.classifier import monthly_recurring_revenue
from churn_analytics.services.churn.sources.index import format_instant

logger = get_logger(__name__)

SUBSCRIPTIONS_INDEX_BODY: Dict[str, Any] = {
    "settings": {
        "number_of_shards": 1,
        "number_of_replicas": 1,
    },
    "mappings": {
        "properties": {
            "subscription_id": {"type": "long"},
            "account_id": {"type": "long"},
            "product_id": {"type": "long"},
            "created_at": {"type": "date"},
            "deactivated_at": {"type": "date"},
            "recurring_price_cents": {"type": "long"},
            "recurrence_unit": {"type": "keyword"},
            "monthly_recurring_revenue": {"type": "long"},
        }
    },
}


def build_subscription_document(subscription: Subscription, account_id: int) -> Dict[str, Any]:
    """Index document for one subscription; deactivated_at is omitted while active."""
    document = {
        "subscription_id": subscription.id,
        "account_id": account_id,
        "product_id": subscription.product_id,
        "created_at": format_instant(subscription.created_at),
        "recurring_price_cents": subscription.recurring_price_cents,
        "recurrence_unit": subscription.recurrence_unit,
        "monthly_recurring_revenue": monthly_recurring_revenue(subscription),
    }
    if subscription.deactivated_at is not None:
        document["deactivated_at"] = format_instant(subscription.deactivated_at)
    return document


class SubscriptionIndexer:
    """Keeps the subscriptions index in step with the database."""

    def __init__(self, elastic: ElasticClient, db: Session, index: Optional[str] = None):
        if index is None:
            from churn_analytics.config.settings import settings
            index = settings.SUBSCRIPTIONS_INDEX
        self.elastic = elastic
        self.index = index
        self.repository = SubscriptionRepository(db)

    def create_index(self) -> bool:
        return self.elastic.create_index(self.index, SUBSCRIPTIONS_INDEX_BODY)

    def index_subscription(self, subscription: Subscription, account_id: int):
        return self.elastic.index_document(
            self.index,
            build_subscription_document(subscription, account_id),
            id=str(subscription.id),
        )

    def remove_subscription(self, subscription_id: int):
        return self.elastic.delete_document(self.index, id=str(subscription_id))

    def reindex_account(self, account_id: int) -> int:
        """
        Index every subscription of the account's recurring products.

        Returns:
            Number of documents written
        """
        self.create_index()
        products = self.repository.find_recurring_products(account_id)
        subscriptions = self.repository.find_by_products(product.id for product in products)

        for subscription in subscriptions:
            self.index_subscription(subscription, account_id)

        self.elastic.refresh(self.index)
        logger.info("Indexed subscriptions", account_id=account_id, count=len(subscriptions))
        return len(subscriptions)
