"""
Account Repository.

Account lookups and the large-account flag that enables churn day
caching.
"""

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from churn_analytics.config.settings import settings
from churn_analytics.core.logging import get_logger
from churn_analytics.models.account import Account, LargeAccount
from churn_analytics.models.subscription import Product, Subscription
from churn_analytics.repositories.base_repository import BaseRepository

logger = get_logger(__name__)


class AccountRepository(BaseRepository[Account]):
    """Repository for merchant accounts."""

    def __init__(self, db: Session):
        super().__init__(Account, db)

    def is_large(self, account_id: int) -> bool:
        """Whether the account is flagged for churn day caching."""
        stmt = select(LargeAccount.account_id).where(LargeAccount.account_id == account_id)
        return self.db.execute(stmt).first() is not None

    def count_subscriptions(self, account_id: int) -> int:
        stmt = (
            select(func.count(Subscription.id))
            .join(Product, Product.id == Subscription.product_id)
            .where(Product.account_id == account_id)
        )
        return int(self.db.execute(stmt).scalar_one())

    def flag_large_if_warranted(
        self,
        account_id: int,
        threshold: Optional[int] = None,
    ) -> Optional[LargeAccount]:
        """
        Flag the account as large once it reaches the subscription threshold.

        Returns the existing or newly created flag, or None when the
        account is still below the threshold. The threshold defaults to
        LARGE_ACCOUNT_SUBSCRIPTION_THRESHOLD.
        """
        existing = self.db.get(LargeAccount, account_id)
        if existing is not None:
            return existing

        if threshold is None:
            threshold = settings.LARGE_ACCOUNT_SUBSCRIPTION_THRESHOLD

        subscription_count = self.count_subscriptions(account_id)
        if subscription_count < threshold:
            return None

        with self.transaction():
            flag = LargeAccount(account_id=account_id, subscription_count=subscription_count)
            self.db.add(flag)

        logger.info(
            "Flagged account as large",
            account_id=account_id,
            subscription_count=subscription_count,
        )
        return flag
