"""
Subscription Repository.

Read access to recurring products and their subscriptions for churn
reporting and search indexing.
"""

from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from churn_analytics.models.subscription import Product, Subscription
from churn_analytics.repositories.base_repository import BaseRepository


class SubscriptionRepository(BaseRepository[Subscription]):
    """
    Repository for subscription reads.

    Provides product eligibility lookups and the overlap query used by
    the relational churn source.
    """

    def __init__(self, db: Session):
        super().__init__(Subscription, db)

    # ==================== PRODUCTS ====================

    def _recurring_products_stmt(self, account_id: int):
        return select(Product).where(
            and_(
                Product.account_id == account_id,
                Product.is_recurring_billing.is_(True),
            )
        )

    def find_recurring_products(self, account_id: int) -> List[Product]:
        """All recurring products of the account, alive or deleted."""
        stmt = self._recurring_products_stmt(account_id).order_by(Product.id)
        return list(self.db.execute(stmt).scalars().all())

    def find_alive_recurring_products(
        self,
        account_id: int,
        product_ids: Optional[Iterable[int]] = None,
    ) -> List[Product]:
        """
        Alive recurring products, optionally limited to an id allow-list.

        An empty or missing allow-list means every eligible product.
        """
        stmt = self._recurring_products_stmt(account_id).where(Product.deleted_at.is_(None))
        allowed = list(product_ids or [])
        if allowed:
            stmt = stmt.where(Product.id.in_(allowed))
        return list(self.db.execute(stmt.order_by(Product.id)).scalars().all())

    def has_alive_recurring_products(self, account_id: int) -> bool:
        stmt = (
            self._recurring_products_stmt(account_id)
            .where(Product.deleted_at.is_(None))
            .limit(1)
        )
        return self.db.execute(stmt).first() is not None

    # ==================== SUBSCRIPTIONS ====================

    def find_overlapping(
        self,
        product_ids: Iterable[int],
        range_start: datetime,
        range_end: datetime,
    ) -> List[Subscription]:
        """
        Subscriptions that overlap [range_start, range_end].

        Created on or before range_end, and either still active or
        deactivated on or after range_start. Bounds are naive UTC.
        """
        ids = list(product_ids)
        if not ids:
            return []

        stmt = select(Subscription).where(
            and_(
                Subscription.product_id.in_(ids),
                Subscription.created_at <= range_end,
                or_(
                    Subscription.deactivated_at.is_(None),
                    Subscription.deactivated_at >= range_start,
                ),
            )
        )
        return list(self.db.execute(stmt).scalars().all())

    def find_by_products(self, product_ids: Iterable[int]) -> List[Subscription]:
        ids = list(product_ids)
        if not ids:
            return []
        stmt = select(Subscription).where(Subscription.product_id.in_(ids)).order_by(Subscription.id)
        return list(self.db.execute(stmt).scalars().all())
