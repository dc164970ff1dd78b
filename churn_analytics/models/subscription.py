"""
Subscription Models.

Recurring-billing products and the subscriptions sold on them. The
churn engine only ever reads these rows.
"""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from churn_analytics.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from churn_analytics.models.account import Account

__all__ = [
    "RecurrenceUnit",
    "Product",
    "Subscription",
]


class RecurrenceUnit(str, Enum):
    """Billing recurrence of a subscription price."""

    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class Product(Base, TimestampMixin):
    """
    Product sold by an account.

    Only alive products with recurring billing take part in churn
    reporting.
    """

    __tablename__ = "products"
    __table_args__ = (
        Index("ix_products_account_recurring", "account_id", "is_recurring_billing"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    account_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    unique_permalink: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, unique=True)
    is_recurring_billing: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True,
        comment="Deletion timestamp (UTC); null while the product is alive",
    )

    account: Mapped["Account"] = relationship("Account", back_populates="products")
    subscriptions: Mapped[List["Subscription"]] = relationship(
        "Subscription",
        back_populates="product",
    )

    @property
    def alive(self) -> bool:
        return self.deleted_at is None

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, recurring={self.is_recurring_billing}, alive={self.alive})>"


class Subscription(Base):
    """
    Subscription to a recurring product.

    created_at and deactivated_at are precise instants (naive UTC);
    deactivated_at stays null while the subscription is active.
    """

    __tablename__ = "subscriptions"
    __table_args__ = (
        CheckConstraint(
            "recurring_price_cents >= 0",
            name="ck_subscription_price_non_negative",
        ),
        Index("ix_subscriptions_product_created", "product_id", "created_at"),
        Index("ix_subscriptions_product_deactivated", "product_id", "deactivated_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    product_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        comment="Instant the subscription began (UTC)",
    )
    deactivated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True,
        comment="Instant the subscription ended (UTC)",
    )
    recurring_price_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    recurrence_unit: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=RecurrenceUnit.MONTHLY.value,
        comment="monthly, quarterly or yearly",
    )

    product: Mapped["Product"] = relationship("Product", back_populates="subscriptions")

    def __repr__(self) -> str:
        return (
            f"<Subscription(id={self.id}, product_id={self.product_id}, "
            f"created_at={self.created_at}, deactivated_at={self.deactivated_at})>"
        )
