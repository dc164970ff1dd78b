"""
Account Models.

Merchants that sell subscription products, and the flag marking
high-volume accounts as eligible for per-day churn caching.
"""

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

import pytz
from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from churn_analytics.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from churn_analytics.models.subscription import Product

__all__ = [
    "Account",
    "LargeAccount",
]


class Account(Base, TimestampMixin):
    """
    Merchant account.

    The timezone anchors every calendar day the churn engine reports on.
    """

    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    timezone: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default="UTC",
        comment="IANA timezone name used for day boundaries",
    )

    products: Mapped[List["Product"]] = relationship(
        "Product",
        back_populates="account",
        lazy="selectin",
    )
    large_account: Mapped[Optional["LargeAccount"]] = relationship(
        "LargeAccount",
        back_populates="account",
        uselist=False,
    )

    @property
    def tzinfo(self) -> pytz.BaseTzInfo:
        return pytz.timezone(self.timezone or "UTC")

    def timezone_formatted_offset(self, at: Optional[datetime] = None) -> str:
        """UTC offset of the account timezone formatted as +HH:MM."""
        moment = at or datetime.utcnow()
        offset = pytz.utc.localize(moment).astimezone(self.tzinfo).utcoffset()
        total_minutes = int(offset.total_seconds() // 60)
        sign = "+" if total_minutes >= 0 else "-"
        hours, minutes = divmod(abs(total_minutes), 60)
        return f"{sign}{hours:02d}:{minutes:02d}"

    def __repr__(self) -> str:
        return f"<Account(id={self.id}, timezone='{self.timezone}')>"


class LargeAccount(Base):
    """
    High-volume account marker.

    Presence of a row makes the account eligible for churn day caching.
    """

    __tablename__ = "large_accounts"

    account_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        primary_key=True,
    )
    subscription_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Subscription count when the account was flagged",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
    )

    account: Mapped["Account"] = relationship("Account", back_populates="large_account")

    def __repr__(self) -> str:
        return f"<LargeAccount(account_id={self.account_id}, subscriptions={self.subscription_count})>"
