"""
Analytics cache models.

Relational store for computed churn days, keyed by the churn day cache
key. Rows are permanent; a cache version bump orphans them.
"""

from datetime import datetime
from typing import Any, Dict

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from churn_analytics.models.base import Base

__all__ = ["ComputedChurnDay"]


class ComputedChurnDay(Base):
    """Raw churn counts of one account day, stored under its cache key."""

    __tablename__ = "computed_churn_days"

    key: Mapped[str] = mapped_column(String(512), primary_key=True)
    data: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    def __repr__(self) -> str:
        return f"<ComputedChurnDay(key='{self.key}')>"
