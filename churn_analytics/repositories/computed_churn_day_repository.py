"""
Computed Churn Day Repository.

Relational key/value store for cached churn days.
"""

from typing import Any, Dict, Iterable, Mapping

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from churn_analytics.core.exceptions import CacheError
from churn_analytics.models.analytics import ComputedChurnDay
from churn_analytics.repositories.base_repository import BaseRepository


class ComputedChurnDayRepository(BaseRepository[ComputedChurnDay]):
    """Churn day cache store backed by the computed_churn_days table."""

    def __init__(self, db: Session):
        super().__init__(ComputedChurnDay, db)

    def read_data_from_keys(self, keys: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        """Batch read; keys without a row are absent from the result."""
        key_list = list(keys)
        if not key_list:
            return {}
        stmt = select(ComputedChurnDay).where(ComputedChurnDay.key.in_(key_list))
        return {row.key: dict(row.data) for row in self.db.execute(stmt).scalars().all()}

    def upsert_data_from_key(self, key: str, data: Mapping[str, Any]) -> None:
        """
        Insert or replace the cached day stored under key.

        Raises:
            CacheError: If the row cannot be written
        """
        try:
            with self.transaction():
                row = self.db.get(ComputedChurnDay, key)
                if row is None:
                    self.db.add(ComputedChurnDay(key=key, data=dict(data)))
                else:
                    row.data = dict(data)
        except SQLAlchemyError as e:
            raise CacheError(
                f"Failed to store computed churn day: {str(e)}",
                operation="upsert",
                key=key,
            ) from e

    # Cache store interface
    def read_many(self, keys: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        return self.read_data_from_keys(keys)

    def write(self, key: str, value: Mapping[str, Any]) -> None:
        self.upsert_data_from_key(key, value)
