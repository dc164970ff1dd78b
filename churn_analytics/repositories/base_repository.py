"""
Base repository with shared transaction handling.

Query errors are not wrapped: callers of the churn engine receive the
underlying SQLAlchemy exception unchanged.
"""

from contextlib import contextmanager
from typing import Generic, Type, TypeVar

from sqlalchemy.orm import Session

from churn_analytics.core.logging import get_logger

logger = get_logger(__name__)

ModelType = TypeVar("ModelType")


class BaseRepository(Generic[ModelType]):
    """
    Base repository bound to one model and one session.
    """

    def __init__(self, model: Type[ModelType], db: Session):
        """
        Initialize repository.

        Args:
            model: SQLAlchemy model class
            db: Database session
        """
        self.model = model
        self.db = db

    @contextmanager
    def transaction(self):
        """
        Transaction context manager with automatic rollback.

        Usage:
            with repository.transaction():
                repository.db.add(entity)
        """
        try:
            yield self.db
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error("Transaction rollback", error=str(e), exc_info=True)
            raise
