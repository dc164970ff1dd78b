"""
Database connection settings for the churn analytics engine.
Provides SQLAlchemy session management and connection pooling.
"""

import time
from functools import lru_cache
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.engine import Engine

from churn_analytics.config.settings import settings
from churn_analytics.core.logging import get_logger

logger = get_logger(__name__)

SLOW_QUERY_SECONDS = 0.5


@lru_cache()
def get_engine() -> Engine:
    """Create the pooled engine on first use"""
    engine = create_engine(
        settings.DATABASE_URL,
        pool_pre_ping=True,  # Check connection before using it
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_POOL_OVERFLOW,
        pool_recycle=3600,
        echo=settings.DB_ECHO,
    )
    event.listen(engine, "before_cursor_execute", before_cursor_execute)
    event.listen(engine, "after_cursor_execute", after_cursor_execute)
    return engine


@lru_cache()
def get_session_factory() -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine())


def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    """Log query execution time - start timer"""
    conn.info.setdefault('query_start_time', []).append(time.time())


def after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    """Log query execution time - stop timer and log if slow query"""
    total_time = time.time() - conn.info['query_start_time'].pop()

    if total_time > SLOW_QUERY_SECONDS:
        logger.warning(
            "Slow query detected",
            duration_seconds=round(total_time, 4),
            statement=statement[:100],
        )
