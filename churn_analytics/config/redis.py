"""
Redis configuration for the churn analytics engine.
Provides the pooled Redis client used by the churn day cache.
"""

from functools import lru_cache
from redis import Redis
from redis.connection import ConnectionPool

from churn_analytics.config.settings import settings


@lru_cache()
def get_redis_pool() -> ConnectionPool:
    """Build the shared connection pool on first use"""
    return ConnectionPool.from_url(
        settings.REDIS_URL,
        max_connections=settings.REDIS_POOL_SIZE,
        decode_responses=True,  # Auto-decode Redis responses to strings
    )


def get_redis_client() -> Redis:
    """Get Redis client with connection pooling"""
    return Redis(connection_pool=get_redis_pool())
