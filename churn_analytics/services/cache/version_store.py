"""
Cache format version shared by every churn day cache key.
"""

from redis import Redis

from churn_analytics.core.logging import get_logger

logger = get_logger(__name__)


class CacheVersionStore:
    """Integer version kept in Redis; bumping it invalidates all cached days."""

    def __init__(self, redis: Redis, key: str = "seller_analytics_cache_version"):
        self.redis = redis
        self.key = key

    def current(self) -> int:
        value = self.redis.get(self.key)
        return int(value) if value is not None else 0

    def bump(self) -> int:
        version = int(self.redis.incr(self.key))
        logger.info("Bumped churn cache version", version=version)
        return version
