"""Cache stores for computed churn days."""

from churn_analytics.services.cache.churn_cache_store import RedisChurnCacheStore
from churn_analytics.services.cache.version_store import CacheVersionStore

__all__ = [
    "RedisChurnCacheStore",
    "CacheVersionStore",
]
