"""
Redis cache store for computed churn days.
"""

import json
from typing import Any, Dict, Iterable, Mapping

from redis import Redis
from redis.exceptions import RedisError

from churn_analytics.core.logging import get_logger


class RedisChurnCacheStore:
    """
    JSON-based churn day store with:
    - Namespaced keys
    - Batch reads through MGET
    - Entries without expiry (a version bump retires them)
    """

    def __init__(self, redis: Redis, namespace: str = "churn"):
        """
        Initialize cache store.

        Args:
            redis: Redis client
            namespace: Key namespace prefix
        """
        self.redis = redis
        self.namespace = namespace
        self._logger = get_logger(self.__class__.__name__)

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    # -------------------------------------------------------------------------
    # Store Operations
    # -------------------------------------------------------------------------

    def read_many(self, keys: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        """
        Get multiple cached days.

        Args:
            keys: Cache keys

        Returns:
            Dictionary of key->value for found items; unreadable entries
            count as misses
        """
        keys = list(keys)
        if not keys:
            return {}

        try:
            values = self.redis.mget([self._key(k) for k in keys])
        except RedisError as e:
            self._logger.error("Cache read_many error", error=str(e))
            return {}

        result = {}
        for key, value in zip(keys, values):
            if value is None:
                continue
            try:
                result[key] = json.loads(value)
            except json.JSONDecodeError:
                self._logger.warning("Failed to decode cached value", key=key)

        self._logger.debug("Cache read_many", hits=len(result), keys=len(keys))
        return result

    def write(self, key: str, value: Mapping[str, Any]) -> bool:
        """
        Store one day without expiry.

        Returns:
            True if successful, False otherwise
        """
        try:
            self.redis.set(self._key(key), json.dumps(dict(value)))
        except RedisError as e:
            self._logger.error("Cache write error", key=key, error=str(e))
            return False

        self._logger.debug("Cache set", key=key)
        return True
