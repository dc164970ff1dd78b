"""
Per-day read-through cache for churn event counts.

Days older than the freshness horizon never change once the day is
over, so their raw counts are stored without expiry. Recent days are
always fetched live. Active counts and rates are never cached; the
running balance is rebuilt on every read.
"""

from datetime import date, timedelta
from typing import Any, Dict, Mapping, Protocol

from churn_analytics.core.exceptions import ConfigurationError
from churn_analytics.core.logging import get_logger
from churn_analytics.services.churn.entities import DayCounts
from churn_analytics.services.churn.sources.base import ChurnDataSource

logger = get_logger(__name__)

# Today and yesterday are never cached
MIN_FRESHNESS_HORIZON_DAYS = 2
DEFAULT_FRESHNESS_HORIZON_DAYS = 2


class ChurnCacheStore(Protocol):
    def read_many(self, keys) -> Dict[str, Mapping[str, Any]]:
        ...

    def write(self, key: str, value: Mapping[str, Any]) -> Any:
        ...


class ChurnDayCache(ChurnDataSource):
    """
    Caching wrapper around another churn data source.

    Args:
        source: Live data source
        store: Cache store exposing read_many(keys) and write(key, value)
        version: Cache format version baked into every key
        today: Current date in the merchant timezone
        horizon_days: Days before today that are still considered fresh
    """

    def __init__(
        self,
        source: ChurnDataSource,
        store: ChurnCacheStore,
        version: int,
        today: date,
        horizon_days: int = DEFAULT_FRESHNESS_HORIZON_DAYS,
    ):
        if horizon_days < MIN_FRESHNESS_HORIZON_DAYS:
            raise ConfigurationError(
                f"Churn freshness horizon must be at least {MIN_FRESHNESS_HORIZON_DAYS} days",
                details={"horizon_days": horizon_days},
            )

        super().__init__(source.account_id, source.product_ids, source.tz)
        self.source = source
        self.store = store
        self.version = version
        self.today = today
        self.horizon_days = horizon_days

    @property
    def last_cacheable_date(self) -> date:
        return self.today - timedelta(days=self.horizon_days)

    def cache_key(self, day: date) -> str:
        products = ",".join(str(product_id) for product_id in self.product_ids)
        return (
            f"churn_v{self.version}_account_{self.account_id}_{self.timezone_name}"
            f"_products_{products}_for_{day.isoformat()}"
        )

    def fetch_daily_counts(self, start_date: date, end_date: date) -> Dict[date, DayCounts]:
        days = [start_date + timedelta(days=offset) for offset in range((end_date - start_date).days + 1)]
        cacheable = [day for day in days if day <= self.last_cacheable_date]
        realtime = [day for day in days if day > self.last_cacheable_date]

        result: Dict[date, DayCounts] = {}

        if cacheable:
            keys_to_dates = {self.cache_key(day): day for day in cacheable}
            for key, data in self.store.read_many(list(keys_to_dates)).items():
                day = keys_to_dates.get(key)
                if day is not None and data is not None:
                    result[day] = DayCounts.from_dict(data)

            missing = [day for day in cacheable if day not in result]
            logger.debug(
                "Churn day cache lookup",
                account_id=self.account_id,
                hits=len(cacheable) - len(missing),
                misses=len(missing),
            )

            if missing:
                fresh = self.source.fetch_daily_counts(min(missing), max(missing))
                for day in missing:
                    counts = fresh.get(day, DayCounts())
                    self.store.write(self.cache_key(day), counts.to_dict())
                    result[day] = counts

        if realtime:
            result.update(self.source.fetch_daily_counts(min(realtime), max(realtime)))

        return result

    def count_active_at(self, day: date) -> int:
        return self.source.count_active_at(day)
