"""
Churn analytics service.

Computes customer churn for a merchant's subscription products over a
range of calendar days in the merchant timezone:

    churn rate = churned / (active at start + new during period) * 100

The daily series is built from one grouped fetch plus one active count
for the first day, optionally served through the per-day cache for
large accounts. Period totals are always derived from the series.
"""

from datetime import date, datetime
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from sqlalchemy.orm import Session

from churn_analytics.config.database import get_session_factory
from churn_analytics.config.settings import Settings, settings as default_settings
from churn_analytics.core.exceptions import DataSourceError, ValidationError
from churn_analytics.core.logging import get_logger, log_execution_time
from churn_analytics.models.account import Account
from churn_analytics.repositories.account_repository import AccountRepository
from churn_analytics.repositories.computed_churn_day_repository import ComputedChurnDayRepository
from churn_analytics.repositories.subscription_repository import SubscriptionRepository
from churn_analytics.schemas.churn import (
    ChurnDailyPoint,
    ChurnMetrics,
    ChurnProductOption,
    ChurnReport,
)
from churn_analytics.services.churn.daily_series import DailySeriesBuilder
from churn_analytics.services.churn.day_cache import ChurnDayCache
from churn_analytics.services.churn.entities import DailyChurnBucket, PeriodChurnMetrics
from churn_analytics.services.churn.sources.base import ChurnDataSource
from churn_analytics.services.churn.sources.index import IndexAggregationSource
from churn_analytics.services.churn.sources.relational import RelationalScanSource
from churn_analytics.services.churn.time_normalization import (
    ChurnPeriod,
    DateInput,
    resolve_period,
    today_in,
)

logger = get_logger(__name__)

PRODUCTS_PARAM_KEY = "products"
MONTH_LABEL_FORMAT = "%B %Y"


class ChurnService:
    """
    Service for subscriber churn analytics.

    Provides:
    - Period churn rate, churned subscribers and lost MRR
    - Churn rate of the preceding period of equal length
    - One chart point per calendar day
    - Recurring products the report can be filtered by

    Invalid ranges make fetch_churn_data return None unless the service
    is built with strict=True, in which case InvalidDateRangeError is
    raised. customer_churn_rate is always strict.

    A service built without a db session opens its own and closes it in
    close(); use it as a context manager in that case.
    """

    def __init__(
        self,
        account: Account,
        start_date: Optional[DateInput] = None,
        end_date: Optional[DateInput] = None,
        params: Optional[Mapping[str, Any]] = None,
        products: Optional[Iterable[Any]] = None,
        strict: bool = False,
        db: Optional[Session] = None,
        data_source: Optional[str] = None,
        elastic_client: Any = None,
        cache_store: Any = None,
        cache_version_store: Any = None,
        cache_version: Optional[int] = None,
        now: Optional[datetime] = None,
        app_settings: Optional[Settings] = None,
    ):
        """
        Initialize the service.

        Args:
            account: Merchant account
            start_date: Explicit first day (wins over params)
            end_date: Explicit last day (wins over params)
            params: Raw request params (start_time/from, end_time/to, products)
            products: Product ids or products to restrict the report to
            strict: Raise on an invalid range instead of returning None
            db: Database session, owned by the caller; a session is
                opened and owned by the service when omitted
            data_source: "relational" or "index", defaults to settings
            elastic_client: Client exposing search(index=..., body=...)
            cache_store: Store exposing read_many(keys) and write(key, value)
            cache_version_store: Store exposing current()
            cache_version: Explicit cache version, skips the version store
            now: Reference instant (naive UTC) used for "today"
            app_settings: Settings override
        """
        self.account = account
        self.params = params or {}
        self.strict = strict
        self.settings = app_settings or default_settings
        self.now = now
        self.logger = logger.bind(account_id=account.id)

        # Input is parsed before any session is opened
        self.period: ChurnPeriod = resolve_period(
            account.timezone,
            start_date=start_date,
            end_date=end_date,
            params=self.params,
            now=now,
            default_range_months=self.settings.CHURN_DEFAULT_RANGE_MONTHS,
        )
        self.product_filter = self._parse_products(products)

        self.data_source = data_source or self.settings.CHURN_DATA_SOURCE
        self._elastic_client = elastic_client
        self._cache_store = cache_store
        self._cache_version_store = cache_version_store
        self._cache_version = cache_version

        self._owns_session = db is None
        if db is None:
            db = get_session_factory()()
        self.db = db

        self.subscription_repository = SubscriptionRepository(db)
        self.account_repository = AccountRepository(db)

        self._product_ids: Optional[List[int]] = None
        self._source: Optional[ChurnDataSource] = None

    # ==================== LIFECYCLE ====================

    def close(self) -> None:
        """Close the session if the service opened it."""
        if self._owns_session:
            self.db.close()

    def __enter__(self) -> "ChurnService":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    # ==================== PERIOD ====================

    @property
    def start_date(self) -> date:
        return self.period.start_date

    @property
    def end_date(self) -> date:
        return self.period.end_date

    def time_window(self) -> int:
        return self.period.time_window()

    def is_valid(self) -> bool:
        return self.period.is_valid()

    def validate(self) -> ChurnPeriod:
        return self.period.validate()

    # ==================== PRODUCTS ====================

    def _parse_products(self, products: Optional[Iterable[Any]]) -> List[int]:
        """
        Normalize the product filter to ids.

        Accepts products, ids, or a comma separated string such as
        "1,2" as sent in request params.
        """
        if products is None:
            products = self.params.get(PRODUCTS_PARAM_KEY) or []
        if isinstance(products, str):
            products = [part for part in products.split(",") if part.strip()]
        elif isinstance(products, int):
            products = [products]

        product_ids = []
        for product in products:
            value = getattr(product, "id", product)
            try:
                product_ids.append(int(value))
            except (TypeError, ValueError):
                raise ValidationError(
                    f"Invalid product id: {value!r}",
                    field_errors={PRODUCTS_PARAM_KEY: [f"{value!r} is not a product id"]},
                )
        return product_ids

    @property
    def product_ids(self) -> List[int]:
        """Alive recurring products matching the filter; all of them without one."""
        if self._product_ids is None:
            products = self.subscription_repository.find_alive_recurring_products(
                self.account.id,
                self.product_filter,
            )
            self._product_ids = [product.id for product in products]
        return self._product_ids

    def has_subscription_products(self) -> bool:
        return self.subscription_repository.has_alive_recurring_products(self.account.id)

    def available_products(self) -> List[ChurnProductOption]:
        return [
            ChurnProductOption.model_validate(product)
            for product in self.subscription_repository.find_recurring_products(self.account.id)
        ]

    # ==================== DATA SOURCE ====================

    def _build_live_source(self) -> ChurnDataSource:
        if self.data_source == "relational":
            return RelationalScanSource(self.db, self.account.id, self.product_ids, self.account.timezone)

        if self.data_source == "index":
            client = self._elastic_client
            if client is None:
                from churn_analytics.config.elasticsearch import get_elastic_client
                client = get_elastic_client()
            return IndexAggregationSource(
                client,
                self.settings.SUBSCRIPTIONS_INDEX,
                self.account.id,
                self.product_ids,
                self.account.timezone,
            )

        raise DataSourceError(
            f"Unknown churn data source: {self.data_source}",
            source=self.data_source,
        )

    def _build_cache_store(self):
        if self._cache_store is not None:
            return self._cache_store

        if self.settings.CHURN_CACHE_BACKEND == "database":
            return ComputedChurnDayRepository(self.db)

        from churn_analytics.config.redis import get_redis_client
        from churn_analytics.services.cache import RedisChurnCacheStore
        return RedisChurnCacheStore(get_redis_client(), namespace=self.settings.CHURN_CACHE_NAMESPACE)

    def _current_cache_version(self) -> int:
        if self._cache_version is not None:
            return self._cache_version

        store = self._cache_version_store
        if store is None:
            from churn_analytics.config.redis import get_redis_client
            from churn_analytics.services.cache import CacheVersionStore
            store = CacheVersionStore(get_redis_client(), key=self.settings.CHURN_CACHE_VERSION_KEY)
        return store.current()

    def use_cache(self) -> bool:
        return self.account_repository.is_large(self.account.id)

    @property
    def source(self) -> ChurnDataSource:
        if self._source is None:
            source = self._build_live_source()
            if self.use_cache():
                source = ChurnDayCache(
                    source,
                    self._build_cache_store(),
                    version=self._current_cache_version(),
                    today=today_in(self.account.timezone, self.now),
                    horizon_days=self.settings.CHURN_FRESHNESS_HORIZON_DAYS,
                )
            self.logger.debug("Using churn source", source=repr(source))
            self._source = source
        return self._source

    # ==================== COMPUTATION ====================

    def _compute(self, period: ChurnPeriod) -> Tuple[List[DailyChurnBucket], PeriodChurnMetrics]:
        raw = self.source.fetch(period)
        buckets = DailySeriesBuilder().build(period, raw)
        return buckets, DailySeriesBuilder.summarize(buckets)

    def _daily_point(self, bucket: DailyChurnBucket) -> ChurnDailyPoint:
        return ChurnDailyPoint(
            date=bucket.date,
            month=bucket.date.strftime(MONTH_LABEL_FORMAT),
            month_index=self.period.month_index(bucket.date),
            customer_churn_rate=bucket.customer_churn_rate,
            churned_subscribers=bucket.churned_subscribers,
            churned_mrr_cents=bucket.churned_mrr_cents,
            active_at_start=bucket.active_at_start,
            new_subscribers=bucket.new_subscribers,
        )

    @log_execution_time()
    def fetch_churn_data(self) -> Optional[ChurnReport]:
        """
        Build the churn report for the period.

        Returns:
            ChurnReport, or None when the account has no eligible
            products or the range is invalid in non-strict mode

        Raises:
            InvalidDateRangeError: Invalid range in strict mode
        """
        if not self.is_valid():
            if self.strict:
                self.validate()
            self.logger.info(
                "Invalid churn range",
                start_date=self.start_date.isoformat(),
                end_date=self.end_date.isoformat(),
            )
            return None

        if not self.product_ids:
            self.logger.info("No eligible subscription products")
            return None

        buckets, metrics = self._compute(self.period)
        _, last_period_metrics = self._compute(self.period.previous_period())

        self.logger.info(
            "Computed churn",
            start_date=self.start_date.isoformat(),
            end_date=self.end_date.isoformat(),
            churn_rate=metrics.churn_rate,
            churned_subscribers=metrics.churned_subscribers,
        )

        return ChurnReport(
            start_date=self.start_date,
            end_date=self.end_date,
            metrics=ChurnMetrics(
                customer_churn_rate=metrics.churn_rate,
                last_period_churn_rate=last_period_metrics.churn_rate,
                churned_subscribers=metrics.churned_subscribers,
                churned_mrr_cents=metrics.churned_mrr_cents,
            ),
            daily_data=[self._daily_point(bucket) for bucket in buckets],
        )

    @classmethod
    def customer_churn_rate(
        cls,
        account: Account,
        start_date: DateInput,
        end_date: DateInput,
        products: Optional[Iterable[Any]] = None,
        **kwargs,
    ) -> float:
        """
        Churn rate of an explicit period.

        Always strict; remaining keyword arguments are passed to the
        service constructor.

        Raises:
            InvalidDateRangeError: end_date before start_date
            TypeError: strict passed as a keyword argument
        """
        if "strict" in kwargs:
            raise TypeError("customer_churn_rate() is always strict and does not accept 'strict'")

        with cls(
            account,
            start_date=start_date,
            end_date=end_date,
            products=products,
            strict=True,
            **kwargs,
        ) as service:
            service.validate()
            if not service.product_ids:
                return 0.0
            _, metrics = service._compute(service.period)
            return metrics.churn_rate
