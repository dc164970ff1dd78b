"""
Relational churn source.

Loads every subscription overlapping the range with one query and
classifies the rows in memory.
"""

from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, Sequence, Tuple, Union

import pytz
from sqlalchemy.orm import Session

from churn_analytics.core.logging import get_logger
from churn_analytics.repositories.subscription_repository import SubscriptionRepository
from churn_analytics.services.churn import classifier
from churn_analytics.services.churn.entities import DayCounts, RawChurnData
from churn_analytics.services.churn.sources.base import ChurnDataSource
from churn_analytics.services.churn.time_normalization import (
    ChurnPeriod,
    end_of_day,
    local_date,
    start_of_day,
)

logger = get_logger(__name__)


class RelationalScanSource(ChurnDataSource):
    """Churn source reading subscriptions straight from the database."""

    def __init__(
        self,
        db: Session,
        account_id: int,
        product_ids: Iterable[int],
        tz: Union[str, pytz.BaseTzInfo],
    ):
        super().__init__(account_id, product_ids, tz)
        self.repository = SubscriptionRepository(db)

    def _load(self, start_date: date, end_date: date) -> Sequence:
        rows = self.repository.find_overlapping(
            self.product_ids,
            start_of_day(start_date, self.tz),
            end_of_day(end_date, self.tz),
        )
        logger.debug(
            "Loaded overlapping subscriptions",
            account_id=self.account_id,
            rows=len(rows),
            start_date=start_date.isoformat(),
            end_date=end_date.isoformat(),
        )
        return rows

    def _classify(
        self,
        subscriptions: Sequence,
        start_date: date,
        end_date: date,
    ) -> Tuple[Dict[date, DayCounts], int]:
        counts: Dict[date, DayCounts] = defaultdict(DayCounts)
        active = 0

        for subscription in subscriptions:
            if classifier.active_at_start(subscription, start_date, self.tz):
                active += 1
            if classifier.new_during(subscription, start_date, end_date, self.tz):
                day = local_date(subscription.created_at, self.tz)
                counts[day] = counts[day].add(new_subscribers=1)
            if classifier.churned_during(subscription, start_date, end_date, self.tz):
                day = local_date(subscription.deactivated_at, self.tz)
                counts[day] = counts[day].add(
                    churned_subscribers=1,
                    churned_mrr_cents=classifier.monthly_recurring_revenue(subscription),
                )

        return dict(counts), active

    def fetch_daily_counts(self, start_date: date, end_date: date) -> Dict[date, DayCounts]:
        counts, _ = self._classify(self._load(start_date, end_date), start_date, end_date)
        return counts

    def count_active_at(self, day: date) -> int:
        _, active = self._classify(self._load(day, day), day, day)
        return active

    def fetch(self, period: ChurnPeriod) -> RawChurnData:
        # Rows active at the first day always overlap the range, so one scan serves both.
        counts, active = self._classify(
            self._load(period.start_date, period.end_date),
            period.start_date,
            period.end_date,
        )
        return RawChurnData(daily_counts=counts, active_at_start=active)
