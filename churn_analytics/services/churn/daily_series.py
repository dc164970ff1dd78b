"""
Running-balance daily churn series.

Each day's rate uses the active balance carried over from the previous
day rather than a fresh point-in-time count:

    base[d]    = running_active + new[d]
    running'   = running_active + new[d] - churned[d]

Period totals are derived from the same series so the daily buckets
always reconcile with the period figures.
"""

from typing import List, Sequence

from churn_analytics.services.churn.aggregator import PeriodAggregator, churn_rate
from churn_analytics.services.churn.entities import (
    DailyChurnBucket,
    DayCounts,
    PeriodChurnMetrics,
    RawChurnData,
)
from churn_analytics.services.churn.time_normalization import ChurnPeriod

EMPTY_DAY = DayCounts()


class DailySeriesBuilder:
    """Builds one bucket per calendar day of a period."""

    def build(self, period: ChurnPeriod, raw: RawChurnData) -> List[DailyChurnBucket]:
        running_active = raw.active_at_start
        buckets = []

        for day in period.days():
            counts = raw.daily_counts.get(day, EMPTY_DAY)
            buckets.append(
                DailyChurnBucket(
                    date=day,
                    active_at_start=running_active,
                    new_subscribers=counts.new_subscribers,
                    churned_subscribers=counts.churned_subscribers,
                    churned_mrr_cents=counts.churned_mrr_cents,
                    customer_churn_rate=churn_rate(
                        counts.churned_subscribers, running_active, counts.new_subscribers
                    ),
                )
            )
            running_active = running_active + counts.new_subscribers - counts.churned_subscribers

        return buckets

    @staticmethod
    def summarize(buckets: Sequence[DailyChurnBucket]) -> PeriodChurnMetrics:
        """Period metrics from the series: day-1 balance plus summed events."""
        if not buckets:
            return PeriodAggregator.from_counts(0, 0, 0, 0)

        return PeriodAggregator.from_counts(
            active_at_start=buckets[0].active_at_start,
            new_subscribers=sum(bucket.new_subscribers for bucket in buckets),
            churned_subscribers=sum(bucket.churned_subscribers for bucket in buckets),
            churned_mrr_cents=sum(bucket.churned_mrr_cents for bucket in buckets),
        )
