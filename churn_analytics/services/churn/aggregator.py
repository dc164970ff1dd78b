"""
Period aggregation and Stripe's churn formula.

    churn rate = churned / (active at start + new during period) * 100

The base includes subscribers acquired during the window because they
could churn within it too.
"""

from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from churn_analytics.services.churn import classifier
from churn_analytics.services.churn.classifier import SubscriptionLike, TzLike
from churn_analytics.services.churn.entities import PeriodChurnMetrics

RATE_PRECISION = Decimal("0.01")


def churn_rate(churned_subscribers: int, active_at_start: int, new_subscribers: int) -> float:
    """Percentage rounded half-up to 2 places; 0.0 when the base is empty."""
    total_base = active_at_start + new_subscribers
    if total_base <= 0:
        return 0.0
    rate = Decimal(churned_subscribers) * 100 / Decimal(total_base)
    return float(rate.quantize(RATE_PRECISION, rounding=ROUND_HALF_UP))


class PeriodAggregator:
    """Folds subscriptions or pre-aggregated counts into period metrics."""

    @staticmethod
    def from_counts(
        active_at_start: int,
        new_subscribers: int,
        churned_subscribers: int,
        churned_mrr_cents: int,
    ) -> PeriodChurnMetrics:
        return PeriodChurnMetrics(
            active_at_start=active_at_start,
            new_subscribers=new_subscribers,
            churned_subscribers=churned_subscribers,
            churned_mrr_cents=churned_mrr_cents,
            churn_rate=churn_rate(churned_subscribers, active_at_start, new_subscribers),
        )

    @classmethod
    def aggregate(
        cls,
        subscriptions: Iterable[SubscriptionLike],
        from_date: date,
        to_date: date,
        tz: TzLike,
    ) -> PeriodChurnMetrics:
        """Classify each subscription against the period and total the buckets."""
        active = new = churned = churned_mrr = 0

        for subscription in subscriptions:
            if classifier.active_at_start(subscription, from_date, tz):
                active += 1
            if classifier.new_during(subscription, from_date, to_date, tz):
                new += 1
            if classifier.churned_during(subscription, from_date, to_date, tz):
                churned += 1
                churned_mrr += classifier.monthly_recurring_revenue(subscription)

        return cls.from_counts(active, new, churned, churned_mrr)
