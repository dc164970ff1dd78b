"""
Subscription classification for churn reporting.

Pure predicates deciding whether a subscription was active at the start
of a day, started during a range of days or churned during it, plus the
monthly-equivalent revenue it contributes. Day boundaries are inclusive
on both ends and anchored to the merchant timezone; instants on the
subscription are naive UTC.
"""

from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Protocol, Union

import pytz

from churn_analytics.core.logging import get_logger
from churn_analytics.models.subscription import RecurrenceUnit
from churn_analytics.services.churn.time_normalization import end_of_day, start_of_day

logger = get_logger(__name__)

TzLike = Union[str, pytz.BaseTzInfo]

# Billing cycles per month-equivalent
MONTHS_PER_CYCLE = {
    RecurrenceUnit.MONTHLY.value: 1,
    RecurrenceUnit.QUARTERLY.value: 3,
    RecurrenceUnit.YEARLY.value: 12,
}


class SubscriptionLike(Protocol):
    created_at: datetime
    deactivated_at: Optional[datetime]
    recurring_price_cents: int
    recurrence_unit: str


def _within(instant: Optional[datetime], lower: datetime, upper: datetime) -> bool:
    return instant is not None and lower <= instant <= upper


def active_at_start(subscription: SubscriptionLike, day: date, tz: TzLike) -> bool:
    """Existed before the first instant of day and had not ended by then."""
    boundary = start_of_day(day, tz)
    if subscription.created_at >= boundary:
        return False
    return subscription.deactivated_at is None or subscription.deactivated_at >= boundary


def new_during(subscription: SubscriptionLike, from_date: date, to_date: date, tz: TzLike) -> bool:
    return _within(subscription.created_at, start_of_day(from_date, tz), end_of_day(to_date, tz))


def churned_during(subscription: SubscriptionLike, from_date: date, to_date: date, tz: TzLike) -> bool:
    return _within(subscription.deactivated_at, start_of_day(from_date, tz), end_of_day(to_date, tz))


def monthly_recurring_revenue(subscription: SubscriptionLike) -> int:
    """
    Recurring price normalized to a monthly amount in cents.

    Yearly and quarterly prices are divided and rounded half-up;
    unknown recurrence units contribute nothing.
    """
    unit = subscription.recurrence_unit
    if isinstance(unit, RecurrenceUnit):
        unit = unit.value

    months = MONTHS_PER_CYCLE.get(unit)
    if months is None:
        logger.debug("Unrecognized recurrence unit, counting zero MRR", unit=unit)
        return 0

    cents = Decimal(subscription.recurring_price_cents or 0)
    return int((cents / months).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
