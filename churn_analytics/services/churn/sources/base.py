"""
Churn data source contract.

A source turns an account's subscriptions into raw per-day event
counts and the active count at the start of a day. Rates and running
balances are never computed here.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Dict, Iterable, List, Union

import pytz

from churn_analytics.services.churn.entities import DayCounts, RawChurnData
from churn_analytics.services.churn.time_normalization import ChurnPeriod, to_timezone


class ChurnDataSource(ABC):
    """
    Base class for churn data retrieval strategies.

    Args:
        account_id: Merchant account
        product_ids: Resolved allow-list of alive recurring products
        tz: Merchant timezone (IANA name or pytz timezone)
    """

    def __init__(
        self,
        account_id: int,
        product_ids: Iterable[int],
        tz: Union[str, pytz.BaseTzInfo],
    ):
        self.account_id = account_id
        self.product_ids: List[int] = sorted(set(product_ids))
        self.tz = to_timezone(tz)

    @property
    def timezone_name(self) -> str:
        return self.tz.zone

    @abstractmethod
    def fetch_daily_counts(self, start_date: date, end_date: date) -> Dict[date, DayCounts]:
        """
        Event counts per merchant-local day of [start_date, end_date].

        Days without events may be omitted; callers treat them as zero.
        """

    @abstractmethod
    def count_active_at(self, day: date) -> int:
        """Subscriptions active at the first instant of day."""

    def fetch(self, period: ChurnPeriod) -> RawChurnData:
        return RawChurnData(
            daily_counts=self.fetch_daily_counts(period.start_date, period.end_date),
            active_at_start=self.count_active_at(period.start_date),
        )

    def __repr__(self) -> str:
        return (
            f"<{self.__class__.__name__}(account_id={self.account_id}, "
            f"products={self.product_ids}, tz='{self.timezone_name}')>"
        )
