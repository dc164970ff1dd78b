"""
Value objects passed between the churn engine stages.
"""

from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Dict, Mapping


@dataclass(frozen=True)
class DayCounts:
    """
    Raw event counts of one calendar day.

    This is what the churn day cache stores: no running balance and no
    rate, since both depend on neighbouring days.
    """

    new_subscribers: int = 0
    churned_subscribers: int = 0
    churned_mrr_cents: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "new_subscribers": self.new_subscribers,
            "churned_subscribers": self.churned_subscribers,
            "churned_mrr_cents": self.churned_mrr_cents,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DayCounts":
        return cls(
            new_subscribers=int(data.get("new_subscribers") or 0),
            churned_subscribers=int(data.get("churned_subscribers") or 0),
            churned_mrr_cents=int(data.get("churned_mrr_cents") or 0),
        )

    def add(self, **deltas: int) -> "DayCounts":
        return replace(self, **{name: getattr(self, name) + delta for name, delta in deltas.items()})


@dataclass(frozen=True)
class RawChurnData:
    """Per-day counts of a period plus the active count on its first day."""

    daily_counts: Dict[date, DayCounts] = field(default_factory=dict)
    active_at_start: int = 0


@dataclass(frozen=True)
class DailyChurnBucket:
    """One calendar day of the running-balance series."""

    date: date
    active_at_start: int
    new_subscribers: int
    churned_subscribers: int
    churned_mrr_cents: int
    customer_churn_rate: float


@dataclass(frozen=True)
class PeriodChurnMetrics:
    """Period totals and the churn rate derived from them."""

    active_at_start: int
    new_subscribers: int
    churned_subscribers: int
    churned_mrr_cents: int
    churn_rate: float

    @property
    def total_base(self) -> int:
        return self.active_at_start + self.new_subscribers
