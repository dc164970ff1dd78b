"""
Search index churn source.

Counts churned and new subscriptions per merchant-local day with
date histograms over the subscriptions index. A fetch costs two
searches whatever the length of the range: one carrying both
histograms and one total-hits search for the active count. Each
subscription is one document, so document counts are exact.
"""

from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Union

import pytz

from churn_analytics.core.logging import get_logger
from churn_analytics.services.churn.entities import DayCounts
from churn_analytics.services.churn.sources.base import ChurnDataSource
from churn_analytics.services.churn.time_normalization import start_of_day

logger = get_logger(__name__)

HISTOGRAM_DATE_FORMAT = "yyyy-MM-dd"


def format_instant(instant: datetime) -> str:
    """Naive UTC instant as an ISO 8601 string the index can parse."""
    return instant.strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class IndexAggregationSource(ChurnDataSource):
    """
    Churn source backed by Elasticsearch aggregations.

    Args:
        client: Object exposing search(index=..., body=...)
        index: Subscriptions index name
    """

    def __init__(
        self,
        client: Any,
        index: str,
        account_id: int,
        product_ids: Iterable[int],
        tz: Union[str, pytz.BaseTzInfo],
    ):
        super().__init__(account_id, product_ids, tz)
        self.client = client
        self.index = index

    # ==================== QUERY BUILDING ====================

    def _scope_filters(self) -> List[Dict[str, Any]]:
        return [
            {"term": {"account_id": self.account_id}},
            {"terms": {"product_id": self.product_ids}},
        ]

    def _day_range(self, start_date: date, end_date: date) -> Dict[str, str]:
        return {
            "gte": format_instant(start_of_day(start_date, self.tz)),
            "lt": format_instant(start_of_day(end_date + timedelta(days=1), self.tz)),
        }

    def _histogram(self, field: str, start_date: date, end_date: date) -> Dict[str, Any]:
        return {
            "field": field,
            "calendar_interval": "day",
            "time_zone": self.timezone_name,
            "format": HISTOGRAM_DATE_FORMAT,
            "min_doc_count": 0,
            "extended_bounds": {
                "min": start_date.isoformat(),
                "max": end_date.isoformat(),
            },
        }

    def build_daily_counts_query(self, start_date: date, end_date: date) -> Dict[str, Any]:
        day_range = self._day_range(start_date, end_date)
        return {
            "size": 0,
            "query": {
                "bool": {
                    "filter": self._scope_filters(),
                    "should": [
                        {"range": {"deactivated_at": day_range}},
                        {"range": {"created_at": day_range}},
                    ],
                    "minimum_should_match": 1,
                }
            },
            "aggs": {
                "churned_by_date": {
                    "filter": {"range": {"deactivated_at": day_range}},
                    "aggs": {
                        "by_date": {
                            "date_histogram": self._histogram("deactivated_at", start_date, end_date),
                            "aggs": {
                                "churned_mrr": {"sum": {"field": "monthly_recurring_revenue"}},
                            },
                        }
                    },
                },
                "new_by_date": {
                    "filter": {"range": {"created_at": day_range}},
                    "aggs": {
                        "by_date": {
                            "date_histogram": self._histogram("created_at", start_date, end_date),
                        }
                    },
                },
            },
        }

    def build_active_query(self, day: date) -> Dict[str, Any]:
        boundary = format_instant(start_of_day(day, self.tz))
        return {
            "size": 0,
            "track_total_hits": True,
            "query": {
                "bool": {
                    "filter": self._scope_filters() + [
                        {"range": {"created_at": {"lt": boundary}}},
                    ],
                    "should": [
                        {"bool": {"must_not": [{"exists": {"field": "deactivated_at"}}]}},
                        {"range": {"deactivated_at": {"gte": boundary}}},
                    ],
                    "minimum_should_match": 1,
                }
            },
        }

    # ==================== FETCHING ====================

    @staticmethod
    def _bucket_date(bucket: Dict[str, Any]) -> date:
        return date.fromisoformat(bucket["key_as_string"][:10])

    def fetch_daily_counts(self, start_date: date, end_date: date) -> Dict[date, DayCounts]:
        if not self.product_ids:
            return {}

        response = self.client.search(
            index=self.index,
            body=self.build_daily_counts_query(start_date, end_date),
        )
        aggregations = response["aggregations"]
        counts: Dict[date, DayCounts] = {}

        for bucket in aggregations["churned_by_date"]["by_date"]["buckets"]:
            day = self._bucket_date(bucket)
            counts[day] = counts.get(day, DayCounts()).add(
                churned_subscribers=int(bucket["doc_count"]),
                churned_mrr_cents=int(round(bucket["churned_mrr"]["value"] or 0)),
            )

        for bucket in aggregations["new_by_date"]["by_date"]["buckets"]:
            day = self._bucket_date(bucket)
            counts[day] = counts.get(day, DayCounts()).add(
                new_subscribers=int(bucket["doc_count"]),
            )

        # Histogram buckets are not clipped to extended_bounds.
        return {day: value for day, value in counts.items() if start_date <= day <= end_date}

    def count_active_at(self, day: date) -> int:
        if not self.product_ids:
            return 0

        response = self.client.search(index=self.index, body=self.build_active_query(day))
        active = int(response["hits"]["total"]["value"])
        logger.debug(
            "Counted active subscriptions",
            account_id=self.account_id,
            day=day.isoformat(),
            active=active,
        )
        return active
