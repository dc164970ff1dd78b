from datetime import date, datetime

import pytest

from churn_analytics.services.churn.entities import DayCounts
from churn_analytics.services.churn.sources import IndexAggregationSource, RelationalScanSource
from churn_analytics.services.churn.time_normalization import ChurnPeriod

DECEMBER = ChurnPeriod(date(2023, 12, 1), date(2023, 12, 31))


def non_empty(counts):
    return {day: value for day, value in counts.items() if value != DayCounts()}


@pytest.fixture
def build_source(db, elastic, index_account):
    def _build(kind, account, product_ids):
        if kind == "relational":
            return RelationalScanSource(db, account.id, product_ids, account.timezone)
        index_account(account)
        return IndexAggregationSource(elastic, "subscriptions", account.id, product_ids, account.timezone)

    return _build


@pytest.fixture
def new_york_account(factory):
    account = factory.account(timezone="America/New_York")
    monthly = factory.product(account)
    quarterly = factory.product(account)
    retired = factory.product(account, deleted=True)

    factory.subscription(monthly, datetime(2023, 11, 20, 10))
    # Nov 30 in New York
    factory.subscription(monthly, datetime(2023, 12, 1, 3))
    factory.subscription(monthly, datetime(2023, 12, 1, 6))
    factory.subscription(quarterly, datetime(2023, 11, 10), datetime(2023, 12, 10, 2), 3000, "quarterly")
    factory.subscription(monthly, datetime(2023, 12, 5, 15), datetime(2023, 12, 5, 20))
    # Dec 31 in New York
    factory.subscription(monthly, datetime(2023, 11, 1), datetime(2024, 1, 1, 3))
    factory.subscription(monthly, datetime(2023, 11, 1), datetime(2024, 1, 1, 6))
    factory.subscription(retired, datetime(2023, 11, 1), datetime(2023, 12, 15))

    return {"account": account, "product_ids": [monthly.id, quarterly.id]}


@pytest.mark.parametrize("kind", ["relational", "index"])
class TestChurnDataSourceContract:
    def test_december_scenario(self, kind, build_source, december_scenario):
        account = december_scenario["account"]
        source = build_source(
            kind, account, [december_scenario["monthly"].id, december_scenario["yearly"].id]
        )

        raw = source.fetch(DECEMBER)

        assert raw.active_at_start == 4
        assert non_empty(raw.daily_counts) == {
            date(2023, 12, 16): DayCounts(new_subscribers=1),
            date(2023, 12, 20): DayCounts(churned_subscribers=1, churned_mrr_cents=1000),
            date(2023, 12, 25): DayCounts(churned_subscribers=1, churned_mrr_cents=1000),
        }

    def test_product_allow_list(self, kind, build_source, december_scenario):
        source = build_source(kind, december_scenario["account"], [december_scenario["yearly"].id])

        raw = source.fetch(DECEMBER)

        assert raw.active_at_start == 1
        assert non_empty(raw.daily_counts) == {
            date(2023, 12, 25): DayCounts(churned_subscribers=1, churned_mrr_cents=1000),
        }

    def test_buckets_by_merchant_day(self, kind, build_source, new_york_account):
        source = build_source(kind, new_york_account["account"], new_york_account["product_ids"])

        raw = source.fetch(DECEMBER)

        assert raw.active_at_start == 5
        assert non_empty(raw.daily_counts) == {
            date(2023, 12, 1): DayCounts(new_subscribers=1),
            date(2023, 12, 5): DayCounts(new_subscribers=1, churned_subscribers=1, churned_mrr_cents=1000),
            date(2023, 12, 9): DayCounts(churned_subscribers=1, churned_mrr_cents=1000),
            date(2023, 12, 31): DayCounts(churned_subscribers=1, churned_mrr_cents=1000),
        }

    def test_count_active_at_later_day(self, kind, build_source, new_york_account):
        source = build_source(kind, new_york_account["account"], new_york_account["product_ids"])

        # The Dec 1 arrival is active; the Dec 5 and Dec 9 churns are gone
        assert source.count_active_at(date(2023, 12, 10)) == 5

    def test_sub_range_counts(self, kind, build_source, new_york_account):
        source = build_source(kind, new_york_account["account"], new_york_account["product_ids"])

        counts = non_empty(source.fetch_daily_counts(date(2023, 12, 2), date(2023, 12, 9)))

        assert set(counts) == {date(2023, 12, 5), date(2023, 12, 9)}


def test_sources_produce_identical_inputs(build_source, new_york_account):
    account = new_york_account["account"]
    product_ids = new_york_account["product_ids"]

    relational = build_source("relational", account, product_ids).fetch(DECEMBER)
    indexed = build_source("index", account, product_ids).fetch(DECEMBER)

    assert relational.active_at_start == indexed.active_at_start
    assert non_empty(relational.daily_counts) == non_empty(indexed.daily_counts)


class TestIndexAggregationSource:
    def test_constant_number_of_searches(self, build_source, new_york_account, fake_es):
        source = build_source("index", new_york_account["account"], new_york_account["product_ids"])

        source.fetch(ChurnPeriod(date(2023, 10, 3), date(2023, 12, 31)))

        assert len(fake_es.searches) == 2

    def test_histograms_use_merchant_timezone(self, build_source, new_york_account, fake_es):
        source = build_source("index", new_york_account["account"], new_york_account["product_ids"])

        source.fetch_daily_counts(date(2023, 12, 1), date(2023, 12, 31))

        aggs = fake_es.searches[0]["aggs"]
        histogram = aggs["churned_by_date"]["aggs"]["by_date"]["date_histogram"]
        assert histogram["time_zone"] == "America/New_York"
        assert histogram["extended_bounds"] == {"min": "2023-12-01", "max": "2023-12-31"}
        assert aggs["churned_by_date"]["filter"]["range"]["deactivated_at"] == {
            "gte": "2023-12-01T05:00:00.000000Z",
            "lt": "2024-01-01T05:00:00.000000Z",
        }

    def test_zero_filled_buckets_for_every_day(self, build_source, december_scenario):
        source = build_source(
            "index", december_scenario["account"], [december_scenario["monthly"].id]
        )

        counts = source.fetch_daily_counts(date(2023, 12, 1), date(2023, 12, 31))

        assert sorted(counts) == DECEMBER.days()

    def test_no_products_skips_searches(self, elastic, fake_es, december_scenario):
        source = IndexAggregationSource(elastic, "subscriptions", december_scenario["account"].id, [], "UTC")

        assert source.fetch_daily_counts(date(2023, 12, 1), date(2023, 12, 31)) == {}
        assert source.count_active_at(date(2023, 12, 1)) == 0
        assert fake_es.searches == []

    def test_counts_come_from_document_counts(self, build_source, december_scenario, fake_es):
        source = build_source("index", december_scenario["account"], [december_scenario["monthly"].id])

        source.fetch(DECEMBER)

        daily_query, active_query = fake_es.searches
        assert "cardinality" not in repr(daily_query)
        assert "aggs" not in active_query
        assert active_query["track_total_hits"] is True


class CannedSearchClient:
    """Returns fixed responses sized like a busy account."""

    def __init__(self, active_total):
        self.active_total = active_total
        self.bodies = []

    def search(self, index, body):
        self.bodies.append(body)
        if "aggs" not in body:
            return {"hits": {"total": {"value": self.active_total, "relation": "eq"}, "hits": []}}
        return {
            "hits": {"total": {"value": 12000, "relation": "eq"}, "hits": []},
            "aggregations": {
                "churned_by_date": {
                    "doc_count": 4100,
                    "by_date": {"buckets": [
                        {"key_as_string": "2023-12-01", "doc_count": 4100, "churned_mrr": {"value": 4100000.0}},
                    ]},
                },
                "new_by_date": {
                    "doc_count": 7900,
                    "by_date": {"buckets": [
                        {"key_as_string": "2023-12-01", "doc_count": 7900},
                    ]},
                },
            },
        }


def test_large_counts_are_exact():
    client = CannedSearchClient(active_total=45000)
    source = IndexAggregationSource(client, "subscriptions", 1, [1], "UTC")

    raw = source.fetch(ChurnPeriod(date(2023, 12, 1), date(2023, 12, 1)))

    assert raw.active_at_start == 45000
    assert raw.daily_counts[date(2023, 12, 1)] == DayCounts(
        new_subscribers=7900,
        churned_subscribers=4100,
        churned_mrr_cents=4100000,
    )


def test_active_count_beyond_default_total_limit(build_source, factory, fake_es):
    account = factory.account()
    product = factory.product(account)
    source = build_source("index", account, [product.id])
    fake_es.indexes["subscriptions"].update({
        f"bulk-{n}": {
            "subscription_id": 100000 + n,
            "account_id": account.id,
            "product_id": product.id,
            "created_at": "2023-11-01T00:00:00.000000Z",
            "monthly_recurring_revenue": 1000,
        }
        for n in range(10001)
    })

    assert source.count_active_at(date(2023, 12, 1)) == 10001
