"""
Shared fixtures: in-memory SQLite session, model factories, and
in-memory doubles for Redis and Elasticsearch.
"""

from collections import defaultdict
from datetime import date, datetime, timedelta
from itertools import count

import pytest
import pytz
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from churn_analytics.config.elasticsearch import ElasticClient
from churn_analytics.models import Account, Base, LargeAccount, Product, Subscription
from churn_analytics.search.subscription_index import SubscriptionIndexer

INSTANT_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"
DEFAULT_TRACK_TOTAL_HITS = 10000


# ==================== DATABASE ====================


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine, autoflush=False)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


class Factory:
    """Creates persisted accounts, products and subscriptions."""

    def __init__(self, session):
        self.session = session
        self._permalinks = count(1)

    def account(self, timezone="UTC", large=False, name="Merchant"):
        account = Account(name=name, timezone=timezone)
        self.session.add(account)
        self.session.flush()
        if large:
            self.session.add(LargeAccount(account_id=account.id, subscription_count=0))
        self.session.commit()
        return account

    def product(self, account, recurring=True, deleted=False, name=None):
        product = Product(
            account_id=account.id,
            name=name or f"Product {next(self._permalinks)}",
            unique_permalink=f"perm{next(self._permalinks)}",
            is_recurring_billing=recurring,
            deleted_at=datetime(2023, 1, 1) if deleted else None,
        )
        self.session.add(product)
        self.session.commit()
        return product

    def subscription(self, product, created_at, deactivated_at=None, price_cents=1000, unit="monthly"):
        subscription = Subscription(
            product_id=product.id,
            created_at=created_at,
            deactivated_at=deactivated_at,
            recurring_price_cents=price_cents,
            recurrence_unit=unit,
        )
        self.session.add(subscription)
        self.session.commit()
        return subscription


@pytest.fixture
def factory(db):
    return Factory(db)


@pytest.fixture
def december_scenario(factory):
    """
    Period 2023-12-01..2023-12-31 in UTC: 2 steady subscribers, 1 new
    monthly subscriber and 2 churned (1 monthly, 1 yearly).
    """
    account = factory.account()
    monthly = factory.product(account, name="Monthly")
    yearly = factory.product(account, name="Yearly")

    factory.subscription(monthly, datetime(2023, 11, 1, 12))
    factory.subscription(monthly, datetime(2023, 11, 1, 12))
    factory.subscription(monthly, datetime(2023, 12, 16, 12))
    factory.subscription(monthly, datetime(2023, 11, 1, 12), deactivated_at=datetime(2023, 12, 20, 12))
    factory.subscription(
        yearly,
        datetime(2023, 11, 1, 12),
        deactivated_at=datetime(2023, 12, 25, 12),
        price_cents=12000,
        unit="yearly",
    )

    return {"account": account, "monthly": monthly, "yearly": yearly}


# ==================== REDIS ====================


class InMemoryRedis:
    """Minimal Redis double with decode_responses semantics."""

    def __init__(self):
        self.data = {}
        self.calls = defaultdict(int)

    def get(self, key):
        self.calls["get"] += 1
        return self.data.get(key)

    def set(self, key, value, ex=None):
        self.calls["set"] += 1
        self.data[key] = str(value)
        return True

    def mget(self, keys):
        self.calls["mget"] += 1
        return [self.data.get(key) for key in keys]

    def incr(self, key):
        self.calls["incr"] += 1
        value = int(self.data.get(key, 0)) + 1
        self.data[key] = str(value)
        return value


@pytest.fixture
def redis_client():
    return InMemoryRedis()


# ==================== ELASTICSEARCH ====================


def _parse_instant(value):
    return datetime.strptime(value, INSTANT_FORMAT)


def _compare(actual, bounds):
    if actual is None:
        return False
    parse = _parse_instant if isinstance(actual, str) else (lambda v: v)
    value = parse(actual)
    for operator, bound in bounds.items():
        if operator not in ("gte", "gt", "lte", "lt"):
            continue
        bound = parse(bound)
        if operator == "gte" and not value >= bound:
            return False
        if operator == "gt" and not value > bound:
            return False
        if operator == "lte" and not value <= bound:
            return False
        if operator == "lt" and not value < bound:
            return False
    return True


def _as_list(clauses):
    if clauses is None:
        return []
    return clauses if isinstance(clauses, list) else [clauses]


def matches(document, clause):
    (kind, options), = clause.items()
    if kind == "match_all":
        return True
    if kind == "term":
        (field, value), = options.items()
        return document.get(field) == value
    if kind == "terms":
        (field, values), = options.items()
        return document.get(field) in values
    if kind == "exists":
        return document.get(options["field"]) is not None
    if kind == "range":
        (field, bounds), = options.items()
        return _compare(document.get(field), bounds)
    if kind == "bool":
        if not all(matches(document, c) for c in _as_list(options.get("filter")) + _as_list(options.get("must"))):
            return False
        if any(matches(document, c) for c in _as_list(options.get("must_not"))):
            return False
        should = _as_list(options.get("should"))
        if should:
            minimum = options.get("minimum_should_match", 1)
            return sum(1 for c in should if matches(document, c)) >= minimum
        return True
    raise AssertionError(f"Unsupported query clause: {kind}")


def _histogram_buckets(documents, options, sub_aggs):
    tz = pytz.timezone(options.get("time_zone", "UTC"))
    by_day = defaultdict(list)
    for document in documents:
        value = document.get(options["field"])
        if value is None:
            continue
        day = pytz.utc.localize(_parse_instant(value)).astimezone(tz).date()
        by_day[day].append(document)

    days = set(by_day)
    bounds = options.get("extended_bounds")
    if bounds:
        current = date.fromisoformat(bounds["min"])
        last = date.fromisoformat(bounds["max"])
        while current <= last:
            days.add(current)
            current += timedelta(days=1)

    buckets = []
    for day in sorted(days):
        bucket_docs = by_day.get(day, [])
        if not bucket_docs and options.get("min_doc_count", 1) > 0:
            continue
        bucket = {"key_as_string": day.isoformat(), "doc_count": len(bucket_docs)}
        bucket.update(aggregate(bucket_docs, sub_aggs))
        buckets.append(bucket)
    return buckets


def aggregate(documents, aggs):
    result = {}
    for name, options in (aggs or {}).items():
        sub_aggs = options.get("aggs")
        if "filter" in options:
            selected = [d for d in documents if matches(d, options["filter"])]
            result[name] = {"doc_count": len(selected), **aggregate(selected, sub_aggs)}
        elif "date_histogram" in options:
            result[name] = {"buckets": _histogram_buckets(documents, options["date_histogram"], sub_aggs)}
        elif "sum" in options:
            field = options["sum"]["field"]
            result[name] = {"value": float(sum(d.get(field) or 0 for d in documents))}
        else:
            raise AssertionError(f"Unsupported aggregation: {options}")
    return result


class FakeIndices:
    def __init__(self, owner):
        self.owner = owner

    def exists(self, index):
        return index in self.owner.indexes

    def create(self, index, body=None):
        self.owner.indexes.setdefault(index, {})
        self.owner.mappings[index] = body

    def refresh(self, index):
        return {"_shards": {"failed": 0}}


class FakeElasticsearch:
    """Evaluates the query bodies the churn engine sends over stored documents."""

    def __init__(self):
        self.indexes = {}
        self.mappings = {}
        self.searches = []
        self.indices = FakeIndices(self)

    def index(self, index, document, id=None):
        self.indexes[index][id] = dict(document)
        return {"_id": id, "result": "created"}

    def delete(self, index, id):
        self.indexes[index].pop(id, None)
        return {"_id": id, "result": "deleted"}

    @staticmethod
    def _total(documents, track_total_hits):
        if track_total_hits is True:
            return {"value": len(documents), "relation": "eq"}
        limit = track_total_hits if isinstance(track_total_hits, int) else DEFAULT_TRACK_TOTAL_HITS
        if len(documents) > limit:
            return {"value": limit, "relation": "gte"}
        return {"value": len(documents), "relation": "eq"}

    def search(self, index, body):
        self.searches.append(body)
        documents = [d for d in self.indexes[index].values() if matches(d, body.get("query", {"match_all": {}}))]
        return {
            "hits": {"total": self._total(documents, body.get("track_total_hits")), "hits": []},
            "aggregations": aggregate(documents, body.get("aggs")),
        }


@pytest.fixture
def fake_es():
    return FakeElasticsearch()


@pytest.fixture
def elastic(fake_es):
    return ElasticClient(client=fake_es)


@pytest.fixture
def index_account(db, elastic):
    """Index an account's subscriptions into the fake cluster."""

    def _index(account):
        return SubscriptionIndexer(elastic, db, index="subscriptions").reindex_account(account.id)

    return _index
