"""
Shared fixtures and fakes for the churn analytics tests.

Nothing here talks to MongoDB: collaborators are in-memory and the
`FakeMongo` below understands just enough of the query language
($or, $in, $ne, $exists, $lt, $gte, equality) for the access checks
and the subscription queries.
"""
from datetime import timedelta

import pytest

from modules.churn.cache import InMemoryCacheStore, SeriesCache
from modules.churn.fetcher import InMemoryEventFetcher
from modules.churn.models import DailySeries, RawSubscriptionEvent
from modules.churn.service import ChurnService


def ev(created_at, deactivated_at=None, mrr=0):
    return RawSubscriptionEvent(
        created_at=created_at,
        deactivated_at=deactivated_at,
        monthly_recurring_revenue_cents=mrr,
    )


def make_series(since, to, base, new=None, churned=None, revenue=None):
    """DailySeries with active_by_day integrated from the sparse maps."""
    new, churned, revenue = new or {}, churned or {}, revenue or {}
    active = {}
    running = base
    day = since
    while day <= to:
        running += new.get(day, 0) - churned.get(day, 0)
        active[day] = running
        day += timedelta(days=1)
    return DailySeries(
        since=since,
        to=to,
        base_active_at_since=base,
        new_by_day=new,
        churned_by_day=churned,
        churned_revenue_by_day=revenue,
        active_by_day=active,
    )


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def _matches(doc, query):
    for key, expected in query.items():
        if key == "$or":
            if not any(_matches(doc, sub) for sub in expected):
                return False
            continue
        actual = doc.get(key)
        if isinstance(expected, dict):
            if "$exists" in expected and (key in doc) != expected["$exists"]:
                return False
            if "$ne" in expected and actual == expected["$ne"]:
                return False
            if "$in" in expected and actual not in expected["$in"]:
                return False
            if "$lt" in expected and (actual is None or not actual < expected["$lt"]):
                return False
            if "$gte" in expected and (actual is None or not actual >= expected["$gte"]):
                return False
        elif actual != expected:
            return False
    return True


class FakeCursor:
    def __init__(self, docs):
        self.docs = list(docs)

    def __aiter__(self):
        self._iter = iter(self.docs)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


class FakeCollection:
    def __init__(self, docs=None):
        self.docs = list(docs or [])
        self.indexes = []

    async def find_one(self, query):
        return next((d for d in self.docs if _matches(d, query)), None)

    def find(self, query, projection=None):
        return FakeCursor(d for d in self.docs if _matches(d, query))

    async def update_one(self, query, update, upsert=False):
        doc = await self.find_one(query)
        if doc is None:
            if not upsert:
                return
            doc = dict(query)
            self.docs.append(doc)
        doc.update(update.get("$set", {}))

    async def create_index(self, keys, **kwargs):
        self.indexes.append((keys, kwargs))


class FakeMongo:
    def __init__(self, collections=None):
        self.collections = {name: FakeCollection(docs) for name, docs in (collections or {}).items()}

    def get_collection(self, name):
        return self.collections.setdefault(name, FakeCollection())

    async def find_many(self, collection_name, query, projection=None):
        return [d for d in self.get_collection(collection_name).docs if _matches(d, query)]

    async def ensure_ttl_index(self, collection_name, field):
        await self.get_collection(collection_name).create_index(field, expireAfterSeconds=0)


@pytest.fixture()
def fetcher() -> InMemoryEventFetcher:
    return InMemoryEventFetcher()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def series_cache(clock) -> SeriesCache:
    return SeriesCache(InMemoryCacheStore(clock=clock), ttl_seconds=24 * 60 * 60, version="v1")


@pytest.fixture()
def service(fetcher, series_cache) -> ChurnService:
    return ChurnService(fetcher=fetcher, cache=series_cache, window_days=31)

