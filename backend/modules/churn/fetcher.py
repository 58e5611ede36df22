from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional
from pymongo.errors import PyMongoError
from core.base_utils import BaseUtils
from core.logger import Logger
from .exceptions import DataFetchFailed
from .models import RawSubscriptionEvent
from .utils import GUARD_BAND_DAYS, monthly_recurring_revenue_cents

logger = Logger(__name__)

SUBSCRIPTIONS_COLLECTION = "subscriptions"
PRODUCTS_COLLECTION = "products"


class RawEventFetcher(ABC):
    """
    Source of raw subscription events for one tenant.

    `fetch` must return at least every subscription that was active at
    `since`, created in [since, to], or deactivated in [since, to].
    Returning more is harmless; the series builder applies the exact rules.
    """

    @abstractmethod
    async def fetch(self, tenant_id: str, product_filter: List[str], since: date, to: date) -> List[RawSubscriptionEvent]:
        pass


class MongoEventFetcher(RawEventFetcher, BaseUtils):
    """Reads subscription documents from the `subscriptions` collection."""

    async def resolve_product_ids(self, tenant_id: str, product_filter: List[str]) -> Optional[List[str]]:
        """Map external product ids to internal ones; None when nothing matches (no filter)."""
        if not product_filter:
            return None
        products = await self.mongodb.find_many(
            PRODUCTS_COLLECTION,
            {"tenant_id": tenant_id, "external_id": {"$in": list(product_filter)}},
            {"_id": 1},
        )
        product_ids = [str(p["_id"]) for p in products]
        if not product_ids:
            logger.debug(f"Product filter {product_filter} matched nothing for tenant={tenant_id}, using all products")
            return None
        return product_ids

    def build_query(self, tenant_id: str, product_ids: Optional[List[str]], since: date, to: date) -> dict:
        earliest = since - timedelta(days=GUARD_BAND_DAYS)
        query = self.fix_dates_for_mongo({
            "tenant_id": tenant_id,
            "created_at": {"$lt": to + timedelta(days=1)},
            "$or": [
                {"deactivated_at": None},
                {"deactivated_at": {"$gte": earliest}},
                {"created_at": {"$gte": since}},
            ],
        })
        if product_ids:
            query["product_id"] = {"$in": product_ids}
        return query

    def to_event(self, doc: dict) -> RawSubscriptionEvent:
        price = doc.get("price") or {}
        price_cents = doc.get("price_cents", price.get("price_cents"))
        recurrence = doc.get("recurrence", price.get("recurrence"))
        return RawSubscriptionEvent(
            created_at=self.to_date(doc["created_at"]),
            deactivated_at=self.to_date(doc.get("deactivated_at")),
            monthly_recurring_revenue_cents=monthly_recurring_revenue_cents(price_cents, recurrence),
        )

    async def fetch(self, tenant_id: str, product_filter: List[str], since: date, to: date) -> List[RawSubscriptionEvent]:
        if self.mongodb is None:
            raise DataFetchFailed("MongoDB client is not initialized")
        try:
            product_ids = await self.resolve_product_ids(tenant_id, product_filter)
            docs = await self.mongodb.find_many(
                SUBSCRIPTIONS_COLLECTION,
                self.build_query(tenant_id, product_ids, since, to),
                {"created_at": 1, "deactivated_at": 1, "price_cents": 1, "recurrence": 1, "price": 1},
            )
        except PyMongoError as e:
            logger.error(f"Failed to fetch subscriptions for tenant={tenant_id}: {e}")
            raise DataFetchFailed(str(e)) from e
        logger.debug(f"Fetched {len(docs)} subscription(s) for tenant={tenant_id} span={since}..{to}")
        return [self.to_event(doc) for doc in docs]


class InMemoryEventFetcher(RawEventFetcher):
    """Serves events from memory; used for local runs and tests."""

    def __init__(self, events: Optional[Dict[str, Dict[str, Iterable[RawSubscriptionEvent]]]] = None):
        # tenant_id -> product_id -> events
        self.events = defaultdict(dict)
        self.calls = 0
        for tenant_id, by_product in (events or {}).items():
            for product_id, product_events in by_product.items():
                self.add(tenant_id, product_id, *product_events)

    def add(self, tenant_id: str, product_id: str, *events: RawSubscriptionEvent):
        self.events[tenant_id].setdefault(product_id, []).extend(events)

    async def fetch(self, tenant_id: str, product_filter: List[str], since: date, to: date) -> List[RawSubscriptionEvent]:
        self.calls += 1
        by_product = self.events.get(tenant_id, {})
        selected = [p for p in product_filter if p in by_product]
        if not selected:
            selected = list(by_product)
        return [event for product_id in selected for event in by_product[product_id]]
