import time
from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Tuple
from pydantic import ValidationError
from pymongo.errors import PyMongoError
from core.base_utils import BaseUtils
from core.config import CHURN_CACHE_TTL_SECONDS, CHURN_SERIES_VERSION
from core.logger import Logger
from .exceptions import CacheUnavailable
from .models import DailySeries

logger = Logger(__name__)

CACHE_COLLECTION = "churn_series_cache"
ALL_PRODUCTS = "all"


def utcnow() -> datetime:
    """Naive UTC, matching what Motor returns for stored datetimes."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class CacheStore(ABC):
    """Key/value store with per-entry TTL. Failures raise CacheUnavailable."""

    @abstractmethod
    async def get(self, key: str) -> Optional[dict]:
        pass

    @abstractmethod
    async def set(self, key: str, value: dict, ttl_seconds: int):
        pass


class InMemoryCacheStore(CacheStore):
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._entries: Dict[str, Tuple[float, dict]] = {}

    async def get(self, key: str) -> Optional[dict]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self.clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: dict, ttl_seconds: int):
        now = self.clock()
        # every write sweeps expired entries
        for expired in [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]:
            del self._entries[expired]
        self._entries[key] = (now + ttl_seconds, value)

    def __len__(self):
        return len(self._entries)


class MongoCacheStore(CacheStore, BaseUtils):
    """
    Entries live in `churn_series_cache` as {_id: key, value, expires_at}.
    A TTL index removes them eventually; reads also check `expires_at`
    because the TTL monitor only sweeps about once a minute.
    """
    _index_ready = False

    async def _collection(self):
        if self.mongodb is None:
            raise CacheUnavailable("MongoDB client is not initialized")
        if not self._index_ready:
            await self.mongodb.ensure_ttl_index(CACHE_COLLECTION, "expires_at")
            self._index_ready = True
        return self.mongodb.get_collection(CACHE_COLLECTION)

    async def get(self, key: str) -> Optional[dict]:
        try:
            collection = await self._collection()
            doc = await collection.find_one({"_id": key})
        except PyMongoError as e:
            raise CacheUnavailable(str(e)) from e
        if not doc or doc.get("expires_at") is None or doc["expires_at"] <= utcnow():
            return None
        return doc.get("value")

    async def set(self, key: str, value: dict, ttl_seconds: int):
        try:
            collection = await self._collection()
            await collection.update_one(
                {"_id": key},
                {"$set": {"value": value, "expires_at": utcnow() + timedelta(seconds=ttl_seconds)}},
                upsert=True,
            )
        except PyMongoError as e:
            raise CacheUnavailable(str(e)) from e


class SeriesCache:
    """Get-or-build memoization of DailySeries over a CacheStore."""

    def __init__(self, store: CacheStore, ttl_seconds: int = CHURN_CACHE_TTL_SECONDS, version: str = CHURN_SERIES_VERSION):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.version = version

    def key_for(self, tenant_id: str, product_filter: List[str], since: date, to: date) -> str:
        product_key = ",".join(sorted(set(product_filter))) if product_filter else ALL_PRODUCTS
        return f"churn_daily_series:{tenant_id}:{self.version}:{since.isoformat()}:{to.isoformat()}:{product_key}"

    async def get_or_build(self, key: str, builder_fn: Callable[[], Awaitable[DailySeries]], ttl_seconds: Optional[int] = None) -> DailySeries:
        ttl_seconds = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        try:
            cached = await self.store.get(key)
        except CacheUnavailable as e:
            logger.warning(f"Series cache unavailable on read ({e}), computing {key} uncached")
            return await builder_fn()

        if cached is not None:
            try:
                series = DailySeries.model_validate(cached)
                logger.debug(f"Series cache hit: {key}")
                return series
            except ValidationError as e:
                logger.warning(f"Discarding unreadable cache entry {key}: {e}")

        logger.info(f"Series cache miss: {key}")
        series = await builder_fn()
        try:
            await self.store.set(key, series.model_dump(mode="json"), ttl_seconds)
        except CacheUnavailable as e:
            logger.warning(f"Series cache unavailable on write ({e}), result for {key} not stored")
        return series
