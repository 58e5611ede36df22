from datetime import date, timedelta
from typing import Optional, Tuple, Union
from pydantic import ValidationError
from core.base_service import BaseService
from core.config import CHURN_CACHE_BACKEND, CHURN_WINDOW_DAYS
from core.logger import Logger
from .cache import CacheStore, InMemoryCacheStore, MongoCacheStore, SeriesCache
from .exceptions import ValidationFailed
from .fetcher import MongoEventFetcher, RawEventFetcher
from .metrics import MetricsEngine
from .models import ChurnRequest, DailySeries, MetricsResult
from .presenter import ChurnPresenter
from .series import SeriesBuilder
from .validator import DateRangeValidator

logger = Logger(__name__)


def default_cache_store() -> CacheStore:
    if CHURN_CACHE_BACKEND == "memory":
        return InMemoryCacheStore()
    return MongoCacheStore()


class ChurnService(BaseService):
    """
    Entry point of the churn engine: validate, get-or-build the daily
    series, compute metrics, shape the response.
    """
    name = "churn"

    def __init__(
        self,
        fetcher: Optional[RawEventFetcher] = None,
        cache: Optional[SeriesCache] = None,
        engine: Optional[MetricsEngine] = None,
        presenter: Optional[ChurnPresenter] = None,
        window_days: int = CHURN_WINDOW_DAYS,
    ):
        super().__init__()
        self.window_days = window_days
        self.builder = SeriesBuilder(fetcher or MongoEventFetcher())
        self.cache = cache or SeriesCache(default_cache_store())
        self.engine = engine or MetricsEngine(window_days)
        self.presenter = presenter or ChurnPresenter()

    def series_span(self, start: date, end: date) -> Tuple[date, date]:
        """
        Left edge covers the trailing window of the first requested day and
        of the first day of the previous period; right edge is `end`.
        """
        days = (end - start).days + 1
        last_start = start - timedelta(days=days)
        since = last_start - timedelta(days=self.window_days - 1)
        return since, end

    @staticmethod
    def describe_error(error: dict) -> str:
        field = ".".join(str(part) for part in error.get("loc", ())) or "request"
        if field in ("start_date", "end_date"):
            return f"{field} is not a valid date"
        return f"{field} is invalid"

    async def get_series(self, request: ChurnRequest) -> DailySeries:
        since, to = self.series_span(request.start_date, request.end_date)
        key = self.cache.key_for(request.tenant_id, request.product_filter, since, to)
        return await self.cache.get_or_build(
            key,
            lambda: self.builder.build(request.tenant_id, request.product_filter, since, to),
        )

    async def compute_result(self, request: Union[ChurnRequest, dict]) -> MetricsResult:
        if isinstance(request, dict):
            try:
                request = ChurnRequest(**request)
            except ValidationError as e:
                raise ValidationFailed([self.describe_error(err) for err in e.errors()]) from e
        DateRangeValidator(request.start_date, request.end_date, self.window_days, self.window_days).validate()

        series = await self.get_series(request)
        return self.engine.compute(series, request.start_date, request.end_date, request.aggregate_by)

    async def compute(self, request: Union[ChurnRequest, dict]) -> dict:
        """
        Compute the churn response payload.
        Raises ValidationFailed (use `.to_payload()`) or DataFetchFailed.
        """
        result = await self.compute_result(request)
        return self.presenter.serialize(result)
