from collections import defaultdict
from datetime import date, timedelta
from typing import Iterable, List
from core.logger import Logger
from .fetcher import RawEventFetcher
from .models import DailySeries, RawSubscriptionEvent
from .utils import GUARD_BAND_DAYS, days_between

logger = Logger(__name__)


class SeriesBuilder:
    """Folds raw subscription events into a DailySeries."""

    def __init__(self, fetcher: RawEventFetcher):
        self.fetcher = fetcher

    async def build(self, tenant_id: str, product_filter: List[str], since: date, to: date) -> DailySeries:
        events = await self.fetcher.fetch(tenant_id, product_filter, since, to)
        series = self.fold(events, since, to)
        logger.info(
            f"Built churn series tenant={tenant_id} span={since}..{to} "
            f"events={len(events)} base_active={series.base_active_at_since}"
        )
        return series

    @staticmethod
    def fold(events: Iterable[RawSubscriptionEvent], since: date, to: date) -> DailySeries:
        earliest_date = since - timedelta(days=GUARD_BAND_DAYS)
        base_active = 0
        new_by_day = defaultdict(int)
        churned_by_day = defaultdict(int)
        churned_revenue_by_day = defaultdict(int)

        for event in events:
            created, deactivated = event.created_at, event.deactivated_at

            if created < since and (deactivated is None or deactivated >= since):
                base_active += 1

            if since <= created <= to:
                new_by_day[created] += 1

            # A subscription created after `to` cannot churn inside the span,
            # whatever its (possibly malformed) deactivation date says.
            if (
                deactivated is not None
                and created <= to
                and deactivated >= earliest_date
                and since <= deactivated <= to
            ):
                churned_by_day[deactivated] += 1
                churned_revenue_by_day[deactivated] += event.monthly_recurring_revenue_cents

        active_by_day = {}
        running = base_active
        for day in days_between(since, to):
            running += new_by_day.get(day, 0) - churned_by_day.get(day, 0)
            active_by_day[day] = running

        return DailySeries(
            since=since,
            to=to,
            base_active_at_since=base_active,
            new_by_day={d: c for d, c in new_by_day.items() if c},
            churned_by_day={d: c for d, c in churned_by_day.items() if c},
            churned_revenue_by_day={d: c for d, c in churned_revenue_by_day.items() if c},
            active_by_day=active_by_day,
        )
