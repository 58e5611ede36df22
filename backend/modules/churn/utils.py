from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Dict, Iterator, Optional
from core.base_utils import BaseUtils
from core.logger import Logger

logger = Logger(__name__)

TWO_PLACES = Decimal("0.01")

# Look this far behind a series' left edge for deactivations of long-lived subscriptions
GUARD_BAND_DAYS = 30


class Recurrence(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    BIANNUALLY = "biannually"
    YEARLY = "yearly"
    EVERY_TWO_YEARS = "every_two_years"


MONTHS_PER_PERIOD = {
    Recurrence.MONTHLY: 1,
    Recurrence.QUARTERLY: 3,
    Recurrence.BIANNUALLY: 6,
    Recurrence.YEARLY: 12,
    Recurrence.EVERY_TWO_YEARS: 24,
}


def monthly_recurring_revenue_cents(price_cents: Optional[int], recurrence: Optional[str]) -> int:
    """
    Normalize a per-period price to its monthly equivalent, rounded half-up to
    the nearest cent. A missing price or unknown recurrence yields 0.
    """
    if price_cents is None or recurrence is None:
        return 0
    try:
        months = MONTHS_PER_PERIOD[Recurrence(str(recurrence).lower())]
    except ValueError:
        logger.debug(f"Unknown recurrence '{recurrence}', counting as 0 MRR")
        return 0
    monthly = (Decimal(int(price_cents)) / months).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return max(int(monthly), 0)


def churn_rate_percent(churned: int, base: int, new: int) -> float:
    """Churned share of (base + new) as a percentage, half-up to 2 places; 0.0 when empty."""
    denominator = base + new
    if denominator <= 0:
        return 0.0
    rate = (Decimal(churned) * 100 / Decimal(denominator)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    return float(rate)


def days_between(start: date, end: date) -> Iterator[date]:
    """Inclusive day iterator; empty when end < start."""
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)


def sum_for_range(by_day: Dict[date, int], start: date, end: date) -> int:
    # absent key means zero
    return sum(by_day.get(day, 0) for day in days_between(start, end))


def month_start(day: date) -> date:
    return day.replace(day=1)


def month_end(day: date) -> date:
    next_month = (day.replace(day=28) + timedelta(days=4)).replace(day=1)
    return next_month - timedelta(days=1)


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """Parse YYYY-MM-DD; blank input gives None, garbage raises ValueError."""
    if value is None or not str(value).strip():
        return None
    return date.fromisoformat(str(value).strip()[:10])


class ChurnUtils(BaseUtils):

    async def get_subscription_products(self, tenant_id: str):
        """Alive recurring-billing products for the tenant."""
        products_collection = self.mongodb.get_collection("products")
        cursor = products_collection.find({
            "tenant_id": tenant_id,
            "is_recurring_billing": True,
            "alive": {"$ne": False},
        })
        products = []
        async for product in cursor:
            products.append(self.sanitize_mongo_doc(product))
        return products
