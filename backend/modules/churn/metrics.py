from dataclasses import dataclass
from datetime import date, timedelta
from typing import List
from core.config import CHURN_WINDOW_DAYS
from core.logger import Logger
from .models import AggregationMode, DailySeries, MetricPoint, MetricsResult, MetricsTotals
from .utils import churn_rate_percent, days_between, month_end, month_start, sum_for_range

logger = Logger(__name__)


@dataclass(frozen=True)
class RangeTotals:
    churn_rate_percent: float
    churned_subscribers: int
    churned_revenue_cents: int


class MetricsEngine:
    """
    Churn metrics over a DailySeries.

    Daily points use a trailing window of `window_days` days ending on the
    point's date. Monthly points and range totals use period-to-date figures
    based on the active count just before the period starts.
    """

    def __init__(self, window_days: int = CHURN_WINDOW_DAYS):
        self.window_days = window_days

    def active_at_start_of(self, series: DailySeries, day: date) -> int:
        prev_day = day - timedelta(days=1)
        if prev_day >= series.since:
            return series.active_by_day.get(prev_day, 0)
        return series.base_active_at_since

    def window_start(self, day: date) -> date:
        return day - timedelta(days=self.window_days - 1)

    def churn_rate_for_day(self, series: DailySeries, day: date) -> float:
        start = self.window_start(day)
        base = self.active_at_start_of(series, start)
        new_in_window = sum_for_range(series.new_by_day, start, day)
        churned_in_window = sum_for_range(series.churned_by_day, start, day)
        return churn_rate_percent(churned_in_window, base, new_in_window)

    def totals_for_range(self, series: DailySeries, start: date, end: date) -> RangeTotals:
        churned = sum_for_range(series.churned_by_day, start, end)
        return RangeTotals(
            churn_rate_percent=churn_rate_percent(
                churned,
                self.active_at_start_of(series, start),
                sum_for_range(series.new_by_day, start, end),
            ),
            churned_subscribers=churned,
            churned_revenue_cents=sum_for_range(series.churned_revenue_by_day, start, end),
        )

    def last_period_rate(self, series: DailySeries, start: date, end: date) -> float:
        """Churn rate of the equally long period ending the day before `start`."""
        days = (end - start).days + 1
        last_end = start - timedelta(days=1)
        last_start = last_end - timedelta(days=days - 1)
        if last_start > last_end:
            return 0.0
        return self.totals_for_range(series, last_start, last_end).churn_rate_percent

    def daily_points(self, series: DailySeries, start: date, end: date) -> List[MetricPoint]:
        points = []
        for day in days_between(start, end):
            window_start = self.window_start(day)
            points.append(MetricPoint(
                date=day,
                churn_rate_percent=self.churn_rate_for_day(series, day),
                churned_subscribers=sum_for_range(series.churned_by_day, window_start, day),
                churned_revenue_cents=sum_for_range(series.churned_revenue_by_day, window_start, day),
            ))
        return points

    def monthly_points(self, series: DailySeries, start: date, end: date) -> List[MetricPoint]:
        points = []
        cursor = month_start(start)
        while cursor <= end:
            period_start = max(cursor, start)
            period_end = min(month_end(cursor), end)
            totals = self.totals_for_range(series, period_start, period_end)
            points.append(MetricPoint(
                date=cursor,
                churn_rate_percent=totals.churn_rate_percent,
                churned_subscribers=totals.churned_subscribers,
                churned_revenue_cents=totals.churned_revenue_cents,
            ))
            cursor = month_end(cursor) + timedelta(days=1)
        return points

    def compute(self, series: DailySeries, start: date, end: date, mode: AggregationMode) -> MetricsResult:
        mode = AggregationMode.normalize(mode)
        if mode == AggregationMode.MONTH:
            points = self.monthly_points(series, start, end)
        else:
            points = self.daily_points(series, start, end)

        totals = self.totals_for_range(series, start, end)
        logger.debug(f"Computed {len(points)} {mode.value} point(s) for {start}..{end}")
        return MetricsResult(
            start_date=start,
            end_date=end,
            aggregate_by=mode,
            totals=MetricsTotals(
                churn_rate_percent=totals.churn_rate_percent,
                last_period_churn_rate_percent=self.last_period_rate(series, start, end),
                churned_subscribers=totals.churned_subscribers,
                churned_revenue_cents=totals.churned_revenue_cents,
            ),
            points=points,
        )
