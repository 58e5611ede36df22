import asyncio
from datetime import date

import pytest

from conftest import ev
from modules.churn.exceptions import DataFetchFailed, ValidationFailed
from modules.churn.fetcher import RawEventFetcher
from modules.churn.models import ChurnRequest
from modules.churn.service import ChurnService

TENANT = "tenant-1"


@pytest.fixture()
def populated(fetcher):
    """100 long-standing subscribers, 5 churn on Mar 10 (yearly 1200c), 10 join on Mar 15."""
    fetcher.add(TENANT, "pro", *[ev(date(2023, 1, 1)) for _ in range(95)])
    fetcher.add(TENANT, "pro", *[ev(date(2023, 1, 1), date(2024, 3, 10), mrr=100) for _ in range(5)])
    fetcher.add(TENANT, "basic", *[ev(date(2024, 3, 15)) for _ in range(10)])
    return fetcher


def request(**overrides):
    payload = {
        "tenant_id": TENANT,
        "start_date": date(2024, 3, 31),
        "end_date": date(2024, 3, 31),
        "aggregate_by": "day",
    }
    payload.update(overrides)
    return payload


class TestChurnRequest:
    def test_aggregate_by_is_normalized(self):
        assert ChurnRequest(tenant_id="t", aggregate_by="MONTH").aggregate_by.value == "month"
        assert ChurnRequest(tenant_id="t", aggregate_by="weekly").aggregate_by.value == "day"
        assert ChurnRequest(tenant_id="t", aggregate_by=None).aggregate_by.value == "day"

    def test_product_filter_is_normalized(self):
        assert ChurnRequest(tenant_id="t").product_filter == []
        assert ChurnRequest(tenant_id="t", product_filter=None).product_filter == []
        assert ChurnRequest(tenant_id="t", product_filter=["b", "a", "b", ""]).product_filter == ["a", "b"]
        assert ChurnRequest(tenant_id="t", product_filter="a").product_filter == ["a"]
        assert ChurnRequest(tenant_id="t", product_filter={"x": 1}).product_filter == []


class TestSeriesSpan:
    def test_covers_window_and_previous_period(self, service):
        since, to = service.series_span(date(2024, 3, 10), date(2024, 3, 16))
        assert since == date(2024, 2, 2)
        assert to == date(2024, 3, 16)


class TestCompute:
    def test_trailing_window_scenario(self, service, populated):
        response = asyncio.run(service.compute(request()))
        assert response["start_date"] == "2024-03-31"
        assert response["end_date"] == "2024-03-31"
        assert response["aggregate_by"] == "day"
        assert response["daily_data"] == [{
            "date": "2024-03-31",
            "customer_churn_rate": 4.55,
            "churned_subscribers": 5,
            "churned_mrr_cents": 500,
        }]
        # the single day itself had no churn
        assert response["metrics"] == {
            "customer_churn_rate": 0.0,
            "last_period_churn_rate": 0.0,
            "churned_subscribers": 0,
            "churned_mrr_cents": 0,
        }

    def test_month_totals(self, service, populated):
        response = asyncio.run(service.compute(request(start_date=date(2024, 3, 1), aggregate_by="month")))
        assert response["aggregate_by"] == "month"
        assert response["metrics"]["customer_churn_rate"] == 4.55
        assert response["metrics"]["churned_subscribers"] == 5
        assert response["metrics"]["churned_mrr_cents"] == 500
        assert [p["date"] for p in response["daily_data"]] == ["2024-03-01"]

    def test_daily_points_cover_range(self, service, populated):
        response = asyncio.run(service.compute(request(start_date=date(2024, 3, 1))))
        assert len(response["daily_data"]) == 31

    def test_unknown_aggregate_by_is_daily(self, service, populated):
        response = asyncio.run(service.compute(request(aggregate_by="fortnight")))
        assert response["aggregate_by"] == "day"

    def test_idempotent_with_cache(self, service, populated):
        first = asyncio.run(service.compute(request()))
        second = asyncio.run(service.compute(request()))
        assert first == second
        assert populated.calls == 1

    def test_product_filter(self, service, populated):
        response = asyncio.run(service.compute(request(start_date=date(2024, 3, 1), product_filter=["pro"])))
        # 100 base, no new subscribers on "pro": 5/100
        assert response["metrics"]["customer_churn_rate"] == 5.0

    def test_unknown_product_filter_means_all(self, service, populated):
        response = asyncio.run(service.compute(request(start_date=date(2024, 3, 1), product_filter=["nope"])))
        assert response["metrics"]["customer_churn_rate"] == 4.55

    def test_filters_are_cached_separately(self, service, populated):
        asyncio.run(service.compute(request(product_filter=["pro"])))
        asyncio.run(service.compute(request()))
        assert populated.calls == 2

    def test_subscription_created_after_end_is_not_churn(self, service, fetcher):
        fetcher.add(TENANT, "pro", *[ev(date(2023, 1, 1)) for _ in range(4)])
        fetcher.add(TENANT, "pro", ev(date(2024, 4, 2), date(2024, 3, 20), mrr=100))
        response = asyncio.run(service.compute(request(start_date=date(2024, 3, 1))))
        assert response["metrics"]["churned_subscribers"] == 0
        assert response["metrics"]["churned_mrr_cents"] == 0

    def test_no_history_gives_zero_last_period(self, service, fetcher):
        fetcher.add(TENANT, "pro", ev(date(2024, 3, 5)), ev(date(2024, 3, 6), date(2024, 3, 9)))
        response = asyncio.run(service.compute(request(start_date=date(2024, 3, 5), end_date=date(2024, 3, 10))))
        assert response["metrics"]["last_period_churn_rate"] == 0.0
        assert response["metrics"]["customer_churn_rate"] == 50.0

    def test_range_over_window_is_rejected_before_fetching(self, service, populated):
        with pytest.raises(ValidationFailed) as exc_info:
            asyncio.run(service.compute(request(start_date=date(2024, 1, 1))))
        assert any("31 days" in reason for reason in exc_info.value.reasons)
        assert populated.calls == 0

    def test_missing_dates_are_rejected(self, service):
        with pytest.raises(ValidationFailed) as exc_info:
            asyncio.run(service.compute({"tenant_id": TENANT}))
        assert exc_info.value.to_payload() == {
            "errors": {"base": ["start_date can't be blank", "end_date can't be blank"]}
        }

    def test_malformed_date_is_a_validation_failure(self, service, fetcher):
        with pytest.raises(ValidationFailed) as exc_info:
            asyncio.run(service.compute({"tenant_id": TENANT, "start_date": "2024-02-30", "end_date": "2024-03-01"}))
        assert exc_info.value.reasons == ["start_date is not a valid date"]
        assert fetcher.calls == 0

    def test_start_too_close_to_calendar_origin(self, service, fetcher):
        with pytest.raises(ValidationFailed) as exc_info:
            asyncio.run(service.compute(request(start_date=date(1, 1, 5), end_date=date(1, 1, 5))))
        assert exc_info.value.reasons == ["start_date is too early"]
        assert fetcher.calls == 0

    def test_fetch_failure_propagates(self, series_cache):
        class DownFetcher(RawEventFetcher):
            async def fetch(self, tenant_id, product_filter, since, to):
                raise DataFetchFailed("store offline")

        service = ChurnService(fetcher=DownFetcher(), cache=series_cache)
        with pytest.raises(DataFetchFailed):
            asyncio.run(service.compute(request()))
