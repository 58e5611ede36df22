from typing import List
from .models import (
    AGGREGATE_OPTIONS,
    ChurnDataPoint,
    ChurnMetrics,
    ChurnResponse,
    MetricsResult,
    ProductOption,
)


class ChurnPresenter:
    """Shapes engine output into the public response schema."""

    def serialize(self, result: MetricsResult) -> dict:
        response = ChurnResponse(
            start_date=result.start_date.isoformat(),
            end_date=result.end_date.isoformat(),
            aggregate_by=result.aggregate_by.value,
            metrics=ChurnMetrics(
                customer_churn_rate=result.totals.churn_rate_percent,
                last_period_churn_rate=result.totals.last_period_churn_rate_percent,
                churned_subscribers=result.totals.churned_subscribers,
                churned_mrr_cents=result.totals.churned_revenue_cents,
            ),
            daily_data=[
                ChurnDataPoint(
                    date=point.date.isoformat(),
                    customer_churn_rate=point.churn_rate_percent,
                    churned_subscribers=point.churned_subscribers,
                    churned_mrr_cents=point.churned_revenue_cents,
                )
                for point in result.points
            ],
        )
        return response.model_dump()

    def errors(self, reasons: List[str]) -> dict:
        return {"errors": {"base": list(reasons)}}

    def page_props(self, products: List[dict]) -> dict:
        options = [
            ProductOption(
                id=str(p.get("external_id") or p.get("_id")),
                name=p.get("name"),
                alive=p.get("alive", True),
                permalink=p.get("unique_permalink"),
            ).model_dump()
            for p in products
        ]
        return {
            "has_subscription_products": bool(options),
            "aggregate_options": [
                {"value": mode.value, "title": config["title"]}
                for mode, config in AGGREGATE_OPTIONS.items()
            ],
            "products": options,
        }
