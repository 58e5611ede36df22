from typing import List, Optional
from fastapi import HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from core.base_api import BaseAPI, get
from core.config import CHURN_REQUEST_MAX_DAYS
from core.decorators import TenantRole, auth_required, tenant_role_required
from core.registry import ServiceRegistry
from core.logger import Logger

from .exceptions import DataFetchFailed, ValidationFailed
from .models import ChurnRequest
from .service import ChurnService
from .utils import ChurnUtils, parse_iso_date
from .validator import DateRangeValidator

logger = Logger(__name__)

CHURN_ROLES = (TenantRole.ADMIN, TenantRole.MARKETING, TenantRole.SUPPORT, TenantRole.ACCOUNTANT)
CHURN_FEATURE = "churn_analytics"

class ChurnAPI(BaseAPI):
    utils: ChurnUtils
    service: ChurnService

    @get("/{tenant_id}/options")
    @auth_required
    @tenant_role_required(*CHURN_ROLES, feature=CHURN_FEATURE)
    async def get_churn_options(self, request: Request, tenant_id: str):
        products = await self.utils.get_subscription_products(tenant_id)
        return self.service.presenter.page_props(products)

    @get("/{tenant_id}")
    @auth_required
    @tenant_role_required(*CHURN_ROLES, feature=CHURN_FEATURE)
    async def get_churn(
        self,
        request: Request,
        tenant_id: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        aggregate_by: Optional[str] = None,
        product_ids: Optional[List[str]] = Query(default=None),
    ):
        reasons = []
        dates = {}
        for name, raw in (("start_date", start_date), ("end_date", end_date)):
            try:
                dates[name] = parse_iso_date(raw)
            except ValueError:
                reasons.append(f"{name} is not a valid date")
        if reasons:
            return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=self.service.presenter.errors(reasons))

        intake = DateRangeValidator(dates["start_date"], dates["end_date"], CHURN_REQUEST_MAX_DAYS)
        if not intake.is_valid():
            return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=self.service.presenter.errors(intake.errors))

        churn_request = ChurnRequest(
            tenant_id=tenant_id,
            start_date=dates["start_date"],
            end_date=dates["end_date"],
            aggregate_by=aggregate_by,
            product_filter=product_ids,
        )
        try:
            return await self.service.compute(churn_request)
        except ValidationFailed as e:
            return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=e.to_payload())
        except DataFetchFailed as e:
            logger.error(f"Churn data unavailable for tenant={tenant_id}: {e}")
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Subscription data unavailable")

# Register globally
ServiceRegistry.register_api("churn", ChurnAPI("/churn").router)
