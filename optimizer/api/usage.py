from fastapi import APIRouter, Depends, Request

from ..auth import require_tenant
from ..models.tenant import Tenant
from ..schemas.tenant import UsageOut

router = APIRouter(tags=["Usage"])


@router.get("/usage", response_model=UsageOut)
def get_usage(request: Request, tenant: Tenant = Depends(require_tenant)):
    """Current billing period counters against the plan limit."""
    return request.app.state.services.quota.usage(tenant.tenant_id)
