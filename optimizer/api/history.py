"""
Optimization history and single-change revert
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from ..auth import require_tenant
from ..models.tenant import Tenant
from ..schemas.history import HistoryPage, RevertOut
from ..services.undo import EntryNotFoundError, RevertError

router = APIRouter(tags=["History"])


@router.get("/history", response_model=HistoryPage)
def get_history(
    request: Request,
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Page size"),
    job_id: Optional[str] = Query(None, description="Only entries written by this job"),
    include_reverted: bool = Query(True, description="Include entries that were reverted"),
    tenant: Tenant = Depends(require_tenant),
):
    return request.app.state.services.optimization_log.history(
        tenant.tenant_id, page=page, limit=limit, job_id=job_id, include_reverted=include_reverted
    )


@router.post("/history/{entry_id}/revert", response_model=RevertOut)
async def revert_entry(entry_id: str, request: Request, tenant: Tenant = Depends(require_tenant)):
    try:
        item_id = await request.app.state.services.undo.revert(entry_id, tenant.tenant_id)
    except EntryNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except RevertError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return RevertOut(success=True, item_id=item_id)
