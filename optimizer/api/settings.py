"""
Tenant settings: brand tone, exclusion rules and custom prompts
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import require_tenant
from ..db import get_db
from ..models.tenant import Tenant
from ..schemas.tenant import TenantSettings, TenantSettingsUpdate

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Settings"])


def _to_settings(tenant: Tenant) -> TenantSettings:
    return TenantSettings(
        tone=tenant.tone,
        excluded_tags=tenant.excluded_tags or [],
        excluded_collections=tenant.excluded_collections or [],
        custom_prompts=tenant.custom_prompts or {},
        plan=tenant.plan,
    )


@router.get("/settings", response_model=TenantSettings)
def get_settings(tenant: Tenant = Depends(require_tenant)):
    return _to_settings(tenant)


@router.put("/settings", response_model=TenantSettings)
def update_settings(body: TenantSettingsUpdate, tenant: Tenant = Depends(require_tenant),
                    db: Session = Depends(get_db)):
    if body.tone is not None:
        tenant.tone = body.tone.value
    if body.excluded_tags is not None:
        tenant.excluded_tags = body.excluded_tags
    if body.excluded_collections is not None:
        tenant.excluded_collections = body.excluded_collections
    if body.custom_prompts is not None:
        tenant.custom_prompts = {k.value: v.strip() for k, v in body.custom_prompts.items() if v and v.strip()}
    db.commit()
    logger.info("Settings updated", extra={"component": "api", "tenant_id": tenant.tenant_id})
    return _to_settings(tenant)
