import logging
import os
import uuid
from typing import Optional

from sqlalchemy.orm import sessionmaker

from .auth import hash_token
from .db import session_scope
from .models.apikey import ApiKey
from .models.tenant import Tenant

log = logging.getLogger(__name__)


def seed_tenant(session_factory: sessionmaker, tenant_id: str, api_key: str, *, catalog_url: str,
                access_token: str, name: Optional[str] = None, plan: str = "FREE") -> Tenant:
    """Create a tenant and bind an API key to it (idempotent)."""
    with session_scope(session_factory) as db:
        tenant = db.get(Tenant, tenant_id)
        if tenant is None:
            tenant = Tenant(
                tenant_id=tenant_id,
                name=name or tenant_id,
                plan=plan,
                catalog_url=catalog_url,
                access_token=access_token,
                excluded_tags=[],
                excluded_collections=[],
                custom_prompts={},
            )
            db.add(tenant)
            log.info("Seeded tenant %s", tenant_id, extra={"component": "db"})
        h = hash_token(api_key)
        if db.query(ApiKey).filter(ApiKey.hash == h).one_or_none() is None:
            db.add(ApiKey(key_id=uuid.uuid4().hex, tenant_id=tenant_id, hash=h, disabled=False))
    return tenant


def seed_from_env(session_factory: sessionmaker) -> Optional[Tenant]:
    """Seed one tenant from SEED_* variables, for local runs."""
    tenant_id = os.getenv("SEED_TENANT_ID")
    api_key = os.getenv("SEED_API_KEY")
    if not (tenant_id and api_key):
        return None
    return seed_tenant(
        session_factory,
        tenant_id,
        api_key,
        catalog_url=os.getenv("SEED_CATALOG_URL", "http://localhost:8080/api"),
        access_token=os.getenv("SEED_CATALOG_TOKEN", ""),
        plan=os.getenv("SEED_PLAN", "FREE"),
    )
