import hashlib
import logging

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from .db import get_db
from .models.apikey import ApiKey
from .models.tenant import Tenant
from .logging_config import tenant_id_var

log = logging.getLogger(__name__)


def hash_token(s: str) -> str:
    return hashlib.sha256(s.encode()).hexdigest()


def _extract_token(req: Request) -> str:
    # Authorization: Bearer <token>   OR   Authorization: <token>
    auth = req.headers.get("authorization")
    if auth:
        parts = auth.strip().split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1]
        if len(parts) == 1:
            return parts[0]
    # X-API-Key: <token>
    x = req.headers.get("x-api-key")
    if x:
        return x.strip()
    return ""


def require_tenant(req: Request, db: Session = Depends(get_db)) -> Tenant:
    """Resolve the calling tenant from its API key."""
    token = _extract_token(req)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing API key")
    key = db.query(ApiKey).filter(ApiKey.hash == hash_token(token), ApiKey.disabled.is_(False)).one_or_none()
    if not key:
        log.warning("AUTH: token not found or disabled")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")
    tenant = db.get(Tenant, key.tenant_id)
    if tenant is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Tenant not found")
    req.state.tenant_id = tenant.tenant_id
    tenant_id_var.set(tenant.tenant_id)
    return tenant
