"""
Append-only record of every field value a job wrote to a catalog
"""

import logging
import math
import uuid
from typing import Any, Dict, List, Optional, Sequence, Set

from sqlalchemy import update
from sqlalchemy.orm import sessionmaker

from ..catalog.items import CatalogItem
from ..db import session_scope
from ..enums import Field
from ..models.job import utcnow
from ..models.optimization_log import OptimizationLogEntry
from .applier import AppliedChange

logger = logging.getLogger(__name__)


def entry_to_dict(entry: OptimizationLogEntry) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "job_id": entry.job_id,
        "item_id": entry.item_id,
        "item_title": entry.item_title,
        "field": entry.field,
        "target_id": entry.target_id,
        "old_value": entry.old_value,
        "new_value": entry.new_value,
        "is_reverted": entry.is_reverted,
        "reverted_at": entry.reverted_at.isoformat() if entry.reverted_at else None,
        "created_at": entry.created_at.isoformat() if entry.created_at else None,
    }


class OptimizationLog:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def append(self, *, job_id: str, tenant_id: str, item_id: str, field: Field,
               new_value: str, old_value: Optional[str] = "", item_title: str = "",
               target_id: Optional[str] = None) -> OptimizationLogEntry:
        if not (job_id and tenant_id and item_id) or new_value is None:
            raise ValueError("job_id, tenant_id, item_id and new_value are required")
        entry = OptimizationLogEntry(
            id=str(uuid.uuid4()),
            job_id=job_id,
            tenant_id=tenant_id,
            item_id=item_id,
            item_title=(item_title or "")[:255],
            field=Field(field).value,
            target_id=target_id,
            old_value=old_value or "",
            new_value=new_value,
            is_reverted=False,
            created_at=utcnow(),
        )
        with session_scope(self.session_factory) as db:
            db.add(entry)
        return entry

    def append_applied(self, job_id: str, tenant_id: str, item: CatalogItem,
                       changes: Sequence[AppliedChange]) -> List[OptimizationLogEntry]:
        """Record every change of one successful write in a single transaction."""
        now = utcnow()
        entries = [
            OptimizationLogEntry(
                id=str(uuid.uuid4()),
                job_id=job_id,
                tenant_id=tenant_id,
                item_id=item.id,
                item_title=(item.title or "")[:255],
                field=c.field.value,
                target_id=c.target_id,
                old_value=c.old_value or "",
                new_value=c.new_value,
                is_reverted=False,
                created_at=now,
            )
            for c in changes
        ]
        with session_scope(self.session_factory) as db:
            db.add_all(entries)
        return entries

    def history(self, tenant_id: str, page: int = 1, limit: int = 20, job_id: Optional[str] = None,
                include_reverted: bool = True) -> Dict[str, Any]:
        page = max(1, page)
        limit = max(1, limit)
        with self.session_factory() as db:
            q = db.query(OptimizationLogEntry).filter(OptimizationLogEntry.tenant_id == tenant_id)
            if job_id:
                q = q.filter(OptimizationLogEntry.job_id == job_id)
            if not include_reverted:
                q = q.filter(OptimizationLogEntry.is_reverted.is_(False))
            total = q.order_by(None).count()
            rows = (
                q.order_by(OptimizationLogEntry.created_at.desc(), OptimizationLogEntry.id)
                .offset((page - 1) * limit)
                .limit(limit)
                .all()
            )
        return {
            "entries": [entry_to_dict(r) for r in rows],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": math.ceil(total / limit),
            },
        }

    def find_active(self, entry_id: str, tenant_id: str) -> Optional[OptimizationLogEntry]:
        with self.session_factory() as db:
            return (
                db.query(OptimizationLogEntry)
                .filter(
                    OptimizationLogEntry.id == entry_id,
                    OptimizationLogEntry.tenant_id == tenant_id,
                    OptimizationLogEntry.is_reverted.is_(False),
                )
                .first()
            )

    def active_for_job(self, job_id: str, tenant_id: str) -> List[OptimizationLogEntry]:
        with self.session_factory() as db:
            return (
                db.query(OptimizationLogEntry)
                .filter(
                    OptimizationLogEntry.job_id == job_id,
                    OptimizationLogEntry.tenant_id == tenant_id,
                    OptimizationLogEntry.is_reverted.is_(False),
                )
                .order_by(OptimizationLogEntry.created_at, OptimizationLogEntry.id)
                .all()
            )

    def logged_item_ids(self, job_id: str) -> Set[str]:
        with self.session_factory() as db:
            rows = db.query(OptimizationLogEntry.item_id).filter(OptimizationLogEntry.job_id == job_id).distinct()
            return {r.item_id for r in rows}

    def mark_reverted(self, entry_id: str, tenant_id: str) -> bool:
        """Flip is_reverted once; False when another caller got there first."""
        with session_scope(self.session_factory) as db:
            result = db.execute(
                update(OptimizationLogEntry)
                .where(
                    OptimizationLogEntry.id == entry_id,
                    OptimizationLogEntry.tenant_id == tenant_id,
                    OptimizationLogEntry.is_reverted.is_(False),
                )
                .values(is_reverted=True, reverted_at=utcnow())
            )
            return result.rowcount == 1
