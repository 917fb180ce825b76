"""
Undo engine: compensating writes driven by the optimization log
"""

import logging
from dataclasses import dataclass, field
from typing import List

from sqlalchemy.orm import sessionmaker

from ..catalog.errors import CatalogError
from ..enums import Field
from ..models.optimization_log import OptimizationLogEntry
from ..models.tenant import Tenant
from .applier import FieldChange, MutationApplier
from .optimization_log import OptimizationLog
from .orchestrator import CatalogFactory
from .prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)


class RevertError(Exception):
    pass


class EntryNotFoundError(RevertError):
    def __init__(self, message: str = "Optimization log not found or already reverted"):
        super().__init__(message)


class NothingToRevertError(RevertError):
    def __init__(self, message: str = "No optimizations found to revert"):
        super().__init__(message)


@dataclass
class RevertSummary:
    success: bool
    reverted_count: int
    total: int
    errors: List[str] = field(default_factory=list)


class UndoEngine:
    def __init__(self, session_factory: sessionmaker, optimization_log: OptimizationLog,
                 applier: MutationApplier, catalog_factory: CatalogFactory):
        self.session_factory = session_factory
        self.log = optimization_log
        self.applier = applier
        self.catalog_factory = catalog_factory

    async def revert(self, entry_id: str, tenant_id: str) -> str:
        """
        Restore the old value of one log entry and mark it reverted.

        The item is re-read first so the untouched sibling field keeps whatever
        value it has now, including edits made after the job ran. Returns the
        item id.
        """
        entry = self.log.find_active(entry_id, tenant_id)
        if entry is None:
            raise EntryNotFoundError()
        await self._compensate(entry)
        if not self.log.mark_reverted(entry.id, tenant_id):
            raise EntryNotFoundError()
        prometheus_metrics.increment_reverts("reverted")
        logger.info("Reverted %s on item %s", entry.field, entry.item_id, extra={
            "component": "undo",
            "tenant_id": tenant_id,
            "job_id": entry.job_id,
            "entry_id": entry.id
        })
        return entry.item_id

    async def revert_job(self, job_id: str, tenant_id: str) -> RevertSummary:
        entries = self.log.active_for_job(job_id, tenant_id)
        if not entries:
            raise NothingToRevertError()

        reverted = 0
        errors: List[str] = []
        for entry in entries:
            try:
                await self.revert(entry.id, tenant_id)
                reverted += 1
            except Exception as e:
                errors.append(f"Failed to revert {entry.item_id}: {e}")

        logger.info("Job %s revert: %d/%d entries", job_id, reverted, len(entries), extra={
            "component": "undo",
            "tenant_id": tenant_id,
            "job_id": job_id,
            "errors": len(errors)
        })
        return RevertSummary(success=not errors, reverted_count=reverted, total=len(entries), errors=errors)

    async def _compensate(self, entry: OptimizationLogEntry) -> None:
        with self.session_factory() as db:
            tenant = db.get(Tenant, entry.tenant_id)
        if tenant is None:
            raise RevertError(f"Tenant {entry.tenant_id} not found")

        catalog = self.catalog_factory(tenant)
        change = FieldChange(Field(entry.field), entry.old_value or "", entry.target_id)
        try:
            current = await catalog.get_item(entry.item_id)
            result = await self.applier.apply(catalog, entry.item_id, [change], current=current)
        except CatalogError as e:
            prometheus_metrics.increment_reverts("failed")
            raise RevertError(f"Failed to revert: {e}") from e
        if not result.ok:
            prometheus_metrics.increment_reverts("failed")
            raise RevertError(f"Failed to revert: {result.error}")
