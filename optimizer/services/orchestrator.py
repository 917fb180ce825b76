"""
Job orchestrator: drives one bulk optimization job from claim to a terminal
state.

    PENDING -> PROCESSING -> COMPLETED
                          -> FAILED

A tenant has at most one PENDING/PROCESSING job. Starting while one exists
resumes it, and items that already have log entries for the job are skipped,
so a redelivered payload never writes an item twice.
"""

import asyncio
import logging
import time
import uuid
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from ..catalog.base import CatalogSource
from ..catalog.errors import CatalogNotFoundError
from ..catalog.items import CatalogItem
from ..config import ITEM_DELAY_SEC
from ..db import session_scope
from ..logging_config import job_context
from ..enums import ACTIVE_STATUSES, CounterKind, Field, JobStatus, JobType
from ..models.job import Job, utcnow
from ..models.tenant import Tenant
from .applier import FieldChange, MutationApplier
from .events import JobEvent, JobEventBus, JobEventKind
from .exclusion import ExclusionRules, keep
from .generator import ContentGenerator
from .optimization_log import OptimizationLog
from .plans import get_plan
from .prometheus_metrics import prometheus_metrics
from .quota import QuotaExceededError, QuotaGuard

logger = logging.getLogger(__name__)

JOB_FIELDS = {
    JobType.TITLE_DESC: (Field.TITLE, Field.DESCRIPTION),
    JobType.ALT_TEXT: (Field.ALT_TEXT,),
    JobType.SCHEMA: (),
}

FIELD_COUNTERS = {
    Field.TITLE: CounterKind.META_TITLES_GENERATED,
    Field.DESCRIPTION: CounterKind.META_DESCRIPTIONS_GENERATED,
    Field.ALT_TEXT: CounterKind.ALT_TEXTS_GENERATED,
}

CatalogFactory = Callable[[Tenant], CatalogSource]


class JobInterrupted(Exception):
    """Shutdown requested between items; the job stays PROCESSING and resumes later."""


@dataclass
class JobPayload:
    tenant_id: str
    job_type: JobType
    tone: Optional[str] = None
    item_ids: Optional[List[str]] = None
    job_id: Optional[str] = None

    def to_args(self) -> Dict[str, Any]:
        return {"tone": self.tone, "item_ids": self.item_ids}

    @classmethod
    def from_job(cls, job: Job) -> "JobPayload":
        args = job.args or {}
        return cls(
            tenant_id=job.tenant_id,
            job_type=JobType(job.type),
            tone=args.get("tone"),
            item_ids=args.get("item_ids"),
            job_id=job.id,
        )


@dataclass
class _Run:
    job_id: str
    tenant_id: str
    processed: int = 0
    total: int = 0
    started: float = 0.0
    done_items: set = field(default_factory=set)


class JobOrchestrator:
    def __init__(
        self,
        session_factory: sessionmaker,
        catalog_factory: CatalogFactory,
        generator: ContentGenerator,
        applier: MutationApplier,
        optimization_log: OptimizationLog,
        quota: QuotaGuard,
        events: Optional[JobEventBus] = None,
        item_delay: float = ITEM_DELAY_SEC,
        sleep=asyncio.sleep,
        clock=time.monotonic,
    ):
        self.session_factory = session_factory
        self.catalog_factory = catalog_factory
        self.generator = generator
        self.applier = applier
        self.log = optimization_log
        self.quota = quota
        self.events = events or JobEventBus()
        self.item_delay = item_delay
        self._sleep = sleep
        self._clock = clock
        self.stopping = False

    def request_stop(self) -> None:
        """Let running jobs finish their current item, then leave them resumable."""
        self.stopping = True

    async def run(self, payload: JobPayload) -> Optional[str]:
        """
        Run a job to a terminal state, or until a stop is requested, and
        return its id.

        Never raises for job-level failures: those end in FAILED with the
        error message recorded on the job.
        """
        job = self.claim(payload)
        if job is None:
            return payload.job_id

        run = _Run(job_id=job.id, tenant_id=job.tenant_id, processed=job.processed_items or 0,
                   started=self._clock())
        with job_context(run.job_id, run.tenant_id):
            return await self._run(run, JobPayload.from_job(job))

    async def _run(self, run: _Run, payload: JobPayload) -> str:
        self._publish(JobEventKind.STARTED, run)
        try:
            await self._execute(run, payload)
        except JobInterrupted as e:
            logger.info("Job %s interrupted: %s", run.job_id, e, extra={
                "component": "orchestrator",
                "job_id": run.job_id,
                "tenant_id": run.tenant_id
            })
            return run.job_id
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.exception("Job %s aborted", run.job_id, extra={
                "component": "orchestrator",
                "job_id": run.job_id,
                "tenant_id": run.tenant_id
            })
            self._finish(run, JobStatus.FAILED, error=message)
            self._publish(JobEventKind.FAILED, run, error=message)
            return run.job_id

        self._finish(run, JobStatus.COMPLETED)
        self._publish(JobEventKind.COMPLETED, run)
        return run.job_id

    def claim(self, payload: JobPayload) -> Optional[Job]:
        """Resume the tenant's active job or create one in PROCESSING."""
        try:
            return self._claim(payload)
        except IntegrityError:
            # another worker created the active job between our check and insert
            logger.info("Active job appeared concurrently for tenant %s, resuming it", payload.tenant_id,
                        extra={"component": "orchestrator", "tenant_id": payload.tenant_id})
            return self._claim(payload)

    def _claim(self, payload: JobPayload) -> Optional[Job]:
        with session_scope(self.session_factory) as db:
            if payload.job_id:
                existing = db.get(Job, payload.job_id)
                if existing is not None and existing.status not in ACTIVE_STATUSES:
                    logger.info("Job %s already %s, ignoring redelivery", existing.id, existing.status,
                                extra={"component": "orchestrator", "job_id": existing.id})
                    return None

            job = (
                db.query(Job)
                .filter(Job.tenant_id == payload.tenant_id, Job.status.in_(ACTIVE_STATUSES))
                .order_by(Job.created_at.desc())
                .first()
            )
            if job is None:
                job = Job(
                    id=payload.job_id or str(uuid.uuid4()),
                    tenant_id=payload.tenant_id,
                    type=JobType(payload.job_type).value,
                    status=JobStatus.PROCESSING.value,
                    args=payload.to_args(),
                    created_at=utcnow(),
                )
                db.add(job)
            else:
                if payload.job_id and job.id != payload.job_id:
                    logger.warning("Tenant %s already has active job %s, resuming it instead of %s",
                                   job.tenant_id, job.id, payload.job_id,
                                   extra={"component": "orchestrator", "tenant_id": job.tenant_id})
                job.status = JobStatus.PROCESSING.value
            db.flush()
            return job

    async def _execute(self, run: _Run, payload: JobPayload) -> None:
        with self.session_factory() as db:
            tenant = db.get(Tenant, run.tenant_id)
        if tenant is None:
            raise LookupError(f"Tenant {run.tenant_id} not found")

        decision = self.quota.allow(run.tenant_id)
        if not decision.allowed:
            raise QuotaExceededError(decision.reason or "Monthly quota exceeded")

        fields = JOB_FIELDS[payload.job_type]
        if not fields:
            logger.warning("Job type %s has no field plan, nothing to do", payload.job_type.value,
                           extra={"component": "orchestrator", "job_id": run.job_id})
            return

        catalog = self.catalog_factory(tenant)
        rules = ExclusionRules.for_tenant(tenant)
        run.done_items = self.log.logged_item_ids(run.job_id)

        discovered = await self._discover(catalog, payload.item_ids)
        candidates = [
            item for item in discovered
            if keep(item, rules) and (item.id in run.done_items or any(item.is_missing(f) for f in fields))
        ]
        run.total = len(candidates)
        self._update(run.job_id, total_items=run.total)
        logger.info("Job %s discovered %d items, %d to process", run.job_id, len(discovered), run.total, extra={
            "component": "orchestrator",
            "job_id": run.job_id,
            "excluded": sum(1 for item in discovered if not keep(item, rules))
        })

        tone = payload.tone or tenant.tone
        plan = get_plan(tenant.plan)
        custom_prompts = (tenant.custom_prompts or {}) if plan.custom_prompts else {}

        for item in candidates:
            if item.id in run.done_items:
                continue
            if self.stopping:
                raise JobInterrupted(f"Stopped after {run.processed}/{run.total} items")
            if await self._process_item(run, catalog, item, fields, tone, custom_prompts):
                run.processed += 1
                self._update(run.job_id, processed_items=run.processed)
            self._publish(JobEventKind.PROGRESS, run)
            if self.item_delay:
                await self._sleep(self.item_delay)

    async def _discover(self, catalog: CatalogSource, item_ids: Optional[List[str]]) -> List[CatalogItem]:
        if not item_ids:
            return await catalog.list_items()
        items = []
        for item_id in dict.fromkeys(item_ids):
            try:
                items.append(await catalog.get_item(item_id))
            except CatalogNotFoundError:
                logger.warning("Requested item %s no longer exists", item_id,
                               extra={"component": "orchestrator", "item_id": item_id})
        return items

    async def _process_item(self, run: _Run, catalog: CatalogSource, item: CatalogItem, fields,
                            tone: Optional[str], custom_prompts: Dict[str, str]) -> bool:
        changes: List[FieldChange] = []
        for f in fields:
            instructions = custom_prompts.get(f.value)
            if f == Field.ALT_TEXT:
                for image in item.images_missing_alt():
                    value = await self._generate(f, item, tone, instructions, image)
                    if value:
                        changes.append(FieldChange(f, value, image.id))
            elif item.is_missing(f):
                value = await self._generate(f, item, tone, instructions)
                if value:
                    changes.append(FieldChange(f, value))

        if not changes:
            logger.info("Nothing generated for item %s, skipping", item.id,
                        extra={"component": "orchestrator", "job_id": run.job_id, "item_id": item.id})
            return False

        # a shutdown cancel must not separate the catalog write from its log entry
        return await asyncio.shield(self._apply_and_record(run, catalog, item, changes))

    async def _apply_and_record(self, run: _Run, catalog: CatalogSource, item: CatalogItem,
                                changes: List[FieldChange]) -> bool:
        result = await self.applier.apply(catalog, item.id, changes, current=item)
        if not result.ok:
            prometheus_metrics.increment_items_failed()
            logger.warning("Item %s skipped: %s", item.id, result.error,
                           extra={"component": "orchestrator", "job_id": run.job_id, "item_id": item.id})
            return False

        self.log.append_applied(run.job_id, run.tenant_id, item, result.changes)
        self.quota.increment(run.tenant_id, CounterKind.PRODUCTS_OPTIMIZED, 1)
        for f, count in Counter(c.field for c in result.changes).items():
            self.quota.increment(run.tenant_id, FIELD_COUNTERS[f], count)
            prometheus_metrics.increment_mutations(f.value, count)
        prometheus_metrics.increment_items_processed()
        return True

    async def _generate(self, f: Field, item: CatalogItem, tone, instructions, image=None) -> Optional[str]:
        try:
            return await self.generator.generate(f, item, tone, instructions, image=image)
        except Exception as e:
            logger.error("Generation error for item %s %s: %s", item.id, f.value, e,
                         extra={"component": "orchestrator", "item_id": item.id})
            return None

    def _update(self, job_id: str, **values) -> None:
        with session_scope(self.session_factory) as db:
            db.execute(update(Job).where(Job.id == job_id).values(**values))

    def _finish(self, run: _Run, status: JobStatus, error: Optional[str] = None) -> None:
        values = {"status": status.value, "completed_at": utcnow()}
        if error is not None:
            values["error_message"] = error
        self._update(run.job_id, **values)

    def _publish(self, kind: JobEventKind, run: _Run, error: Optional[str] = None) -> None:
        duration = None
        if kind in (JobEventKind.COMPLETED, JobEventKind.FAILED):
            duration = self._clock() - run.started
        self.events.publish(JobEvent(
            kind=kind,
            job_id=run.job_id,
            tenant_id=run.tenant_id,
            processed_items=run.processed,
            total_items=run.total,
            error=error,
            duration_sec=duration,
        ))
