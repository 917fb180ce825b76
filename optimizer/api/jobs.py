"""
Jobs API: enqueue bulk optimization jobs, poll their status, revert them
"""

import logging
import uuid
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth import require_tenant
from ..config import QUEUE_RETRY_AFTER_SECONDS
from ..db import get_db, session_scope
from ..enums import ACTIVE_STATUSES, JobStatus
from ..models.job import Job, utcnow
from ..models.tenant import Tenant
from ..queue_manager import QueueFullError
from ..schemas.job import JobCreate, JobCreated, JobListResponse, JobStatusOut, RevertJobOut
from ..services.orchestrator import JobPayload
from ..services.plans import allows_job_type, get_plan
from ..services.undo import NothingToRevertError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Jobs"])


def job_to_status(job: Job) -> JobStatusOut:
    return JobStatusOut(
        job_id=job.id,
        job_type=job.type,
        state=job.status,
        processed_items=job.processed_items or 0,
        total_items=job.total_items or 0,
        progress=job.progress,
        failure_reason=job.error_message,
        created_at=job.created_at,
        completed_at=job.completed_at,
    )


def _active_conflict(job: Job) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={"message": "A job is already running for this tenant", "job_id": job.id},
    )


@router.post("/jobs", response_model=JobCreated, status_code=status.HTTP_202_ACCEPTED)
async def enqueue_job(body: JobCreate, request: Request, tenant: Tenant = Depends(require_tenant)):
    """Create a PENDING job and hand it to the worker pool."""
    if body.tenant_id and body.tenant_id != tenant.tenant_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="tenant_id does not match API key")
    plan = get_plan(tenant.plan)
    if not allows_job_type(plan, body.job_type):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"The {plan.name} plan does not include {body.job_type.value} jobs",
        )

    services = request.app.state.services
    payload = JobPayload(
        tenant_id=tenant.tenant_id,
        job_type=body.job_type,
        tone=body.tone.value if body.tone else None,
        item_ids=body.item_ids,
        job_id=str(uuid.uuid4()),
    )
    try:
        with session_scope(services.session_factory) as db:
            active = db.query(Job).filter(
                Job.tenant_id == tenant.tenant_id, Job.status.in_(ACTIVE_STATUSES)
            ).first()
            if active is not None:
                raise _active_conflict(active)
            db.add(Job(
                id=payload.job_id,
                tenant_id=tenant.tenant_id,
                type=payload.job_type.value,
                status=JobStatus.PENDING.value,
                args=payload.to_args(),
                created_at=utcnow(),
            ))
    except IntegrityError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A job is already running for this tenant")

    try:
        services.queue.put(payload)
    except QueueFullError:
        with session_scope(services.session_factory) as db:
            job = db.get(Job, payload.job_id)
            job.status = JobStatus.FAILED.value
            job.error_message = "Job queue is full"
            job.completed_at = utcnow()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Job queue is full",
            headers={"Retry-After": str(QUEUE_RETRY_AFTER_SECONDS)},
        )

    logger.info("Job %s enqueued", payload.job_id, extra={
        "component": "api",
        "job_id": payload.job_id,
        "job_type": payload.job_type.value
    })
    return JobCreated(job_id=payload.job_id, status=JobStatus.PENDING)


@router.get("/jobs", response_model=JobListResponse)
def list_jobs(tenant: Tenant = Depends(require_tenant), db: Session = Depends(get_db)):
    """Most recent jobs plus per-status counts."""
    jobs = (
        db.query(Job)
        .filter(Job.tenant_id == tenant.tenant_id)
        .order_by(Job.created_at.desc())
        .limit(50)
        .all()
    )
    counts: Dict[str, Any] = {s.value: 0 for s in JobStatus}
    rows = (
        db.query(Job.status, func.count(Job.id))
        .filter(Job.tenant_id == tenant.tenant_id)
        .group_by(Job.status)
        .all()
    )
    for job_status, count in rows:
        counts[job_status] = count
    return JobListResponse(jobs=[job_to_status(j) for j in jobs], counts=counts)


@router.get("/jobs/{job_id}", response_model=JobStatusOut)
def get_job_status(job_id: str, tenant: Tenant = Depends(require_tenant), db: Session = Depends(get_db)):
    job = db.get(Job, job_id)
    if job is None or job.tenant_id != tenant.tenant_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    return job_to_status(job)


@router.post("/jobs/{job_id}/revert", response_model=RevertJobOut)
async def revert_job(job_id: str, request: Request, tenant: Tenant = Depends(require_tenant)):
    """Revert every unreverted change a job made; per-entry failures are reported, not raised."""
    try:
        summary = await request.app.state.services.undo.revert_job(job_id, tenant.tenant_id)
    except NothingToRevertError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return RevertJobOut(
        success=summary.success,
        reverted_count=summary.reverted_count,
        total=summary.total,
        errors=summary.errors,
    )
