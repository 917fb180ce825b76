from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from optimizer.enums import JobStatus, JobType, Tone


class JobCreate(BaseModel):
    tenant_id: Optional[str] = Field(None, max_length=64, description="Must match the API key's tenant when given")
    job_type: JobType
    tone: Optional[Tone] = Field(None, description="Overrides the tenant's default tone")
    item_ids: Optional[List[str]] = Field(None, description="Restrict the job to these items")


class JobCreated(BaseModel):
    job_id: str
    status: JobStatus


class JobStatusOut(BaseModel):
    job_id: str
    job_type: JobType
    state: JobStatus
    processed_items: int
    total_items: int
    progress: float = Field(..., description="Percent of discovered items processed")
    failure_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class JobListResponse(BaseModel):
    jobs: List[JobStatusOut]
    counts: Dict[str, int]


class RevertJobOut(BaseModel):
    success: bool
    reverted_count: int
    total: int
    errors: List[str]
