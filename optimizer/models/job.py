from datetime import datetime, timezone

from sqlalchemy import Column, String, Integer, DateTime, JSON, ForeignKey, Text, Index, text
from optimizer.db import Base
from optimizer.enums import JobStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Job(Base):
    __tablename__ = "jobs"
    id = Column(String(36), primary_key=True)  # uuid4
    tenant_id = Column(String(64), ForeignKey("tenants.tenant_id"), index=True, nullable=False)
    type = Column(String(16), nullable=False)  # TITLE_DESC|ALT_TEXT|SCHEMA
    status = Column(String(16), nullable=False, default=JobStatus.PENDING.value)
    args = Column(JSON, nullable=False, default=dict)  # tone, item_ids
    total_items = Column(Integer, nullable=False, default=0)
    processed_items = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        # one PENDING/PROCESSING job per tenant
        Index(
            "uq_jobs_active_tenant",
            "tenant_id",
            unique=True,
            sqlite_where=text("status IN ('PENDING', 'PROCESSING')"),
            postgresql_where=text("status IN ('PENDING', 'PROCESSING')"),
        ),
    )

    @property
    def progress(self) -> float:
        if not self.total_items:
            return 100.0 if self.status == JobStatus.COMPLETED.value else 0.0
        return round(self.processed_items * 100.0 / self.total_items, 1)
