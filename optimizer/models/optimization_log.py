from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Text, Index
from optimizer.db import Base
from optimizer.models.job import utcnow


class OptimizationLogEntry(Base):
    __tablename__ = "optimization_logs"
    id = Column(String(36), primary_key=True)  # uuid4
    job_id = Column(String(36), ForeignKey("jobs.id"), index=True, nullable=False)
    tenant_id = Column(String(64), ForeignKey("tenants.tenant_id"), nullable=False)
    item_id = Column(String(128), nullable=False)
    item_title = Column(String(255), nullable=False, default="")
    field = Column(String(16), nullable=False)  # TITLE|DESCRIPTION|ALT_TEXT
    target_id = Column(String(128), nullable=True)  # image id for ALT_TEXT
    old_value = Column(Text, nullable=False, default="")
    new_value = Column(Text, nullable=False)
    is_reverted = Column(Boolean, nullable=False, default=False)
    reverted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_optimization_logs_tenant_created", "tenant_id", "created_at"),
    )
