from sqlalchemy import Column, String, Integer, ForeignKey, PrimaryKeyConstraint
from optimizer.db import Base


class UsageCounter(Base):
    __tablename__ = "usage_counters"
    tenant_id = Column(String(64), ForeignKey("tenants.tenant_id"), nullable=False)
    billing_period = Column(String(7), nullable=False)  # YYYY-MM
    counter = Column(String(32), nullable=False)  # CounterKind value
    value = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        PrimaryKeyConstraint("tenant_id", "billing_period", "counter"),
    )
