from sqlalchemy import Column, String, JSON, DateTime, func
from optimizer.db import Base


class Tenant(Base):
    __tablename__ = "tenants"
    tenant_id = Column(String(64), primary_key=True)
    name = Column(String(128), nullable=False)
    plan = Column(String(16), nullable=False, default="FREE")  # FREE|PRO|ENTERPRISE
    catalog_url = Column(String(512), nullable=False)
    access_token = Column(String(256), nullable=False)
    tone = Column(String(16), nullable=False, default="PROFESSIONAL")
    excluded_tags = Column(JSON, nullable=False, default=list)
    excluded_collections = Column(JSON, nullable=False, default=list)
    custom_prompts = Column(JSON, nullable=False, default=dict)  # field -> extra instructions
    created_at = Column(DateTime(timezone=True), server_default=func.now())
