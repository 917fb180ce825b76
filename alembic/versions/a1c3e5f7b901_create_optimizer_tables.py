"""create_optimizer_tables

Revision ID: a1c3e5f7b901
Revises:
Create Date: 2026-10-19 10:12:03.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a1c3e5f7b901'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTIVE = sa.text("status IN ('PENDING', 'PROCESSING')")


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('tenants',
        sa.Column('tenant_id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('plan', sa.String(length=16), nullable=False),
        sa.Column('catalog_url', sa.String(length=512), nullable=False),
        sa.Column('access_token', sa.String(length=256), nullable=False),
        sa.Column('tone', sa.String(length=16), nullable=False),
        sa.Column('excluded_tags', sa.JSON(), nullable=False),
        sa.Column('excluded_collections', sa.JSON(), nullable=False),
        sa.Column('custom_prompts', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint('tenant_id')
    )

    op.create_table('api_keys',
        sa.Column('key_id', sa.String(length=32), nullable=False),
        sa.Column('tenant_id', sa.String(length=64), sa.ForeignKey('tenants.tenant_id'), nullable=False),
        sa.Column('hash', sa.String(length=128), nullable=False),
        sa.Column('disabled', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint('key_id'),
        sa.UniqueConstraint('hash')
    )
    op.create_index('ix_api_keys_tenant_id', 'api_keys', ['tenant_id'])

    op.create_table('jobs',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('tenant_id', sa.String(length=64), sa.ForeignKey('tenants.tenant_id'), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('args', sa.JSON(), nullable=False),
        sa.Column('total_items', sa.Integer(), nullable=False),
        sa.Column('processed_items', sa.Integer(), nullable=False),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_jobs_tenant_id', 'jobs', ['tenant_id'])
    op.create_index('uq_jobs_active_tenant', 'jobs', ['tenant_id'], unique=True,
                    sqlite_where=ACTIVE, postgresql_where=ACTIVE)

    op.create_table('optimization_logs',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('job_id', sa.String(length=36), sa.ForeignKey('jobs.id'), nullable=False),
        sa.Column('tenant_id', sa.String(length=64), sa.ForeignKey('tenants.tenant_id'), nullable=False),
        sa.Column('item_id', sa.String(length=128), nullable=False),
        sa.Column('item_title', sa.String(length=255), nullable=False),
        sa.Column('field', sa.String(length=16), nullable=False),
        sa.Column('target_id', sa.String(length=128), nullable=True),
        sa.Column('old_value', sa.Text(), nullable=False),
        sa.Column('new_value', sa.Text(), nullable=False),
        sa.Column('is_reverted', sa.Boolean(), nullable=False),
        sa.Column('reverted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_optimization_logs_job_id', 'optimization_logs', ['job_id'])
    op.create_index('ix_optimization_logs_tenant_created', 'optimization_logs', ['tenant_id', 'created_at'])

    op.create_table('usage_counters',
        sa.Column('tenant_id', sa.String(length=64), sa.ForeignKey('tenants.tenant_id'), nullable=False),
        sa.Column('billing_period', sa.String(length=7), nullable=False),
        sa.Column('counter', sa.String(length=32), nullable=False),
        sa.Column('value', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('tenant_id', 'billing_period', 'counter')
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('usage_counters')
    op.drop_index('ix_optimization_logs_tenant_created', 'optimization_logs')
    op.drop_index('ix_optimization_logs_job_id', 'optimization_logs')
    op.drop_table('optimization_logs')
    op.drop_index('uq_jobs_active_tenant', 'jobs')
    op.drop_index('ix_jobs_tenant_id', 'jobs')
    op.drop_table('jobs')
    op.drop_index('ix_api_keys_tenant_id', 'api_keys')
    op.drop_table('api_keys')
    op.drop_table('tenants')
