"""Create tenants table.

Revision ID: 001_tenants
Revises:
Create Date: 2026-10-01

Shared schema only; tenant runs skip it.
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

from oncall.core.migrations import is_tenant_run

revision = "001_tenants"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    if is_tenant_run():
        return

    op.create_table(
        "tenants",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(63), nullable=False),
        sa.Column(
            "config",
            postgresql.JSONB(),
            nullable=False,
            server_default="{}",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_tenants_slug", "tenants", ["slug"], unique=True)


def downgrade() -> None:
    if is_tenant_run():
        return

    op.drop_index("ix_tenants_slug", table_name="tenants")
    op.drop_table("tenants")
