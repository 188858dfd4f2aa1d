"""Create escalation_policies table.

Revision ID: 002_escalation_policies
Revises: 001_tenants
Create Date: 2026-10-01

Tenant schemas only.
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

from oncall.core.migrations import is_tenant_run

revision = "002_escalation_policies"
down_revision = "001_tenants"
branch_labels = None
depends_on = None


def upgrade() -> None:
    if not is_tenant_run():
        return

    op.create_table(
        "escalation_policies",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "tiers",
            postgresql.JSONB(),
            nullable=False,
            server_default="[]",
        ),
        sa.Column(
            "repeat_count",
            sa.Integer(),
            nullable=False,
            server_default="0",
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
        sa.CheckConstraint(
            "repeat_count >= 0",
            name="ck_escalation_policies_repeat_count",
        ),
    )


def downgrade() -> None:
    if not is_tenant_run():
        return

    op.drop_table("escalation_policies")
