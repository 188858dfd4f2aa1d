"""Create alerts table.

Revision ID: 003_alerts
Revises: 002_escalation_policies
Create Date: 2026-10-01

Tenant schemas only.
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

from oncall.core.migrations import is_tenant_run

revision = "003_alerts"
down_revision = "002_escalation_policies"
branch_labels = None
depends_on = None


def upgrade() -> None:
    if not is_tenant_run():
        return

    op.create_table(
        "alerts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("fingerprint", sa.String(255), nullable=False),
        sa.Column(
            "status",
            sa.String(32),
            nullable=False,
            server_default="firing",
        ),
        sa.Column(
            "severity",
            sa.String(32),
            nullable=False,
            server_default="warning",
        ),
        sa.Column("source", sa.String(100), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("acknowledged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "escalation_policy_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("escalation_policies.id"),
            nullable=True,
        ),
        sa.Column(
            "current_escalation_tier",
            sa.Integer(),
            nullable=True,
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
            "status IN ('firing', 'acknowledged', 'resolved')",
            name="ck_alerts_status",
        ),
    )

    op.create_index("ix_alerts_fingerprint", "alerts", ["fingerprint"])
    op.create_index("ix_alerts_status", "alerts", ["status"])
    # Pending escalation scan: firing alerts with a policy, oldest first
    op.create_index(
        "idx_alerts_pending_escalation",
        "alerts",
        ["created_at"],
        postgresql_where=sa.text(
            "status = 'firing' AND escalation_policy_id IS NOT NULL"
        ),
    )


def downgrade() -> None:
    if not is_tenant_run():
        return

    op.drop_index("idx_alerts_pending_escalation", table_name="alerts")
    op.drop_index("ix_alerts_status", table_name="alerts")
    op.drop_index("ix_alerts_fingerprint", table_name="alerts")
    op.drop_table("alerts")
