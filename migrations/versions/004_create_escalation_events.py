"""Create escalation_events table.

Revision ID: 004_escalation_events
Revises: 003_alerts
Create Date: 2026-10-01

Tenant schemas only.
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

from oncall.core.migrations import is_tenant_run

revision = "004_escalation_events"
down_revision = "003_alerts"
branch_labels = None
depends_on = None


def upgrade() -> None:
    if not is_tenant_run():
        return

    op.create_table(
        "escalation_events",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "alert_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("alerts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "policy_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("escalation_policies.id"),
            nullable=False,
        ),
        sa.Column("tier", sa.Integer(), nullable=False),
        sa.Column(
            "action",
            sa.String(32),
            nullable=False,
            server_default="escalate",
        ),
        sa.Column("target_user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("notify_method", sa.String(50), nullable=True),
        sa.Column("notify_result", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )

    op.create_index(
        "idx_escalation_events_alert",
        "escalation_events",
        ["alert_id", "created_at"],
    )


def downgrade() -> None:
    if not is_tenant_run():
        return

    op.drop_index("idx_escalation_events_alert", table_name="escalation_events")
    op.drop_table("escalation_events")
