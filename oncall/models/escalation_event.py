"""Escalation event model.

Append-only audit trail of tier transitions. Exactly one row is written per
committed tier advance, in the same transaction as the advance itself.
``notify_result`` starts empty and is filled in once after delivery.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from oncall.models.base import Base, utcnow


class EscalationAction(str, enum.Enum):
    """Action recorded by an escalation event."""

    ESCALATE = "escalate"


class EscalationEvent(Base):
    """Records one tier transition for an alert."""

    __tablename__ = "escalation_events"
    __table_args__ = (
        Index("idx_escalation_events_alert", "alert_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    alert_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("alerts.id", ondelete="CASCADE"),
        nullable=False,
    )

    policy_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("escalation_policies.id"),
        nullable=False,
    )

    tier: Mapped[int] = mapped_column(Integer, nullable=False)

    action: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=EscalationAction.ESCALATE.value,
    )

    # Set by other event producers; the engine leaves it empty
    target_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
    )

    notify_method: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # "delivered" or "failed: <reason>"; NULL until delivery was attempted
    notify_result: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    def __repr__(self) -> str:
        return (
            f"<EscalationEvent(alert={self.alert_id}, tier={self.tier}, "
            f"action={self.action}, result={self.notify_result})>"
        )
