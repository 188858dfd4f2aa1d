"""Alert model (escalation view).

The alert subsystem owns this table; the escalation engine reads status,
creation time and policy binding, and writes only
``current_escalation_tier`` through a conditional update.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from oncall.models.base import Base, TimestampMixin


class AlertStatus(str, enum.Enum):
    """Lifecycle status of an alert."""

    FIRING = "firing"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


class AlertSeverity(str, enum.Enum):
    """Severity reported by the alert source."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class Alert(Base, TimestampMixin):
    """An alert received from a monitoring source.

    Only ``firing`` alerts bound to an escalation policy are evaluated by
    the escalation engine.
    """

    __tablename__ = "alerts"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    fingerprint: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=AlertStatus.FIRING.value,
        index=True,
    )

    severity: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=AlertSeverity.WARNING.value,
    )

    source: Mapped[str] = mapped_column(String(100), nullable=False)

    title: Mapped[str] = mapped_column(Text, nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    acknowledged_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    escalation_policy_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("escalation_policies.id"),
        nullable=True,
    )

    # 0 = not yet escalated
    current_escalation_tier: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
        default=0,
    )

    def __repr__(self) -> str:
        return (
            f"<Alert(title={self.title!r}, status={self.status}, "
            f"tier={self.current_escalation_tier})>"
        )
