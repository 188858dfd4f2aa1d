"""Escalation policy model.

A policy is an ordered list of tiers stored as JSON. Each tier carries a
timeout, the notification methods to use and the targets to notify.
"""

import uuid

from sqlalchemy import Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from oncall.models.base import Base, JSONType, TimestampMixin


class EscalationPolicy(Base, TimestampMixin):
    """Tenant-scoped escalation policy.

    ``tiers`` is a JSON array of objects with keys ``tier``,
    ``timeout_minutes``, ``notify_via`` and ``targets``. Use
    ``oncall.schemas.escalation_policy.parse_tiers`` to read it.
    """

    __tablename__ = "escalation_policies"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    tiers: Mapped[list[dict]] = mapped_column(JSONType, nullable=False, default=list)

    # 0 = no repeat after the last tier
    repeat_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return (
            f"<EscalationPolicy(name={self.name}, tiers={len(self.tiers or [])}, "
            f"repeat={self.repeat_count})>"
        )
