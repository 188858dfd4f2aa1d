"""Escalation event schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class EscalationEventResponse(BaseModel):
    """Single escalation event response."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    alert_id: uuid.UUID
    policy_id: uuid.UUID
    tier: int
    action: str
    target_user_id: uuid.UUID | None = None
    notify_method: str | None = None
    notify_result: str | None = None
    created_at: datetime


class EscalationEventListResponse(BaseModel):
    """Escalation history for an alert, oldest first."""

    events: list[EscalationEventResponse]
    count: int
