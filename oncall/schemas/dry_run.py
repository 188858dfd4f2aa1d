"""Dry-run simulation schemas."""

import uuid

from pydantic import BaseModel, Field


class DryRunRequest(BaseModel):
    """Optional sample alert details for a dry run.

    The simulated timeline does not depend on them; they are echoed in logs
    so authors can tell their previews apart.
    """

    alert_title: str | None = Field(default=None, max_length=500)
    alert_severity: str | None = Field(default=None, max_length=32)


class DryRunStep(BaseModel):
    """A simulated escalation step."""

    tier: int
    timeout_minutes: int
    cumulative_minutes: int
    notify_via: list[str]
    targets: list[str]
    action: str = "notify"


class DryRunResponse(BaseModel):
    """Full simulated escalation timeline for a policy."""

    policy_id: uuid.UUID
    policy_name: str
    steps: list[DryRunStep]
    total_time_minutes: int
    repeat_count: int = 0
