"""Escalation policy schemas.

``Tier`` is the value type used everywhere a policy is evaluated: the API
validates it on the way in, and ``parse_tiers`` rebuilds it from the stored
JSON on the way out.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from oncall.logging_config import get_logger

logger = get_logger(__name__)


class Tier(BaseModel):
    """One step of an escalation policy."""

    model_config = ConfigDict(frozen=True)

    tier: int = Field(ge=1, description="Tier number, starting at 1.")
    timeout_minutes: int = Field(
        ge=1,
        description="Minutes added to the cumulative clock before this tier fires.",
    )
    notify_via: list[str] = Field(min_length=1)
    targets: list[str] = Field(min_length=1)

    @field_validator("notify_via")
    @classmethod
    def validate_notify_via(cls, value: list[str]) -> list[str]:
        # Methods are opaque; unrouted ones fall back to the log notifier
        if any(not method.strip() for method in value):
            msg = "Notify methods must be non-empty strings"
            raise ValueError(msg)
        return value

    @field_validator("targets")
    @classmethod
    def validate_targets(cls, value: list[str]) -> list[str]:
        if any(not target.strip() for target in value):
            msg = "Targets must be non-empty strings"
            raise ValueError(msg)
        return value


def validate_tier_order(tiers: list[Tier]) -> list[Tier]:
    """Ensure tier numbers are unique and strictly increasing in list order."""
    for previous, current in zip(tiers, tiers[1:]):
        if current.tier <= previous.tier:
            msg = (
                f"Tier numbers must be strictly increasing "
                f"(tier {current.tier} follows tier {previous.tier})"
            )
            raise ValueError(msg)
    return tiers


def parse_tiers(raw: object) -> list[Tier]:
    """Parse a stored tiers column into ``Tier`` values.

    Malformed data yields an empty list, which the engine treats as a policy
    that never escalates.
    """
    if not isinstance(raw, list):
        logger.warning("Stored tiers are not a list", tiers_type=type(raw).__name__)
        return []
    try:
        return validate_tier_order([Tier.model_validate(item) for item in raw])
    except (ValidationError, ValueError) as e:
        logger.warning("Stored tiers are malformed", error=str(e))
        return []


class EscalationPolicyBase(BaseModel):
    """Fields shared by policy create and update requests."""

    name: str = Field(min_length=2, max_length=255)
    description: str | None = None
    tiers: list[Tier] = Field(min_length=1)
    repeat_count: int = Field(default=0, ge=0)

    @field_validator("tiers")
    @classmethod
    def validate_tiers(cls, value: list[Tier]) -> list[Tier]:
        return validate_tier_order(value)


class EscalationPolicyCreate(EscalationPolicyBase):
    """Request schema for creating an escalation policy."""


class EscalationPolicyUpdate(EscalationPolicyBase):
    """Request schema for replacing an escalation policy.

    Updates are full replacements; the engine picks up the new version on
    its next tick.
    """


class EscalationPolicyResponse(BaseModel):
    """Response schema for a single escalation policy."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: str | None = None
    tiers: list[Tier]
    repeat_count: int
    created_at: datetime
    updated_at: datetime

    @field_validator("tiers", mode="before")
    @classmethod
    def load_tiers(cls, value: object) -> list[Tier]:
        if value and isinstance(value, list) and isinstance(value[0], Tier):
            return value
        return parse_tiers(value)


class EscalationPolicyListResponse(BaseModel):
    """List of escalation policies."""

    policies: list[EscalationPolicyResponse]
    count: int
