"""Escalation policy administration.

CRUD operations on a tenant's escalation policies. Policies referenced by
alerts or escalation events cannot be deleted.
"""

import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from oncall.logging_config import get_logger
from oncall.models.alert import Alert
from oncall.models.escalation_event import EscalationEvent
from oncall.models.escalation_policy import EscalationPolicy
from oncall.schemas.escalation_policy import (
    EscalationPolicyCreate,
    EscalationPolicyUpdate,
)

logger = get_logger(__name__)


def _tiers_json(data: EscalationPolicyCreate | EscalationPolicyUpdate) -> list[dict]:
    return [tier.model_dump(mode="json") for tier in data.tiers]


async def list_policies(db: AsyncSession) -> list[EscalationPolicy]:
    """List all escalation policies, ordered by name."""
    result = await db.execute(select(EscalationPolicy).order_by(EscalationPolicy.name))
    return list(result.scalars().all())


async def get_policy(
    policy_id: uuid.UUID,
    db: AsyncSession,
) -> EscalationPolicy | None:
    """Get a single escalation policy."""
    result = await db.execute(
        select(EscalationPolicy).where(EscalationPolicy.id == policy_id)
    )
    return result.scalar_one_or_none()


async def create_policy(
    data: EscalationPolicyCreate,
    db: AsyncSession,
) -> EscalationPolicy:
    """Create a new escalation policy."""
    policy = EscalationPolicy(
        name=data.name,
        description=data.description,
        tiers=_tiers_json(data),
        repeat_count=data.repeat_count,
    )
    db.add(policy)
    await db.commit()
    await db.refresh(policy)

    logger.info(
        "Created escalation policy",
        policy_id=str(policy.id),
        tiers=len(data.tiers),
        repeat_count=data.repeat_count,
    )
    return policy


async def update_policy(
    policy_id: uuid.UUID,
    data: EscalationPolicyUpdate,
    db: AsyncSession,
) -> EscalationPolicy | None:
    """Replace an escalation policy. Returns None if not found.

    In-flight alerts keep their current tier; the engine evaluates them
    against the new tiers on its next tick.
    """
    policy = await get_policy(policy_id, db)
    if policy is None:
        return None

    policy.name = data.name
    policy.description = data.description
    policy.tiers = _tiers_json(data)
    policy.repeat_count = data.repeat_count

    await db.commit()
    await db.refresh(policy)

    logger.info(
        "Updated escalation policy",
        policy_id=str(policy_id),
        tiers=len(data.tiers),
    )
    return policy


async def delete_policy(
    policy_id: uuid.UUID,
    db: AsyncSession,
) -> bool:
    """Delete an escalation policy. Returns True if deleted, False if not found.

    Raises:
        ValueError: If alerts or escalation events still reference the policy.
    """
    policy = await get_policy(policy_id, db)
    if policy is None:
        return False

    referenced = await db.scalar(
        select(Alert.id).where(Alert.escalation_policy_id == policy_id).limit(1)
    )
    if referenced is None:
        referenced = await db.scalar(
            select(EscalationEvent.id)
            .where(EscalationEvent.policy_id == policy_id)
            .limit(1)
        )
    if referenced is not None:
        msg = "Escalation policy is still referenced by alerts or escalation events"
        raise ValueError(msg)

    await db.delete(policy)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        msg = "Escalation policy is still referenced by alerts or escalation events"
        raise ValueError(msg)  # noqa: B904

    logger.info("Deleted escalation policy", policy_id=str(policy_id))
    return True


async def list_events_for_alert(
    alert_id: uuid.UUID,
    db: AsyncSession,
) -> list[EscalationEvent]:
    """Escalation history for an alert, oldest first."""
    result = await db.execute(
        select(EscalationEvent)
        .where(EscalationEvent.alert_id == alert_id)
        .order_by(EscalationEvent.created_at)
    )
    return list(result.scalars().all())
