"""Alert acknowledgment.

Minimal acknowledgment path: mark the alert acknowledged, then publish the
interrupt so the escalation worker hears about it. The status change is
what stops escalation; the interrupt is informational.
"""

import uuid

import redis.asyncio as aioredis
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from oncall.logging_config import get_logger
from oncall.models.alert import Alert, AlertStatus
from oncall.models.base import utcnow
from oncall.services.ack_channel import publish_ack

logger = get_logger(__name__)


async def acknowledge_alert(
    db: AsyncSession,
    alert_id: uuid.UUID,
) -> Alert | None:
    """Mark a firing alert as acknowledged.

    Acknowledging an already acknowledged or resolved alert is a no-op.

    Returns:
        The alert, or None if it does not exist.
    """
    result = await db.execute(select(Alert).where(Alert.id == alert_id))
    alert = result.scalar_one_or_none()

    if alert is None:
        return None

    if alert.status == AlertStatus.FIRING.value:
        alert.status = AlertStatus.ACKNOWLEDGED.value
        alert.acknowledged_at = utcnow()
        await db.commit()
        await db.refresh(alert)
        logger.info("Alert acknowledged", alert_id=str(alert_id))

    return alert


async def acknowledge_and_notify(
    db: AsyncSession,
    redis: aioredis.Redis | None,
    tenant: str,
    alert_id: uuid.UUID,
) -> Alert | None:
    """Acknowledge an alert and publish the acknowledgment interrupt."""
    alert = await acknowledge_alert(db, alert_id)
    if alert is not None and redis is not None:
        await publish_ack(redis, tenant, alert_id)
    return alert
