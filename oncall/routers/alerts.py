"""Alerts router.

Exposes the acknowledgment path that feeds the escalation interrupt channel.
"""

import uuid
from datetime import datetime

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from oncall.core.tenancy import get_redis_client, get_tenant, get_tenant_db
from oncall.models.tenant import Tenant
from oncall.services.alert_ack import acknowledge_and_notify

router = APIRouter(prefix="/api/v1/alerts", tags=["alerts"])


class AlertAcknowledgeResponse(BaseModel):
    """Response for an acknowledged alert."""

    id: uuid.UUID
    status: str
    acknowledged_at: datetime | None
    current_escalation_tier: int


@router.post("/{alert_id}/acknowledge", response_model=AlertAcknowledgeResponse)
async def acknowledge(
    alert_id: uuid.UUID,
    tenant: Tenant = Depends(get_tenant),
    db: AsyncSession = Depends(get_tenant_db),
    redis: aioredis.Redis | None = Depends(get_redis_client),
) -> AlertAcknowledgeResponse:
    """Acknowledge an alert, stopping further escalation."""
    alert = await acknowledge_and_notify(db, redis, tenant.slug, alert_id)

    if alert is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Alert not found",
        )

    return AlertAcknowledgeResponse(
        id=alert.id,
        status=alert.status,
        acknowledged_at=alert.acknowledged_at,
        current_escalation_tier=alert.current_escalation_tier or 0,
    )
