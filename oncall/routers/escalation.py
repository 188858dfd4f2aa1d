"""Escalation policy router.

Policy administration, dry-run preview and per-alert escalation history.
"""

import uuid

from fastapi import APIRouter, Body, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from oncall.core.tenancy import get_tenant_db
from oncall.logging_config import get_logger
from oncall.schemas.dry_run import DryRunRequest, DryRunResponse
from oncall.schemas.escalation_event import (
    EscalationEventListResponse,
    EscalationEventResponse,
)
from oncall.schemas.escalation_policy import (
    EscalationPolicyCreate,
    EscalationPolicyListResponse,
    EscalationPolicyResponse,
    EscalationPolicyUpdate,
)
from oncall.services.dry_run import simulate_policy
from oncall.services.escalation_policy import (
    create_policy,
    delete_policy,
    get_policy,
    list_events_for_alert,
    list_policies,
    update_policy,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/escalation-policies", tags=["escalation"])


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Escalation policy not found",
    )


@router.get("", response_model=EscalationPolicyListResponse)
async def get_policies(
    db: AsyncSession = Depends(get_tenant_db),
) -> EscalationPolicyListResponse:
    """List the tenant's escalation policies."""
    policies = await list_policies(db)
    return EscalationPolicyListResponse(
        policies=[EscalationPolicyResponse.model_validate(p) for p in policies],
        count=len(policies),
    )


@router.post(
    "",
    response_model=EscalationPolicyResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_policy(
    data: EscalationPolicyCreate,
    db: AsyncSession = Depends(get_tenant_db),
) -> EscalationPolicyResponse:
    """Create an escalation policy."""
    policy = await create_policy(data, db)
    return EscalationPolicyResponse.model_validate(policy)


@router.get("/{policy_id}", response_model=EscalationPolicyResponse)
async def read_policy(
    policy_id: uuid.UUID,
    db: AsyncSession = Depends(get_tenant_db),
) -> EscalationPolicyResponse:
    """Get a single escalation policy."""
    policy = await get_policy(policy_id, db)
    if policy is None:
        raise _not_found()
    return EscalationPolicyResponse.model_validate(policy)


@router.put("/{policy_id}", response_model=EscalationPolicyResponse)
async def replace_policy(
    policy_id: uuid.UUID,
    data: EscalationPolicyUpdate,
    db: AsyncSession = Depends(get_tenant_db),
) -> EscalationPolicyResponse:
    """Replace an escalation policy.

    Alerts already bound to the policy are evaluated against the new tiers
    on the next escalation tick.
    """
    policy = await update_policy(policy_id, data, db)
    if policy is None:
        raise _not_found()
    return EscalationPolicyResponse.model_validate(policy)


@router.delete("/{policy_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_policy(
    policy_id: uuid.UUID,
    db: AsyncSession = Depends(get_tenant_db),
) -> None:
    """Delete an escalation policy.

    Returns 409 while alerts or escalation events still reference it.
    """
    try:
        deleted = await delete_policy(policy_id, db)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc

    if not deleted:
        raise _not_found()


@router.post("/{policy_id}/dry-run", response_model=DryRunResponse)
async def dry_run_policy(
    policy_id: uuid.UUID,
    request: DryRunRequest | None = Body(default=None),
    db: AsyncSession = Depends(get_tenant_db),
) -> DryRunResponse:
    """Preview the escalation timeline of a policy without a real alert."""
    policy = await get_policy(policy_id, db)
    if policy is None:
        raise _not_found()

    response = simulate_policy(policy)
    logger.info(
        "Escalation policy dry run",
        policy_id=str(policy_id),
        steps=len(response.steps),
        alert_title=request.alert_title if request else None,
    )
    return response


@router.get(
    "/{policy_id}/events/{alert_id}",
    response_model=EscalationEventListResponse,
)
async def get_alert_events(
    policy_id: uuid.UUID,
    alert_id: uuid.UUID,
    db: AsyncSession = Depends(get_tenant_db),
) -> EscalationEventListResponse:
    """Escalation history of an alert, oldest first.

    All of the alert's events are returned; ``policy_id`` only scopes the
    route.
    """
    events = await list_events_for_alert(alert_id, db)
    return EscalationEventListResponse(
        events=[EscalationEventResponse.model_validate(e) for e in events],
        count=len(events),
    )
