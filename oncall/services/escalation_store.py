"""Escalation state store.

Per-tenant unit of work used by the escalation engine. Reads return frozen
snapshots rather than ORM instances so that a rollback after one alert never
leaves expired objects behind for the next.

The only write to alert state is ``advance_tier``: a single conditional
UPDATE keyed on the tier the caller last observed. Two writers racing to
advance the same alert from the same tier cannot both succeed; the loser
sees ``AdvanceResult.CONFLICT``.
"""

import enum
import uuid
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from oncall.database import get_session_maker, tenant_schema, tenant_session
from oncall.logging_config import get_logger
from oncall.models.alert import Alert, AlertStatus
from oncall.models.base import utcnow
from oncall.models.escalation_event import EscalationAction, EscalationEvent
from oncall.models.escalation_policy import EscalationPolicy
from oncall.models.tenant import Tenant
from oncall.schemas.escalation_policy import Tier, parse_tiers

logger = get_logger(__name__)


class EscalationStoreError(Exception):
    """Raised when the escalation store cannot complete an operation."""


class AdvanceResult(str, enum.Enum):
    """Outcome of a conditional tier advance."""

    ADVANCED = "advanced"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class TenantRef:
    """A tenant to process."""

    id: uuid.UUID
    slug: str
    name: str

    @property
    def schema(self) -> str:
        return tenant_schema(self.slug)


@dataclass(frozen=True)
class EscalatableAlert:
    """The subset of alert state the engine needs."""

    id: uuid.UUID
    title: str
    severity: str
    status: str
    policy_id: uuid.UUID | None
    current_tier: int
    created_at: datetime


@dataclass(frozen=True)
class PolicySnapshot:
    """An escalation policy as read at evaluation time."""

    id: uuid.UUID
    name: str
    tiers: list[Tier]
    repeat_count: int


class TenantDirectory:
    """Enumerates tenants from the global ``tenants`` table."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
    ):
        self._session_maker = session_maker

    async def list_tenants(self) -> list[TenantRef]:
        session_maker = self._session_maker or get_session_maker()
        async with session_maker() as db:
            result = await db.execute(select(Tenant).order_by(Tenant.name))
            return [
                TenantRef(id=t.id, slug=t.slug, name=t.name)
                for t in result.scalars().all()
            ]


class EscalationStore:
    """Tenant-scoped escalation reads and writes over one session.

    Writes are not committed until ``commit()`` so that a tier advance and
    its escalation event land atomically. Delivery results are recorded
    afterwards, in a transaction of their own.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def list_escalatable(self) -> list[EscalatableAlert]:
        """List firing alerts bound to a policy, oldest first."""
        result = await self._session.execute(
            select(Alert)
            .where(
                Alert.status == AlertStatus.FIRING.value,
                Alert.escalation_policy_id.is_not(None),
            )
            .order_by(Alert.created_at.asc())
        )
        return [
            EscalatableAlert(
                id=alert.id,
                title=alert.title,
                severity=alert.severity,
                status=alert.status,
                policy_id=alert.escalation_policy_id,
                current_tier=alert.current_escalation_tier or 0,
                created_at=alert.created_at,
            )
            for alert in result.scalars().all()
        ]

    async def get_policy(self, policy_id: uuid.UUID) -> PolicySnapshot | None:
        """Load the latest version of a policy, or None if it does not exist."""
        result = await self._session.execute(
            select(EscalationPolicy).where(EscalationPolicy.id == policy_id)
        )
        policy = result.scalar_one_or_none()
        if policy is None:
            return None
        return PolicySnapshot(
            id=policy.id,
            name=policy.name,
            tiers=parse_tiers(policy.tiers),
            repeat_count=policy.repeat_count or 0,
        )

    async def advance_tier(
        self,
        alert_id: uuid.UUID,
        expected_tier: int,
        new_tier: int,
    ) -> AdvanceResult:
        """Move an alert from ``expected_tier`` to ``new_tier`` if still current.

        The alert must still be firing. A NULL stored tier counts as 0.
        """
        result = await self._session.execute(
            update(Alert)
            .where(
                Alert.id == alert_id,
                func.coalesce(Alert.current_escalation_tier, 0) == expected_tier,
                Alert.status == AlertStatus.FIRING.value,
            )
            .values(current_escalation_tier=new_tier, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return AdvanceResult.ADVANCED
        if result.rowcount > 1:
            msg = f"Tier advance matched {result.rowcount} rows for alert {alert_id}"
            raise EscalationStoreError(msg)

        exists = await self._session.scalar(select(Alert.id).where(Alert.id == alert_id))
        return AdvanceResult.CONFLICT if exists is not None else AdvanceResult.NOT_FOUND

    async def append_event(
        self,
        alert_id: uuid.UUID,
        policy_id: uuid.UUID,
        tier: int,
        notify_method: str | None,
        notify_result: str | None,
    ) -> EscalationEvent:
        """Insert an escalation event in the current transaction."""
        event = EscalationEvent(
            alert_id=alert_id,
            policy_id=policy_id,
            tier=tier,
            action=EscalationAction.ESCALATE.value,
            notify_method=notify_method,
            notify_result=notify_result,
            created_at=utcnow(),
        )
        self._session.add(event)
        await self._session.flush()
        return event

    async def record_delivery(self, event_id: uuid.UUID, notify_result: str) -> bool:
        """Fill in the delivery result of an event that has none yet.

        The result is written at most once; the rest of the event row is
        never changed.
        """
        result = await self._session.execute(
            update(EscalationEvent)
            .where(
                EscalationEvent.id == event_id,
                EscalationEvent.notify_result.is_(None),
            )
            .values(notify_result=notify_result)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def list_events(self, alert_id: uuid.UUID) -> list[EscalationEvent]:
        """Escalation events for an alert, oldest first."""
        result = await self._session.execute(
            select(EscalationEvent)
            .where(EscalationEvent.alert_id == alert_id)
            .order_by(EscalationEvent.created_at)
        )
        return list(result.scalars().all())

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()


StoreFactory = Callable[[TenantRef], AbstractAsyncContextManager[EscalationStore]]


@asynccontextmanager
async def open_tenant_store(tenant: TenantRef) -> AsyncIterator[EscalationStore]:
    """Open an EscalationStore routed to the tenant's schema."""
    async with tenant_session(tenant.slug) as session:
        yield EscalationStore(session)
