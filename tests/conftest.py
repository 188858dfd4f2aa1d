"""Pytest configuration and shared fixtures.

Tests run against an in-memory SQLite database (aiosqlite). Tenant sessions
are built without a schema translation since SQLite has no schemas; the
tenant directory and the tenant tables share the one database.
"""

import os
import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from fastapi import Depends
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set testing mode BEFORE importing app
os.environ["TESTING"] = "true"
os.environ["ESCALATION_CHECK_ENABLED"] = "false"

from oncall.config import settings

settings.testing = True

from oncall.core.tenancy import get_tenant, get_tenant_db
from oncall.database import get_db, tenant_session_maker
from oncall.main import app
from oncall.models import Alert, AlertStatus, Base, EscalationPolicy, Tenant
from oncall.services.escalation_store import EscalationStore, TenantRef

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

TWO_TIER_POLICY = [
    {
        "tier": 1,
        "timeout_minutes": 5,
        "notify_via": ["slack_dm"],
        "targets": ["oncall_primary"],
    },
    {
        "tier": 2,
        "timeout_minutes": 10,
        "notify_via": ["phone"],
        "targets": ["team_lead"],
    },
]


@pytest_asyncio.fixture
async def db_engine():
    """Fresh in-memory database with all tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine) -> async_sessionmaker[AsyncSession]:
    return tenant_session_maker(db_engine, None)


@pytest_asyncio.fixture
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for each test."""
    async with session_maker() as session:
        yield session


@pytest.fixture
def store_factory(session_maker):
    """Store factory opening an EscalationStore on the test database."""

    @asynccontextmanager
    async def factory(tenant: TenantRef):
        async with session_maker() as session:
            yield EscalationStore(session)

    return factory


@pytest_asyncio.fixture
async def tenant(db_session) -> Tenant:
    tenant = Tenant(name="Acme", slug="acme", config={})
    db_session.add(tenant)
    await db_session.commit()
    await db_session.refresh(tenant)
    return tenant


@pytest.fixture
def tenant_ref(tenant) -> TenantRef:
    return TenantRef(id=tenant.id, slug=tenant.slug, name=tenant.name)


async def _create_policy(
    db: AsyncSession,
    tiers: list[dict] | None = None,
    repeat_count: int = 0,
    name: str = "Primary on-call",
) -> EscalationPolicy:
    policy = EscalationPolicy(
        name=name,
        tiers=TWO_TIER_POLICY if tiers is None else tiers,
        repeat_count=repeat_count,
    )
    db.add(policy)
    await db.commit()
    await db.refresh(policy)
    return policy


async def _create_alert(
    db: AsyncSession,
    policy: EscalationPolicy | None,
    age_minutes: float = 0,
    current_tier: int | None = 0,
    status: AlertStatus = AlertStatus.FIRING,
    title: str = "Disk usage above 90%",
) -> Alert:
    created = NOW - timedelta(minutes=age_minutes)
    alert = Alert(
        fingerprint=uuid.uuid4().hex,
        status=status.value,
        severity="critical",
        source="prometheus",
        title=title,
        escalation_policy_id=policy.id if policy is not None else None,
        current_escalation_tier=current_tier,
        created_at=created,
        updated_at=created,
    )
    db.add(alert)
    await db.commit()
    await db.refresh(alert)
    return alert


@pytest_asyncio.fixture
async def client(session_maker) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client with database dependencies bound to the test database."""

    async def override_get_db():
        async with session_maker() as session:
            yield session

    async def override_get_tenant_db(tenant: Tenant = Depends(get_tenant)):
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_tenant_db] = override_get_tenant_db
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def now() -> datetime:
    """Fixed clock used by engine tests; alert ages are relative to it."""
    return NOW


@pytest.fixture
def make_policy(db_session):
    """Create an escalation policy (two-tier policy by default)."""

    async def make(**kwargs) -> EscalationPolicy:
        return await _create_policy(db_session, **kwargs)

    return make


@pytest.fixture
def make_alert(db_session):
    """Create an alert ``age_minutes`` old relative to the fixed clock."""

    async def make(policy: EscalationPolicy | None, **kwargs) -> Alert:
        return await _create_alert(db_session, policy, **kwargs)

    return make
