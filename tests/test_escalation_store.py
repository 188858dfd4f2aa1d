"""Tests for the escalation state store."""

import uuid

import pytest
from sqlalchemy import select

from oncall.models import Alert, AlertStatus, EscalationEvent, Tenant
from oncall.services.escalation_store import (
    AdvanceResult,
    EscalationStore,
    TenantDirectory,
)


class TestTenantDirectory:
    """Tests for tenant enumeration."""

    @pytest.mark.asyncio
    async def test_lists_tenants_by_name(self, db_session, session_maker):
        db_session.add_all(
            [
                Tenant(name="Zeta", slug="zeta", config={}),
                Tenant(name="Alpha", slug="alpha", config={}),
            ]
        )
        await db_session.commit()

        tenants = await TenantDirectory(session_maker).list_tenants()

        assert [t.slug for t in tenants] == ["alpha", "zeta"]
        assert tenants[0].schema == "tenant_alpha"


class TestListEscalatable:
    """Tests for EscalationStore.list_escalatable."""

    @pytest.mark.asyncio
    async def test_only_firing_alerts_with_policy(self, session_maker, make_policy, make_alert):
        policy = await make_policy()
        firing = await make_alert(policy, age_minutes=10)
        await make_alert(policy, status=AlertStatus.ACKNOWLEDGED)
        await make_alert(policy, status=AlertStatus.RESOLVED)
        await make_alert(None)

        async with session_maker() as session:
            alerts = await EscalationStore(session).list_escalatable()

        assert [a.id for a in alerts] == [firing.id]
        assert alerts[0].policy_id == policy.id

    @pytest.mark.asyncio
    async def test_oldest_first(self, session_maker, make_policy, make_alert):
        policy = await make_policy()
        newer = await make_alert(policy, age_minutes=1)
        older = await make_alert(policy, age_minutes=20)

        async with session_maker() as session:
            alerts = await EscalationStore(session).list_escalatable()

        assert [a.id for a in alerts] == [older.id, newer.id]

    @pytest.mark.asyncio
    async def test_null_tier_reads_as_zero(self, session_maker, make_policy, make_alert):
        policy = await make_policy()
        await make_alert(policy, current_tier=None)

        async with session_maker() as session:
            alerts = await EscalationStore(session).list_escalatable()

        assert alerts[0].current_tier == 0


class TestGetPolicy:
    """Tests for EscalationStore.get_policy."""

    @pytest.mark.asyncio
    async def test_returns_parsed_snapshot(self, session_maker, make_policy):
        policy = await make_policy(repeat_count=2)

        async with session_maker() as session:
            snapshot = await EscalationStore(session).get_policy(policy.id)

        assert snapshot.name == "Primary on-call"
        assert [t.tier for t in snapshot.tiers] == [1, 2]
        assert snapshot.repeat_count == 2

    @pytest.mark.asyncio
    async def test_missing_policy(self, session_maker):
        async with session_maker() as session:
            assert await EscalationStore(session).get_policy(uuid.uuid4()) is None

    @pytest.mark.asyncio
    async def test_unrouted_notify_method_is_kept(self, session_maker, make_policy):
        policy = await make_policy(
            tiers=[
                {"tier": 1, "timeout_minutes": 5, "notify_via": ["slack"], "targets": ["ops"]},
            ]
        )

        async with session_maker() as session:
            snapshot = await EscalationStore(session).get_policy(policy.id)

        assert [t.notify_via for t in snapshot.tiers] == [["slack"]]

    @pytest.mark.asyncio
    async def test_malformed_tiers_parse_as_empty(self, session_maker, make_policy):
        policy = await make_policy(tiers=[{"tier": "one"}])

        async with session_maker() as session:
            snapshot = await EscalationStore(session).get_policy(policy.id)

        assert snapshot.tiers == []


class TestAdvanceTier:
    """Tests for the conditional tier advance."""

    @pytest.mark.asyncio
    async def test_advances_from_expected_tier(self, session_maker, make_policy, make_alert):
        policy = await make_policy()
        alert = await make_alert(policy)

        async with session_maker() as session:
            store = EscalationStore(session)
            result = await store.advance_tier(alert.id, 0, 1)
            await store.commit()

        assert result is AdvanceResult.ADVANCED
        async with session_maker() as session:
            stored = await session.get(Alert, alert.id)
            assert stored.current_escalation_tier == 1

    @pytest.mark.asyncio
    async def test_null_tier_matches_zero(self, session_maker, make_policy, make_alert):
        policy = await make_policy()
        alert = await make_alert(policy, current_tier=None)

        async with session_maker() as session:
            result = await EscalationStore(session).advance_tier(alert.id, 0, 1)

        assert result is AdvanceResult.ADVANCED

    @pytest.mark.asyncio
    async def test_second_advance_from_same_tier_conflicts(
        self, session_maker, make_policy, make_alert
    ):
        policy = await make_policy()
        alert = await make_alert(policy)

        async with session_maker() as session:
            store = EscalationStore(session)
            first = await store.advance_tier(alert.id, 0, 1)
            await store.commit()

        async with session_maker() as session:
            store = EscalationStore(session)
            second = await store.advance_tier(alert.id, 0, 1)
            await store.rollback()

        assert first is AdvanceResult.ADVANCED
        assert second is AdvanceResult.CONFLICT

    @pytest.mark.asyncio
    async def test_acknowledged_alert_conflicts(self, session_maker, make_policy, make_alert):
        policy = await make_policy()
        alert = await make_alert(policy, status=AlertStatus.ACKNOWLEDGED)

        async with session_maker() as session:
            result = await EscalationStore(session).advance_tier(alert.id, 0, 1)

        assert result is AdvanceResult.CONFLICT

    @pytest.mark.asyncio
    async def test_missing_alert(self, session_maker):
        async with session_maker() as session:
            result = await EscalationStore(session).advance_tier(uuid.uuid4(), 0, 1)

        assert result is AdvanceResult.NOT_FOUND


class TestEvents:
    """Tests for event append and listing."""

    @pytest.mark.asyncio
    async def test_append_is_rolled_back_with_advance(
        self, session_maker, make_policy, make_alert
    ):
        policy = await make_policy()
        alert = await make_alert(policy)

        async with session_maker() as session:
            store = EscalationStore(session)
            await store.advance_tier(alert.id, 0, 1)
            await store.append_event(alert.id, policy.id, 1, "slack_dm", "delivered")
            await store.rollback()

        async with session_maker() as session:
            stored = await session.get(Alert, alert.id)
            events = (await session.execute(select(EscalationEvent))).scalars().all()

        assert stored.current_escalation_tier == 0
        assert events == []

    @pytest.mark.asyncio
    async def test_list_events_oldest_first(self, session_maker, make_policy, make_alert):
        policy = await make_policy()
        alert = await make_alert(policy)

        async with session_maker() as session:
            store = EscalationStore(session)
            await store.append_event(alert.id, policy.id, 1, "slack_dm", "delivered")
            await store.append_event(alert.id, policy.id, 2, "phone", "failed: busy")
            await store.commit()

        async with session_maker() as session:
            events = await EscalationStore(session).list_events(alert.id)

        assert [e.tier for e in events] == [1, 2]
        assert events[0].action == "escalate"
        assert events[1].notify_result == "failed: busy"

    @pytest.mark.asyncio
    async def test_delivery_result_is_recorded_once(
        self, session_maker, make_policy, make_alert
    ):
        policy = await make_policy()
        alert = await make_alert(policy)

        async with session_maker() as session:
            store = EscalationStore(session)
            event = await store.append_event(alert.id, policy.id, 1, "slack_dm", None)
            await store.commit()
            first = await store.record_delivery(event.id, "failed: timeout")
            second = await store.record_delivery(event.id, "delivered")
            await store.commit()

        async with session_maker() as session:
            events = await EscalationStore(session).list_events(alert.id)

        assert first is True
        assert second is False
        assert events[0].notify_result == "failed: timeout"
