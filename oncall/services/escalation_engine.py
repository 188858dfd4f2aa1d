"""Alert escalation engine.

Re-evaluates every firing, policy-bound alert of every tenant against its
escalation policy and escalates the ones whose next tier is due.

Per alert, strictly in order: load policy, resolve the next tier, advance
the stored tier with a conditional update, append the escalation event,
commit, then deliver the notification and record its result. The advance
and the event share a transaction, so an event exists if and only if the
advance committed. Delivery runs after that commit, so no row lock is held
across notifier I/O and a failed delivery never undoes the advance.
A lost advance race is a normal outcome and is not retried within the tick.

All state lives in the database and alert age is measured from
``created_at``, so a restarted engine simply resumes on its next tick.
"""

import enum
import json
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

import redis.asyncio as aioredis

from oncall.config import settings
from oncall.core.metrics import (
    ALERTS_ESCALATED_TOTAL,
    ESCALATION_TICK_DURATION_SECONDS,
    ESCALATION_TICK_ERRORS_TOTAL,
)
from oncall.logging_config import get_logger, log_context
from oncall.models.base import utcnow
from oncall.services.escalation_store import (
    AdvanceResult,
    EscalatableAlert,
    EscalationStore,
    StoreFactory,
    TenantDirectory,
    TenantRef,
    open_tenant_store,
)
from oncall.services.notifier import AlertSummary, DeliveryResult, Notifier
from oncall.services.tier_resolver import determine_next_tier

logger = get_logger(__name__)


class AlertOutcome(str, enum.Enum):
    """Result of evaluating one alert."""

    SKIPPED = "skipped"
    NOT_DUE = "not_due"
    ESCALATED = "escalated"
    CONFLICT = "conflict"


@dataclass
class TickSummary:
    """Counters for one escalation tick."""

    tenants: int = 0
    evaluated: int = 0
    escalated: int = 0
    conflicts: int = 0
    errors: int = 0


def _as_utc(value: datetime) -> datetime:
    # SQLite returns naive datetimes; stored values are always UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class EscalationEngine:
    """Evaluates and escalates alerts across all tenants.

    Collaborators are injected: the tenant directory, a factory opening a
    tenant-scoped ``EscalationStore``, the ``Notifier`` and, optionally, a
    Redis client used to announce escalations to downstream consumers.
    """

    def __init__(
        self,
        tenants: TenantDirectory,
        notifier: Notifier,
        store_factory: StoreFactory = open_tenant_store,
        redis: aioredis.Redis | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._tenants = tenants
        self._notifier = notifier
        self._store_factory = store_factory
        self._redis = redis
        self._clock = clock
        self._stop_requested = False

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def request_stop(self) -> None:
        """Finish the alert in flight, then end the current tick early."""
        self._stop_requested = True

    def clear_stop(self) -> None:
        self._stop_requested = False

    async def tick(self) -> TickSummary:
        """Run one escalation pass over every tenant.

        Never raises: failures are logged and counted, and the next tick
        retries from persisted state.
        """
        summary = TickSummary()
        started = time.perf_counter()

        with log_context(correlation_id=f"tick-{uuid.uuid4().hex[:12]}"):
            try:
                tenants = await self._tenants.list_tenants()
            except Exception as e:
                logger.error("Failed to list tenants for escalation", error=str(e))
                ESCALATION_TICK_ERRORS_TOTAL.labels(scope="tick").inc()
                summary.errors += 1
                return summary

            for tenant in tenants:
                if self._stop_requested:
                    logger.info("Escalation tick interrupted by shutdown")
                    break

                summary.tenants += 1
                with log_context(tenant=tenant.slug):
                    try:
                        await self.process_tenant(tenant, summary)
                    except Exception as e:
                        logger.error(
                            "Escalation processing failed for tenant",
                            error=str(e),
                        )
                        ESCALATION_TICK_ERRORS_TOTAL.labels(scope="tenant").inc()
                        summary.errors += 1

            duration = time.perf_counter() - started
            ESCALATION_TICK_DURATION_SECONDS.observe(duration)
            logger.info(
                "Escalation tick completed",
                tenants=summary.tenants,
                evaluated=summary.evaluated,
                escalated=summary.escalated,
                conflicts=summary.conflicts,
                errors=summary.errors,
                duration_ms=round(duration * 1000, 2),
            )

        return summary

    async def process_tenant(self, tenant: TenantRef, summary: TickSummary) -> None:
        """Evaluate every escalatable alert of one tenant.

        Per-alert failures are rolled back, logged and counted; they do not
        stop the remaining alerts.
        """
        async with self._store_factory(tenant) as store:
            alerts = await store.list_escalatable()

            for alert in alerts:
                if self._stop_requested:
                    break

                summary.evaluated += 1
                try:
                    outcome = await self.process_alert(store, tenant, alert)
                except Exception as e:
                    await self._rollback_quietly(store, alert_id=str(alert.id))
                    logger.error(
                        "Escalation failed for alert",
                        alert_id=str(alert.id),
                        error=str(e),
                    )
                    ESCALATION_TICK_ERRORS_TOTAL.labels(scope="alert").inc()
                    summary.errors += 1
                    continue

                if outcome is AlertOutcome.ESCALATED:
                    summary.escalated += 1
                elif outcome is AlertOutcome.CONFLICT:
                    summary.conflicts += 1

    async def process_alert(
        self,
        store: EscalationStore,
        tenant: TenantRef,
        alert: EscalatableAlert,
    ) -> AlertOutcome:
        """Escalate a single alert if its next tier is due."""
        if alert.policy_id is None:
            return AlertOutcome.SKIPPED

        policy = await store.get_policy(alert.policy_id)
        if policy is None:
            logger.warning(
                "Escalation policy not found, skipping alert",
                alert_id=str(alert.id),
                policy_id=str(alert.policy_id),
            )
            return AlertOutcome.SKIPPED

        alert_age = self._clock() - _as_utc(alert.created_at)
        decision = determine_next_tier(
            policy.tiers,
            policy.repeat_count,
            alert.current_tier,
            alert_age,
        )

        if not decision.should_escalate:
            logger.debug(
                "No escalation needed",
                alert_id=str(alert.id),
                reason=decision.reason,
            )
            return AlertOutcome.NOT_DUE

        tier = decision.tier
        logger.info(
            "Escalating alert",
            alert_id=str(alert.id),
            policy_id=str(policy.id),
            from_tier=alert.current_tier,
            to_tier=tier.tier,
            elapsed_minutes=int(alert_age.total_seconds() // 60),
        )

        result = await store.advance_tier(alert.id, alert.current_tier, tier.tier)
        if result is not AdvanceResult.ADVANCED:
            await store.rollback()
            logger.info(
                "Tier advance not applied",
                alert_id=str(alert.id),
                expected_tier=alert.current_tier,
                to_tier=tier.tier,
                result=result.value,
            )
            if result is AdvanceResult.CONFLICT:
                return AlertOutcome.CONFLICT
            return AlertOutcome.SKIPPED

        method = tier.notify_via[0]
        event = await store.append_event(
            alert_id=alert.id,
            policy_id=policy.id,
            tier=tier.tier,
            notify_method=method,
            notify_result=None,
        )
        await store.commit()
        ALERTS_ESCALATED_TOTAL.labels(tier=str(tier.tier)).inc()

        alert_summary = AlertSummary(
            alert_id=alert.id,
            tenant=tenant.slug,
            title=alert.title,
            severity=alert.severity,
            tier=tier.tier,
            policy_id=policy.id,
        )
        delivery = await self._deliver(method, list(tier.targets), alert_summary)
        await self._record_delivery(store, event.id, delivery)
        await self._announce(alert_summary)

        logger.info(
            "Escalation event recorded",
            alert_id=str(alert.id),
            event_id=str(event.id),
            tier=tier.tier,
            notify_method=method,
            delivered=delivery.delivered,
        )
        return AlertOutcome.ESCALATED

    async def _deliver(
        self,
        method: str,
        targets: list[str],
        summary: AlertSummary,
    ) -> DeliveryResult:
        """Deliver through the notifier; any failure becomes a failed result."""
        try:
            result = await self._notifier.deliver(method, targets, summary)
        except Exception as e:
            result = DeliveryResult.failed(str(e) or type(e).__name__)

        if not result.delivered:
            logger.warning(
                "Escalation notification not delivered",
                alert_id=str(summary.alert_id),
                tier=summary.tier,
                method=method,
                reason=result.reason,
            )
        return result

    async def _record_delivery(
        self,
        store: EscalationStore,
        event_id: uuid.UUID,
        delivery: DeliveryResult,
    ) -> None:
        """Attach the delivery result to the committed event (best effort)."""
        try:
            await store.record_delivery(event_id, delivery.as_event_result())
            await store.commit()
        except Exception as e:
            await self._rollback_quietly(store, event_id=str(event_id))
            logger.warning(
                "Failed to record delivery result",
                event_id=str(event_id),
                error=str(e),
            )

    async def _announce(self, summary: AlertSummary) -> None:
        """Publish the escalation for downstream consumers (best effort)."""
        if self._redis is None:
            return

        payload = json.dumps(
            {
                "tenant": summary.tenant,
                "alert_id": str(summary.alert_id),
                "policy_id": str(summary.policy_id),
                "tier": summary.tier,
                "title": summary.title,
                "severity": summary.severity,
            }
        )
        try:
            await self._redis.publish(settings.escalated_channel, payload)
        except aioredis.RedisError as e:
            logger.warning(
                "Failed to publish escalation",
                alert_id=str(summary.alert_id),
                error=str(e),
            )

    async def _rollback_quietly(self, store: EscalationStore, **context) -> None:
        try:
            await store.rollback()
        except Exception as e:
            logger.warning(
                "Rollback failed after escalation error",
                error=str(e),
                **context,
            )
