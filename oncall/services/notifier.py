"""Escalation notification delivery.

The engine talks to a ``Notifier``; concrete channels (chat, SMS, phone)
live behind it. Delivery is best-effort relative to the tier transition:
a failed delivery is reported in the result, never raised to the engine.
"""

import abc
import uuid
from dataclasses import dataclass

import httpx

from oncall.config import settings
from oncall.logging_config import get_logger

logger = get_logger(__name__)


class NotifierError(Exception):
    """Error delivering a notification through a channel."""


@dataclass(frozen=True)
class AlertSummary:
    """What a notification says about the escalated alert."""

    alert_id: uuid.UUID
    tenant: str
    title: str
    severity: str
    tier: int
    policy_id: uuid.UUID


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of a delivery attempt."""

    delivered: bool
    reason: str | None = None

    @classmethod
    def ok(cls) -> "DeliveryResult":
        return cls(delivered=True)

    @classmethod
    def failed(cls, reason: str) -> "DeliveryResult":
        return cls(delivered=False, reason=reason)

    def as_event_result(self) -> str:
        """Render for the ``notify_result`` column of an escalation event."""
        if self.delivered:
            return "delivered"
        return f"failed: {self.reason or 'unknown'}"


def format_escalation_message(summary: AlertSummary) -> str:
    """Build the plain-text notification body for an escalation."""
    return (
        f"[ESCALATION tier {summary.tier}] {summary.severity.upper()}: "
        f"{summary.title}\n"
        f"Alert {summary.alert_id} is still unacknowledged.\n"
        f"Please acknowledge or hand off."
    )


class Notifier(abc.ABC):
    """Delivers escalation notifications."""

    @abc.abstractmethod
    async def deliver(
        self,
        method: str,
        targets: list[str],
        summary: AlertSummary,
    ) -> DeliveryResult:
        """Deliver a notification.

        Args:
            method: Delivery method (e.g. ``slack_dm``, ``phone``).
            targets: Opaque target refs from the policy tier.
            summary: Alert being escalated.

        Returns:
            DeliveryResult; failures are returned, not raised.
        """


class LogNotifier(Notifier):
    """Records the notification in the log only.

    Used for methods with no configured channel so escalations remain
    visible in logs.
    """

    async def deliver(
        self,
        method: str,
        targets: list[str],
        summary: AlertSummary,
    ) -> DeliveryResult:
        logger.info(
            "Escalation notification (log only)",
            method=method,
            targets=targets,
            alert_id=str(summary.alert_id),
            tier=summary.tier,
        )
        return DeliveryResult.ok()


class WebhookNotifier(Notifier):
    """Posts the notification as JSON to a webhook URL."""

    def __init__(self, url: str, timeout: float | None = None):
        self.url = url
        self._timeout = timeout if timeout is not None else settings.notifier_timeout_seconds

    async def _post(self, payload: dict) -> None:
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.post(self.url, json=payload)

        if response.status_code >= 300:
            raise NotifierError(
                f"Webhook returned {response.status_code}: {response.text[:200]}"
            )

    async def deliver(
        self,
        method: str,
        targets: list[str],
        summary: AlertSummary,
    ) -> DeliveryResult:
        payload = {
            "method": method,
            "targets": targets,
            "message": format_escalation_message(summary),
            "alert": {
                "id": str(summary.alert_id),
                "tenant": summary.tenant,
                "title": summary.title,
                "severity": summary.severity,
                "tier": summary.tier,
                "policy_id": str(summary.policy_id),
            },
        }
        try:
            await self._post(payload)
        except (NotifierError, httpx.HTTPError) as e:
            logger.warning(
                "Webhook delivery failed",
                method=method,
                alert_id=str(summary.alert_id),
                error=str(e),
            )
            return DeliveryResult.failed(str(e) or type(e).__name__)

        return DeliveryResult.ok()


class RoutingNotifier(Notifier):
    """Dispatches to a notifier per delivery method, with a fallback."""

    def __init__(
        self,
        routes: dict[str, Notifier],
        fallback: Notifier | None = None,
    ):
        self._routes = dict(routes)
        self._fallback = fallback or LogNotifier()

    def notifier_for(self, method: str) -> Notifier:
        return self._routes.get(method, self._fallback)

    async def deliver(
        self,
        method: str,
        targets: list[str],
        summary: AlertSummary,
    ) -> DeliveryResult:
        return await self.notifier_for(method).deliver(method, targets, summary)


def build_notifier() -> Notifier:
    """Build the notifier from ``settings.notifier_webhook_urls``."""
    routes: dict[str, Notifier] = {
        method: WebhookNotifier(url)
        for method, url in settings.notifier_webhook_urls.items()
        if url
    }
    return RoutingNotifier(routes)
