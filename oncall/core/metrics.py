"""Prometheus metrics for the escalation engine."""

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

ALERTS_ESCALATED_TOTAL = Counter(
    "oncall_alerts_escalated_total",
    "Total number of alerts escalated, by tier.",
    ["tier"],
)

ALERT_ACKS_RECEIVED_TOTAL = Counter(
    "oncall_alert_acks_received_total",
    "Acknowledgment interrupts received on the pub/sub channel.",
)

ESCALATION_TICK_ERRORS_TOTAL = Counter(
    "oncall_escalation_tick_errors_total",
    "Errors during escalation ticks, by scope (tick, tenant, alert).",
    ["scope"],
)

ESCALATION_TICK_DURATION_SECONDS = Histogram(
    "oncall_escalation_tick_duration_seconds",
    "Duration of one escalation tick across all tenants.",
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30, 60),
)


def render_latest() -> tuple[bytes, str]:
    """Render the default registry in the Prometheus text format."""
    return generate_latest(), CONTENT_TYPE_LATEST
