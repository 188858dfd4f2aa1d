# Database Models
from oncall.models.alert import Alert, AlertSeverity, AlertStatus
from oncall.models.base import Base, TimestampMixin
from oncall.models.escalation_event import EscalationAction, EscalationEvent
from oncall.models.escalation_policy import EscalationPolicy
from oncall.models.tenant import Tenant

__all__ = [
    "Alert",
    "AlertSeverity",
    "AlertStatus",
    "Base",
    "EscalationAction",
    "EscalationEvent",
    "EscalationPolicy",
    "Tenant",
    "TimestampMixin",
]
