# Business Logic Services
from oncall.services.escalation_engine import AlertOutcome, EscalationEngine, TickSummary
from oncall.services.escalation_store import (
    AdvanceResult,
    EscalationStore,
    TenantDirectory,
    TenantRef,
)
from oncall.services.scheduler import (
    EscalationScheduler,
    SchedulerState,
    build_escalation_scheduler,
)
from oncall.services.tier_resolver import EscalationDecision, determine_next_tier

__all__ = [
    "AdvanceResult",
    "AlertOutcome",
    "EscalationDecision",
    "EscalationEngine",
    "EscalationScheduler",
    "EscalationStore",
    "SchedulerState",
    "TenantDirectory",
    "TenantRef",
    "TickSummary",
    "build_escalation_scheduler",
    "determine_next_tier",
]
