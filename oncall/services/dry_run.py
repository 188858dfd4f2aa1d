"""Escalation policy dry-run simulator.

Replays the cumulative timeout computation over every tier of a policy,
without an alert, so authors can preview the escalation timeline.
"""

from oncall.models.escalation_policy import EscalationPolicy
from oncall.schemas.dry_run import DryRunResponse, DryRunStep
from oncall.schemas.escalation_policy import parse_tiers
from oncall.services.tier_resolver import cumulative_timeouts


def simulate_policy(policy: EscalationPolicy) -> DryRunResponse:
    """Build the ordered escalation timeline for a policy.

    Args:
        policy: The stored escalation policy.

    Returns:
        DryRunResponse with one ``notify`` step per tier and the total time
        until the last tier fires.
    """
    tiers = parse_tiers(policy.tiers)
    totals = cumulative_timeouts(tiers)

    steps = [
        DryRunStep(
            tier=tier.tier,
            timeout_minutes=tier.timeout_minutes,
            cumulative_minutes=cumulative,
            notify_via=list(tier.notify_via),
            targets=list(tier.targets),
            action="notify",
        )
        for tier, cumulative in zip(tiers, totals)
    ]

    return DryRunResponse(
        policy_id=policy.id,
        policy_name=policy.name,
        steps=steps,
        total_time_minutes=totals[-1] if totals else 0,
        repeat_count=policy.repeat_count or 0,
    )
