"""Escalation tier resolution.

Pure functions, no I/O. Tiers are cumulative checkpoints on a single clock
anchored at alert creation: tier N fires once the alert is at least as old
as the sum of the timeouts of every tier up to and including N.
"""

from dataclasses import dataclass
from datetime import timedelta

from oncall.schemas.escalation_policy import Tier


@dataclass(frozen=True)
class EscalationDecision:
    """Decision about whether to escalate an alert."""

    should_escalate: bool
    tier: Tier | None
    reason: str
    cumulative_minutes: int | None = None


def cumulative_timeouts(tiers: list[Tier]) -> list[int]:
    """Return the cumulative timeout (minutes) at which each tier fires."""
    totals: list[int] = []
    running = 0
    for tier in tiers:
        running += tier.timeout_minutes
        totals.append(running)
    return totals


def find_next_tier_index(
    tiers: list[Tier],
    current_tier: int,
    repeat_count: int,
) -> int | None:
    """Index of the tier that follows ``current_tier``, or None if exhausted.

    When the last tier has been reached and the policy repeats, the sequence
    re-enters at the first tier. Completed cycles are not counted, so any
    ``repeat_count > 0`` repeats indefinitely.
    """
    for index, tier in enumerate(tiers):
        if tier.tier > current_tier:
            return index

    if tiers and repeat_count > 0 and current_tier >= tiers[-1].tier:
        return 0

    return None


def determine_next_tier(
    tiers: list[Tier],
    repeat_count: int,
    current_tier: int,
    alert_age: timedelta,
) -> EscalationDecision:
    """Determine if an alert should escalate and to which tier.

    Args:
        tiers: Policy tiers in policy order.
        repeat_count: Policy repeat setting (0 = no repeat).
        current_tier: Tier the alert was last escalated to (0 = never).
        alert_age: Time elapsed since the alert was created.

    Returns:
        EscalationDecision with the candidate tier when escalation is due.
        ``alert_age`` equal to the cumulative timeout escalates.
    """
    if not tiers:
        return EscalationDecision(
            should_escalate=False,
            tier=None,
            reason="Policy has no tiers",
        )

    next_index = find_next_tier_index(tiers, current_tier, repeat_count)
    if next_index is None:
        return EscalationDecision(
            should_escalate=False,
            tier=None,
            reason=f"All tiers exhausted at tier {current_tier} and no repeat configured",
        )

    candidate = tiers[next_index]
    cumulative = cumulative_timeouts(tiers)[next_index]
    age_minutes = alert_age.total_seconds() / 60

    if alert_age >= timedelta(minutes=cumulative):
        return EscalationDecision(
            should_escalate=True,
            tier=candidate,
            reason=(
                f"Alert age ({age_minutes:.1f}m) >= "
                f"tier {candidate.tier} threshold ({cumulative}m)"
            ),
            cumulative_minutes=cumulative,
        )

    return EscalationDecision(
        should_escalate=False,
        tier=None,
        reason=(
            f"Alert age ({age_minutes:.1f}m) < "
            f"tier {candidate.tier} threshold ({cumulative}m)"
        ),
        cumulative_minutes=cumulative,
    )
