"""Tests for escalation tier resolution."""

from datetime import timedelta

import pytest

from oncall.schemas.escalation_policy import Tier
from oncall.services.tier_resolver import (
    cumulative_timeouts,
    determine_next_tier,
    find_next_tier_index,
)


def two_tiers() -> list[Tier]:
    return [
        Tier(tier=1, timeout_minutes=5, notify_via=["slack_dm"], targets=["oncall_primary"]),
        Tier(tier=2, timeout_minutes=10, notify_via=["phone"], targets=["team_lead"]),
    ]


def minutes(value: float) -> timedelta:
    return timedelta(minutes=value)


class TestCumulativeTimeouts:
    """Tests for cumulative_timeouts."""

    def test_sums_in_policy_order(self):
        assert cumulative_timeouts(two_tiers()) == [5, 15]

    def test_empty(self):
        assert cumulative_timeouts([]) == []

    def test_monotonic(self):
        tiers = [
            Tier(tier=n, timeout_minutes=t, notify_via=["email"], targets=["ops"])
            for n, t in [(1, 1), (2, 30), (3, 2), (5, 7)]
        ]
        totals = cumulative_timeouts(tiers)
        assert all(later >= earlier for earlier, later in zip(totals, totals[1:]))
        assert totals[-1] == 40


class TestFindNextTierIndex:
    """Tests for find_next_tier_index."""

    def test_first_tier_when_never_escalated(self):
        assert find_next_tier_index(two_tiers(), 0, 0) == 0

    def test_next_tier_after_current(self):
        assert find_next_tier_index(two_tiers(), 1, 0) == 1

    def test_exhausted_without_repeat(self):
        assert find_next_tier_index(two_tiers(), 2, 0) is None

    def test_wraps_with_repeat(self):
        assert find_next_tier_index(two_tiers(), 2, 1) == 0

    def test_gap_in_tier_numbers(self):
        tiers = [
            Tier(tier=1, timeout_minutes=5, notify_via=["sms"], targets=["a"]),
            Tier(tier=4, timeout_minutes=5, notify_via=["sms"], targets=["b"]),
        ]
        assert find_next_tier_index(tiers, 2, 0) == 1

    def test_empty_tiers_with_repeat(self):
        assert find_next_tier_index([], 3, 1) is None


class TestDetermineNextTier:
    """Two-tier policy: tier 1 at 5 min, tier 2 at 5+10 min."""

    def test_not_due_before_first_threshold(self):
        decision = determine_next_tier(two_tiers(), 0, 0, minutes(3))

        assert decision.should_escalate is False
        assert decision.tier is None
        assert decision.cumulative_minutes == 5

    def test_escalates_to_tier_one(self):
        decision = determine_next_tier(two_tiers(), 0, 0, minutes(6))

        assert decision.should_escalate is True
        assert decision.tier.tier == 1
        assert decision.tier.notify_via == ["slack_dm"]
        assert decision.cumulative_minutes == 5

    def test_tier_two_uses_cumulative_threshold(self):
        decision = determine_next_tier(two_tiers(), 0, 1, minutes(10))

        assert decision.should_escalate is False
        assert decision.cumulative_minutes == 15

    def test_escalates_to_tier_two(self):
        decision = determine_next_tier(two_tiers(), 0, 1, minutes(16))

        assert decision.should_escalate is True
        assert decision.tier.tier == 2

    def test_exhausted_without_repeat(self):
        decision = determine_next_tier(two_tiers(), 0, 2, minutes(30))

        assert decision.should_escalate is False
        assert decision.tier is None
        assert "exhausted" in decision.reason

    def test_repeat_wraps_to_first_tier(self):
        decision = determine_next_tier(two_tiers(), 1, 2, minutes(30))

        assert decision.should_escalate is True
        assert decision.tier.tier == 1

    def test_boundary_is_inclusive(self):
        decision = determine_next_tier(two_tiers(), 0, 0, minutes(5))

        assert decision.should_escalate is True
        assert decision.tier.tier == 1

    def test_just_below_boundary(self):
        decision = determine_next_tier(
            two_tiers(), 0, 0, minutes(5) - timedelta(microseconds=1)
        )

        assert decision.should_escalate is False

    def test_cumulative_boundary_for_tier_two(self):
        decision = determine_next_tier(two_tiers(), 0, 1, minutes(15))

        assert decision.should_escalate is True
        assert decision.tier.tier == 2

    def test_empty_policy_never_escalates(self):
        decision = determine_next_tier([], 3, 0, minutes(10_000))

        assert decision.should_escalate is False
        assert decision.reason == "Policy has no tiers"

    def test_does_not_skip_tiers_for_old_alerts(self):
        """An alert past every threshold still advances one tier at a time."""
        decision = determine_next_tier(two_tiers(), 0, 0, minutes(120))

        assert decision.tier.tier == 1

    @pytest.mark.parametrize("current_tier", [0, 1, 2, 3, 7])
    @pytest.mark.parametrize("repeat_count", [0, 2])
    def test_only_returns_policy_tiers(self, current_tier, repeat_count):
        policy_numbers = {tier.tier for tier in two_tiers()}

        decision = determine_next_tier(
            two_tiers(), repeat_count, current_tier, minutes(1_000)
        )

        if decision.should_escalate:
            assert decision.tier.tier in policy_numbers
