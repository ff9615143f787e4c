"""Tests for the quota gate."""

from datetime import UTC, datetime

import pytest

from hab_api.config import SubscriptionTier, get_tier_config
from hab_api.errors.exceptions import QuotaExceededError
from hab_api.errors.handlers import seconds_until_reset
from hab_api.models.user import UserSubscription
from hab_api.services.quota import (
    can_consume,
    ensure_can_consume,
    next_reset,
    roll_over_if_due,
)


class TestCanConsume:
    """can_consume is false exactly when used >= allowance."""

    @pytest.mark.parametrize("tier", list(SubscriptionTier))
    def test_boundary_for_every_tier(self, tier):
        config = get_tier_config(tier)
        limit = config.api_calls_per_month

        below = UserSubscription(username="u", api_calls_used=limit - 1)
        at = UserSubscription(username="u", api_calls_used=limit)
        above = UserSubscription(username="u", api_calls_used=limit + 5)

        assert can_consume(below, config) is True
        assert can_consume(at, config) is False
        assert can_consume(above, config) is False

    def test_fresh_subscription_can_consume(self):
        config = get_tier_config(SubscriptionTier.FREE)
        assert can_consume(UserSubscription(username="u"), config) is True


class TestEnsureCanConsume:
    def test_raises_with_details(self):
        config = get_tier_config(SubscriptionTier.FREE)
        subscription = UserSubscription(
            username="abc",
            api_calls_used=3,
            last_reset_date=datetime(2026, 5, 10, tzinfo=UTC),
        )
        with pytest.raises(QuotaExceededError) as exc_info:
            ensure_can_consume(subscription, SubscriptionTier.FREE, config)

        error = exc_info.value
        assert error.status_code == 429
        assert error.details["limit"] == 3
        assert error.details["used"] == 3
        assert error.details["reset_at"].startswith("2026-06-01")

    def test_passes_under_limit(self):
        config = get_tier_config(SubscriptionTier.TIER1)
        ensure_can_consume(
            UserSubscription(username="test", api_calls_used=99),
            SubscriptionTier.TIER1,
            config,
        )


class TestRollover:
    def test_same_month_unchanged(self):
        subscription = UserSubscription(
            username="u",
            api_calls_used=2,
            last_reset_date=datetime(2026, 3, 1, tzinfo=UTC),
        )
        result, rolled = roll_over_if_due(subscription, now=datetime(2026, 3, 31, tzinfo=UTC))
        assert rolled is False
        assert result.api_calls_used == 2

    def test_new_month_resets(self):
        subscription = UserSubscription(
            username="u",
            api_calls_used=3,
            last_reset_date=datetime(2026, 3, 15, tzinfo=UTC),
        )
        now = datetime(2026, 4, 1, 0, 5, tzinfo=UTC)
        result, rolled = roll_over_if_due(subscription, now=now)
        assert rolled is True
        assert result.api_calls_used == 0
        assert result.last_reset_date == now

    def test_naive_timestamp_treated_as_utc(self):
        subscription = UserSubscription(
            username="u",
            api_calls_used=1,
            last_reset_date=datetime(2025, 12, 20),
        )
        result, rolled = roll_over_if_due(subscription, now=datetime(2026, 1, 2, tzinfo=UTC))
        assert rolled is True
        assert result.api_calls_used == 0

    def test_next_reset_wraps_year(self):
        subscription = UserSubscription(
            username="u", last_reset_date=datetime(2025, 12, 3, tzinfo=UTC)
        )
        assert next_reset(subscription) == datetime(2026, 1, 1, tzinfo=UTC)


class TestRetryAfter:
    """Retry-After on 429 counts down to the next period."""

    def test_seconds_until_reset(self):
        now = datetime(2026, 7, 31, 23, 0, tzinfo=UTC)
        assert seconds_until_reset("2026-08-01T00:00:00+00:00", now) == 3600

    def test_past_reset_is_zero(self):
        now = datetime(2026, 8, 2, tzinfo=UTC)
        assert seconds_until_reset("2026-08-01T00:00:00+00:00", now) == 0

    def test_missing_or_malformed(self):
        assert seconds_until_reset(None) is None
        assert seconds_until_reset("next month") is None
