"""Quota gate for metered actions."""

from datetime import UTC, datetime

from hab_api.config import SubscriptionTier, TierConfig
from hab_api.errors.exceptions import QuotaExceededError
from hab_api.models.user import UserSubscription


def can_consume(subscription: UserSubscription, tier_config: TierConfig) -> bool:
    """True iff the subscription has calls left this month."""
    return subscription.api_calls_used < tier_config.api_calls_per_month


def next_reset(subscription: UserSubscription) -> datetime:
    """First instant of the month after the last reset."""
    last = subscription.last_reset_date
    if last.month == 12:
        return datetime(last.year + 1, 1, 1, tzinfo=UTC)
    return datetime(last.year, last.month + 1, 1, tzinfo=UTC)


def ensure_can_consume(
    subscription: UserSubscription,
    tier: SubscriptionTier,
    tier_config: TierConfig,
) -> None:
    """
    Raise if a metered action is not allowed.

    Raises:
        QuotaExceededError: If api_calls_used >= api_calls_per_month
    """
    if not can_consume(subscription, tier_config):
        raise QuotaExceededError(
            tier=tier.value,
            limit=tier_config.api_calls_per_month,
            used=subscription.api_calls_used,
            reset_at=next_reset(subscription).isoformat(),
        )


def roll_over_if_due(
    subscription: UserSubscription,
    now: datetime | None = None,
) -> tuple[UserSubscription, bool]:
    """
    Start a new period when the last reset was in an earlier calendar month.

    Returns:
        Tuple of (subscription, whether it was rolled over)
    """
    now = now or datetime.now(UTC)
    last = subscription.last_reset_date
    if last.tzinfo is None:
        last = last.replace(tzinfo=UTC)
    if (last.year, last.month) >= (now.year, now.month):
        return subscription, False
    return subscription.model_copy(update={"api_calls_used": 0, "last_reset_date": now}), True
