"""Account service for subscription and usage management."""

import logging
from datetime import UTC, datetime

from hab_api.config import get_tier_config
from hab_api.errors.exceptions import UserNotFoundError
from hab_api.models.responses import AccountResponse, SubscriptionResponse, TierFeaturesResponse
from hab_api.models.user import User, UserSubscription
from hab_api.services.quota import can_consume, ensure_can_consume, roll_over_if_due
from hab_api.storage.manager import StorageManager, get_storage

logger = logging.getLogger(__name__)


def build_subscription_response(user: User, subscription: UserSubscription) -> SubscriptionResponse:
    """Combine a usage record with the owning user's tier."""
    tier_config = get_tier_config(user.tier)
    limit = tier_config.api_calls_per_month
    return SubscriptionResponse(
        username=user.username,
        tier=user.tier.value,
        api_calls_used=subscription.api_calls_used,
        api_calls_limit=limit,
        api_calls_remaining=max(0, limit - subscription.api_calls_used),
        last_reset_date=subscription.last_reset_date,
        can_make_api_call=can_consume(subscription, tier_config),
        features=TierFeaturesResponse.from_config(user.tier.value, tier_config),
    )


class AccountService:
    """Service for account and usage operations."""

    def __init__(self, storage: StorageManager | None = None):
        self._storage = storage

    @property
    def storage(self) -> StorageManager:
        """Get storage manager."""
        if self._storage is None:
            self._storage = get_storage()
        return self._storage

    async def get_user(self, username: str) -> User:
        user = await self.storage.users.get(username)
        if user is None:
            raise UserNotFoundError(username)
        return user

    def get_account(self, user: User) -> AccountResponse:
        """Get account details for a user."""
        return AccountResponse(
            username=user.username,
            tier=user.tier.value,
            role=user.role.value,
            created_at=user.created_at,
        )

    async def load_subscription(self, username: str) -> UserSubscription:
        """
        Load the usage record, starting a new monthly period if one is due.

        Users created before their usage record existed get a fresh one.
        """
        async with self.storage.transaction() as tx:
            subscription = await self.storage.subscriptions.get(username)
            if subscription is None:
                subscription = await tx.put(
                    self.storage.subscriptions, UserSubscription(username=username)
                )
                logger.info("Created missing usage record for %s", username)
                return subscription

            subscription, rolled = roll_over_if_due(subscription)
            if rolled:
                await tx.put(self.storage.subscriptions, subscription)
                logger.info("Started new usage period for %s", username)
            return subscription

    async def get_subscription(self, username: str) -> SubscriptionResponse:
        """Get subscription and usage for a user."""
        user = await self.get_user(username)
        subscription = await self.load_subscription(username)
        return build_subscription_response(user, subscription)

    async def check_quota(self, user: User) -> UserSubscription:
        """
        Quota gate, evaluated immediately before a metered action.

        Raises:
            QuotaExceededError: If the monthly allowance is used up
        """
        subscription = await self.load_subscription(user.username)
        ensure_can_consume(subscription, user.tier, get_tier_config(user.tier))
        return subscription

    async def record_usage(self, username: str) -> UserSubscription:
        """
        Count one metered action. Call only after the action succeeded.

        Raises:
            UserNotFoundError: If the user was deleted while the action ran
        """
        async with self.storage.transaction() as tx:
            if not await self.storage.users.exists(username):
                raise UserNotFoundError(username)
            subscription = await self.storage.subscriptions.get(username)
            if subscription is None:
                subscription = UserSubscription(username=username)
            subscription, _ = roll_over_if_due(subscription)
            updated = subscription.model_copy(
                update={"api_calls_used": subscription.api_calls_used + 1}
            )
            await tx.put(self.storage.subscriptions, updated)

        logger.info("Recorded API call for %s (%d used)", username, updated.api_calls_used)
        return updated

    async def reset_usage(self, username: str) -> UserSubscription:
        """Reset the monthly counter to zero."""
        await self.get_user(username)
        async with self.storage.transaction() as tx:
            subscription = UserSubscription(
                username=username,
                api_calls_used=0,
                last_reset_date=datetime.now(UTC),
            )
            await tx.put(self.storage.subscriptions, subscription)

        logger.info("Reset API usage for %s", username)
        return subscription


# Singleton instance
_account_service: AccountService | None = None


def get_account_service() -> AccountService:
    """Get account service instance."""
    global _account_service
    if _account_service is None:
        _account_service = AccountService()
    return _account_service


def reset_account_service() -> None:
    """Reset account service (for testing)."""
    global _account_service
    _account_service = None
