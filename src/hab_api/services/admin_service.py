"""Admin dashboard operations: users, tiers, usage and stats."""

import logging
from datetime import UTC, datetime

from hab_api.config import TIER_ORDER, SubscriptionTier, parse_tier
from hab_api.errors.exceptions import ProtectedUserError
from hab_api.models.responses import AdminStatsResponse, AdminUserEntry, SubscriptionResponse
from hab_api.models.upgrade_request import UpgradeStatus
from hab_api.models.user import User, UserSubscription
from hab_api.services.account_service import AccountService, build_subscription_response
from hab_api.services.auth_service import AuthService
from hab_api.services.quota import roll_over_if_due
from hab_api.storage.manager import StorageManager, get_storage

logger = logging.getLogger(__name__)

USER_DELETED_NOTE = "User deleted"


class AdminService:
    """User management for administrators."""

    def __init__(self, storage: StorageManager | None = None):
        self._storage = storage

    @property
    def storage(self) -> StorageManager:
        """Get storage manager."""
        if self._storage is None:
            self._storage = get_storage()
        return self._storage

    @property
    def accounts(self) -> AccountService:
        return AccountService(self.storage)

    async def _subscription_views(self) -> list[tuple[User, SubscriptionResponse]]:
        users = await self.storage.users.get_all()
        subscriptions = await self.storage.subscriptions.get_all()

        rows = []
        for username in sorted(users):
            user = users[username]
            subscription = subscriptions.get(username) or UserSubscription(username=username)
            # Display only; the rollover is persisted on the next metered call
            subscription, _ = roll_over_if_due(subscription)
            rows.append((user, build_subscription_response(user, subscription)))
        return rows

    async def list_users(self) -> list[AdminUserEntry]:
        """Every user with its current usage, sorted by username."""
        return [
            AdminUserEntry(
                username=user.username,
                tier=user.tier.value,
                role=user.role.value,
                created_at=user.created_at,
                subscription=subscription,
            )
            for user, subscription in await self._subscription_views()
        ]

    async def list_subscriptions(self) -> list[SubscriptionResponse]:
        return [subscription for _, subscription in await self._subscription_views()]

    async def create_user(
        self,
        username: str,
        password: str,
        tier: str | SubscriptionTier = SubscriptionTier.FREE,
    ) -> User:
        """
        Create a user with an explicit tier.

        Raises:
            UnknownTierError: If the tier is not configured
            UsernameTakenError: If the username already exists
        """
        user = await AuthService(self.storage).register(username, password, tier=parse_tier(tier))
        logger.info("Admin created user %s (tier=%s)", username, user.tier.value)
        return user

    async def delete_user(self, username: str, reviewer: str = "system") -> None:
        """
        Remove a user together with its usage record and session.

        Pending upgrade requests are closed as rejected in the same
        transaction, so a later account with the same name starts clean.

        Raises:
            UserNotFoundError: If the user does not exist
            ProtectedUserError: If the user holds the admin role
        """
        user = await self.accounts.get_user(username)
        if user.is_admin:
            raise ProtectedUserError(username)

        async with self.storage.transaction() as tx:
            await tx.delete(self.storage.users, username)
            await tx.delete(self.storage.subscriptions, username)
            await tx.delete(self.storage.sessions, username)

            pending = await self.storage.upgrade_requests.find_many(
                lambda r: r.username == username and r.status == UpgradeStatus.PENDING
            )
            now = datetime.now(UTC)
            for request in pending:
                await tx.put(
                    self.storage.upgrade_requests,
                    request.model_copy(
                        update={
                            "status": UpgradeStatus.REJECTED,
                            "admin_notes": USER_DELETED_NOTE,
                            "reviewed_by": reviewer,
                            "reviewed_at": now,
                        }
                    ),
                )

        logger.info("Deleted user %s (%d pending requests closed)", username, len(pending))

    async def set_tier(self, username: str, tier: str | SubscriptionTier) -> User:
        """
        Change a user's tier on the authoritative user record.

        Raises:
            UnknownTierError: If the tier is not configured
            UserNotFoundError: If the user does not exist
        """
        new_tier = parse_tier(tier)
        async with self.storage.transaction() as tx:
            user = await self.accounts.get_user(username)
            updated = await tx.put(self.storage.users, user.model_copy(update={"tier": new_tier}))

        logger.info("Tier for %s changed %s -> %s", username, user.tier.value, new_tier.value)
        return updated

    async def reset_usage(self, username: str) -> SubscriptionResponse:
        """Zero a user's monthly counter."""
        user = await self.accounts.get_user(username)
        subscription = await self.accounts.reset_usage(username)
        return build_subscription_response(user, subscription)

    async def get_stats(self) -> AdminStatsResponse:
        users = await self.storage.users.get_all()
        subscriptions = await self.storage.subscriptions.get_all()

        tier_counts = {tier.value: 0 for tier in TIER_ORDER}
        for user in users.values():
            tier_counts[user.tier.value] += 1

        pending = await self.storage.upgrade_requests.count(
            lambda r: r.status == UpgradeStatus.PENDING
        )
        return AdminStatsResponse(
            total_users=len(users),
            tier_counts=tier_counts,
            total_api_calls=sum(
                s.api_calls_used for name, s in subscriptions.items() if name in users
            ),
            pending_requests=pending,
        )


# Singleton instance
_admin_service: AdminService | None = None


def get_admin_service() -> AdminService:
    """Get admin service instance."""
    global _admin_service
    if _admin_service is None:
        _admin_service = AdminService()
    return _admin_service


def reset_admin_service() -> None:
    """Reset admin service (for testing)."""
    global _admin_service
    _admin_service = None
