"""Financial-aid upgrade request workflow."""

import logging
import time
import uuid
from datetime import UTC, datetime

from hab_api.config import PRICING_TIERS, SubscriptionTier, is_upgrade, parse_tier
from hab_api.errors.exceptions import (
    DuplicatePendingRequestError,
    InvalidUpgradeError,
    UpgradeRequestNotFoundError,
    UpgradeRequestNotPendingError,
    UserNotFoundError,
)
from hab_api.models.upgrade_request import (
    FinancialAidForm,
    UpgradeRequest,
    UpgradeStatus,
    can_transition,
)
from hab_api.storage.manager import StorageManager, get_storage

logger = logging.getLogger(__name__)


def new_request_id() -> str:
    """Time-derived id; the random suffix keeps ids unique within a millisecond."""
    return f"req_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}"


class UpgradeService:
    """
    Upgrade request lifecycle.

    States: pending -> approved, pending -> rejected. Both outcomes are
    terminal. A user has at most one pending request at a time.
    """

    def __init__(self, storage: StorageManager | None = None):
        self._storage = storage

    @property
    def storage(self) -> StorageManager:
        """Get storage manager."""
        if self._storage is None:
            self._storage = get_storage()
        return self._storage

    async def submit(
        self,
        username: str,
        requested_tier: str | SubscriptionTier,
        form: FinancialAidForm,
    ) -> UpgradeRequest:
        """
        Append a pending request for a user.

        Raises:
            UnknownTierError: If the requested tier is not configured
            InvalidUpgradeError: If the requested tier is not a higher pricing tier
            DuplicatePendingRequestError: If the user already has a pending request
            UserNotFoundError: If the user does not exist
        """
        requested = parse_tier(requested_tier)

        async with self.storage.transaction() as tx:
            user = await self.storage.users.get(username)
            if user is None:
                raise UserNotFoundError(username)

            if requested not in PRICING_TIERS or not is_upgrade(user.tier, requested):
                raise InvalidUpgradeError(user.tier.value, requested.value)

            existing = await self.storage.upgrade_requests.find_one(
                lambda r: r.username == username and r.is_pending
            )
            if existing is not None:
                raise DuplicatePendingRequestError(username, existing.id)

            request = UpgradeRequest(
                id=new_request_id(),
                username=username,
                current_tier=user.tier,
                requested_tier=requested,
                request_date=datetime.now(UTC),
                status=UpgradeStatus.PENDING,
                financial_aid_reason=form.financial_aid_reason,
                current_situation=form.current_situation,
                how_it_helps=form.how_it_helps,
                additional_info=form.additional_info,
            )
            await tx.put(self.storage.upgrade_requests, request)

        logger.info(
            "Upgrade request %s submitted by %s (%s -> %s)",
            request.id,
            username,
            request.current_tier.value,
            request.requested_tier.value,
        )
        return request

    async def _get_pending(self, request_id: str, target: UpgradeStatus) -> UpgradeRequest:
        request = await self.storage.upgrade_requests.get(request_id)
        if request is None:
            raise UpgradeRequestNotFoundError(request_id)
        if not can_transition(request.status, target):
            raise UpgradeRequestNotPendingError(request_id, request.status.value)
        return request

    async def approve(self, request_id: str, admin_notes: str, reviewer: str) -> UpgradeRequest:
        """
        Approve a pending request and move the user to the requested tier.

        The tier change and the status change are written in one transaction.

        Raises:
            UpgradeRequestNotFoundError: If no request has this id
            UpgradeRequestNotPendingError: If the request was already resolved
            UserNotFoundError: If the requesting user no longer exists
            InvalidUpgradeError: If the user is already at or above the requested tier
        """
        async with self.storage.transaction() as tx:
            request = await self._get_pending(request_id, UpgradeStatus.APPROVED)

            user = await self.storage.users.get(request.username)
            if user is None:
                raise UserNotFoundError(request.username)
            # Tier may have changed since submission
            if not is_upgrade(user.tier, request.requested_tier):
                raise InvalidUpgradeError(user.tier.value, request.requested_tier.value)

            await tx.put(
                self.storage.users,
                user.model_copy(update={"tier": request.requested_tier}),
            )
            approved = request.model_copy(
                update={
                    "status": UpgradeStatus.APPROVED,
                    "admin_notes": admin_notes,
                    "reviewed_by": reviewer,
                    "reviewed_at": datetime.now(UTC),
                }
            )
            await tx.put(self.storage.upgrade_requests, approved)

        logger.info(
            "Upgrade request %s approved by %s: %s is now %s",
            request_id,
            reviewer,
            request.username,
            request.requested_tier.value,
        )
        return approved

    async def reject(self, request_id: str, admin_notes: str, reviewer: str) -> UpgradeRequest:
        """
        Reject a pending request. The user's tier is unchanged.

        Raises:
            UpgradeRequestNotFoundError: If no request has this id
            UpgradeRequestNotPendingError: If the request was already resolved
        """
        async with self.storage.transaction() as tx:
            request = await self._get_pending(request_id, UpgradeStatus.REJECTED)
            rejected = request.model_copy(
                update={
                    "status": UpgradeStatus.REJECTED,
                    "admin_notes": admin_notes,
                    "reviewed_by": reviewer,
                    "reviewed_at": datetime.now(UTC),
                }
            )
            await tx.put(self.storage.upgrade_requests, rejected)

        logger.info("Upgrade request %s rejected by %s", request_id, reviewer)
        return rejected

    async def list_for_user(self, username: str) -> list[UpgradeRequest]:
        """A user's requests, newest first."""
        return await self.storage.upgrade_requests.list(
            filter_fn=lambda r: r.username == username,
            sort_key="request_date",
        )

    async def list_all(self, status: UpgradeStatus | None = None) -> list[UpgradeRequest]:
        """All requests, optionally filtered by status, newest first."""
        return await self.storage.upgrade_requests.list(
            filter_fn=(lambda r: r.status == status) if status else None,
            sort_key="request_date",
        )


# Singleton instance
_upgrade_service: UpgradeService | None = None


def get_upgrade_service() -> UpgradeService:
    """Get upgrade service instance."""
    global _upgrade_service
    if _upgrade_service is None:
        _upgrade_service = UpgradeService()
    return _upgrade_service


def reset_upgrade_service() -> None:
    """Reset upgrade service (for testing)."""
    global _upgrade_service
    _upgrade_service = None
