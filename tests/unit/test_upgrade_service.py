"""Tests for the upgrade request workflow."""

import asyncio

import pytest

from hab_api.config import SubscriptionTier
from hab_api.errors.exceptions import (
    DuplicatePendingRequestError,
    InvalidUpgradeError,
    NotFoundError,
    UnknownTierError,
    UpgradeRequestNotFoundError,
    UpgradeRequestNotPendingError,
    UserNotFoundError,
)
from hab_api.models.upgrade_request import FinancialAidForm, UpgradeStatus
from hab_api.services.account_service import AccountService
from hab_api.services.admin_service import USER_DELETED_NOTE, AdminService
from hab_api.services.auth_service import AuthService
from hab_api.services.upgrade_service import UpgradeService, new_request_id
from hab_api.storage.manager import StorageManager


@pytest.fixture
def manager():
    return StorageManager.in_memory()


@pytest.fixture
def upgrade_service(manager):
    return UpgradeService(manager)


@pytest.fixture
def form():
    return FinancialAidForm(
        financial_aid_reason=(
            "I am a graduate student monitoring algal blooms in local lakes and "
            "cannot afford a paid plan."
        ),
        current_situation="Student",
        how_it_helps="Weekly field samples",
    )


class TestSubmit:
    @pytest.mark.asyncio
    async def test_submit_creates_pending_request(self, upgrade_service, form):
        request = await upgrade_service.submit("abc", "tier1", form)

        assert request.status == UpgradeStatus.PENDING
        assert request.current_tier == SubscriptionTier.FREE
        assert request.requested_tier == SubscriptionTier.TIER1
        assert request.id.startswith("req_")
        assert request.admin_notes is None

        listed = await upgrade_service.list_for_user("abc")
        assert [r.id for r in listed] == [request.id]

    @pytest.mark.asyncio
    async def test_second_pending_request_rejected(self, upgrade_service, form):
        first = await upgrade_service.submit("abc", "tier1", form)

        with pytest.raises(DuplicatePendingRequestError) as exc_info:
            await upgrade_service.submit("abc", "tier2", form)

        assert exc_info.value.details["pending_request_id"] == first.id
        assert len(await upgrade_service.list_for_user("abc")) == 1

    @pytest.mark.asyncio
    async def test_concurrent_submissions_yield_one_pending(self, upgrade_service, form):
        results = await asyncio.gather(
            *(upgrade_service.submit("abc", "tier1", form) for _ in range(5)),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, Exception)]
        assert len(errors) == 4
        assert all(isinstance(e, DuplicatePendingRequestError) for e in errors)

    @pytest.mark.asyncio
    async def test_new_request_allowed_after_resolution(self, upgrade_service, form):
        first = await upgrade_service.submit("abc", "tier1", form)
        await upgrade_service.reject(first.id, "Need more detail", "admin")

        second = await upgrade_service.submit("abc", "tier1", form)
        assert second.status == UpgradeStatus.PENDING

    @pytest.mark.asyncio
    async def test_current_tier_comes_from_user_record(self, upgrade_service, form):
        request = await upgrade_service.submit("test", "tier2", form)
        assert request.current_tier == SubscriptionTier.TIER1

    @pytest.mark.asyncio
    async def test_downgrade_rejected(self, upgrade_service, form):
        with pytest.raises(InvalidUpgradeError):
            await upgrade_service.submit("test", "free", form)

    @pytest.mark.asyncio
    async def test_same_tier_rejected(self, upgrade_service, form):
        with pytest.raises(InvalidUpgradeError):
            await upgrade_service.submit("test", "tier1", form)

    @pytest.mark.asyncio
    async def test_admin_tier_cannot_be_requested(self, upgrade_service, form):
        with pytest.raises(InvalidUpgradeError):
            await upgrade_service.submit("abc", "admin", form)

    @pytest.mark.asyncio
    async def test_unknown_tier(self, upgrade_service, form):
        with pytest.raises(UnknownTierError):
            await upgrade_service.submit("abc", "platinum", form)

    @pytest.mark.asyncio
    async def test_unknown_user(self, upgrade_service, form):
        with pytest.raises(UserNotFoundError):
            await upgrade_service.submit("ghost", "tier1", form)

    def test_request_ids_unique(self):
        assert len({new_request_id() for _ in range(200)}) == 200


class TestApprove:
    @pytest.mark.asyncio
    async def test_approve_sets_tier_everywhere(self, upgrade_service, manager, form):
        request = await upgrade_service.submit("abc", "tier1", form)

        approved = await upgrade_service.approve(request.id, "approved", "admin")

        assert approved.status == UpgradeStatus.APPROVED
        assert approved.admin_notes == "approved"
        assert approved.reviewed_by == "admin"
        assert approved.reviewed_at is not None

        user = await manager.users.get("abc")
        assert user.tier == SubscriptionTier.TIER1
        subscription = await AccountService(manager).get_subscription("abc")
        assert subscription.tier == "tier1"
        assert subscription.api_calls_limit == 100

        stored = await manager.upgrade_requests.get(request.id)
        assert stored.status == UpgradeStatus.APPROVED

    @pytest.mark.asyncio
    async def test_second_approve_never_double_applies(self, upgrade_service, manager, form):
        request = await upgrade_service.submit("abc", "tier1", form)
        await upgrade_service.approve(request.id, "approved", "admin")

        # Move the user elsewhere; a replayed approval must not touch it
        user = await manager.users.get("abc")
        await manager.users.put(user.model_copy(update={"tier": SubscriptionTier.FREE}))

        with pytest.raises(UpgradeRequestNotPendingError) as exc_info:
            await upgrade_service.approve(request.id, "again", "admin")

        assert isinstance(exc_info.value, NotFoundError)
        assert exc_info.value.status_code == 404
        assert (await manager.users.get("abc")).tier == SubscriptionTier.FREE
        assert (await manager.upgrade_requests.get(request.id)).admin_notes == "approved"

    @pytest.mark.asyncio
    async def test_reject_after_approve_fails(self, upgrade_service, form):
        request = await upgrade_service.submit("abc", "tier1", form)
        await upgrade_service.approve(request.id, "approved", "admin")

        with pytest.raises(UpgradeRequestNotPendingError):
            await upgrade_service.reject(request.id, "changed my mind", "admin")

    @pytest.mark.asyncio
    async def test_unknown_id(self, upgrade_service):
        with pytest.raises(UpgradeRequestNotFoundError):
            await upgrade_service.approve("req_missing", "approved", "admin")

    @pytest.mark.asyncio
    async def test_deleting_user_closes_pending_request(self, upgrade_service, manager, form):
        old = await upgrade_service.submit("abc", "tier2", form)

        await AdminService(manager).delete_user("abc", reviewer="admin")

        closed = await manager.upgrade_requests.get(old.id)
        assert closed.status == UpgradeStatus.REJECTED
        assert closed.admin_notes == USER_DELETED_NOTE
        assert closed.reviewed_by == "admin"

        # A new account under the same name starts without the old request
        await AuthService(manager).register("abc", "fresh-password")
        new = await upgrade_service.submit("abc", "tier1", form)
        assert new.status == UpgradeStatus.PENDING

        with pytest.raises(UpgradeRequestNotPendingError):
            await upgrade_service.approve(old.id, "approved", "admin")
        assert (await manager.users.get("abc")).tier == SubscriptionTier.FREE

    @pytest.mark.asyncio
    async def test_user_missing_from_store_leaves_request_pending(
        self, upgrade_service, manager, form
    ):
        request = await upgrade_service.submit("abc", "tier1", form)
        await manager.users.delete("abc")

        with pytest.raises(UserNotFoundError):
            await upgrade_service.approve(request.id, "approved", "admin")

        assert (await manager.upgrade_requests.get(request.id)).status == UpgradeStatus.PENDING

    @pytest.mark.asyncio
    async def test_approve_never_lowers_tier(self, upgrade_service, manager, form):
        request = await upgrade_service.submit("abc", "tier1", form)
        await AdminService(manager).set_tier("abc", "tier2")

        with pytest.raises(InvalidUpgradeError):
            await upgrade_service.approve(request.id, "approved", "admin")

        assert (await manager.users.get("abc")).tier == SubscriptionTier.TIER2
        assert (await manager.upgrade_requests.get(request.id)).status == UpgradeStatus.PENDING


class TestReject:
    @pytest.mark.asyncio
    async def test_reject_keeps_tier(self, upgrade_service, manager, form):
        request = await upgrade_service.submit("abc", "tier1", form)

        rejected = await upgrade_service.reject(request.id, "Insufficient detail", "admin")

        assert rejected.status == UpgradeStatus.REJECTED
        assert rejected.admin_notes == "Insufficient detail"
        assert (await manager.users.get("abc")).tier == SubscriptionTier.FREE

    @pytest.mark.asyncio
    async def test_unknown_id(self, upgrade_service):
        with pytest.raises(UpgradeRequestNotFoundError):
            await upgrade_service.reject("req_missing", "no", "admin")


class TestListing:
    @pytest.mark.asyncio
    async def test_list_all_filters_by_status(self, upgrade_service, form):
        abc = await upgrade_service.submit("abc", "tier1", form)
        test = await upgrade_service.submit("test", "tier2", form)
        await upgrade_service.approve(test.id, "ok", "admin")

        pending = await upgrade_service.list_all(UpgradeStatus.PENDING)
        assert [r.id for r in pending] == [abc.id]

        everything = await upgrade_service.list_all()
        assert [r.id for r in everything] == [test.id, abc.id]
