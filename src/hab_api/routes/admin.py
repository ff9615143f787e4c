"""Admin endpoints for the management dashboard."""

from fastapi import APIRouter, Depends, status

from hab_api.auth.dependencies import require_admin
from hab_api.models.responses import (
    AccountResponse,
    AdminStatsResponse,
    AdminUserEntry,
    SubscriptionResponse,
    SuccessResponse,
)
from hab_api.models.user import CreateUserRequest, SetTierRequest, User
from hab_api.services.account_service import AccountService, get_account_service
from hab_api.services.admin_service import AdminService, get_admin_service

router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(require_admin)])


@router.get(
    "/users",
    response_model=list[AdminUserEntry],
    summary="List Users",
    description="All users with their tier and monthly usage.",
)
async def list_users(
    admin_service: AdminService = Depends(get_admin_service),
) -> list[AdminUserEntry]:
    return await admin_service.list_users()


@router.post(
    "/users",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create User",
    description="Create a user on any tier.",
)
async def create_user(
    body: CreateUserRequest,
    admin_service: AdminService = Depends(get_admin_service),
    account_service: AccountService = Depends(get_account_service),
) -> AccountResponse:
    user = await admin_service.create_user(body.username, body.password, body.tier)
    return account_service.get_account(user)


@router.delete(
    "/users/{username}",
    response_model=SuccessResponse,
    summary="Delete User",
    description="Delete a user with its usage record and session. Pending upgrade requests are rejected. Admins cannot be deleted.",
)
async def delete_user(
    username: str,
    admin: User = Depends(require_admin),
    admin_service: AdminService = Depends(get_admin_service),
) -> SuccessResponse:
    await admin_service.delete_user(username, reviewer=admin.username)
    return SuccessResponse(message=f"User {username} deleted")


@router.put(
    "/users/{username}/tier",
    response_model=AccountResponse,
    summary="Set Tier",
    description="Change a user's subscription tier.",
)
async def set_tier(
    username: str,
    body: SetTierRequest,
    admin_service: AdminService = Depends(get_admin_service),
    account_service: AccountService = Depends(get_account_service),
) -> AccountResponse:
    user: User = await admin_service.set_tier(username, body.tier)
    return account_service.get_account(user)


@router.post(
    "/users/{username}/reset-usage",
    response_model=SubscriptionResponse,
    summary="Reset Usage",
    description="Reset a user's monthly API call counter to zero.",
)
async def reset_usage(
    username: str,
    admin_service: AdminService = Depends(get_admin_service),
) -> SubscriptionResponse:
    return await admin_service.reset_usage(username)


@router.get(
    "/subscriptions",
    response_model=list[SubscriptionResponse],
    summary="List Subscriptions",
    description="Monthly usage for every user.",
)
async def list_subscriptions(
    admin_service: AdminService = Depends(get_admin_service),
) -> list[SubscriptionResponse]:
    return await admin_service.list_subscriptions()


@router.get(
    "/stats",
    response_model=AdminStatsResponse,
    summary="Get Stats",
    description="User counts per tier, total API calls and pending upgrade requests.",
)
async def get_stats(
    admin_service: AdminService = Depends(get_admin_service),
) -> AdminStatsResponse:
    """
    Dashboard totals:
    - Users overall and per tier
    - API calls used this month across all users
    - Upgrade requests awaiting review
    """
    return await admin_service.get_stats()
