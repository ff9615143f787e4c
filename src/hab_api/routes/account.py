"""Account management endpoints."""

from fastapi import APIRouter, Depends

from hab_api.auth.dependencies import get_current_user
from hab_api.models.responses import AccountResponse, SubscriptionResponse
from hab_api.models.upgrade_request import UpgradeRequest
from hab_api.models.user import User
from hab_api.services.account_service import AccountService, get_account_service
from hab_api.services.upgrade_service import UpgradeService, get_upgrade_service

router = APIRouter(prefix="/account", tags=["Account"])


@router.get(
    "",
    response_model=AccountResponse,
    summary="Get Account",
    description="Get account details for the authenticated user.",
)
async def get_account(
    user: User = Depends(get_current_user),
    account_service: AccountService = Depends(get_account_service),
) -> AccountResponse:
    """
    Get account details.

    Returns the user's account information including:
    - Username
    - Subscription tier
    - Role
    - Account creation date
    """
    return account_service.get_account(user)


@router.get(
    "/subscription",
    response_model=SubscriptionResponse,
    summary="Get Subscription",
    description="Get tier features and monthly API usage for the authenticated user.",
)
async def get_subscription(
    user: User = Depends(get_current_user),
    account_service: AccountService = Depends(get_account_service),
) -> SubscriptionResponse:
    """
    Get subscription and usage.

    Use `can_make_api_call` to check the quota before a prediction.
    """
    return await account_service.get_subscription(user.username)


@router.get(
    "/upgrade-requests",
    response_model=list[UpgradeRequest],
    summary="List My Upgrade Requests",
    description="List the authenticated user's upgrade requests, newest first.",
)
async def list_my_upgrade_requests(
    user: User = Depends(get_current_user),
    upgrade_service: UpgradeService = Depends(get_upgrade_service),
) -> list[UpgradeRequest]:
    return await upgrade_service.list_for_user(user.username)
