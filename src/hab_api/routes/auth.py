"""Registration, login and session endpoints."""

from fastapi import APIRouter, Depends, status

from hab_api.auth.dependencies import get_current_session
from hab_api.models.responses import AccountResponse, SuccessResponse
from hab_api.models.session import SessionState, TokenResponse
from hab_api.models.user import LoginRequest, RegisterRequest
from hab_api.services.account_service import AccountService, get_account_service
from hab_api.services.auth_service import AuthService, get_auth_service

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post(
    "/register",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register",
    description="Create a free-tier account.",
)
async def register(
    body: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
    account_service: AccountService = Depends(get_account_service),
) -> AccountResponse:
    """
    Register a new user.

    Public registration always starts on the free tier; higher tiers come
    from an approved upgrade request or an administrator.
    """
    user = await auth_service.register(body.username, body.password)
    return account_service.get_account(user)


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Login",
    description="Exchange credentials for a bearer token.",
)
async def login(
    body: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> TokenResponse:
    return await auth_service.login(body.username, body.password)


@router.post(
    "/logout",
    response_model=SuccessResponse,
    summary="Logout",
    description="End the current session. The token stops working immediately.",
)
async def logout(
    session: SessionState = Depends(get_current_session),
    auth_service: AuthService = Depends(get_auth_service),
) -> SuccessResponse:
    await auth_service.logout(session.username)
    return SuccessResponse(message="Logged out")


@router.get(
    "/session",
    response_model=SessionState,
    summary="Get Session",
    description="Get the current session, including the last prediction.",
)
async def get_session(
    session: SessionState = Depends(get_current_session),
) -> SessionState:
    return session
