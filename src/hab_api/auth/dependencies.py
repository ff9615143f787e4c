"""FastAPI authentication dependencies."""

from collections.abc import Awaitable, Callable

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from hab_api.auth.security import decode_access_token
from hab_api.config import get_tier_config
from hab_api.errors.exceptions import (
    AdminRequiredError,
    FeatureNotAvailableError,
    MissingCredentialsError,
)
from hab_api.models.session import SessionState
from hab_api.models.user import User
from hab_api.services.account_service import AccountService, get_account_service
from hab_api.services.auth_service import AuthService, get_auth_service

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_session(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> SessionState:
    """
    Resolve the bearer token to its live server-side session.

    The token only names the session; tier and role are read from the store.
    """
    if credentials is None or not credentials.credentials:
        raise MissingCredentialsError()

    claims = decode_access_token(credentials.credentials)
    return await auth_service.get_session(claims["sub"], claims["sid"])


async def get_current_user(
    session: SessionState = Depends(get_current_session),
    account_service: AccountService = Depends(get_account_service),
) -> User:
    """Get the current authenticated user."""
    return await account_service.get_user(session.username)


async def require_admin(user: User = Depends(get_current_user)) -> User:
    """Allow only users holding the admin role."""
    if not user.is_admin:
        raise AdminRequiredError()
    return user


def require_feature(feature: str) -> Callable[..., Awaitable[User]]:
    """
    Create a dependency that requires a tier feature flag.

    Usage:
        @router.post("/imageupload")
        async def upload(user: User = Depends(require_feature("image_upload"))):
            ...
    """

    async def check_feature(user: User = Depends(get_current_user)) -> User:
        tier_config = get_tier_config(user.tier)
        feature_map = {
            "map_access": tier_config.map_access,
            "image_upload": tier_config.image_upload,
        }
        if not feature_map.get(feature, False):
            raise FeatureNotAvailableError(feature, user.tier.value)
        return user

    return check_feature
