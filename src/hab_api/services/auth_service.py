"""Registration, login and session management."""

import asyncio
import logging
import uuid
from functools import lru_cache

from hab_api.auth.security import create_access_token, hash_password, verify_password
from hab_api.config import SubscriptionTier, UserRole
from hab_api.errors.exceptions import (
    InvalidCredentialsError,
    SessionExpiredError,
    UsernameTakenError,
)
from hab_api.models.prediction import PredictionResponse
from hab_api.models.session import SessionState, TokenResponse
from hab_api.models.user import User, UserSubscription
from hab_api.storage.manager import StorageManager, get_storage

logger = logging.getLogger(__name__)


@lru_cache
def _dummy_hash() -> str:
    """Hash checked for unknown usernames so both failure paths cost the same."""
    return hash_password(uuid.uuid4().hex)


class AuthService:
    """Authentication service backed by the user store."""

    def __init__(self, storage: StorageManager | None = None):
        self._storage = storage

    @property
    def storage(self) -> StorageManager:
        """Get storage manager."""
        if self._storage is None:
            self._storage = get_storage()
        return self._storage

    async def register(
        self,
        username: str,
        password: str,
        tier: SubscriptionTier = SubscriptionTier.FREE,
        role: UserRole = UserRole.USER,
    ) -> User:
        """
        Create a user and its usage record together.

        Raises:
            UsernameTakenError: If the username already exists
        """
        password_hash = await asyncio.to_thread(hash_password, password)

        async with self.storage.transaction() as tx:
            if await self.storage.users.exists(username):
                raise UsernameTakenError(username)

            user = User(username=username, password_hash=password_hash, tier=tier, role=role)
            await tx.put(self.storage.users, user)
            await tx.put(self.storage.subscriptions, UserSubscription(username=username))

        logger.info("Registered user %s (tier=%s)", username, tier.value)
        return user

    async def authenticate(self, username: str, password: str) -> User:
        """
        Check credentials.

        Raises:
            InvalidCredentialsError: If the user is unknown or the password is wrong
        """
        user = await self.storage.users.get(username)
        if user is None:
            dummy = await asyncio.to_thread(_dummy_hash)
            await asyncio.to_thread(verify_password, password, dummy)
            raise InvalidCredentialsError()
        if not await asyncio.to_thread(verify_password, password, user.password_hash):
            raise InvalidCredentialsError()
        return user

    async def login(self, username: str, password: str) -> TokenResponse:
        """Authenticate and open a new session, replacing any previous one."""
        user = await self.authenticate(username, password)

        session = SessionState(
            session_id=uuid.uuid4().hex,
            username=user.username,
            tier=user.tier,
            role=user.role,
        )
        async with self.storage.transaction() as tx:
            await tx.put(self.storage.sessions, session)

        token, expires_in = create_access_token(user.username, session.session_id)
        logger.info("Login successful for user: %s", user.username)
        return TokenResponse(access_token=token, expires_in=expires_in, session=session)

    async def logout(self, username: str) -> bool:
        """End the user's session; outstanding tokens stop working."""
        async with self.storage.transaction() as tx:
            removed = await tx.delete(self.storage.sessions, username)
        if removed:
            logger.info("Logged out %s", username)
        return removed

    async def get_session(self, username: str, session_id: str) -> SessionState:
        """
        Load the live session for a token.

        The tier and role are refreshed from the user record, so tier changes
        take effect without logging in again.

        Raises:
            SessionExpiredError: If the session was ended, replaced, or the user deleted
        """
        session = await self.storage.sessions.get(username)
        if session is None or session.session_id != session_id:
            raise SessionExpiredError()

        user = await self.storage.users.get(username)
        if user is None:
            raise SessionExpiredError()

        return session.model_copy(update={"tier": user.tier, "role": user.role})

    async def remember_prediction(self, username: str, prediction: PredictionResponse) -> None:
        """Keep the latest prediction on the session so it survives reloads."""
        async with self.storage.transaction() as tx:
            session = await self.storage.sessions.get(username)
            if session is None:
                return
            await tx.put(
                self.storage.sessions,
                session.model_copy(update={"last_prediction": prediction, "page": "prediction"}),
            )


# Global instance
_auth_service: AuthService | None = None


def get_auth_service() -> AuthService:
    """Get the auth service instance."""
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthService()
    return _auth_service


def reset_auth_service() -> None:
    """Reset the auth service (for testing)."""
    global _auth_service
    _auth_service = None
