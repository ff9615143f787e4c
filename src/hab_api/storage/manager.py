"""Storage manager: the four collections and multi-record transactions."""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Optional

from redis.asyncio import Redis

from hab_api.auth.security import hash_password
from hab_api.config import Settings, StorageBackend, SubscriptionTier, UserRole
from hab_api.models.session import SessionState
from hab_api.models.upgrade_request import UpgradeRequest
from hab_api.models.user import User, UserSubscription
from hab_api.storage.base import Storage, T
from hab_api.storage.json_file import FileLayout, JsonFileStorage
from hab_api.storage.memory import InMemoryStorage
from hab_api.storage.redis_client import RedisStorage

logger = logging.getLogger(__name__)

# (username, tier, role); password for the admin comes from settings
SEED_ACCOUNTS: tuple[tuple[str, SubscriptionTier, UserRole], ...] = (
    ("admin", SubscriptionTier.ADMIN, UserRole.ADMIN),
    ("abc", SubscriptionTier.FREE, UserRole.USER),
    ("test", SubscriptionTier.TIER1, UserRole.USER),
)


def make_user_seed(admin_password: str) -> Callable[[], dict[str, User]]:
    def seed() -> dict[str, User]:
        users = {}
        for username, tier, role in SEED_ACCOUNTS:
            password = admin_password if role == UserRole.ADMIN else username
            users[username] = User(
                username=username,
                password_hash=hash_password(password),
                tier=tier,
                role=role,
            )
        return users

    return seed


def subscription_seed() -> dict[str, UserSubscription]:
    return {username: UserSubscription(username=username) for username, _, _ in SEED_ACCOUNTS}


class Transaction:
    """Records writes so they can be undone if a later write fails."""

    def __init__(self) -> None:
        self._undo: list[Callable[[], Awaitable[object]]] = []

    async def put(self, store: Storage[T], item: T) -> T:
        key = store.key_of(item)
        previous = await store.get(key)
        await store.put(item)
        if previous is None:
            self._undo.append(lambda: store.delete(key))
        else:
            self._undo.append(lambda: store.put(previous))
        return item

    async def delete(self, store: Storage[T], key: str) -> bool:
        previous = await store.get(key)
        if previous is None:
            return False
        await store.delete(key)
        self._undo.append(lambda: store.put(previous))
        return True

    async def rollback(self) -> None:
        while self._undo:
            undo = self._undo.pop()
            try:
                await undo()
            except Exception:
                logger.exception("Rollback step failed; store may be inconsistent")


class StorageManager:
    """Central manager for all collections."""

    _instance: Optional["StorageManager"] = None

    def __init__(
        self,
        users: Storage[User],
        subscriptions: Storage[UserSubscription],
        upgrade_requests: Storage[UpgradeRequest],
        sessions: Storage[SessionState],
        backend: StorageBackend = StorageBackend.MEMORY,
    ):
        self.users = users
        self.subscriptions = subscriptions
        self.upgrade_requests = upgrade_requests
        self.sessions = sessions
        self.backend = backend
        self._lock = asyncio.Lock()

    @classmethod
    def in_memory(cls, seed: bool = True, admin_password: str = "admin") -> "StorageManager":
        """Build a manager backed by process-local dictionaries."""
        return cls(
            users=InMemoryStorage(
                "users", User, "username", make_user_seed(admin_password) if seed else None
            ),
            subscriptions=InMemoryStorage(
                "subscriptions", UserSubscription, "username", subscription_seed if seed else None
            ),
            upgrade_requests=InMemoryStorage("upgrade_requests", UpgradeRequest),
            sessions=InMemoryStorage("sessions", SessionState, "username"),
            backend=StorageBackend.MEMORY,
        )

    @classmethod
    def from_settings(cls, settings: Settings, redis: Redis | None = None) -> "StorageManager":
        """Build a manager for the configured backend."""
        seed = settings.seed_default_users
        user_seed = make_user_seed(settings.admin_password) if seed else None
        sub_seed = subscription_seed if seed else None

        if settings.storage_backend == StorageBackend.MEMORY:
            return cls.in_memory(seed=seed, admin_password=settings.admin_password)

        if settings.storage_backend == StorageBackend.REDIS:
            if redis is None:
                raise ValueError("Redis storage backend requires a connected client")
            return cls(
                users=RedisStorage("users", User, redis, "username", user_seed),
                subscriptions=RedisStorage(
                    "subscriptions", UserSubscription, redis, "username", sub_seed
                ),
                upgrade_requests=RedisStorage("upgrade_requests", UpgradeRequest, redis),
                sessions=RedisStorage("sessions", SessionState, redis, "username"),
                backend=StorageBackend.REDIS,
            )

        data_dir = settings.data_dir
        return cls(
            users=JsonFileStorage("users", User, data_dir / "users.json", "username", user_seed),
            subscriptions=JsonFileStorage(
                "subscriptions",
                UserSubscription,
                data_dir / "subscriptions.json",
                "username",
                sub_seed,
            ),
            upgrade_requests=JsonFileStorage(
                "upgrade_requests",
                UpgradeRequest,
                data_dir / "upgrade-requests.json",
                layout=FileLayout.ARRAY,
            ),
            sessions=JsonFileStorage(
                "sessions", SessionState, data_dir / "sessions.json", "username"
            ),
            backend=StorageBackend.JSON,
        )

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Transaction]:
        """
        Serialize a multi-record mutation.

        Writes made through the yielded Transaction are undone if the block
        raises, so callers see either all of them or none.
        """
        async with self._lock:
            tx = Transaction()
            try:
                yield tx
            except BaseException:
                await tx.rollback()
                raise

    @classmethod
    def get_instance(cls) -> "StorageManager":
        """Get singleton instance, in-memory unless one was installed."""
        if cls._instance is None:
            cls._instance = cls.in_memory()
        return cls._instance

    @classmethod
    def set_instance(cls, manager: "StorageManager") -> None:
        cls._instance = manager

    @classmethod
    def is_installed(cls) -> bool:
        return cls._instance is not None

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None


def get_storage() -> StorageManager:
    """Dependency to get storage manager."""
    return StorageManager.get_instance()
