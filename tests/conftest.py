"""Pytest configuration and fixtures."""

import os

# Cheap hashes and a fixed secret; must be set before settings are first read
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("STORAGE_BACKEND", "memory")

from collections.abc import Generator  # noqa: E402
from unittest.mock import AsyncMock  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from hab_api.main import create_app  # noqa: E402
from hab_api.services.account_service import reset_account_service  # noqa: E402
from hab_api.services.admin_service import reset_admin_service  # noqa: E402
from hab_api.services.auth_service import reset_auth_service  # noqa: E402
from hab_api.services.prediction_service import reset_prediction_service  # noqa: E402
from hab_api.services.upgrade_service import reset_upgrade_service  # noqa: E402
from hab_api.storage.manager import StorageManager  # noqa: E402

AID_REASON = (
    "I am a graduate student monitoring algal blooms in local lakes and cannot "
    "afford a paid plan on my research stipend."
)


@pytest.fixture
def storage() -> Generator[StorageManager, None, None]:
    """Fresh seeded in-memory storage installed as the singleton."""
    manager = StorageManager.in_memory()
    StorageManager.set_instance(manager)
    yield manager
    StorageManager.reset()


@pytest.fixture
def reset_singletons(storage):
    """Reset all singleton services before each test."""
    reset_auth_service()
    reset_account_service()
    reset_upgrade_service()
    reset_admin_service()
    reset_prediction_service()

    yield

    reset_auth_service()
    reset_account_service()
    reset_upgrade_service()
    reset_admin_service()
    reset_prediction_service()


@pytest.fixture
def app(reset_singletons):
    """Create FastAPI app for testing."""
    return create_app()


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """Create test client."""
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture
def mock_redis():
    """Create a mock Redis client."""
    redis = AsyncMock()
    redis.ping = AsyncMock(return_value=True)
    redis.exists = AsyncMock(return_value=1)
    redis.hgetall = AsyncMock(return_value={})
    redis.hget = AsyncMock(return_value=None)
    redis.hset = AsyncMock(return_value=1)
    redis.hdel = AsyncMock(return_value=1)
    redis.set = AsyncMock(return_value=True)
    return redis


def login(client: TestClient, username: str, password: str) -> dict[str, str]:
    response = client.post("/api/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def login_as(client):
    """Log in and return bearer headers."""

    def _login(username: str, password: str) -> dict[str, str]:
        return login(client, username, password)

    return _login


# Auth header fixtures for the seed accounts
@pytest.fixture
def admin_headers(client):
    """Headers for the seeded admin."""
    return login(client, "admin", "admin")


@pytest.fixture
def free_user_headers(client):
    """Headers for the seeded free-tier user."""
    return login(client, "abc", "abc")


@pytest.fixture
def tier1_user_headers(client):
    """Headers for the seeded tier1 user."""
    return login(client, "test", "test")


@pytest.fixture
def invalid_headers():
    """Headers with a token that was never issued."""
    return {"Authorization": "Bearer not-a-real-token"}


# Sample data fixtures
@pytest.fixture
def aid_form() -> dict[str, str]:
    """Valid financial-aid answers."""
    return {
        "financial_aid_reason": AID_REASON,
        "current_situation": "Full-time student with a small research stipend",
        "how_it_helps": "Image analysis for weekly field samples",
        "additional_info": "",
    }


@pytest.fixture
def sample_prediction_request() -> dict[str, object]:
    return {"latitude": 41.68, "longitude": -83.24, "date": "2026-07-01"}
