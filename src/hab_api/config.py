"""Application configuration and tier settings."""

from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings

from hab_api.errors.exceptions import UnknownTierError


class Environment(str, Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class StorageBackend(str, Enum):
    MEMORY = "memory"
    JSON = "json"
    REDIS = "redis"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_env: Environment = Environment.DEVELOPMENT
    api_prefix: str = "/api"
    cors_origins: list[str] = ["*"]

    # Storage
    storage_backend: StorageBackend = StorageBackend.JSON
    data_dir: Path = Path("data")
    redis_url: str = "redis://localhost:6379/0"
    redis_max_connections: int = 20
    seed_default_users: bool = True
    admin_password: str = "admin"

    # Auth
    jwt_secret: str = "dev-secret-change-me"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24
    bcrypt_rounds: int = 12

    # Upstream ML services
    prediction_api_url: str = "http://localhost:8001/predict"
    image_api_url: str = "http://localhost:5000/analyze-image"
    upstream_timeout_seconds: float = 300.0
    max_image_bytes: int = 10 * 1024 * 1024

    model_config = {"env_prefix": "", "case_sensitive": False}


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


class SubscriptionTier(str, Enum):
    """Subscription tiers."""

    FREE = "free"
    TIER1 = "tier1"
    TIER2 = "tier2"
    ADMIN = "admin"


class UserRole(str, Enum):
    """Account roles. Admin privileges come from the role, not the tier."""

    USER = "user"
    ADMIN = "admin"


# Ordered lowest to highest
TIER_ORDER: tuple[SubscriptionTier, ...] = (
    SubscriptionTier.FREE,
    SubscriptionTier.TIER1,
    SubscriptionTier.TIER2,
    SubscriptionTier.ADMIN,
)

# Tiers a user can hold or request without the admin role
PRICING_TIERS: frozenset[SubscriptionTier] = frozenset(
    {SubscriptionTier.FREE, SubscriptionTier.TIER1, SubscriptionTier.TIER2}
)


@dataclass(frozen=True)
class TierConfig:
    """Configuration for a subscription tier."""

    display_name: str
    map_access: bool
    image_upload: bool
    modalities: tuple[str, ...]
    prediction_days: int
    threads: int | None  # None means unlimited
    model_label: str
    api_calls_per_month: int
    processing_time: str
    features: tuple[str, ...] = field(default_factory=tuple)

    @property
    def modality_count(self) -> int:
        return len(self.modalities)


_ALL_MODALITIES = ("chlor_a", "Rrs_412", "Rrs_443")

TIER_CONFIGS: dict[SubscriptionTier, TierConfig] = {
    SubscriptionTier.FREE: TierConfig(
        display_name="Free Tier",
        map_access=True,
        image_upload=False,
        modalities=("chlor_a",),
        prediction_days=5,
        threads=1,
        model_label="85% Accuracy",
        api_calls_per_month=3,
        processing_time="3-5 minutes",
        features=(
            "Map, coordinates",
            "1 modality",
            "5-day predictions",
            "85% Model Accuracy",
            "3 API calls per month",
        ),
    ),
    SubscriptionTier.TIER1: TierConfig(
        display_name="Tier 1 (Pro)",
        map_access=True,
        image_upload=True,
        modalities=_ALL_MODALITIES,
        prediction_days=10,
        threads=4,
        model_label="92% Accuracy",
        api_calls_per_month=100,
        processing_time="1-2 minutes",
        features=(
            "Map, coordinates & image upload",
            "3 modalities",
            "10-day predictions",
            "92% Model Accuracy",
            "100 API calls per month",
        ),
    ),
    SubscriptionTier.TIER2: TierConfig(
        display_name="Tier 2 (Enterprise)",
        map_access=True,
        image_upload=True,
        modalities=_ALL_MODALITIES,
        prediction_days=10,
        threads=None,
        model_label="97% Accuracy",
        api_calls_per_month=1000,
        processing_time="< 30 seconds",
        features=(
            "Map, coordinates & image upload",
            "3 modalities",
            "10-day predictions",
            "97% Model Accuracy",
            "1000 API calls per month",
            "Priority processing",
        ),
    ),
    SubscriptionTier.ADMIN: TierConfig(
        display_name="Administrator",
        map_access=True,
        image_upload=True,
        modalities=_ALL_MODALITIES,
        prediction_days=10,
        threads=None,
        model_label="Full Access",
        api_calls_per_month=10000,
        processing_time="< 10 seconds",
        features=(
            "All features unlocked",
            "Admin dashboard access",
            "Unlimited management",
            "Priority support",
        ),
    ),
}


def get_tier_config(tier: SubscriptionTier) -> TierConfig:
    """Get configuration for a subscription tier."""
    return TIER_CONFIGS[tier]


def parse_tier(value: str | SubscriptionTier) -> SubscriptionTier:
    """
    Convert a raw tier name into a SubscriptionTier.

    Raises:
        UnknownTierError: If the name does not match a configured tier
    """
    if isinstance(value, SubscriptionTier):
        return value
    try:
        return SubscriptionTier(value.strip().lower())
    except (ValueError, AttributeError):
        raise UnknownTierError(str(value)) from None


def is_upgrade(current: SubscriptionTier, requested: SubscriptionTier) -> bool:
    """Check whether `requested` ranks above `current`."""
    return TIER_ORDER.index(requested) > TIER_ORDER.index(current)
