"""User and subscription models."""

from datetime import UTC, datetime

from pydantic import BaseModel, Field, field_validator

from hab_api.auth.security import MAX_PASSWORD_BYTES
from hab_api.config import SubscriptionTier, UserRole

USERNAME_PATTERN = r"^[A-Za-z0-9_.-]+$"


def _fits_bcrypt(v: str) -> str:
    if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return v


class User(BaseModel):
    """User model. Authoritative record for the user's tier."""

    username: str = Field(..., min_length=3, max_length=50, pattern=USERNAME_PATTERN)
    password_hash: str = Field(..., description="bcrypt hash of the password")
    tier: SubscriptionTier = Field(default=SubscriptionTier.FREE)
    role: UserRole = Field(default=UserRole.USER)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = {"from_attributes": True}

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class UserSubscription(BaseModel):
    """Monthly usage counter for a user."""

    username: str = Field(..., description="Owning user, 1:1 with User")
    api_calls_used: int = Field(default=0, ge=0)
    last_reset_date: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = {"from_attributes": True}


class RegisterRequest(BaseModel):
    """Public registration body."""

    username: str = Field(..., min_length=3, max_length=50, pattern=USERNAME_PATTERN)
    password: str = Field(..., min_length=3, max_length=128)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        return _fits_bcrypt(v)


class LoginRequest(BaseModel):
    """Login body."""

    username: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        return _fits_bcrypt(v)


class CreateUserRequest(RegisterRequest):
    """Admin-side user creation with an explicit tier."""

    tier: SubscriptionTier = Field(default=SubscriptionTier.FREE)


class SetTierRequest(BaseModel):
    """Admin tier change."""

    tier: str = Field(..., description="Target tier name")
