"""Session models."""

from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field

from hab_api.config import SubscriptionTier, UserRole
from hab_api.models.prediction import PredictionResponse

Page = Literal["login", "register", "main", "prediction", "image-upload", "subscription", "admin"]


class SessionState(BaseModel):
    """Server-side session behind a bearer token."""

    session_id: str
    username: str
    tier: SubscriptionTier
    role: UserRole = UserRole.USER
    logged_in: bool = True
    page: Page = "main"
    last_prediction: PredictionResponse | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class TokenResponse(BaseModel):
    """Login response."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Token lifetime in seconds")
    session: SessionState
