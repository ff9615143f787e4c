"""Standard API response models."""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from hab_api.config import TierConfig


class ErrorDetail(BaseModel):
    """Detailed error information."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] | None = Field(default=None, description="Additional error details")
    request_id: str | None = Field(default=None, description="Request ID for tracking")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class ErrorResponse(BaseModel):
    """Standard error response format."""

    error: ErrorDetail


class SuccessResponse(BaseModel):
    """Acknowledgement for write operations."""

    success: bool = True
    message: str | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Overall health status")
    version: str = Field(..., description="API version")
    components: dict[str, dict[str, Any]] = Field(
        default_factory=dict, description="Component health status"
    )
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class TierFeaturesResponse(BaseModel):
    """Public view of a tier's configuration."""

    name: str
    display_name: str
    map_access: bool
    image_upload: bool
    modalities: list[str]
    modality_count: int
    prediction_days: int
    threads: int | str
    model_label: str
    api_calls_per_month: int
    processing_time: str
    features: list[str]

    @classmethod
    def from_config(cls, name: str, config: TierConfig) -> "TierFeaturesResponse":
        return cls(
            name=name,
            display_name=config.display_name,
            map_access=config.map_access,
            image_upload=config.image_upload,
            modalities=list(config.modalities),
            modality_count=config.modality_count,
            prediction_days=config.prediction_days,
            threads=config.threads if config.threads is not None else "unlimited",
            model_label=config.model_label,
            api_calls_per_month=config.api_calls_per_month,
            processing_time=config.processing_time,
            features=list(config.features),
        )


class AccountResponse(BaseModel):
    """Account details response."""

    username: str
    tier: str
    role: str
    created_at: datetime


class SubscriptionResponse(BaseModel):
    """Subscription and usage for one user."""

    username: str
    tier: str
    api_calls_used: int
    api_calls_limit: int
    api_calls_remaining: int
    last_reset_date: datetime
    can_make_api_call: bool
    features: TierFeaturesResponse


class AdminUserEntry(BaseModel):
    """A user row in the admin dashboard."""

    username: str
    tier: str
    role: str
    created_at: datetime
    subscription: SubscriptionResponse


class AdminStatsResponse(BaseModel):
    """Aggregate numbers for the admin dashboard."""

    total_users: int
    tier_counts: dict[str, int]
    total_api_calls: int
    pending_requests: int
