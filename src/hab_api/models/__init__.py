"""Pydantic models for the HAB API."""

from hab_api.models.prediction import (
    ImageAnalysisResponse,
    PredictionRequest,
    PredictionResponse,
)
from hab_api.models.responses import (
    ErrorDetail,
    ErrorResponse,
    SubscriptionResponse,
    TierFeaturesResponse,
)
from hab_api.models.session import SessionState, TokenResponse
from hab_api.models.upgrade_request import UpgradeRequest, UpgradeStatus
from hab_api.models.user import User, UserSubscription

__all__ = [
    "ErrorDetail",
    "ErrorResponse",
    "ImageAnalysisResponse",
    "PredictionRequest",
    "PredictionResponse",
    "SessionState",
    "SubscriptionResponse",
    "TierFeaturesResponse",
    "TokenResponse",
    "UpgradeRequest",
    "UpgradeStatus",
    "User",
    "UserSubscription",
]
