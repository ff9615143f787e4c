"""Pass-through calls to the external prediction and image-analysis services."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from hab_api.config import Settings, get_settings, get_tier_config
from hab_api.errors.exceptions import (
    FeatureNotAvailableError,
    InvalidImageError,
    UpstreamServiceError,
)
from hab_api.models.prediction import (
    ImageAnalysisResponse,
    Location,
    PredictionRequest,
    PredictionResponse,
)
from hab_api.models.user import User
from hab_api.services.account_service import AccountService
from hab_api.services.auth_service import AuthService
from hab_api.storage.manager import StorageManager, get_storage

logger = logging.getLogger(__name__)

PREDICTION_SERVICE = "prediction"
IMAGE_SERVICE = "image analysis"


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP error! status: {response.status_code}"
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"HTTP error! status: {response.status_code}"


class PredictionService:
    """
    Metered calls to the ML services.

    Each call passes the feature gate and the quota gate first. Usage is
    counted only once the upstream service has answered successfully.
    """

    def __init__(
        self,
        storage: StorageManager | None = None,
        client: httpx.AsyncClient | None = None,
        settings: Settings | None = None,
    ):
        self._storage = storage
        self._client = client
        self.settings = settings or get_settings()

    @property
    def storage(self) -> StorageManager:
        """Get storage manager."""
        if self._storage is None:
            self._storage = get_storage()
        return self._storage

    @asynccontextmanager
    async def _http(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self.settings.upstream_timeout_seconds) as client:
            yield client

    async def _post(self, service: str, url: str, **kwargs: Any) -> Any:
        try:
            async with self._http() as client:
                response = await client.post(url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("Cannot reach %s service at %s: %s", service, url, e)
            raise UpstreamServiceError(service, f"cannot connect to {url}") from e

        if response.status_code != 200:
            reason = _error_message(response)
            logger.warning("%s service returned %d: %s", service, response.status_code, reason)
            raise UpstreamServiceError(service, reason)

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamServiceError(service, "response was not valid JSON") from e

    async def predict_map(self, user: User, request: PredictionRequest) -> PredictionResponse:
        """
        Run a coordinate prediction for the user's tier.

        Raises:
            FeatureNotAvailableError: If the tier has no map access
            QuotaExceededError: If the monthly allowance is used up
            UpstreamServiceError: If the prediction service fails
        """
        tier_config = get_tier_config(user.tier)
        if not tier_config.map_access:
            raise FeatureNotAvailableError("map_access", user.tier.value)

        accounts = AccountService(self.storage)
        await accounts.check_quota(user)

        payload = {
            "latitude": request.latitude,
            "longitude": request.longitude,
            "date": request.date.isoformat(),
            "tier": user.tier.value,
            "modalities": list(tier_config.modalities),
            "prediction_days": tier_config.prediction_days,
        }
        logger.info(
            "Prediction for %s at (%.4f, %.4f) from %s",
            user.username,
            request.latitude,
            request.longitude,
            payload["date"],
        )
        data = await self._post(PREDICTION_SERVICE, self.settings.prediction_api_url, json=payload)

        if not isinstance(data, dict):
            raise UpstreamServiceError(PREDICTION_SERVICE, "unexpected response shape")
        if data.get("error"):
            raise UpstreamServiceError(PREDICTION_SERVICE, str(data["error"]))

        try:
            prediction = PredictionResponse.model_validate(
                {
                    **data,
                    "location": Location(latitude=request.latitude, longitude=request.longitude),
                }
            )
        except PydanticValidationError as e:
            raise UpstreamServiceError(PREDICTION_SERVICE, "malformed prediction payload") from e

        await accounts.record_usage(user.username)
        await AuthService(self.storage).remember_prediction(user.username, prediction)
        return prediction

    async def analyze_image(
        self,
        user: User,
        filename: str,
        content_type: str | None,
        data: bytes,
    ) -> ImageAnalysisResponse:
        """
        Send an image to the analysis service.

        Raises:
            FeatureNotAvailableError: If the tier cannot upload images
            InvalidImageError: If the file is not an image or is too large
            QuotaExceededError: If the monthly allowance is used up
            UpstreamServiceError: If the analysis service fails
        """
        tier_config = get_tier_config(user.tier)
        if not tier_config.image_upload:
            raise FeatureNotAvailableError("image_upload", user.tier.value)

        if not content_type or not content_type.startswith("image/"):
            raise InvalidImageError(details={"content_type": content_type})
        if not data:
            raise InvalidImageError(message="Uploaded image is empty")
        if len(data) > self.settings.max_image_bytes:
            raise InvalidImageError(
                message="Image exceeds the maximum upload size",
                details={"size": len(data), "max_bytes": self.settings.max_image_bytes},
            )

        accounts = AccountService(self.storage)
        await accounts.check_quota(user)

        logger.info("Image analysis for %s (%s, %d bytes)", user.username, filename, len(data))
        body = await self._post(
            IMAGE_SERVICE,
            self.settings.image_api_url,
            files={"image": (filename, data, content_type)},
            data={"tier": user.tier.value, "username": user.username},
        )

        try:
            result = ImageAnalysisResponse.model_validate(body)
        except PydanticValidationError as e:
            raise UpstreamServiceError(IMAGE_SERVICE, "malformed analysis payload") from e
        if not result.success:
            raise UpstreamServiceError(IMAGE_SERVICE, result.error or "Analysis failed")

        await accounts.record_usage(user.username)
        return result


# Singleton instance
_prediction_service: PredictionService | None = None


def get_prediction_service() -> PredictionService:
    """Get prediction service instance."""
    global _prediction_service
    if _prediction_service is None:
        _prediction_service = PredictionService()
    return _prediction_service


def reset_prediction_service() -> None:
    """Reset prediction service (for testing)."""
    global _prediction_service
    _prediction_service = None
