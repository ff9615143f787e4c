"""Prediction endpoints backed by the external ML services."""

from fastapi import APIRouter, Depends, File, UploadFile

from hab_api.auth.dependencies import require_feature
from hab_api.models.prediction import (
    ImageAnalysisResponse,
    PredictionRequest,
    PredictionResponse,
)
from hab_api.models.user import User
from hab_api.services.prediction_service import PredictionService, get_prediction_service

router = APIRouter(prefix="/predict", tags=["Predict"])


@router.post(
    "/map",
    response_model=PredictionResponse,
    summary="Map Prediction",
    description="Predict HAB toxicity at a coordinate over the tier's day window. Metered.",
)
async def predict_map(
    body: PredictionRequest,
    user: User = Depends(require_feature("map_access")),
    prediction_service: PredictionService = Depends(get_prediction_service),
) -> PredictionResponse:
    """
    Run a map prediction.

    The tier decides the modalities and the number of days sent upstream.
    Returns 429 once the monthly allowance is used up; failed upstream calls
    are not counted.
    """
    return await prediction_service.predict_map(user, body)


@router.post(
    "/imageupload",
    response_model=ImageAnalysisResponse,
    summary="Image Analysis",
    description="Analyze an uploaded satellite or water image. Tier 1 and above. Metered.",
)
async def predict_image(
    image: UploadFile = File(..., description="PNG or JPEG image"),
    user: User = Depends(require_feature("image_upload")),
    prediction_service: PredictionService = Depends(get_prediction_service),
) -> ImageAnalysisResponse:
    data = await image.read()
    return await prediction_service.analyze_image(
        user,
        filename=image.filename or "upload",
        content_type=image.content_type,
        data=data,
    )
