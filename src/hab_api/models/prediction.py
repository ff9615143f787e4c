"""Prediction and image-analysis models."""

import datetime as dt
from typing import Literal

from pydantic import BaseModel, Field


class Location(BaseModel):
    latitude: float
    longitude: float


class PredictionRequest(BaseModel):
    """Map/coordinate prediction request."""

    latitude: float = Field(..., ge=-90, le=90, description="Latitude in degrees")
    longitude: float = Field(..., ge=-180, le=180, description="Longitude in degrees")
    date: dt.date = Field(..., description="Start date; predictions cover the tier's day range")


class ConfidenceScores(BaseModel):
    non_toxic: float | str
    toxic: float | str


class PredictionResponse(BaseModel):
    """Prediction returned by the upstream model service."""

    prediction_for_date: str
    predicted_label: Literal["toxic", "non_toxic"]
    confidence_scores: ConfidenceScores
    location: Location | None = None
    processing_time: str | None = None
    model_used: str | None = None


class AnalysisResult(BaseModel):
    prediction: str
    confidence: float | str
    processing_time: str | None = None
    model_used: str | None = None


class ImageAnalysisResponse(BaseModel):
    """Result of the upstream image-analysis service."""

    success: bool
    output_image_url: str | None = None
    output_image_base64: str | None = None
    analysis_result: AnalysisResult | None = None
    error: str | None = None
