"""Tests for PredictionService with a stubbed upstream."""

import datetime as dt
import json

import httpx
import pytest

from hab_api.config import Settings
from hab_api.errors.exceptions import (
    FeatureNotAvailableError,
    InvalidImageError,
    QuotaExceededError,
    UpstreamServiceError,
)
from hab_api.models.prediction import PredictionRequest
from hab_api.models.user import UserSubscription
from hab_api.services.auth_service import AuthService
from hab_api.services.prediction_service import PredictionService
from hab_api.storage.manager import StorageManager

PREDICTION = {
    "prediction_for_date": "2026-07-06",
    "predicted_label": "toxic",
    "confidence_scores": {"non_toxic": 0.2, "toxic": 0.8},
    "processing_time": "3.2s",
}

ANALYSIS = {
    "success": True,
    "output_image_url": "http://localhost:5000/out/1.png",
    "analysis_result": {
        "prediction": "toxic",
        "confidence": 0.91,
        "processing_time": "1.1s",
        "model_used": "hab-cnn",
    },
}

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class Upstream:
    """Records requests and answers with a canned response."""

    def __init__(self, status_code=200, body=None, raise_error=None):
        self.status_code = status_code
        self.body = body
        self.raise_error = raise_error
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raise_error is not None:
            raise self.raise_error
        return httpx.Response(self.status_code, json=self.body)


@pytest.fixture
def manager():
    return StorageManager.in_memory()


@pytest.fixture
def settings():
    return Settings(
        prediction_api_url="http://ml.test/predict",
        image_api_url="http://ml.test/analyze-image",
        max_image_bytes=1024,
    )


def make_service(manager, settings, upstream):
    client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
    return PredictionService(manager, client=client, settings=settings)


def _request():
    return PredictionRequest(latitude=41.68, longitude=-83.24, date=dt.date(2026, 7, 1))


async def _used(manager, username):
    return (await manager.subscriptions.get(username)).api_calls_used


class TestPredictMap:
    @pytest.mark.asyncio
    async def test_success_counts_one_call(self, manager, settings):
        upstream = Upstream(body=PREDICTION)
        service = make_service(manager, settings, upstream)
        user = await manager.users.get("abc")

        result = await service.predict_map(user, _request())

        assert result.predicted_label == "toxic"
        assert result.location.latitude == 41.68
        assert await _used(manager, "abc") == 1

        sent = json.loads(upstream.requests[0].content)
        assert sent == {
            "latitude": 41.68,
            "longitude": -83.24,
            "date": "2026-07-01",
            "tier": "free",
            "modalities": ["chlor_a"],
            "prediction_days": 5,
        }

    @pytest.mark.asyncio
    async def test_tier_decides_payload(self, manager, settings):
        upstream = Upstream(body=PREDICTION)
        service = make_service(manager, settings, upstream)
        user = await manager.users.get("test")

        await service.predict_map(user, _request())

        sent = json.loads(upstream.requests[0].content)
        assert sent["modalities"] == ["chlor_a", "Rrs_412", "Rrs_443"]
        assert sent["prediction_days"] == 10

    @pytest.mark.asyncio
    async def test_result_remembered_on_session(self, manager, settings):
        auth = AuthService(manager)
        token = await auth.login("abc", "abc")
        service = make_service(manager, settings, Upstream(body=PREDICTION))

        await service.predict_map(await manager.users.get("abc"), _request())

        session = await auth.get_session("abc", token.session.session_id)
        assert session.last_prediction.prediction_for_date == "2026-07-06"

    @pytest.mark.asyncio
    async def test_quota_exhausted_skips_upstream(self, manager, settings):
        await manager.subscriptions.put(UserSubscription(username="abc", api_calls_used=3))
        upstream = Upstream(body=PREDICTION)
        service = make_service(manager, settings, upstream)

        with pytest.raises(QuotaExceededError):
            await service.predict_map(await manager.users.get("abc"), _request())

        assert upstream.requests == []
        assert await _used(manager, "abc") == 3

    @pytest.mark.asyncio
    async def test_upstream_error_body_not_counted(self, manager, settings):
        service = make_service(manager, settings, Upstream(body={"error": "model offline"}))

        with pytest.raises(UpstreamServiceError) as exc_info:
            await service.predict_map(await manager.users.get("abc"), _request())

        assert exc_info.value.status_code == 502
        assert "model offline" in exc_info.value.message
        assert await _used(manager, "abc") == 0

    @pytest.mark.asyncio
    async def test_upstream_http_error_not_counted(self, manager, settings):
        service = make_service(
            manager, settings, Upstream(status_code=500, body={"error": "boom"})
        )

        with pytest.raises(UpstreamServiceError):
            await service.predict_map(await manager.users.get("abc"), _request())
        assert await _used(manager, "abc") == 0

    @pytest.mark.asyncio
    async def test_connection_failure_not_counted(self, manager, settings):
        service = make_service(
            manager, settings, Upstream(raise_error=httpx.ConnectError("refused"))
        )

        with pytest.raises(UpstreamServiceError):
            await service.predict_map(await manager.users.get("abc"), _request())
        assert await _used(manager, "abc") == 0

    @pytest.mark.asyncio
    async def test_malformed_payload_not_counted(self, manager, settings):
        service = make_service(manager, settings, Upstream(body={"unexpected": True}))

        with pytest.raises(UpstreamServiceError):
            await service.predict_map(await manager.users.get("abc"), _request())
        assert await _used(manager, "abc") == 0


class TestAnalyzeImage:
    @pytest.mark.asyncio
    async def test_free_tier_cannot_upload(self, manager, settings):
        upstream = Upstream(body=ANALYSIS)
        service = make_service(manager, settings, upstream)

        with pytest.raises(FeatureNotAvailableError):
            await service.analyze_image(await manager.users.get("abc"), "a.png", "image/png", PNG)
        assert upstream.requests == []

    @pytest.mark.asyncio
    async def test_success(self, manager, settings):
        upstream = Upstream(body=ANALYSIS)
        service = make_service(manager, settings, upstream)

        result = await service.analyze_image(
            await manager.users.get("test"), "lake.png", "image/png", PNG
        )

        assert result.success is True
        assert result.analysis_result.prediction == "toxic"
        assert await _used(manager, "test") == 1

        body = upstream.requests[0].content
        assert b'name="image"; filename="lake.png"' in body
        assert b'name="tier"' in body
        assert b"tier1" in body
        assert b'name="username"' in body

    @pytest.mark.asyncio
    async def test_non_image_rejected(self, manager, settings):
        service = make_service(manager, settings, Upstream(body=ANALYSIS))

        with pytest.raises(InvalidImageError):
            await service.analyze_image(
                await manager.users.get("test"), "notes.txt", "text/plain", b"hello"
            )

    @pytest.mark.asyncio
    async def test_oversized_image_rejected(self, manager, settings):
        service = make_service(manager, settings, Upstream(body=ANALYSIS))

        with pytest.raises(InvalidImageError) as exc_info:
            await service.analyze_image(
                await manager.users.get("test"), "big.png", "image/png", b"\x00" * 2048
            )
        assert exc_info.value.details["max_bytes"] == 1024

    @pytest.mark.asyncio
    async def test_unsuccessful_analysis_not_counted(self, manager, settings):
        service = make_service(
            manager, settings, Upstream(body={"success": False, "error": "No water detected"})
        )

        with pytest.raises(UpstreamServiceError) as exc_info:
            await service.analyze_image(
                await manager.users.get("test"), "lake.png", "image/png", PNG
            )

        assert "No water detected" in exc_info.value.message
        assert await _used(manager, "test") == 0
