"""Public tier table."""

from fastapi import APIRouter

from hab_api.config import TIER_CONFIGS, TIER_ORDER
from hab_api.models.responses import TierFeaturesResponse

router = APIRouter(prefix="/tiers", tags=["Tiers"])


@router.get(
    "",
    response_model=list[TierFeaturesResponse],
    summary="List Tiers",
    description="Features and monthly limits of every tier, lowest first.",
)
async def list_tiers() -> list[TierFeaturesResponse]:
    return [TierFeaturesResponse.from_config(tier.value, TIER_CONFIGS[tier]) for tier in TIER_ORDER]
