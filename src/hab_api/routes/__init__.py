"""API routes module."""

from hab_api.routes.account import router as account_router
from hab_api.routes.admin import router as admin_router
from hab_api.routes.auth import router as auth_router
from hab_api.routes.health import router as health_router
from hab_api.routes.predict import router as predict_router
from hab_api.routes.tiers import router as tiers_router
from hab_api.routes.upgrade_requests import router as upgrade_requests_router

__all__ = [
    "account_router",
    "admin_router",
    "auth_router",
    "health_router",
    "predict_router",
    "tiers_router",
    "upgrade_requests_router",
]
