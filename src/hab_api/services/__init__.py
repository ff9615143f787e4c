"""Business logic services."""

from hab_api.services.account_service import AccountService, get_account_service
from hab_api.services.admin_service import AdminService, get_admin_service
from hab_api.services.auth_service import AuthService, get_auth_service
from hab_api.services.prediction_service import PredictionService, get_prediction_service
from hab_api.services.upgrade_service import UpgradeService, get_upgrade_service

__all__ = [
    "AccountService",
    "AdminService",
    "AuthService",
    "PredictionService",
    "UpgradeService",
    "get_account_service",
    "get_admin_service",
    "get_auth_service",
    "get_prediction_service",
    "get_upgrade_service",
]
