"""Custom exception hierarchy for the HAB API."""

from typing import Any

UPGRADE_URL = "/subscription"


class HABAPIError(Exception):
    """Base exception for all HAB API errors."""

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"
    message: str = "An internal error occurred"

    def __init__(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.__class__.message
        self.details = details or {}
        super().__init__(self.message)


# Authentication Errors (401)


class AuthenticationError(HABAPIError):
    """Base authentication error."""

    status_code = 401
    error_code = "AUTH_ERROR"
    message = "Authentication failed"


class InvalidCredentialsError(AuthenticationError):
    """Unknown username or wrong password."""

    error_code = "AUTH_INVALID_CREDENTIALS"
    message = "Invalid username or password"


class MissingCredentialsError(AuthenticationError):
    """No credentials provided."""

    error_code = "AUTH_MISSING_CREDENTIALS"
    message = "No authentication credentials provided"


class InvalidTokenError(AuthenticationError):
    """Malformed, tampered or expired bearer token."""

    error_code = "AUTH_INVALID_TOKEN"
    message = "Invalid or expired access token"


class SessionExpiredError(AuthenticationError):
    """Token refers to a session that was logged out or replaced."""

    error_code = "AUTH_SESSION_EXPIRED"
    message = "Session has ended, please log in again"


# Authorization Errors (403)


class AuthorizationError(HABAPIError):
    """Base authorization error."""

    status_code = 403
    error_code = "AUTH_FORBIDDEN"
    message = "Access denied"


class AdminRequiredError(AuthorizationError):
    """Operation is restricted to administrators."""

    error_code = "AUTH_ADMIN_REQUIRED"
    message = "Administrator access required"


class FeatureNotAvailableError(AuthorizationError):
    """The user's tier does not include this feature."""

    error_code = "FEATURE_NOT_AVAILABLE"
    message = "Your subscription tier does not include this feature"

    def __init__(self, feature: str, tier: str):
        super().__init__(
            message=f"The {tier} tier does not include {feature.replace('_', ' ')}",
            details={"feature": feature, "tier": tier, "upgrade_url": UPGRADE_URL},
        )


class ProtectedUserError(AuthorizationError):
    """Attempt to delete a protected account."""

    error_code = "USER_PROTECTED"
    message = "This account cannot be deleted"

    def __init__(self, username: str):
        super().__init__(
            message=f"User '{username}' is protected and cannot be deleted",
            details={"username": username},
        )


class QuotaExceededError(AuthorizationError):
    """User has used up the monthly allowance."""

    status_code = 429
    error_code = "QUOTA_EXCEEDED"
    message = "You have exceeded your quota"

    def __init__(
        self,
        tier: str,
        limit: int,
        used: int,
        reset_at: str | None = None,
    ):
        details: dict[str, Any] = {
            "tier": tier,
            "limit": limit,
            "used": used,
            "upgrade_url": UPGRADE_URL,
        }
        if reset_at:
            details["reset_at"] = reset_at
        super().__init__(
            message=(
                f"You've reached your monthly limit of {limit} requests ({used}/{limit}). "
                "Upgrade your plan for more calls."
            ),
            details=details,
        )


# Validation Errors (400)


class ValidationError(HABAPIError):
    """Base validation error."""

    status_code = 400
    error_code = "VALIDATION_ERROR"
    message = "Validation failed"


class UnknownTierError(ValidationError):
    """Tier name does not match a configured tier."""

    error_code = "UNKNOWN_TIER"
    message = "Unknown subscription tier"

    def __init__(self, tier: str):
        super().__init__(
            message=f"Unknown subscription tier '{tier}'",
            details={"tier": tier},
        )


class InvalidUpgradeError(ValidationError):
    """Requested tier is not an upgrade from the current tier."""

    error_code = "INVALID_UPGRADE"
    message = "Requested tier is not an upgrade"

    def __init__(self, current_tier: str, requested_tier: str):
        super().__init__(
            message=f"Cannot request {requested_tier} from {current_tier}",
            details={"current_tier": current_tier, "requested_tier": requested_tier},
        )


class InvalidImageError(ValidationError):
    """Uploaded file is not an acceptable image."""

    error_code = "INVALID_IMAGE"
    message = "Please select a valid image file (PNG, JPG, JPEG)"


# Conflict Errors (409)


class ConflictError(HABAPIError):
    """Base conflict error."""

    status_code = 409
    error_code = "CONFLICT"
    message = "Request conflicts with existing data"


class UsernameTakenError(ConflictError):
    """Username already registered."""

    error_code = "USERNAME_TAKEN"
    message = "Username already exists"

    def __init__(self, username: str):
        super().__init__(
            message=f"Username '{username}' already exists",
            details={"username": username},
        )


class DuplicatePendingRequestError(ConflictError):
    """User already has a pending upgrade request."""

    error_code = "DUPLICATE_PENDING_REQUEST"
    message = "You already have a pending upgrade request"

    def __init__(self, username: str, request_id: str):
        super().__init__(
            details={"username": username, "pending_request_id": request_id},
        )


# Resource Not Found Errors (404)


class NotFoundError(HABAPIError):
    """Base not-found error."""

    status_code = 404
    error_code = "NOT_FOUND"
    message = "Resource not found"


class UserNotFoundError(NotFoundError):
    """User not found."""

    error_code = "USER_NOT_FOUND"
    message = "User not found"

    def __init__(self, username: str):
        super().__init__(
            message=f"User '{username}' not found",
            details={"username": username},
        )


class UpgradeRequestNotFoundError(NotFoundError):
    """Upgrade request not found."""

    error_code = "UPGRADE_REQUEST_NOT_FOUND"
    message = "Request not found"

    def __init__(self, request_id: str):
        super().__init__(
            message=f"Upgrade request '{request_id}' not found",
            details={"request_id": request_id},
        )


class UpgradeRequestNotPendingError(NotFoundError):
    """No pending request with this id; it was already approved or rejected."""

    error_code = "UPGRADE_REQUEST_NOT_PENDING"
    message = "No pending upgrade request with this id"

    def __init__(self, request_id: str, status: str):
        super().__init__(
            message=f"Upgrade request '{request_id}' is already {status}",
            details={"request_id": request_id, "status": status},
        )


# Upstream / Infrastructure Errors


class StoreUnavailableError(HABAPIError):
    """Backing store could not be read, parsed or written."""

    status_code = 503
    error_code = "STORE_UNAVAILABLE"
    message = "Data store is unavailable"

    def __init__(self, collection: str, reason: str):
        super().__init__(
            message=f"Data store for {collection} is unavailable",
            details={"collection": collection, "reason": reason},
        )


class UpstreamServiceError(HABAPIError):
    """Prediction or image-analysis service failed."""

    status_code = 502
    error_code = "UPSTREAM_ERROR"
    message = "The analysis service failed to process the request"

    def __init__(self, service: str, reason: str):
        super().__init__(
            message=f"{service} service error: {reason}",
            details={"service": service, "reason": reason},
        )


class InternalError(HABAPIError):
    """Base internal error."""

    status_code = 500
    error_code = "INTERNAL_ERROR"
    message = "An internal error occurred"
