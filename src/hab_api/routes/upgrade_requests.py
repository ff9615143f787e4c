"""Financial-aid upgrade request endpoints."""

from fastapi import APIRouter, Depends, Query
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as PydanticValidationError

from hab_api.auth.dependencies import get_current_user, require_admin
from hab_api.errors.exceptions import AdminRequiredError
from hab_api.models.upgrade_request import (
    ReviewRequest,
    UpgradeRequest,
    UpgradeRequestAction,
    UpgradeRequestCreate,
    UpgradeStatus,
)
from hab_api.models.user import User
from hab_api.services.upgrade_service import UpgradeService, get_upgrade_service

router = APIRouter(prefix="/upgrade-requests", tags=["Upgrade Requests"])


def _as_request_error(exc: PydanticValidationError) -> RequestValidationError:
    return RequestValidationError(
        [{**error, "loc": ("body", *error["loc"])} for error in exc.errors()]
    )


@router.get(
    "",
    response_model=list[UpgradeRequest],
    summary="List Upgrade Requests",
    description="List all upgrade requests, newest first. Admin only.",
)
async def list_upgrade_requests(
    status_filter: UpgradeStatus | None = Query(
        default=None,
        alias="status",
        description="Only return requests in this status",
    ),
    admin: User = Depends(require_admin),
    upgrade_service: UpgradeService = Depends(get_upgrade_service),
) -> list[UpgradeRequest]:
    return await upgrade_service.list_all(status_filter)


@router.post(
    "",
    response_model=UpgradeRequest,
    summary="Create, Approve or Reject",
    description=(
        "Single endpoint keyed by `action`.\n\n"
        "- `create`: submit a financial-aid request for a higher tier\n"
        "- `approve` / `reject`: resolve a pending request (admin only, notes required)"
    ),
)
async def upgrade_request_action(
    body: UpgradeRequestAction,
    user: User = Depends(get_current_user),
    upgrade_service: UpgradeService = Depends(get_upgrade_service),
) -> UpgradeRequest:
    """
    Dispatch on `action`.

    Approve moves the user to the requested tier; reject leaves it unchanged.
    Both are final: resolving a request twice fails with 404.
    """
    if body.action == "create":
        try:
            payload: UpgradeRequestCreate = body.to_create()
        except PydanticValidationError as e:
            raise _as_request_error(e) from None
        return await upgrade_service.submit(user.username, payload.requested_tier, payload)

    if not user.is_admin:
        raise AdminRequiredError()

    try:
        review: ReviewRequest = body.to_review()
    except PydanticValidationError as e:
        raise _as_request_error(e) from None

    assert body.request_id is not None
    if body.action == "approve":
        return await upgrade_service.approve(body.request_id, review.admin_notes, user.username)
    return await upgrade_service.reject(body.request_id, review.admin_notes, user.username)
