"""Upgrade request models."""

from datetime import UTC, datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from hab_api.config import SubscriptionTier


class UpgradeStatus(str, Enum):
    """Upgrade request lifecycle status."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# Valid state transitions for upgrade requests
UPGRADE_TRANSITIONS: dict[UpgradeStatus, set[UpgradeStatus]] = {
    UpgradeStatus.PENDING: {UpgradeStatus.APPROVED, UpgradeStatus.REJECTED},
    UpgradeStatus.APPROVED: set(),
    UpgradeStatus.REJECTED: set(),
}


def can_transition(from_status: UpgradeStatus, to_status: UpgradeStatus) -> bool:
    """Check if an upgrade request status transition is valid."""
    return to_status in UPGRADE_TRANSITIONS.get(from_status, set())


class UpgradeRequest(BaseModel):
    """Financial-aid upgrade application."""

    id: str = Field(..., description="Unique, time-derived request identifier")
    username: str
    current_tier: SubscriptionTier
    requested_tier: SubscriptionTier
    request_date: datetime = Field(default_factory=lambda: datetime.now(UTC))
    status: UpgradeStatus = Field(default=UpgradeStatus.PENDING)

    # Financial aid information
    financial_aid_reason: str
    current_situation: str
    how_it_helps: str
    additional_info: str = ""

    # Review
    admin_notes: str | None = None
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None

    model_config = {"from_attributes": True}

    @property
    def is_pending(self) -> bool:
        return self.status == UpgradeStatus.PENDING


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value.strip()


class FinancialAidForm(BaseModel):
    """Financial-aid answers supplied with an upgrade request."""

    financial_aid_reason: str = Field(
        ...,
        min_length=50,
        max_length=1000,
        description="Why financial assistance is needed (at least 50 characters)",
    )
    current_situation: str = Field(..., min_length=1, max_length=800)
    how_it_helps: str = Field(..., min_length=1, max_length=800)
    additional_info: str = Field(default="", max_length=500)

    @field_validator("current_situation", "how_it_helps")
    @classmethod
    def required_text(cls, v: str) -> str:
        return _not_blank(v)

    @field_validator("financial_aid_reason")
    @classmethod
    def detailed_reason(cls, v: str) -> str:
        v = _not_blank(v)
        if len(v) < 50:
            raise ValueError("Please provide a more detailed explanation (at least 50 characters)")
        return v


class UpgradeRequestCreate(FinancialAidForm):
    """Body for submitting an upgrade request."""

    requested_tier: str = Field(..., description="Tier being requested")


class ReviewRequest(BaseModel):
    """Admin decision body; notes are mandatory."""

    admin_notes: str = Field(..., min_length=1, max_length=1000)

    @field_validator("admin_notes")
    @classmethod
    def notes_required(cls, v: str) -> str:
        return _not_blank(v)


class UpgradeRequestAction(BaseModel):
    """
    Single-endpoint body keyed by `action`.

    - create: requires requested_tier and the financial-aid answers
    - approve / reject: requires request_id and admin_notes
    """

    action: Literal["create", "approve", "reject"]

    # create
    requested_tier: str | None = None
    financial_aid_reason: str | None = None
    current_situation: str | None = None
    how_it_helps: str | None = None
    additional_info: str = ""

    # approve / reject
    request_id: str | None = None
    admin_notes: str | None = None

    @model_validator(mode="after")
    def check_action_fields(self) -> "UpgradeRequestAction":
        if self.action == "create":
            if not self.requested_tier:
                raise ValueError("requested_tier is required to create a request")
        else:
            if not self.request_id:
                raise ValueError(f"request_id is required to {self.action} a request")
            if not self.admin_notes or not self.admin_notes.strip():
                raise ValueError(f"admin_notes are required to {self.action} a request")
        return self

    def to_create(self) -> UpgradeRequestCreate:
        """Validate the create fields as a full UpgradeRequestCreate."""
        return UpgradeRequestCreate(
            requested_tier=self.requested_tier or "",
            financial_aid_reason=self.financial_aid_reason or "",
            current_situation=self.current_situation or "",
            how_it_helps=self.how_it_helps or "",
            additional_info=self.additional_info,
        )

    def to_review(self) -> ReviewRequest:
        return ReviewRequest(admin_notes=self.admin_notes or "")
