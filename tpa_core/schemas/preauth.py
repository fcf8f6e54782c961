"""
Pre-Authorization Schemas.
Source: Pre-authorization lifecycle design
Verified: 2025-12-18
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from tpa_core.core.enums import PreAuthStatus
from tpa_core.schemas.common import utc_now


class PreAuthorization(BaseModel):
    """Pre-authorization request for a planned service."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    pre_auth_number: Optional[str] = None
    member_id: str
    benefit_policy_id: Optional[str] = None
    provider_id: Optional[str] = None
    medical_service_id: Optional[str] = None
    expected_service_date: Optional[date] = None
    requested_amount: Decimal = Field(ge=0)
    approved_amount: Optional[Decimal] = None
    approval_expiry_date: Optional[date] = None
    rejection_reason: Optional[str] = None
    notes: Optional[str] = None
    status: PreAuthStatus = PreAuthStatus.REQUESTED
    reviewer_id: Optional[str] = None
    reviewer_username: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    version: int = 1
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class PreAuthSnapshot(BaseModel):
    """Key fields of a pre-authorization at one point in time."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["PRE_AUTHORIZATION"] = "PRE_AUTHORIZATION"
    id: str
    status: PreAuthStatus
    requested_amount: Decimal
    approved_amount: Optional[Decimal] = None
    approval_expiry_date: Optional[date] = None
    rejection_reason: Optional[str] = None
    reviewer_username: Optional[str] = None

    @classmethod
    def of(cls, preauth: PreAuthorization) -> "PreAuthSnapshot":
        return cls(
            id=preauth.id,
            status=preauth.status,
            requested_amount=preauth.requested_amount,
            approved_amount=preauth.approved_amount,
            approval_expiry_date=preauth.approval_expiry_date,
            rejection_reason=preauth.rejection_reason,
            reviewer_username=preauth.reviewer_username,
        )


class PreAuthTransitionRequest(BaseModel):
    """Transition request accepted by the pre-authorization workflow."""

    target_status: PreAuthStatus
    comment: Optional[str] = None
    amount: Optional[Decimal] = Field(default=None, description="Approved amount")
    reason: Optional[str] = Field(default=None, description="Rejection reason")
    approval_expiry_date: Optional[date] = None
