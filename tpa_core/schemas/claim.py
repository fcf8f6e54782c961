"""
Claim Schemas.
Source: Claims lifecycle design
Verified: 2025-12-18
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from tpa_core.core.enums import ClaimStatus
from tpa_core.schemas.common import utc_now


class Claim(BaseModel):
    """Reimbursement claim. Lifecycle governed by the claim state machine."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    claim_number: Optional[str] = None
    member_id: str
    benefit_policy_id: Optional[str] = None
    employer_id: Optional[str] = None
    provider_id: Optional[str] = None
    provider_name: Optional[str] = None
    medical_service_id: Optional[str] = None
    pre_authorization_id: Optional[str] = None
    diagnosis: Optional[str] = None
    service_date: Optional[date] = None
    requested_amount: Decimal = Field(ge=0)
    approved_amount: Optional[Decimal] = None
    difference_amount: Optional[Decimal] = None
    status: ClaimStatus = ClaimStatus.DRAFT
    reviewer_comment: Optional[str] = None
    reviewer_id: Optional[str] = None
    reviewer_username: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    payment_reference: Optional[str] = None
    settled_at: Optional[datetime] = None
    attachments_count: int = 0
    service_count: int = 0
    version: int = 1
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def allows_edit(self) -> bool:
        """Claim content may be edited only before review or when sent back."""
        return self.status in (ClaimStatus.DRAFT, ClaimStatus.RETURNED_FOR_INFO)


class ClaimSnapshot(BaseModel):
    """Key financial and status fields of a claim at one point in time."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["CLAIM"] = "CLAIM"
    id: str
    status: ClaimStatus
    requested_amount: Decimal
    approved_amount: Optional[Decimal] = None
    difference_amount: Optional[Decimal] = None
    provider_name: Optional[str] = None
    diagnosis: Optional[str] = None
    reviewer_comment: Optional[str] = None
    attachments_count: int = 0
    service_count: int = 0

    @classmethod
    def of(cls, claim: Claim) -> "ClaimSnapshot":
        return cls(
            id=claim.id,
            status=claim.status,
            requested_amount=claim.requested_amount,
            approved_amount=claim.approved_amount,
            difference_amount=claim.difference_amount,
            provider_name=claim.provider_name,
            diagnosis=claim.diagnosis,
            reviewer_comment=claim.reviewer_comment,
            attachments_count=claim.attachments_count,
            service_count=claim.service_count,
        )


class ClaimLine(BaseModel):
    """One billed service line used for coverage validation."""

    medical_service_id: str
    amount: Decimal = Field(ge=0)


class ClaimTransitionRequest(BaseModel):
    """Transition request accepted by the claim workflow."""

    target_status: ClaimStatus
    comment: Optional[str] = None
    amount: Optional[Decimal] = Field(default=None, description="Approved amount")
    reason: Optional[str] = Field(default=None, description="Rejection reason")
    use_system_calculation: bool = False
    payment_reference: Optional[str] = None
