"""
Claim and Pre-Authorization ORM Models.
Source: Claims / pre-authorization lifecycle design
Verified: 2025-12-18
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Date, DateTime, Enum, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from tpa_core.core.enums import ClaimStatus, PreAuthStatus
from tpa_core.models.base import Base, StringIdModel, TimeStampedModel


class ClaimModel(Base, StringIdModel, TimeStampedModel):
    """Reimbursement claim row. ``version`` guards concurrent transitions."""

    __tablename__ = "claims"

    claim_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, unique=True)
    member_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    benefit_policy_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    employer_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    provider_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    provider_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    medical_service_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    pre_authorization_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    diagnosis: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    service_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    requested_amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    approved_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2), nullable=True)
    difference_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2), nullable=True)

    status: Mapped[ClaimStatus] = mapped_column(
        Enum(ClaimStatus, name="claim_status"), nullable=False, default=ClaimStatus.DRAFT, index=True
    )
    reviewer_comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reviewer_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    reviewer_username: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    settled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    attachments_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    service_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    updated_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return f"<Claim {self.id} ({self.status.value})>"


class PreAuthorizationModel(Base, StringIdModel, TimeStampedModel):
    """Pre-authorization row. ``version`` guards concurrent transitions."""

    __tablename__ = "pre_authorizations"

    pre_auth_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, unique=True)
    member_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    benefit_policy_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    provider_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    medical_service_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    expected_service_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    requested_amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    approved_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2), nullable=True)
    approval_expiry_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True, index=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[PreAuthStatus] = mapped_column(
        Enum(PreAuthStatus, name="pre_auth_status"),
        nullable=False,
        default=PreAuthStatus.REQUESTED,
        index=True,
    )
    reviewer_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    reviewer_username: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    updated_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return f"<PreAuthorization {self.id} ({self.status.value})>"
