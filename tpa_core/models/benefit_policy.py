"""
Benefit Policy ORM Models.
Source: Benefit policy design
Verified: 2025-12-18
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tpa_core.core.enums import BenefitPolicyStatus
from tpa_core.models.base import Base, StringIdModel, TimeStampedModel


class BenefitPolicyModel(Base, StringIdModel, TimeStampedModel):
    """Employer benefit policy."""

    __tablename__ = "benefit_policies"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    policy_code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    employer_id: Mapped[str] = mapped_column(
        String(64), nullable=False, index=True, comment="Sponsoring employer"
    )
    insurer_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    annual_limit: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False, default=0)
    default_coverage_percent: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, default=80)
    per_member_limit: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2), nullable=True)
    per_family_limit: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2), nullable=True)
    default_waiting_period_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    status: Mapped[BenefitPolicyStatus] = mapped_column(
        Enum(BenefitPolicyStatus, name="benefit_policy_status"),
        nullable=False,
        default=BenefitPolicyStatus.DRAFT,
        index=True,
    )
    covered_members_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    rules: Mapped[list["BenefitPolicyRuleModel"]] = relationship(
        back_populates="policy",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="BenefitPolicyRuleModel.position",
    )

    __table_args__ = (
        CheckConstraint("start_date < end_date", name="ck_benefit_policy_dates"),
        CheckConstraint(
            "default_coverage_percent IS NULL OR default_coverage_percent BETWEEN 0 AND 100",
            name="ck_benefit_policy_percent",
        ),
        Index("ix_benefit_policies_employer_status", "employer_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<BenefitPolicy {self.policy_code} ({self.status.value})>"


class BenefitPolicyRuleModel(Base, StringIdModel):
    """Coverage rule targeting exactly one category or one service."""

    __tablename__ = "benefit_policy_rules"

    policy_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("benefit_policies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    medical_category_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    medical_service_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    coverage_percent: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    amount_limit: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2), nullable=True)
    times_limit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    waiting_period_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    requires_pre_approval: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    policy: Mapped[BenefitPolicyModel] = relationship(back_populates="rules")

    __table_args__ = (
        CheckConstraint(
            "(medical_category_id IS NULL) <> (medical_service_id IS NULL)",
            name="ck_benefit_rule_single_target",
        ),
        UniqueConstraint("policy_id", "medical_category_id", name="uq_benefit_rule_category"),
        UniqueConstraint("policy_id", "medical_service_id", name="uq_benefit_rule_service"),
    )
