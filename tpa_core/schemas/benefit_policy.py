"""
Benefit Policy Schemas.
Source: Benefit policy design, coverage rules
Verified: 2025-12-18
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from tpa_core.core.enums import BenefitPolicyStatus
from tpa_core.schemas.common import utc_now


def _new_id() -> str:
    return str(uuid4())


class BenefitPolicyRule(BaseModel):
    """Coverage rule for one medical category or one medical service."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(default_factory=_new_id)
    policy_id: Optional[str] = None
    medical_category_id: Optional[str] = None
    medical_service_id: Optional[str] = None
    coverage_percent: Optional[int] = Field(default=None, ge=0, le=100)
    amount_limit: Optional[Decimal] = Field(default=None, ge=0)
    times_limit: Optional[int] = Field(default=None, ge=0)
    waiting_period_days: int = Field(default=0, ge=0)
    requires_pre_approval: bool = False
    active: bool = True
    notes: Optional[str] = None

    @property
    def is_category_rule(self) -> bool:
        return self.medical_category_id is not None and self.medical_service_id is None

    @property
    def is_service_rule(self) -> bool:
        return self.medical_service_id is not None and self.medical_category_id is None


class BenefitPolicyRuleCreate(BaseModel):
    """Payload for adding a rule to a policy."""

    medical_category_id: Optional[str] = None
    medical_service_id: Optional[str] = None
    coverage_percent: Optional[int] = Field(default=None, ge=0, le=100)
    amount_limit: Optional[Decimal] = Field(default=None, ge=0)
    times_limit: Optional[int] = Field(default=None, ge=0)
    waiting_period_days: int = Field(default=0, ge=0)
    requires_pre_approval: bool = False
    notes: Optional[str] = None


class BenefitPolicyRuleUpdate(BaseModel):
    """Partial update of a rule's limits. Targets cannot change."""

    coverage_percent: Optional[int] = Field(default=None, ge=0, le=100)
    amount_limit: Optional[Decimal] = Field(default=None, ge=0)
    times_limit: Optional[int] = Field(default=None, ge=0)
    waiting_period_days: Optional[int] = Field(default=None, ge=0)
    requires_pre_approval: Optional[bool] = None
    notes: Optional[str] = None


class BenefitPolicy(BaseModel):
    """Employer benefit policy with its coverage rules."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(default_factory=_new_id)
    name: str
    policy_code: str
    description: Optional[str] = None
    employer_id: str
    insurer_id: Optional[str] = None
    start_date: date
    end_date: date
    annual_limit: Decimal = Field(default=Decimal("0"), ge=0)
    default_coverage_percent: Optional[int] = Field(default=80, ge=0, le=100)
    per_member_limit: Optional[Decimal] = Field(default=None, ge=0)
    per_family_limit: Optional[Decimal] = Field(default=None, ge=0)
    default_waiting_period_days: int = Field(default=0, ge=0)
    status: BenefitPolicyStatus = BenefitPolicyStatus.DRAFT
    covered_members_count: int = 0
    notes: Optional[str] = None
    active: bool = True
    rules: list[BenefitPolicyRule] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def active_rules(self) -> list[BenefitPolicyRule]:
        """Rules currently in force."""
        return [rule for rule in self.rules if rule.active]

    def find_rule(self, rule_id: str) -> Optional[BenefitPolicyRule]:
        for rule in self.rules:
            if rule.id == rule_id:
                return rule
        return None


class BenefitPolicyCreate(BaseModel):
    """Payload for creating a policy."""

    name: str
    policy_code: str
    description: Optional[str] = None
    employer_id: str
    insurer_id: Optional[str] = None
    start_date: date
    end_date: date
    annual_limit: Decimal = Field(default=Decimal("0"), ge=0)
    default_coverage_percent: Optional[int] = Field(default=80, ge=0, le=100)
    per_member_limit: Optional[Decimal] = Field(default=None, ge=0)
    per_family_limit: Optional[Decimal] = Field(default=None, ge=0)
    default_waiting_period_days: int = Field(default=0, ge=0)
    notes: Optional[str] = None
    activate: bool = False


class BenefitPolicyUpdate(BaseModel):
    """Partial update of a policy's terms."""

    name: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    annual_limit: Optional[Decimal] = Field(default=None, ge=0)
    default_coverage_percent: Optional[int] = Field(default=None, ge=0, le=100)
    per_member_limit: Optional[Decimal] = Field(default=None, ge=0)
    per_family_limit: Optional[Decimal] = Field(default=None, ge=0)
    default_waiting_period_days: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None
