"""
Eligibility Context.

Immutable snapshot of everything one eligibility check needs. All records
are resolved up front by the caller; rules never fetch data themselves.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Optional
from uuid import uuid4

from tpa_core.schemas.benefit_policy import BenefitPolicy
from tpa_core.schemas.records import (
    EmployerRecord,
    MedicalServiceRecord,
    MemberRecord,
    ProviderRecord,
)


@dataclass(frozen=True)
class EligibilityContext:
    """Input for one eligibility check."""

    member_id: Optional[str] = None
    benefit_policy_id: Optional[str] = None
    provider_id: Optional[str] = None
    service_date: Optional[date] = None
    service_code: Optional[str] = None

    # Resolved records
    member: Optional[MemberRecord] = None
    benefit_policy: Optional[BenefitPolicy] = None
    provider: Optional[ProviderRecord] = None
    employer: Optional[EmployerRecord] = None
    medical_service: Optional[MedicalServiceRecord] = None

    # Requester identity
    checked_by_user_id: Optional[str] = None
    checked_by_username: Optional[str] = None
    company_scope_id: Optional[str] = None
    super_admin: bool = False

    request_id: str = field(default_factory=lambda: str(uuid4()))
    check_timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def has_member(self) -> bool:
        return self.member is not None

    @property
    def has_benefit_policy(self) -> bool:
        return self.benefit_policy is not None

    @property
    def has_provider(self) -> bool:
        return self.provider is not None

    @property
    def has_employer(self) -> bool:
        return self.employer is not None

    @property
    def has_medical_service(self) -> bool:
        return self.medical_service is not None

    @property
    def check_date(self) -> date:
        """Calendar day the check is evaluated on."""
        return self.check_timestamp.date()

    @property
    def member_employer_id(self) -> Optional[str]:
        return self.member.employer_id if self.member else None

    @property
    def effective_waiting_period_days(self) -> int:
        """Policy-wide waiting period, zero when unset."""
        if self.benefit_policy is None:
            return 0
        return self.benefit_policy.default_waiting_period_days or 0

    @property
    def days_since_enrollment(self) -> Optional[int]:
        """Days between the member's enrollment and the service date."""
        if self.member is None or self.service_date is None:
            return None
        enrolled = self.member.enrollment_date
        if enrolled is None:
            return None
        return (self.service_date - enrolled).days
