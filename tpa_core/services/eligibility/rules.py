"""
Eligibility Rules.

Each rule is a stateless object with a stable code, a priority (lower runs
first), a hard/soft classification and a pure evaluation over an
EligibilityContext. Missing data makes a rule inapplicable; it never raises.

Source: Eligibility design, rule catalogue
Verified: 2025-12-18
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Optional

from tpa_core.core.config import get_settings
from tpa_core.core.enums import BenefitPolicyStatus, CardStatus, MemberStatus
from tpa_core.services.coverage_resolver import CoverageResolver
from tpa_core.services.eligibility.context import EligibilityContext
from tpa_core.services.eligibility.reasons import EligibilityReason


@dataclass(frozen=True)
class RuleResult:
    """Outcome of one rule evaluation."""

    rule_code: str
    passed: bool
    hard: bool
    reason: Optional[EligibilityReason] = None
    message: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def is_hard_failure(self) -> bool:
        return not self.passed and self.hard

    @property
    def is_soft_failure(self) -> bool:
        return not self.passed and not self.hard


class Rule(ABC):
    """Base class for eligibility rules."""

    code: str = ""
    priority: int = 100  # Lower = runs earlier
    hard: bool = True

    def is_applicable(self, context: EligibilityContext) -> bool:
        """Whether the context has the data this rule needs."""
        return True

    @abstractmethod
    def evaluate(self, context: EligibilityContext) -> RuleResult:
        """Evaluate the rule against a context."""

    def passed(self) -> RuleResult:
        return RuleResult(rule_code=self.code, passed=True, hard=self.hard)

    def failed(
        self,
        reason: EligibilityReason,
        message: Optional[str] = None,
        **details: Any,
    ) -> RuleResult:
        return RuleResult(
            rule_code=self.code,
            passed=False,
            hard=self.hard,
            reason=reason,
            message=message or reason.message,
            details=details,
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.code} priority={self.priority} hard={self.hard}>"


def _years_before(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        # 29 February in a non-leap target year
        return day.replace(year=day.year - years, day=28)


# =============================================================================
# Service date
# =============================================================================


class ServiceDateValidRule(Rule):
    """Service date must be present and not too far in the past."""

    code = "SERVICE_DATE_VALID"
    priority = 5

    def __init__(self, max_past_years: Optional[int] = None):
        if max_past_years is None:
            max_past_years = get_settings().SERVICE_DATE_MAX_PAST_YEARS
        self.max_past_years = max_past_years

    def evaluate(self, context: EligibilityContext) -> RuleResult:
        if context.service_date is None:
            return self.failed(EligibilityReason.SERVICE_DATE_INVALID, "Service date is required")

        earliest = _years_before(context.check_date, self.max_past_years)
        if context.service_date < earliest:
            return self.failed(
                EligibilityReason.SERVICE_DATE_INVALID,
                f"Service date is more than {self.max_past_years} years in the past",
                earliest_allowed=earliest.isoformat(),
            )
        return self.passed()


class ServiceDateNotFarFutureRule(Rule):
    """Warn when the service date lies far ahead of today."""

    code = "SERVICE_DATE_NOT_FAR_FUTURE"
    priority = 6
    hard = False

    def __init__(self, max_future_days: Optional[int] = None):
        if max_future_days is None:
            max_future_days = get_settings().SERVICE_DATE_MAX_FUTURE_DAYS
        self.max_future_days = max_future_days

    def is_applicable(self, context: EligibilityContext) -> bool:
        return context.service_date is not None

    def evaluate(self, context: EligibilityContext) -> RuleResult:
        latest = context.check_date + timedelta(days=self.max_future_days)
        if context.service_date > latest:
            return self.failed(
                EligibilityReason.SERVICE_DATE_IN_FUTURE,
                f"Service date is more than {self.max_future_days} days in the future",
            )
        return self.passed()


# =============================================================================
# Member
# =============================================================================


class MemberExistsRule(Rule):
    code = "MEMBER_EXISTS"
    priority = 10

    def evaluate(self, context: EligibilityContext) -> RuleResult:
        if not context.has_member:
            return self.failed(EligibilityReason.MEMBER_NOT_FOUND)
        return self.passed()


class MemberInScopeRule(Rule):
    """A company-scoped requester may only check that company's members."""

    code = "MEMBER_IN_SCOPE"
    priority = 12

    def is_applicable(self, context: EligibilityContext) -> bool:
        return (
            context.has_member
            and context.company_scope_id is not None
            and not context.super_admin
        )

    def evaluate(self, context: EligibilityContext) -> RuleResult:
        if context.member_employer_id != context.company_scope_id:
            return self.failed(EligibilityReason.MEMBER_NOT_IN_SCOPE)
        return self.passed()


class EmployerActiveRule(Rule):
    code = "EMPLOYER_ACTIVE"
    priority = 15

    def is_applicable(self, context: EligibilityContext) -> bool:
        return context.has_employer

    def evaluate(self, context: EligibilityContext) -> RuleResult:
        if not context.employer.active:
            return self.failed(EligibilityReason.EMPLOYER_INACTIVE)
        return self.passed()


class MemberActiveRule(Rule):
    """Member status must be ACTIVE."""

    code = "MEMBER_ACTIVE"
    priority = 20

    _FAILURES = {
        MemberStatus.SUSPENDED: EligibilityReason.MEMBER_SUSPENDED,
        MemberStatus.TERMINATED: EligibilityReason.MEMBER_TERMINATED,
        MemberStatus.PENDING: EligibilityReason.MEMBER_INACTIVE,
    }

    def is_applicable(self, context: EligibilityContext) -> bool:
        return context.has_member

    def evaluate(self, context: EligibilityContext) -> RuleResult:
        status = context.member.status
        if status == MemberStatus.ACTIVE:
            return self.passed()
        reason = self._FAILURES.get(status, EligibilityReason.MEMBER_INACTIVE)
        return self.failed(reason, member_status=status.value if status else None)


class MemberCardValidRule(Rule):
    """Blocked, expired or inactive cards are refused. No card status passes."""

    code = "MEMBER_CARD_VALID"
    priority = 25

    _FAILURES = {
        CardStatus.BLOCKED: EligibilityReason.MEMBER_CARD_BLOCKED,
        CardStatus.EXPIRED: EligibilityReason.MEMBER_CARD_EXPIRED,
        CardStatus.INACTIVE: EligibilityReason.MEMBER_INACTIVE,
    }

    def is_applicable(self, context: EligibilityContext) -> bool:
        return context.has_member

    def evaluate(self, context: EligibilityContext) -> RuleResult:
        reason = self._FAILURES.get(context.member.card_status)
        if reason is not None:
            return self.failed(reason)
        return self.passed()


# =============================================================================
# Benefit policy
# =============================================================================


class PolicyExistsRule(Rule):
    code = "POLICY_EXISTS"
    priority = 30

    def evaluate(self, context: EligibilityContext) -> RuleResult:
        if not context.has_benefit_policy:
            return self.failed(EligibilityReason.POLICY_NOT_FOUND)
        return self.passed()


class PolicyActiveRule(Rule):
    code = "POLICY_ACTIVE"
    priority = 40

    _FAILURES = {
        BenefitPolicyStatus.SUSPENDED: EligibilityReason.POLICY_SUSPENDED,
        BenefitPolicyStatus.EXPIRED: EligibilityReason.POLICY_EXPIRED,
        BenefitPolicyStatus.CANCELLED: EligibilityReason.POLICY_CANCELLED,
        BenefitPolicyStatus.DRAFT: EligibilityReason.POLICY_INACTIVE,
    }

    def is_applicable(self, context: EligibilityContext) -> bool:
        return context.has_benefit_policy

    def evaluate(self, context: EligibilityContext) -> RuleResult:
        policy = context.benefit_policy
        if not policy.active:
            return self.failed(EligibilityReason.POLICY_INACTIVE)
        if policy.status == BenefitPolicyStatus.ACTIVE:
            return self.passed()
        return self.failed(self._FAILURES.get(policy.status, EligibilityReason.POLICY_INACTIVE))


class PolicyCoveragePeriodRule(Rule):
    """Service date must fall inside the policy period (inclusive)."""

    code = "POLICY_COVERAGE_PERIOD"
    priority = 50

    def is_applicable(self, context: EligibilityContext) -> bool:
        return context.has_benefit_policy and context.service_date is not None

    def evaluate(self, context: EligibilityContext) -> RuleResult:
        policy = context.benefit_policy
        if context.service_date < policy.start_date:
            return self.failed(
                EligibilityReason.SERVICE_DATE_BEFORE_COVERAGE,
                coverage_start=policy.start_date.isoformat(),
            )
        if context.service_date > policy.end_date:
            return self.failed(
                EligibilityReason.SERVICE_DATE_AFTER_COVERAGE,
                coverage_end=policy.end_date.isoformat(),
            )
        return self.passed()


class MemberEnrollmentRule(Rule):
    """Member must be enrolled in the policy being checked."""

    code = "MEMBER_ENROLLMENT"
    priority = 60

    def is_applicable(self, context: EligibilityContext) -> bool:
        return context.has_member and context.has_benefit_policy

    def evaluate(self, context: EligibilityContext) -> RuleResult:
        if context.member.benefit_policy_id != context.benefit_policy.id:
            return self.failed(EligibilityReason.MEMBER_NOT_ENROLLED)
        return self.passed()


class EmployerMatchRule(Rule):
    """Policy must belong to the member's employer."""

    code = "EMPLOYER_MATCH"
    priority = 65

    def is_applicable(self, context: EligibilityContext) -> bool:
        return context.has_member and context.has_benefit_policy

    def evaluate(self, context: EligibilityContext) -> RuleResult:
        if context.member_employer_id != context.benefit_policy.employer_id:
            return self.failed(EligibilityReason.POLICY_EMPLOYER_MISMATCH)
        return self.passed()


class WaitingPeriodRule(Rule):
    """Policy-wide waiting period since enrollment."""

    code = "WAITING_PERIOD"
    priority = 70

    def is_applicable(self, context: EligibilityContext) -> bool:
        return (
            context.effective_waiting_period_days > 0
            and context.has_member
            and context.service_date is not None
        )

    def evaluate(self, context: EligibilityContext) -> RuleResult:
        elapsed = context.days_since_enrollment
        if elapsed is None:
            return self.passed()
        if elapsed < 0:
            return self.failed(EligibilityReason.SERVICE_DATE_BEFORE_COVERAGE)

        required = context.effective_waiting_period_days
        if elapsed < required:
            return self.failed(
                EligibilityReason.WAITING_PERIOD_NOT_SATISFIED,
                f"Waiting period of {required} days not satisfied ({required - elapsed} days remaining)",
                required_days=required,
                elapsed_days=elapsed,
            )
        return self.passed()


# =============================================================================
# Service coverage
# =============================================================================


class _CoverageRule(Rule):
    """Rules that read the policy's coverage terms for the requested service."""

    def __init__(self, resolver: Optional[CoverageResolver] = None):
        self.resolver = resolver or CoverageResolver()

    def is_applicable(self, context: EligibilityContext) -> bool:
        return context.has_benefit_policy and context.has_medical_service


class ServiceCoveredRule(_CoverageRule):
    code = "SERVICE_COVERED"
    priority = 80

    def evaluate(self, context: EligibilityContext) -> RuleResult:
        coverage = self.resolver.resolve_coverage(context.benefit_policy, context.medical_service)
        if not coverage.covered:
            return self.failed(
                EligibilityReason.SERVICE_NOT_COVERED,
                service_code=context.medical_service.code,
            )
        return self.passed()


class ServiceWaitingPeriodRule(_CoverageRule):
    """Waiting period attached to the service's coverage rule."""

    code = "SERVICE_WAITING_PERIOD"
    priority = 85

    def is_applicable(self, context: EligibilityContext) -> bool:
        return (
            super().is_applicable(context)
            and context.has_member
            and context.service_date is not None
        )

    def evaluate(self, context: EligibilityContext) -> RuleResult:
        coverage = self.resolver.resolve_coverage(context.benefit_policy, context.medical_service)
        elapsed = context.days_since_enrollment
        if not coverage.covered or coverage.waiting_period_days == 0 or elapsed is None:
            return self.passed()
        if elapsed < coverage.waiting_period_days:
            return self.failed(
                EligibilityReason.WAITING_PERIOD_NOT_SATISFIED,
                f"Service {context.medical_service.code} requires {coverage.waiting_period_days} "
                f"days since enrollment",
                required_days=coverage.waiting_period_days,
                elapsed_days=elapsed,
            )
        return self.passed()


class PreApprovalRequiredRule(_CoverageRule):
    code = "PRE_APPROVAL_REQUIRED"
    priority = 90
    hard = False

    def evaluate(self, context: EligibilityContext) -> RuleResult:
        coverage = self.resolver.resolve_coverage(context.benefit_policy, context.medical_service)
        if coverage.covered and coverage.requires_pre_approval:
            return self.failed(
                EligibilityReason.PRE_APPROVAL_REQUIRED,
                service_code=context.medical_service.code,
            )
        return self.passed()


# =============================================================================
# Provider
# =============================================================================


class ProviderNetworkRule(Rule):
    """Out-of-network or inactive providers are advisory only."""

    code = "PROVIDER_NETWORK"
    priority = 95
    hard = False

    def is_applicable(self, context: EligibilityContext) -> bool:
        return context.has_provider

    def evaluate(self, context: EligibilityContext) -> RuleResult:
        provider = context.provider
        if not provider.active:
            return self.failed(EligibilityReason.PROVIDER_INACTIVE)
        if not provider.in_network:
            return self.failed(EligibilityReason.PROVIDER_NOT_IN_NETWORK)
        on_date = context.service_date or context.check_date
        if provider.contract_end_date is not None and provider.contract_end_date < on_date:
            return self.failed(EligibilityReason.PROVIDER_CONTRACT_EXPIRED)
        return self.passed()


# =============================================================================
# Registry
# =============================================================================


def default_rules(resolver: Optional[CoverageResolver] = None) -> list[Rule]:
    """
    The rule set in registration order.

    Equal priorities keep this order, so it is part of the observable
    behaviour of the engine.
    """
    resolver = resolver or CoverageResolver()
    return [
        ServiceDateValidRule(),
        ServiceDateNotFarFutureRule(),
        MemberExistsRule(),
        MemberInScopeRule(),
        EmployerActiveRule(),
        MemberActiveRule(),
        MemberCardValidRule(),
        PolicyExistsRule(),
        PolicyActiveRule(),
        PolicyCoveragePeriodRule(),
        MemberEnrollmentRule(),
        EmployerMatchRule(),
        WaitingPeriodRule(),
        ServiceCoveredRule(resolver),
        ServiceWaitingPeriodRule(resolver),
        PreApprovalRequiredRule(resolver),
        ProviderNetworkRule(),
    ]
