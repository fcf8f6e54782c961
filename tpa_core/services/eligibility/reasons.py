"""
Eligibility Reason Codes.

Each reason has a human-readable message and a hard/soft classification.
Soft reasons are advisory and never make a member ineligible on their own.
"""

from enum import Enum


class EligibilityReason(str, Enum):
    """Machine-readable eligibility outcome codes."""

    # Member
    MEMBER_NOT_FOUND = "MEMBER_NOT_FOUND"
    MEMBER_INACTIVE = "MEMBER_INACTIVE"
    MEMBER_SUSPENDED = "MEMBER_SUSPENDED"
    MEMBER_TERMINATED = "MEMBER_TERMINATED"
    MEMBER_CARD_BLOCKED = "MEMBER_CARD_BLOCKED"
    MEMBER_CARD_EXPIRED = "MEMBER_CARD_EXPIRED"
    MEMBER_NOT_IN_SCOPE = "MEMBER_NOT_IN_SCOPE"

    # Policy
    POLICY_NOT_FOUND = "POLICY_NOT_FOUND"
    POLICY_INACTIVE = "POLICY_INACTIVE"
    POLICY_SUSPENDED = "POLICY_SUSPENDED"
    POLICY_EXPIRED = "POLICY_EXPIRED"
    POLICY_CANCELLED = "POLICY_CANCELLED"
    POLICY_NOT_YET_EFFECTIVE = "POLICY_NOT_YET_EFFECTIVE"
    MEMBER_NOT_ENROLLED = "MEMBER_NOT_ENROLLED"
    POLICY_EMPLOYER_MISMATCH = "POLICY_EMPLOYER_MISMATCH"

    # Service / coverage
    SERVICE_DATE_BEFORE_COVERAGE = "SERVICE_DATE_BEFORE_COVERAGE"
    SERVICE_DATE_AFTER_COVERAGE = "SERVICE_DATE_AFTER_COVERAGE"
    WAITING_PERIOD_NOT_SATISFIED = "WAITING_PERIOD_NOT_SATISFIED"
    SERVICE_NOT_COVERED = "SERVICE_NOT_COVERED"
    SERVICE_DATE_INVALID = "SERVICE_DATE_INVALID"
    SERVICE_DATE_IN_FUTURE = "SERVICE_DATE_IN_FUTURE"
    PRE_APPROVAL_REQUIRED = "PRE_APPROVAL_REQUIRED"

    # Provider
    PROVIDER_NOT_IN_NETWORK = "PROVIDER_NOT_IN_NETWORK"
    PROVIDER_INACTIVE = "PROVIDER_INACTIVE"
    PROVIDER_CONTRACT_EXPIRED = "PROVIDER_CONTRACT_EXPIRED"

    # Employer
    EMPLOYER_INACTIVE = "EMPLOYER_INACTIVE"

    # Outcome
    SYSTEM_ERROR = "SYSTEM_ERROR"
    ELIGIBLE = "ELIGIBLE"
    ELIGIBLE_WITH_WARNINGS = "ELIGIBLE_WITH_WARNINGS"

    @property
    def message(self) -> str:
        """Default human-readable message."""
        return REASON_MESSAGES[self]

    @property
    def is_hard(self) -> bool:
        """Whether this reason blocks eligibility."""
        return self not in SOFT_REASONS


REASON_MESSAGES: dict[EligibilityReason, str] = {
    EligibilityReason.MEMBER_NOT_FOUND: "Member not found",
    EligibilityReason.MEMBER_INACTIVE: "Member is not active",
    EligibilityReason.MEMBER_SUSPENDED: "Member is suspended",
    EligibilityReason.MEMBER_TERMINATED: "Member coverage has been terminated",
    EligibilityReason.MEMBER_CARD_BLOCKED: "Member card is blocked",
    EligibilityReason.MEMBER_CARD_EXPIRED: "Member card has expired",
    EligibilityReason.MEMBER_NOT_IN_SCOPE: "Member is outside the requester's company scope",
    EligibilityReason.POLICY_NOT_FOUND: "No benefit policy found for the member",
    EligibilityReason.POLICY_INACTIVE: "Benefit policy is not active",
    EligibilityReason.POLICY_SUSPENDED: "Benefit policy is suspended",
    EligibilityReason.POLICY_EXPIRED: "Benefit policy has expired",
    EligibilityReason.POLICY_CANCELLED: "Benefit policy has been cancelled",
    EligibilityReason.POLICY_NOT_YET_EFFECTIVE: "Benefit policy is not yet effective",
    EligibilityReason.MEMBER_NOT_ENROLLED: "Member is not enrolled in this benefit policy",
    EligibilityReason.POLICY_EMPLOYER_MISMATCH: "Benefit policy belongs to a different employer",
    EligibilityReason.SERVICE_DATE_BEFORE_COVERAGE: "Service date is before the coverage start date",
    EligibilityReason.SERVICE_DATE_AFTER_COVERAGE: "Service date is after the coverage end date",
    EligibilityReason.WAITING_PERIOD_NOT_SATISFIED: "Waiting period has not been satisfied",
    EligibilityReason.SERVICE_NOT_COVERED: "Service is not covered by the benefit policy",
    EligibilityReason.SERVICE_DATE_INVALID: "Service date is missing or too far in the past",
    EligibilityReason.SERVICE_DATE_IN_FUTURE: "Service date is far in the future",
    EligibilityReason.PRE_APPROVAL_REQUIRED: "Service requires pre-approval",
    EligibilityReason.PROVIDER_NOT_IN_NETWORK: "Provider is not in the network",
    EligibilityReason.PROVIDER_INACTIVE: "Provider is not active",
    EligibilityReason.PROVIDER_CONTRACT_EXPIRED: "Provider contract has expired",
    EligibilityReason.EMPLOYER_INACTIVE: "Employer is not active",
    EligibilityReason.SYSTEM_ERROR: "Eligibility could not be determined",
    EligibilityReason.ELIGIBLE: "Member is eligible",
    EligibilityReason.ELIGIBLE_WITH_WARNINGS: "Member is eligible with warnings",
}

SOFT_REASONS: frozenset[EligibilityReason] = frozenset(
    {
        EligibilityReason.SERVICE_DATE_IN_FUTURE,
        EligibilityReason.PRE_APPROVAL_REQUIRED,
        EligibilityReason.PROVIDER_NOT_IN_NETWORK,
        EligibilityReason.PROVIDER_INACTIVE,
        EligibilityReason.PROVIDER_CONTRACT_EXPIRED,
        EligibilityReason.ELIGIBLE,
        EligibilityReason.ELIGIBLE_WITH_WARNINGS,
    }
)
