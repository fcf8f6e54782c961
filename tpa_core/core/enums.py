"""
Core Enumerations for the Adjudication Core.
Source: Claims / pre-authorization lifecycle design
Verified: 2025-12-18
"""

from enum import Enum


# =============================================================================
# Runtime Configuration Enums
# =============================================================================


class IntegrationMode(str, Enum):
    """Data access mode for the repository adapters."""

    DEMO = "demo"  # In-memory repositories
    LIVE = "live"  # SQLAlchemy / PostgreSQL


class Environment(str, Enum):
    """Deployment environment."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


# =============================================================================
# Reference Record Enums
# =============================================================================


class MemberStatus(str, Enum):
    """Enrollment status of a member."""

    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    TERMINATED = "TERMINATED"


class CardStatus(str, Enum):
    """Status of a member's insurance card."""

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    BLOCKED = "BLOCKED"
    EXPIRED = "EXPIRED"


# =============================================================================
# Benefit Policy Enums
# =============================================================================


class BenefitPolicyStatus(str, Enum):
    """Lifecycle status of a benefit policy."""

    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


# =============================================================================
# Claim / Pre-Authorization Enums
# =============================================================================


class ClaimStatus(str, Enum):
    """Claim processing status."""

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    RETURNED_FOR_INFO = "RETURNED_FOR_INFO"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    SETTLED = "SETTLED"


class PreAuthStatus(str, Enum):
    """Pre-authorization request status."""

    REQUESTED = "REQUESTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    MORE_INFO_REQUIRED = "MORE_INFO_REQUIRED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


# =============================================================================
# Audit Enums
# =============================================================================


class AuditEntityType(str, Enum):
    """Kind of entity an audit row belongs to."""

    CLAIM = "CLAIM"
    PRE_AUTHORIZATION = "PRE_AUTHORIZATION"


class AuditChangeType(str, Enum):
    """Kind of state-changing action recorded in the audit trail."""

    CREATED = "CREATED"
    SUBMITTED = "SUBMITTED"
    STATUS_CHANGE = "STATUS_CHANGE"
    RETURNED_FOR_INFO = "RETURNED_FOR_INFO"
    MORE_INFO_REQUESTED = "MORE_INFO_REQUESTED"
    APPROVAL = "APPROVAL"
    REJECTION = "REJECTION"
    SETTLEMENT = "SETTLEMENT"
    EXPIRY = "EXPIRY"
    AMOUNT_CHANGE = "AMOUNT_CHANGE"


# =============================================================================
# Eligibility Enums
# =============================================================================


class EligibilityStatus(str, Enum):
    """Overall outcome of an eligibility check."""

    ELIGIBLE = "ELIGIBLE"
    ELIGIBLE_WITH_WARNINGS = "ELIGIBLE_WITH_WARNINGS"
    NOT_ELIGIBLE = "NOT_ELIGIBLE"
