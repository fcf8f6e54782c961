"""Pydantic records exchanged with the adjudication core."""

from tpa_core.schemas.audit import ClaimAuditLog
from tpa_core.schemas.benefit_policy import (
    BenefitPolicy,
    BenefitPolicyCreate,
    BenefitPolicyRule,
    BenefitPolicyRuleCreate,
    BenefitPolicyRuleUpdate,
    BenefitPolicyUpdate,
)
from tpa_core.schemas.claim import Claim, ClaimLine, ClaimSnapshot, ClaimTransitionRequest
from tpa_core.schemas.common import Actor, ErrorResponse
from tpa_core.schemas.eligibility import (
    EligibilityCheckRequest,
    EligibilityCheckResponse,
    EligibilityReasonItem,
)
from tpa_core.schemas.preauth import PreAuthorization, PreAuthSnapshot, PreAuthTransitionRequest
from tpa_core.schemas.records import (
    EmployerRecord,
    MedicalServiceRecord,
    MemberRecord,
    ProviderRecord,
)

__all__ = [
    "Actor",
    "BenefitPolicy",
    "BenefitPolicyCreate",
    "BenefitPolicyRule",
    "BenefitPolicyRuleCreate",
    "BenefitPolicyRuleUpdate",
    "BenefitPolicyUpdate",
    "Claim",
    "ClaimAuditLog",
    "ClaimLine",
    "ClaimSnapshot",
    "ClaimTransitionRequest",
    "EligibilityCheckRequest",
    "EligibilityCheckResponse",
    "EligibilityReasonItem",
    "EmployerRecord",
    "ErrorResponse",
    "MedicalServiceRecord",
    "MemberRecord",
    "PreAuthSnapshot",
    "PreAuthTransitionRequest",
    "PreAuthorization",
    "ProviderRecord",
]
