"""SQLAlchemy ORM models used by the live repositories."""

from tpa_core.models.audit import ClaimAuditLogModel
from tpa_core.models.base import Base
from tpa_core.models.benefit_policy import BenefitPolicyModel, BenefitPolicyRuleModel
from tpa_core.models.claim import ClaimModel, PreAuthorizationModel

__all__ = [
    "Base",
    "BenefitPolicyModel",
    "BenefitPolicyRuleModel",
    "ClaimAuditLogModel",
    "ClaimModel",
    "PreAuthorizationModel",
]
