"""
Eligibility Check Request / Response.
Source: Eligibility check endpoint contract
Verified: 2025-12-18
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from tpa_core.core.enums import EligibilityStatus


class EligibilityCheckRequest(BaseModel):
    """Inbound eligibility check."""

    member_id: str
    benefit_policy_id: Optional[str] = None
    policy_id: Optional[str] = Field(
        default=None, description="Accepted alias for benefit_policy_id"
    )
    provider_id: Optional[str] = None
    service_date: Optional[date] = None
    service_code: Optional[str] = None

    @property
    def requested_policy_id(self) -> Optional[str]:
        return self.benefit_policy_id or self.policy_id


class EligibilityReasonItem(BaseModel):
    """One reason reported back to the caller."""

    code: str
    message: str
    rule_code: str
    hard: bool


class EligibilityCheckResponse(BaseModel):
    """Outbound eligibility decision."""

    request_id: str
    eligible: bool
    status: EligibilityStatus
    reasons: list[EligibilityReasonItem] = Field(default_factory=list)
    rules_evaluated: int = 0
    processing_time_ms: int = 0
    checked_at: datetime
