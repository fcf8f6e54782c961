"""
Audit Trail Schemas.
Source: Claims lifecycle design, audit trail section
Verified: 2025-12-18
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from tpa_core.core.enums import AuditChangeType, AuditEntityType
from tpa_core.schemas.common import utc_now


class ClaimAuditLog(BaseModel):
    """
    Immutable audit row for one state-changing action.

    Rows are append-only; ``sequence`` orders the rows of one entity.
    """

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    entity_type: AuditEntityType = AuditEntityType.CLAIM
    entity_id: str
    sequence: int = 0
    change_type: AuditChangeType
    previous_status: Optional[str] = None
    new_status: Optional[str] = None
    previous_requested_amount: Optional[Decimal] = None
    new_requested_amount: Optional[Decimal] = None
    previous_approved_amount: Optional[Decimal] = None
    new_approved_amount: Optional[Decimal] = None
    actor_user_id: Optional[str] = None
    actor_username: Optional[str] = None
    actor_role: Optional[str] = None
    comment: Optional[str] = None
    before_snapshot: Optional[str] = None
    after_snapshot: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def claim_id(self) -> Optional[str]:
        if self.entity_type == AuditEntityType.CLAIM:
            return self.entity_id
        return None
