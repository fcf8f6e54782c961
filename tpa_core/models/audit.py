"""
Audit Trail ORM Model.
Source: Claims lifecycle design, audit trail section
Verified: 2025-12-18
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, Enum, Index, Integer, Numeric, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from tpa_core.core.enums import AuditChangeType, AuditEntityType
from tpa_core.models.base import Base, StringIdModel


class ClaimAuditLogModel(Base, StringIdModel):
    """
    Append-only audit row.

    The application never issues UPDATE or DELETE against this table.
    """

    __tablename__ = "claim_audit_logs"

    entity_type: Mapped[AuditEntityType] = mapped_column(
        Enum(AuditEntityType, name="audit_entity_type"), nullable=False
    )
    entity_id: Mapped[str] = mapped_column(String(36), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    change_type: Mapped[AuditChangeType] = mapped_column(
        Enum(AuditChangeType, name="audit_change_type"), nullable=False
    )
    previous_status: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    new_status: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    previous_requested_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2), nullable=True)
    new_requested_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2), nullable=True)
    previous_approved_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2), nullable=True)
    new_approved_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2), nullable=True)
    actor_user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    actor_username: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    actor_role: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    before_snapshot: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    after_snapshot: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("entity_type", "entity_id", "sequence", name="uq_audit_entity_sequence"),
        Index("ix_audit_created_at", "created_at"),
    )
