"""
Audit Trail Recorder.

Provides:
- One immutable audit row per accepted state-changing action
- Before/after snapshots of key financial and status fields
- History queries in append order

Every write goes through the audit repository's own transaction. A failed
write raises TechnicalError so the enclosing transition fails with it.

Source: Claims lifecycle design, audit trail section
Verified: 2025-12-18
"""

from datetime import datetime
from typing import Annotated, Optional, Union

from pydantic import Field, TypeAdapter

from tpa_core.core.enums import (
    AuditChangeType,
    AuditEntityType,
    ClaimStatus,
    PreAuthStatus,
)
from tpa_core.schemas.audit import ClaimAuditLog
from tpa_core.schemas.claim import Claim, ClaimSnapshot
from tpa_core.schemas.common import Actor
from tpa_core.schemas.preauth import PreAuthorization, PreAuthSnapshot
from tpa_core.services.adapters.base import AuditLogRepository
from tpa_core.utils.errors import AdjudicationError, TechnicalError
from tpa_core.utils.logging import get_logger

logger = get_logger(__name__)

Snapshot = Annotated[Union[ClaimSnapshot, PreAuthSnapshot], Field(discriminator="kind")]

# Built once per process; snapshots are flat records tagged by kind
SNAPSHOT_SERIALIZER: TypeAdapter[Snapshot] = TypeAdapter(Snapshot)

CLAIM_CHANGE_TYPES: dict[ClaimStatus, AuditChangeType] = {
    ClaimStatus.DRAFT: AuditChangeType.CREATED,
    ClaimStatus.SUBMITTED: AuditChangeType.SUBMITTED,
    ClaimStatus.UNDER_REVIEW: AuditChangeType.STATUS_CHANGE,
    ClaimStatus.RETURNED_FOR_INFO: AuditChangeType.RETURNED_FOR_INFO,
    ClaimStatus.APPROVED: AuditChangeType.APPROVAL,
    ClaimStatus.REJECTED: AuditChangeType.REJECTION,
    ClaimStatus.SETTLED: AuditChangeType.SETTLEMENT,
}

PREAUTH_CHANGE_TYPES: dict[PreAuthStatus, AuditChangeType] = {
    PreAuthStatus.REQUESTED: AuditChangeType.SUBMITTED,
    PreAuthStatus.UNDER_REVIEW: AuditChangeType.STATUS_CHANGE,
    PreAuthStatus.MORE_INFO_REQUIRED: AuditChangeType.MORE_INFO_REQUESTED,
    PreAuthStatus.APPROVED: AuditChangeType.APPROVAL,
    PreAuthStatus.REJECTED: AuditChangeType.REJECTION,
    PreAuthStatus.EXPIRED: AuditChangeType.EXPIRY,
}


def serialize_snapshot(snapshot: Optional[Snapshot]) -> Optional[str]:
    if snapshot is None:
        return None
    return SNAPSHOT_SERIALIZER.dump_json(snapshot).decode("utf-8")


def deserialize_snapshot(data: Optional[str]) -> Optional[Snapshot]:
    if data is None:
        return None
    return SNAPSHOT_SERIALIZER.validate_json(data)


class AuditTrailRecorder:
    """Writes and reads the append-only audit trail."""

    def __init__(self, repository: AuditLogRepository):
        self._repository = repository

    # =========================================================================
    # Recording
    # =========================================================================

    async def record(
        self,
        entity_id: str,
        change_type: AuditChangeType,
        previous_status: Optional[str],
        new_status: Optional[str],
        actor: Actor,
        comment: Optional[str] = None,
        before: Optional[Snapshot] = None,
        after: Optional[Snapshot] = None,
        entity_type: AuditEntityType = AuditEntityType.CLAIM,
    ) -> ClaimAuditLog:
        """
        Append one audit row.

        Args:
            entity_id: Claim or pre-authorization id
            change_type: Kind of action
            previous_status: Status before the action, None on creation
            new_status: Status after the action
            actor: Acting identity
            comment: Free-text comment or reason
            before: Snapshot before the action
            after: Snapshot after the action
            entity_type: CLAIM or PRE_AUTHORIZATION

        Raises:
            TechnicalError: the row could not be written
        """
        entry = ClaimAuditLog(
            entity_type=entity_type,
            entity_id=entity_id,
            change_type=change_type,
            previous_status=previous_status,
            new_status=new_status,
            previous_requested_amount=before.requested_amount if before else None,
            new_requested_amount=after.requested_amount if after else None,
            previous_approved_amount=before.approved_amount if before else None,
            new_approved_amount=after.approved_amount if after else None,
            actor_user_id=actor.user_id,
            actor_username=actor.username,
            actor_role=actor.primary_role,
            comment=comment,
            before_snapshot=serialize_snapshot(before),
            after_snapshot=serialize_snapshot(after),
        )

        try:
            stored = await self._repository.append(entry)
        except TechnicalError:
            logger.error(f"Audit write failed for {entity_type.value} {entity_id} ({change_type.value})")
            raise
        except AdjudicationError:
            raise
        except Exception as e:
            logger.opt(exception=e).error(
                f"Audit write failed for {entity_type.value} {entity_id} ({change_type.value})"
            )
            raise TechnicalError(f"Audit trail could not be written for {entity_id}") from e

        logger.debug(
            f"Audit #{stored.sequence} {change_type.value} for {entity_type.value} {entity_id} "
            f"by {actor.username}"
        )
        return stored

    async def record_creation(self, claim: Claim, actor: Actor) -> ClaimAuditLog:
        return await self.record(
            claim.id,
            AuditChangeType.CREATED,
            None,
            claim.status.value,
            actor,
            comment="Claim created",
            after=ClaimSnapshot.of(claim),
        )

    async def record_status_change(
        self,
        before: Claim,
        after: Claim,
        actor: Actor,
        comment: Optional[str] = None,
    ) -> ClaimAuditLog:
        """Record a claim transition using the status-to-change-type table."""
        return await self.record(
            after.id,
            CLAIM_CHANGE_TYPES[after.status],
            before.status.value,
            after.status.value,
            actor,
            comment=comment,
            before=ClaimSnapshot.of(before),
            after=ClaimSnapshot.of(after),
        )

    async def record_approval(
        self, before: Claim, after: Claim, actor: Actor, comment: Optional[str] = None
    ) -> ClaimAuditLog:
        return await self._record_claim(AuditChangeType.APPROVAL, before, after, actor, comment)

    async def record_rejection(
        self, before: Claim, after: Claim, actor: Actor, reason: str
    ) -> ClaimAuditLog:
        return await self._record_claim(AuditChangeType.REJECTION, before, after, actor, reason)

    async def record_settlement(
        self, before: Claim, after: Claim, actor: Actor, comment: Optional[str] = None
    ) -> ClaimAuditLog:
        return await self._record_claim(AuditChangeType.SETTLEMENT, before, after, actor, comment)

    async def record_change(
        self,
        change_type: AuditChangeType,
        before: Claim,
        after: Claim,
        actor: Actor,
        comment: Optional[str] = None,
    ) -> ClaimAuditLog:
        """Record any other claim change, e.g. AMOUNT_CHANGE."""
        return await self._record_claim(change_type, before, after, actor, comment)

    async def record_preauth_creation(
        self, preauth: PreAuthorization, actor: Actor
    ) -> ClaimAuditLog:
        return await self.record(
            preauth.id,
            AuditChangeType.CREATED,
            None,
            preauth.status.value,
            actor,
            comment="Pre-authorization requested",
            after=PreAuthSnapshot.of(preauth),
            entity_type=AuditEntityType.PRE_AUTHORIZATION,
        )

    async def record_preauth_transition(
        self,
        before: PreAuthorization,
        after: PreAuthorization,
        actor: Actor,
        comment: Optional[str] = None,
    ) -> ClaimAuditLog:
        return await self.record(
            after.id,
            PREAUTH_CHANGE_TYPES[after.status],
            before.status.value,
            after.status.value,
            actor,
            comment=comment,
            before=PreAuthSnapshot.of(before),
            after=PreAuthSnapshot.of(after),
            entity_type=AuditEntityType.PRE_AUTHORIZATION,
        )

    async def _record_claim(
        self,
        change_type: AuditChangeType,
        before: Claim,
        after: Claim,
        actor: Actor,
        comment: Optional[str],
    ) -> ClaimAuditLog:
        return await self.record(
            after.id,
            change_type,
            before.status.value,
            after.status.value,
            actor,
            comment=comment,
            before=ClaimSnapshot.of(before),
            after=ClaimSnapshot.of(after),
        )

    # =========================================================================
    # Queries
    # =========================================================================

    async def history(
        self, entity_id: str, entity_type: AuditEntityType = AuditEntityType.CLAIM
    ) -> list[ClaimAuditLog]:
        """All rows of an entity in append order."""
        return await self._repository.list_for_entity(entity_type, entity_id)

    async def status_timeline(
        self, entity_id: str, entity_type: AuditEntityType = AuditEntityType.CLAIM
    ) -> list[tuple[Optional[str], Optional[str], datetime]]:
        """(previous, new, when) for every row that changed the status."""
        return [
            (row.previous_status, row.new_status, row.created_at)
            for row in await self.history(entity_id, entity_type)
            if row.previous_status != row.new_status
        ]

    async def latest(
        self, entity_id: str, entity_type: AuditEntityType = AuditEntityType.CLAIM
    ) -> Optional[ClaimAuditLog]:
        rows = await self.history(entity_id, entity_type)
        return rows[-1] if rows else None

    async def by_user(self, user_id: str) -> list[ClaimAuditLog]:
        return await self._repository.list_by_user(user_id)

    async def between(self, start: datetime, end: datetime) -> list[ClaimAuditLog]:
        return await self._repository.list_between(start, end)

