"""
Claim Status State Machine.

Provides:
- Role-gated transitions from an injected role table
- Preconditions per target status
- Effects of accepted transitions (amounts, reviewer stamps, settlement)

Source: Claims lifecycle design
Verified: 2025-12-18

State Diagram:
    DRAFT -> SUBMITTED
    SUBMITTED -> UNDER_REVIEW
    UNDER_REVIEW -> APPROVED | REJECTED | RETURNED_FOR_INFO
    RETURNED_FOR_INFO -> SUBMITTED
    APPROVED -> SETTLED
    REJECTED, SETTLED: terminal
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from tpa_core.core.enums import ClaimStatus
from tpa_core.core.permissions import CLAIM_ROLE_TABLE, TransitionRoleTable
from tpa_core.schemas.claim import Claim
from tpa_core.schemas.common import Actor, utc_now
from tpa_core.services.lifecycle import TransitionGuard, is_blank

logger = logging.getLogger(__name__)

# Targets that record who reviewed the claim and when
REVIEWER_ACTIONS = frozenset(
    {
        ClaimStatus.UNDER_REVIEW,
        ClaimStatus.RETURNED_FOR_INFO,
        ClaimStatus.APPROVED,
        ClaimStatus.REJECTED,
        ClaimStatus.SETTLED,
    }
)


class ClaimStateMachine:
    """State machine for claim status transitions."""

    def __init__(self, role_table: TransitionRoleTable[ClaimStatus] = CLAIM_ROLE_TABLE):
        self._guard = TransitionGuard("Claim", role_table)

    def is_terminal(self, status: ClaimStatus) -> bool:
        return self._guard.is_terminal(status)

    def can_transition(self, from_status: ClaimStatus, to_status: ClaimStatus) -> bool:
        return self._guard.can_transition(from_status, to_status)

    def available_transitions(self, claim: Claim, actor: Actor) -> list[ClaimStatus]:
        """Statuses the actor may move this claim to."""
        return self._guard.available_targets(claim.status, actor)

    def validate_transition(
        self,
        claim: Claim,
        target: ClaimStatus,
        actor: Actor,
        comment: Optional[str] = None,
        approved_amount: Optional[Decimal] = None,
        payment_reference: Optional[str] = None,
    ) -> None:
        """
        Check a transition without changing the claim.

        Raises:
            StateTransitionError: unreachable target, missing role or unmet precondition
        """
        current = claim.status
        self._guard.check(claim.id, current, target, actor)

        if target == ClaimStatus.REJECTED:
            if is_blank(comment):
                raise self._guard.reject(
                    claim.id, "A rejection reason is required", current, target
                )

        elif target == ClaimStatus.APPROVED:
            amount = approved_amount if approved_amount is not None else claim.approved_amount
            if amount is None or amount <= 0:
                raise self._guard.reject(
                    claim.id, "Approved amount must be greater than zero", current, target
                )
            if amount > claim.requested_amount:
                raise self._guard.reject(
                    claim.id,
                    f"Approved amount {amount} exceeds requested amount {claim.requested_amount}",
                    current,
                    target,
                )

        elif target == ClaimStatus.SETTLED:
            if is_blank(payment_reference) and is_blank(claim.payment_reference):
                raise self._guard.reject(
                    claim.id, "A payment reference is required to settle", current, target
                )

    def transition(
        self,
        claim: Claim,
        target: ClaimStatus,
        actor: Actor,
        comment: Optional[str] = None,
        approved_amount: Optional[Decimal] = None,
        payment_reference: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Apply a transition to the claim in place.

        Args:
            claim: Claim to change
            target: Requested status
            actor: Acting identity
            comment: Reviewer comment; the rejection reason for REJECTED
            approved_amount: Amount for APPROVED
            payment_reference: Reference for SETTLED
            now: Timestamp to stamp, defaults to the current time

        Returns:
            False for a no-op (target equals current status), True otherwise

        Raises:
            StateTransitionError: the claim is left untouched
        """
        if target == claim.status:
            return False

        self.validate_transition(claim, target, actor, comment, approved_amount, payment_reference)

        previous = claim.status
        now = now or utc_now()

        if not is_blank(comment):
            claim.reviewer_comment = comment.strip()

        if target == ClaimStatus.APPROVED:
            amount = approved_amount if approved_amount is not None else claim.approved_amount
            claim.approved_amount = amount
            claim.difference_amount = claim.requested_amount - amount
        elif target == ClaimStatus.REJECTED:
            claim.approved_amount = Decimal("0")
            claim.difference_amount = claim.requested_amount
        elif target == ClaimStatus.SETTLED:
            if not is_blank(payment_reference):
                claim.payment_reference = payment_reference.strip()
            claim.settled_at = now

        if target in REVIEWER_ACTIONS:
            claim.reviewer_id = actor.user_id
            claim.reviewer_username = actor.username
            claim.reviewed_at = now

        claim.status = target
        claim.updated_by = actor.username
        claim.updated_at = now

        logger.info(
            f"Claim {claim.id} transitioned: {previous.value} -> {target.value} by {actor.username}"
        )
        return True


# =============================================================================
# Singleton Instance
# =============================================================================


_state_machine: Optional[ClaimStateMachine] = None


def get_claim_state_machine() -> ClaimStateMachine:
    """Get singleton state machine instance."""
    global _state_machine
    if _state_machine is None:
        _state_machine = ClaimStateMachine()
    return _state_machine
