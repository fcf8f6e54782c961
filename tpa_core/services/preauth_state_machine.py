"""
Pre-Authorization Status State Machine.

Source: Pre-authorization lifecycle design
Verified: 2025-12-18

State Diagram:
    REQUESTED -> UNDER_REVIEW
    UNDER_REVIEW -> APPROVED | REJECTED | MORE_INFO_REQUIRED
    MORE_INFO_REQUIRED -> REQUESTED
    APPROVED -> EXPIRED (system only)
    REJECTED, EXPIRED: terminal
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from tpa_core.core.enums import PreAuthStatus
from tpa_core.core.permissions import PREAUTH_ROLE_TABLE, TransitionRoleTable
from tpa_core.schemas.common import Actor, utc_now
from tpa_core.schemas.preauth import PreAuthorization
from tpa_core.services.lifecycle import TransitionGuard, is_blank

logger = logging.getLogger(__name__)

REVIEWER_ACTIONS = frozenset(
    {
        PreAuthStatus.UNDER_REVIEW,
        PreAuthStatus.APPROVED,
        PreAuthStatus.REJECTED,
        PreAuthStatus.MORE_INFO_REQUIRED,
    }
)


class PreAuthStateMachine:
    """State machine for pre-authorization status transitions."""

    def __init__(self, role_table: TransitionRoleTable[PreAuthStatus] = PREAUTH_ROLE_TABLE):
        self._guard = TransitionGuard("Pre-authorization", role_table)

    def is_terminal(self, status: PreAuthStatus) -> bool:
        return self._guard.is_terminal(status)

    def can_transition(self, from_status: PreAuthStatus, to_status: PreAuthStatus) -> bool:
        return self._guard.can_transition(from_status, to_status)

    def available_transitions(
        self, preauth: PreAuthorization, actor: Actor
    ) -> list[PreAuthStatus]:
        """Statuses the actor may choose. EXPIRED is never offered."""
        return self._guard.available_targets(preauth.status, actor)

    def validate_transition(
        self,
        preauth: PreAuthorization,
        target: PreAuthStatus,
        actor: Actor,
        reason: Optional[str] = None,
        approved_amount: Optional[Decimal] = None,
        approval_expiry_date: Optional[date] = None,
    ) -> None:
        """
        Check a transition without changing the pre-authorization.

        Raises:
            StateTransitionError: unreachable target, missing role or unmet precondition
        """
        current = preauth.status
        self._guard.check(preauth.id, current, target, actor)

        if target == PreAuthStatus.REJECTED:
            if is_blank(reason):
                raise self._guard.reject(
                    preauth.id, "A rejection reason is required", current, target
                )

        elif target == PreAuthStatus.APPROVED:
            amount = approved_amount if approved_amount is not None else preauth.approved_amount
            if amount is None or amount <= 0:
                raise self._guard.reject(
                    preauth.id, "Approved amount must be greater than zero", current, target
                )
            expiry = approval_expiry_date or preauth.approval_expiry_date
            if expiry is None:
                raise self._guard.reject(
                    preauth.id, "An approval expiry date is required", current, target
                )

        elif target == PreAuthStatus.EXPIRED:
            # Also enforced by the edge table; kept explicit for programmatic callers
            if current != PreAuthStatus.APPROVED:
                raise self._guard.reject(
                    preauth.id, "Only approved pre-authorizations can expire", current, target
                )

    def transition(
        self,
        preauth: PreAuthorization,
        target: PreAuthStatus,
        actor: Actor,
        reason: Optional[str] = None,
        approved_amount: Optional[Decimal] = None,
        approval_expiry_date: Optional[date] = None,
        comment: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Apply a transition in place.

        Returns:
            False for a no-op, True otherwise

        Raises:
            StateTransitionError: the pre-authorization is left untouched
        """
        if target == preauth.status:
            return False

        self.validate_transition(preauth, target, actor, reason, approved_amount, approval_expiry_date)

        previous = preauth.status
        now = now or utc_now()

        if target == PreAuthStatus.APPROVED:
            if approved_amount is not None:
                preauth.approved_amount = approved_amount
            if approval_expiry_date is not None:
                preauth.approval_expiry_date = approval_expiry_date
        elif target == PreAuthStatus.REJECTED:
            if not is_blank(reason):
                preauth.rejection_reason = reason.strip()

        if not is_blank(comment):
            preauth.notes = comment.strip()

        if target in REVIEWER_ACTIONS:
            preauth.reviewer_id = actor.user_id
            preauth.reviewer_username = actor.username
            preauth.reviewed_at = now

        preauth.status = target
        preauth.updated_by = actor.username
        preauth.updated_at = now

        logger.info(
            f"Pre-authorization {preauth.id} transitioned: "
            f"{previous.value} -> {target.value} by {actor.username}"
        )
        return True


# =============================================================================
# Validity Window
# =============================================================================


def is_usable_for_claim(preauth: PreAuthorization, on_date: date) -> bool:
    """Approved and not past its expiry date on the given day."""
    return (
        preauth.status == PreAuthStatus.APPROVED
        and preauth.approval_expiry_date is not None
        and on_date <= preauth.approval_expiry_date
    )


def is_overdue(preauth: PreAuthorization, today: date) -> bool:
    """Approved but past its expiry date: due for the expiry sweep."""
    return (
        preauth.status == PreAuthStatus.APPROVED
        and preauth.approval_expiry_date is not None
        and preauth.approval_expiry_date < today
    )


_state_machine: Optional[PreAuthStateMachine] = None


def get_preauth_state_machine() -> PreAuthStateMachine:
    """Get singleton state machine instance."""
    global _state_machine
    if _state_machine is None:
        _state_machine = PreAuthStateMachine()
    return _state_machine
