"""
Unit Tests for the Pre-Authorization State Machine

Includes the system-only APPROVED -> EXPIRED edge and the validity window.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from tpa_core.core.enums import PreAuthStatus
from tpa_core.schemas.common import Actor
from tpa_core.schemas.preauth import PreAuthorization
from tpa_core.services.preauth_state_machine import (
    PreAuthStateMachine,
    get_preauth_state_machine,
    is_overdue,
    is_usable_for_claim,
)
from tpa_core.utils.errors import StateTransitionError

TODAY = date(2026, 3, 15)


def _preauth(status=PreAuthStatus.UNDER_REVIEW, **kwargs) -> PreAuthorization:
    return PreAuthorization(
        id="pa-1", member_id="m-1", requested_amount=Decimal("1000"), status=status, **kwargs
    )


def _approved(expiry=TODAY) -> PreAuthorization:
    return _preauth(PreAuthStatus.APPROVED, approved_amount=Decimal("900"), approval_expiry_date=expiry)


@pytest.fixture
def machine():
    return PreAuthStateMachine()


@pytest.mark.unit
class TestExpiry:
    """Test the system-only expiry edge"""

    def test_system_expires_approval(self, machine):
        """Test that the system actor expires an approval without any role"""
        preauth = _approved()

        assert machine.transition(preauth, PreAuthStatus.EXPIRED, Actor.system())
        assert preauth.status == PreAuthStatus.EXPIRED

    @pytest.mark.parametrize("actor_name", ["reviewer", "insurance_admin", "super_admin"])
    def test_humans_cannot_expire(self, machine, request, actor_name):
        """Test that no human actor may take the expiry edge"""
        preauth = _approved()

        with pytest.raises(StateTransitionError) as exc_info:
            machine.transition(preauth, PreAuthStatus.EXPIRED, request.getfixturevalue(actor_name))

        assert "system only" in exc_info.value.message
        assert preauth.status == PreAuthStatus.APPROVED

    def test_expiry_not_offered(self, machine, super_admin):
        """Test that EXPIRED is never listed as an available choice"""
        assert PreAuthStatus.EXPIRED not in machine.available_transitions(_approved(), super_admin)

    def test_only_approved_expires(self, machine):
        """Test that the system cannot expire a pending request"""
        with pytest.raises(StateTransitionError):
            machine.transition(_preauth(), PreAuthStatus.EXPIRED, Actor.system())


@pytest.mark.unit
class TestReviewTransitions:
    """Test review decisions"""

    def test_approval_requires_expiry_date(self, machine, reviewer):
        """Test that approvals need an expiry date"""
        with pytest.raises(StateTransitionError):
            machine.transition(_preauth(), PreAuthStatus.APPROVED, reviewer, approved_amount=Decimal("500"))

    def test_approval_requires_positive_amount(self, machine, reviewer):
        """Test that approvals need a positive amount"""
        with pytest.raises(StateTransitionError):
            machine.transition(
                _preauth(), PreAuthStatus.APPROVED, reviewer,
                approved_amount=Decimal("0"), approval_expiry_date=TODAY,
            )

    def test_approval_effects(self, machine, reviewer):
        """Test approved amount, expiry date and reviewer stamps"""
        preauth = _preauth()

        machine.transition(
            preauth, PreAuthStatus.APPROVED, reviewer,
            approved_amount=Decimal("750"), approval_expiry_date=TODAY, comment="Approved for one scan",
        )

        assert preauth.approved_amount == Decimal("750")
        assert preauth.approval_expiry_date == TODAY
        assert preauth.reviewer_username == reviewer.username
        assert preauth.notes == "Approved for one scan"

    def test_rejection_requires_reason(self, machine, reviewer):
        """Test that rejections need a reason"""
        with pytest.raises(StateTransitionError):
            machine.transition(_preauth(), PreAuthStatus.REJECTED, reviewer, reason=" ")

    def test_rejection_ignores_stored_reason(self, machine, reviewer):
        """Test that a reason already on the record does not satisfy a new rejection"""
        preauth = _preauth(rejection_reason="Carried over")

        with pytest.raises(StateTransitionError, match="rejection reason"):
            machine.transition(preauth, PreAuthStatus.REJECTED, reviewer)

        assert preauth.status == PreAuthStatus.UNDER_REVIEW

    def test_rejection_records_reason(self, machine, reviewer):
        """Test that the rejection reason is stored"""
        preauth = _preauth()

        machine.transition(preauth, PreAuthStatus.REJECTED, reviewer, reason="Not covered")

        assert preauth.rejection_reason == "Not covered"
        assert machine.is_terminal(preauth.status)

    def test_more_info_round_trip(self, machine, reviewer, employer_admin):
        """Test MORE_INFO_REQUIRED and resubmission"""
        preauth = _preauth()

        machine.transition(preauth, PreAuthStatus.MORE_INFO_REQUIRED, reviewer, comment="Need referral")
        machine.transition(preauth, PreAuthStatus.REQUESTED, employer_admin)

        assert preauth.status == PreAuthStatus.REQUESTED

    def test_noop_from_terminal(self, machine, reviewer):
        """Test that a no-op is accepted even in a terminal state"""
        assert machine.transition(_preauth(PreAuthStatus.EXPIRED), PreAuthStatus.EXPIRED, reviewer) is False

    def test_singleton(self):
        """Test the shared instance"""
        assert get_preauth_state_machine() is get_preauth_state_machine()


@pytest.mark.unit
class TestValidityWindow:
    """Test usability for claims"""

    def test_usable_through_expiry_day(self):
        """Test that an approval is usable up to and including its expiry day"""
        preauth = _approved()

        assert is_usable_for_claim(preauth, TODAY)
        assert not is_usable_for_claim(preauth, TODAY + timedelta(days=1))

    def test_overdue(self):
        """Test the overdue check used by the expiry sweep"""
        preauth = _approved()

        assert not is_overdue(preauth, TODAY)
        assert is_overdue(preauth, TODAY + timedelta(days=1))

    def test_pending_not_usable(self):
        """Test that unapproved requests are never usable"""
        assert not is_usable_for_claim(_preauth(), TODAY)
