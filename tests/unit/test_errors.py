"""
Unit Tests for the Error Taxonomy
"""

import pytest

from tpa_core.core.enums import ClaimStatus
from tpa_core.utils.errors import (
    AdjudicationError,
    BusinessRuleViolation,
    ConcurrentModificationError,
    NotFoundError,
    PolicyOverlapError,
    StateTransitionError,
    TechnicalError,
)


@pytest.mark.unit
class TestErrorHierarchy:
    """Test error classes and their codes"""

    def test_state_transition_is_business_violation(self):
        """Test that transition errors are business rule violations"""
        error = StateTransitionError("nope", ClaimStatus.DRAFT, ClaimStatus.SETTLED)

        assert isinstance(error, BusinessRuleViolation)
        assert error.error_code == "INVALID_STATE_TRANSITION"
        assert error.http_status == 409

    def test_policy_overlap_is_business_violation(self):
        """Test that overlap errors are business rule violations"""
        assert issubclass(PolicyOverlapError, BusinessRuleViolation)
        assert PolicyOverlapError.error_code == "POLICY_OVERLAP"

    def test_concurrent_modification_is_technical(self):
        """Test that version conflicts are technical errors"""
        error = ConcurrentModificationError("Claim", "c-1", 1, 2)

        assert isinstance(error, TechnicalError)
        assert error.expected_version == 1
        assert error.actual_version == 2

    def test_not_found_message(self):
        """Test the not-found message and details"""
        error = NotFoundError("Member", "m-9")

        assert error.message == "Member not found: m-9"
        assert error.details == {"entity": "Member", "entity_id": "m-9"}
        assert error.http_status == 404


@pytest.mark.unit
class TestErrorResponses:
    """Test structured error bodies"""

    def test_transition_response_details(self):
        """Test that transition errors carry both statuses and sorted roles"""
        error = StateTransitionError(
            "roles missing",
            ClaimStatus.UNDER_REVIEW,
            ClaimStatus.APPROVED,
            required_roles={"REVIEWER", "INSURANCE_ADMIN"},
        )

        response = error.to_response()

        assert response.error_code == "INVALID_STATE_TRANSITION"
        assert response.details["from_status"] == "UNDER_REVIEW"
        assert response.details["to_status"] == "APPROVED"
        assert response.details["required_roles"] == ["INSURANCE_ADMIN", "REVIEWER"]

    def test_technical_response_is_generic(self):
        """Test that technical errors do not leak internals"""
        response = TechnicalError("connection refused on 10.0.0.5").to_response()

        assert "10.0.0.5" not in response.message
        assert response.details == {}

    def test_base_response(self):
        """Test the base error body"""
        response = AdjudicationError("boom", {"k": "v"}).to_response()

        assert response.error_code == "ADJUDICATION_ERROR"
        assert response.details == {"k": "v"}
