"""
Adjudication Error Taxonomy.

Every error carries a machine-readable ``error_code`` and the HTTP status a
controller layer should answer with. ``to_response()`` builds the structured
error body of the transition and eligibility endpoints.

Source: Claims / pre-authorization lifecycle design, error handling section
Verified: 2025-12-18
"""

from typing import Any, Iterable, Optional

from tpa_core.schemas.common import ErrorResponse


class AdjudicationError(Exception):
    """Base class for all errors raised by the adjudication core."""

    error_code = "ADJUDICATION_ERROR"
    http_status = 500

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_response(self) -> ErrorResponse:
        """Structured error body for the caller."""
        return ErrorResponse(
            error_code=self.error_code,
            message=self.message,
            details=self.details,
        )


class BusinessRuleViolation(AdjudicationError):
    """A domain invariant would be broken. Never retried automatically."""

    error_code = "BUSINESS_RULE_VIOLATION"
    http_status = 400


class StateTransitionError(BusinessRuleViolation):
    """Raised when a lifecycle transition is unreachable or its preconditions fail."""

    error_code = "INVALID_STATE_TRANSITION"
    http_status = 409

    def __init__(
        self,
        message: str,
        from_status: Any,
        to_status: Any,
        required_roles: Optional[Iterable[str]] = None,
    ):
        self.from_status = from_status
        self.to_status = to_status
        self.required_roles = sorted(required_roles) if required_roles else []
        details: dict[str, Any] = {
            "from_status": getattr(from_status, "value", from_status),
            "to_status": getattr(to_status, "value", to_status),
        }
        if self.required_roles:
            details["required_roles"] = self.required_roles
        super().__init__(message, details)


class PolicyOverlapError(BusinessRuleViolation):
    """Raised when a policy would overlap another active policy of the same employer."""

    error_code = "POLICY_OVERLAP"
    http_status = 409


class NotFoundError(AdjudicationError):
    """A referenced id does not resolve."""

    error_code = "NOT_FOUND"
    http_status = 404

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            f"{entity} not found: {entity_id}",
            {"entity": entity, "entity_id": str(entity_id)},
        )


class TechnicalError(AdjudicationError):
    """Persistence or infrastructure failure."""

    error_code = "TECHNICAL_ERROR"
    http_status = 500

    def to_response(self) -> ErrorResponse:
        """Generic body; internals stay in the logs."""
        return ErrorResponse(
            error_code=self.error_code,
            message="An internal error occurred while processing the request",
            details={},
        )


class ConcurrentModificationError(TechnicalError):
    """A compare-and-swap save found a newer version than the one read."""

    error_code = "CONCURRENT_MODIFICATION"
    http_status = 409

    def __init__(self, entity: str, entity_id: Any, expected_version: int, actual_version: int):
        self.entity = entity
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"{entity} {entity_id} was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )
