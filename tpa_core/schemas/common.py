"""
Shared Schemas.
Source: https://docs.pydantic.dev/latest/concepts/models/
Verified: 2025-12-18
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


class ErrorResponse(BaseModel):
    """Structured error body with a machine-readable code."""

    error_code: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class Actor(BaseModel):
    """
    The identity acting on a claim or pre-authorization.

    Roles are an opaque set of role names; ``super_admin`` is the single
    privileged flag that skips role checks. ``is_system`` marks scheduled
    maintenance processes.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str
    username: str
    roles: frozenset[str] = Field(default_factory=frozenset)
    super_admin: bool = False
    is_system: bool = False
    company_scope_id: Optional[str] = Field(
        default=None, description="Employer the actor is restricted to, if any"
    )

    def has_any_role(self, roles: frozenset[str]) -> bool:
        """Check whether the actor holds at least one of the given roles."""
        return bool(self.roles & roles)

    @property
    def primary_role(self) -> str:
        """Role recorded in the audit trail."""
        if self.is_system:
            return "SYSTEM"
        if not self.roles:
            return "UNKNOWN"
        return sorted(self.roles)[0]

    @classmethod
    def system(cls) -> "Actor":
        """Actor used by scheduled maintenance jobs."""
        return cls(user_id="system", username="system", is_system=True)
