"""
Role Tables for Lifecycle Transitions.

The state machines never compare role names themselves; they receive one of
these tables and only ask whether an actor holds any role listed for an edge.
An edge mapped to an empty set can only be taken by the system actor.

Source: Claims / pre-authorization lifecycle design, role matrix
Verified: 2025-12-18
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, Optional, TypeVar

from tpa_core.core.enums import ClaimStatus, PreAuthStatus


class Role(str, Enum):
    """Business roles that may act on claims and pre-authorizations."""

    SUPER_ADMIN = "SUPER_ADMIN"
    INSURANCE_ADMIN = "INSURANCE_ADMIN"
    EMPLOYER_ADMIN = "EMPLOYER_ADMIN"
    REVIEWER = "REVIEWER"
    PROVIDER = "PROVIDER"


S = TypeVar("S", bound=Enum)


@dataclass(frozen=True)
class TransitionRoleTable(Generic[S]):
    """
    Allowed edges of a lifecycle and the roles authorized for each.

    Attributes:
        edges: (from, to) -> role names allowed to take the edge
        terminal: statuses with no outgoing edges
    """

    edges: dict[tuple[S, S], frozenset[str]]
    terminal: frozenset[S] = field(default_factory=frozenset)

    def is_edge(self, from_status: S, to_status: S) -> bool:
        """Check whether the edge exists at all."""
        return (from_status, to_status) in self.edges

    def roles_for(self, from_status: S, to_status: S) -> Optional[frozenset[str]]:
        """Roles for an edge, or None when the edge does not exist."""
        return self.edges.get((from_status, to_status))

    def is_system_only(self, from_status: S, to_status: S) -> bool:
        """An existing edge that no human role may take."""
        roles = self.roles_for(from_status, to_status)
        return roles is not None and not roles

    def targets_from(self, from_status: S) -> list[S]:
        """Reachable targets in table order."""
        return [to for (frm, to) in self.edges if frm == from_status]


def _roles(*roles: Role) -> frozenset[str]:
    return frozenset(r.value for r in roles)


CLAIM_ROLE_TABLE: TransitionRoleTable[ClaimStatus] = TransitionRoleTable(
    edges={
        (ClaimStatus.DRAFT, ClaimStatus.SUBMITTED): _roles(
            Role.EMPLOYER_ADMIN, Role.INSURANCE_ADMIN
        ),
        (ClaimStatus.SUBMITTED, ClaimStatus.UNDER_REVIEW): _roles(
            Role.INSURANCE_ADMIN, Role.REVIEWER
        ),
        (ClaimStatus.UNDER_REVIEW, ClaimStatus.APPROVED): _roles(
            Role.INSURANCE_ADMIN, Role.REVIEWER
        ),
        (ClaimStatus.UNDER_REVIEW, ClaimStatus.REJECTED): _roles(
            Role.INSURANCE_ADMIN, Role.REVIEWER
        ),
        (ClaimStatus.UNDER_REVIEW, ClaimStatus.RETURNED_FOR_INFO): _roles(Role.REVIEWER),
        (ClaimStatus.RETURNED_FOR_INFO, ClaimStatus.SUBMITTED): _roles(
            Role.EMPLOYER_ADMIN, Role.INSURANCE_ADMIN
        ),
        (ClaimStatus.APPROVED, ClaimStatus.SETTLED): _roles(Role.INSURANCE_ADMIN),
    },
    terminal=frozenset({ClaimStatus.REJECTED, ClaimStatus.SETTLED}),
)


PREAUTH_ROLE_TABLE: TransitionRoleTable[PreAuthStatus] = TransitionRoleTable(
    edges={
        (PreAuthStatus.REQUESTED, PreAuthStatus.UNDER_REVIEW): _roles(
            Role.INSURANCE_ADMIN, Role.REVIEWER
        ),
        (PreAuthStatus.UNDER_REVIEW, PreAuthStatus.APPROVED): _roles(
            Role.INSURANCE_ADMIN, Role.REVIEWER
        ),
        (PreAuthStatus.UNDER_REVIEW, PreAuthStatus.REJECTED): _roles(
            Role.INSURANCE_ADMIN, Role.REVIEWER
        ),
        (PreAuthStatus.UNDER_REVIEW, PreAuthStatus.MORE_INFO_REQUIRED): _roles(
            Role.REVIEWER
        ),
        (PreAuthStatus.MORE_INFO_REQUIRED, PreAuthStatus.REQUESTED): _roles(
            Role.EMPLOYER_ADMIN, Role.INSURANCE_ADMIN
        ),
        # System process only
        (PreAuthStatus.APPROVED, PreAuthStatus.EXPIRED): frozenset(),
    },
    terminal=frozenset({PreAuthStatus.REJECTED, PreAuthStatus.EXPIRED}),
)
