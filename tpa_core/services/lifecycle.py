"""
Shared Transition Guard for Lifecycle State Machines.

Checks reachability and authorization against an injected role table. The
guard knows nothing about concrete role names: it only asks whether the
actor holds one of the roles listed for an edge.
"""

import logging
from enum import Enum
from typing import Generic, Iterable, Optional, TypeVar

from pydantic import BaseModel

from tpa_core.core.permissions import TransitionRoleTable
from tpa_core.schemas.common import Actor
from tpa_core.services.adapters.base import Repository
from tpa_core.utils.errors import ConcurrentModificationError, StateTransitionError

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=Enum)
T = TypeVar("T", bound=BaseModel)


def is_blank(text: Optional[str]) -> bool:
    return text is None or not text.strip()


class TransitionGuard(Generic[S]):
    """Reachability and role checks for one lifecycle."""

    def __init__(self, entity: str, role_table: TransitionRoleTable[S]):
        self.entity = entity
        self.role_table = role_table

    def is_terminal(self, status: S) -> bool:
        return status in self.role_table.terminal

    def can_transition(self, from_status: S, to_status: S) -> bool:
        """Whether the edge exists, regardless of who asks."""
        return self.role_table.is_edge(from_status, to_status)

    def is_authorized(self, from_status: S, to_status: S, actor: Actor) -> bool:
        roles = self.role_table.roles_for(from_status, to_status)
        if roles is None:
            return False
        if not roles:
            # System-only edge; no human role and no super-admin bypass
            return actor.is_system
        return actor.super_admin or actor.has_any_role(roles)

    def available_targets(self, from_status: S, actor: Actor) -> list[S]:
        """Targets the actor could move to, excluding system-only edges."""
        return [
            to
            for to in self.role_table.targets_from(from_status)
            if not self.role_table.is_system_only(from_status, to)
            and self.is_authorized(from_status, to, actor)
        ]

    def check(self, entity_id: str, from_status: S, to_status: S, actor: Actor) -> None:
        """
        Raise unless the actor may move the entity along this edge.

        Raises:
            StateTransitionError: terminal source, missing edge, or missing role
        """
        if self.is_terminal(from_status):
            raise self.reject(
                entity_id,
                f"{self.entity} {entity_id} is in terminal state {from_status.value}",
                from_status,
                to_status,
            )

        if not self.can_transition(from_status, to_status):
            raise self.reject(
                entity_id,
                f"{self.entity} cannot move from {from_status.value} to {to_status.value}",
                from_status,
                to_status,
            )

        if not self.is_authorized(from_status, to_status, actor):
            roles = self.role_table.roles_for(from_status, to_status) or frozenset()
            if roles:
                message = (
                    f"{self.entity} transition {from_status.value} -> {to_status.value} "
                    f"requires one of: {', '.join(sorted(roles))}"
                )
            else:
                message = (
                    f"{self.entity} transition {from_status.value} -> {to_status.value} "
                    f"is performed by the system only"
                )
            raise self.reject(entity_id, message, from_status, to_status, roles)

    def reject(
        self,
        entity_id: str,
        message: str,
        from_status: S,
        to_status: S,
        required_roles: Optional[Iterable[str]] = None,
    ) -> StateTransitionError:
        """Build (and log) a transition rejection."""
        logger.warning(f"Rejected {self.entity} {entity_id} transition: {message}")
        return StateTransitionError(message, from_status, to_status, required_roles)


async def save_transition(
    repository: Repository[T],
    entity: T,
    expected_version: int,
    target: Enum,
    label: str,
) -> T:
    """
    Compare-and-swap save of a transitioned entity.

    A lost race is reported as a StateTransitionError naming the state the
    winner left the entity in.
    """
    try:
        return await repository.save(entity, expected_version=expected_version)
    except ConcurrentModificationError as e:
        current = await repository.get(entity.id)
        current_status = current.status if current is not None else target
        logger.warning(f"{label} {entity.id} lost a concurrent transition to {target.value}")
        raise StateTransitionError(
            f"{label} {entity.id} was changed concurrently; current status is {current_status.value}",
            current_status,
            target,
        ) from e
