"""
Repository Contracts.
Source: Design Document Section 4.4 - Demo Mode
Verified: 2025-12-18

Abstract persistence and lookup contracts with demo (in-memory) and live
(SQLAlchemy) implementations. Mutating repositories are reached through a
UnitOfWork; the audit repository commits on its own.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from types import TracebackType
from typing import Callable, Generic, Optional, TypeVar

from pydantic import BaseModel

from tpa_core.core.enums import (
    AuditEntityType,
    BenefitPolicyStatus,
    ClaimStatus,
    PreAuthStatus,
)
from tpa_core.schemas.audit import ClaimAuditLog
from tpa_core.schemas.benefit_policy import BenefitPolicy
from tpa_core.schemas.claim import Claim
from tpa_core.schemas.preauth import PreAuthorization
from tpa_core.schemas.records import (
    EmployerRecord,
    MedicalServiceRecord,
    MemberRecord,
    ProviderRecord,
)

T = TypeVar("T", bound=BaseModel)


class Repository(ABC, Generic[T]):
    """Basic entity access inside a unit of work."""

    @abstractmethod
    async def get(self, entity_id: str) -> Optional[T]:
        """Get entity by ID."""

    @abstractmethod
    async def add(self, entity: T) -> T:
        """Insert a new entity."""

    @abstractmethod
    async def save(self, entity: T, expected_version: Optional[int] = None) -> T:
        """
        Persist changes to an existing entity.

        With ``expected_version`` the write succeeds only if the stored
        version still matches; the stored version is then incremented.

        Raises:
            ConcurrentModificationError: the stored version moved on
            TechnicalError: persistence failure
        """


class ClaimRepository(Repository[Claim]):
    @abstractmethod
    async def list_by_status(self, status: ClaimStatus) -> list[Claim]:
        """Claims currently in a status."""


class PreAuthRepository(Repository[PreAuthorization]):
    @abstractmethod
    async def list_by_status(self, status: PreAuthStatus) -> list[PreAuthorization]:
        """Pre-authorizations currently in a status."""

    async def list_overdue_approvals(self, today: date) -> list[PreAuthorization]:
        """APPROVED pre-authorizations whose expiry date is before today."""
        return [
            p
            for p in await self.list_by_status(PreAuthStatus.APPROVED)
            if p.approval_expiry_date is not None and p.approval_expiry_date < today
        ]


class BenefitPolicyRepository(Repository[BenefitPolicy]):
    @abstractmethod
    async def list_by_employer(self, employer_id: str) -> list[BenefitPolicy]:
        """All policies of an employer, rules included."""

    @abstractmethod
    async def list_by_status(self, status: BenefitPolicyStatus) -> list[BenefitPolicy]:
        """All policies in a status, rules included."""

    async def lock_employer(self, employer_id: str) -> None:
        """Hold a store-level lock on the employer's policies until the unit of work ends."""


class UnitOfWork(ABC):
    """
    Atomic scope for read-validate-write sequences.

    Changes are discarded unless ``commit()`` is called before the block
    exits.
    """

    claims: ClaimRepository
    preauths: PreAuthRepository
    policies: BenefitPolicyRepository

    async def __aenter__(self) -> "UnitOfWork":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        await self.rollback()
        await self.close()

    @abstractmethod
    async def commit(self) -> None:
        """Make the staged changes durable."""

    @abstractmethod
    async def rollback(self) -> None:
        """Discard staged changes. A no-op after commit."""

    async def close(self) -> None:
        """Release underlying resources."""


class AuditLogRepository(ABC):
    """
    Append-only audit storage.

    Every append runs in its own transaction, independent of any unit of
    work in progress.
    """

    @abstractmethod
    async def append(self, entry: ClaimAuditLog) -> ClaimAuditLog:
        """Insert a row, assigning the next per-entity sequence number."""

    @abstractmethod
    async def list_for_entity(
        self, entity_type: AuditEntityType, entity_id: str
    ) -> list[ClaimAuditLog]:
        """Rows of one entity in append order."""

    @abstractmethod
    async def list_by_user(self, user_id: str) -> list[ClaimAuditLog]:
        """Rows written by one actor, oldest first."""

    @abstractmethod
    async def list_between(self, start: datetime, end: datetime) -> list[ClaimAuditLog]:
        """Rows created within [start, end], oldest first."""


class RecordLookup(ABC):
    """Read-only access to records owned by other services."""

    @abstractmethod
    async def get_member(self, member_id: str) -> Optional[MemberRecord]:
        pass

    @abstractmethod
    async def get_provider(self, provider_id: str) -> Optional[ProviderRecord]:
        pass

    @abstractmethod
    async def get_employer(self, employer_id: str) -> Optional[EmployerRecord]:
        pass

    @abstractmethod
    async def get_medical_service(self, service_id: str) -> Optional[MedicalServiceRecord]:
        pass

    @abstractmethod
    async def get_medical_service_by_code(self, code: str) -> Optional[MedicalServiceRecord]:
        pass


# Builds a fresh unit of work per operation
UnitOfWorkFactory = Callable[[], UnitOfWork]
