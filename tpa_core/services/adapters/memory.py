"""
In-Memory Repositories (demo mode).
Source: Design Document Section 4.4 - Demo Mode
Verified: 2025-12-18

Entities are stored as copies, so callers never share state with the
store. A save inside a unit of work reserves the entity until commit or
rollback, which gives the same one-winner behaviour as a row lock.
"""

from datetime import datetime
from typing import Any, Iterable, Optional

from tpa_core.core.enums import AuditEntityType, BenefitPolicyStatus, ClaimStatus, PreAuthStatus
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
from tpa_core.services.adapters.base import (
    AuditLogRepository,
    BenefitPolicyRepository,
    ClaimRepository,
    PreAuthRepository,
    RecordLookup,
    UnitOfWork,
)
from tpa_core.utils.errors import ConcurrentModificationError, NotFoundError, TechnicalError


class InMemoryStore:
    """Committed state shared by all in-memory units of work."""

    def __init__(self) -> None:
        self.claims: dict[str, Claim] = {}
        self.preauths: dict[str, PreAuthorization] = {}
        self.policies: dict[str, BenefitPolicy] = {}
        self.audit_logs: list[ClaimAuditLog] = []
        self.reserved: dict[tuple[str, str], object] = {}

    def unit_of_work(self) -> "InMemoryUnitOfWork":
        """Factory for a new unit of work over this store."""
        return InMemoryUnitOfWork(self)

    def clear(self) -> None:
        self.claims.clear()
        self.preauths.clear()
        self.policies.clear()
        self.audit_logs.clear()
        self.reserved.clear()


class _InMemoryTable:
    """Get/add/save over one table of the store, staged in a unit of work."""

    def __init__(self, uow: "InMemoryUnitOfWork", name: str, label: str):
        self._uow = uow
        self._name = name
        self._label = label

    @property
    def _committed(self) -> dict[str, Any]:
        return getattr(self._uow.store, self._name)

    @property
    def _pending(self) -> dict[str, Any]:
        return self._uow.pending[self._name]

    async def get(self, entity_id: str) -> Optional[Any]:
        entity = self._pending.get(entity_id) or self._committed.get(entity_id)
        return entity.model_copy(deep=True) if entity is not None else None

    async def add(self, entity: Any) -> Any:
        if entity.id in self._committed or entity.id in self._pending:
            raise TechnicalError(f"{self._label} {entity.id} already exists")
        self._uow.reserve(self._name, entity.id)
        self._pending[entity.id] = entity.model_copy(deep=True)
        return entity.model_copy(deep=True)

    async def save(self, entity: Any, expected_version: Optional[int] = None) -> Any:
        committed = self._committed.get(entity.id)
        if committed is None and entity.id not in self._pending:
            raise NotFoundError(self._label, entity.id)

        actual = getattr(committed, "version", 0) if committed is not None else expected_version
        if not self._uow.reserve(self._name, entity.id) or (
            expected_version is not None and actual != expected_version
        ):
            raise ConcurrentModificationError(
                self._label, entity.id, expected_version or 0, actual or 0
            )

        if expected_version is not None:
            entity = entity.model_copy(update={"version": expected_version + 1})
        self._pending[entity.id] = entity.model_copy(deep=True)
        return entity.model_copy(deep=True)

    async def _all(self) -> list[Any]:
        merged = {**self._committed, **self._pending}
        return [e.model_copy(deep=True) for e in merged.values()]


class InMemoryClaimRepository(_InMemoryTable, ClaimRepository):
    def __init__(self, uow: "InMemoryUnitOfWork"):
        super().__init__(uow, "claims", "Claim")

    async def list_by_status(self, status: ClaimStatus) -> list[Claim]:
        return [c for c in await self._all() if c.status == status]


class InMemoryPreAuthRepository(_InMemoryTable, PreAuthRepository):
    def __init__(self, uow: "InMemoryUnitOfWork"):
        super().__init__(uow, "preauths", "PreAuthorization")

    async def list_by_status(self, status: PreAuthStatus) -> list[PreAuthorization]:
        return [p for p in await self._all() if p.status == status]


class InMemoryBenefitPolicyRepository(_InMemoryTable, BenefitPolicyRepository):
    def __init__(self, uow: "InMemoryUnitOfWork"):
        super().__init__(uow, "policies", "BenefitPolicy")

    async def list_by_employer(self, employer_id: str) -> list[BenefitPolicy]:
        return [p for p in await self._all() if p.employer_id == employer_id]

    async def list_by_status(self, status: BenefitPolicyStatus) -> list[BenefitPolicy]:
        return [p for p in await self._all() if p.status == status]


class InMemoryUnitOfWork(UnitOfWork):
    """Stages writes and applies them to the store on commit."""

    def __init__(self, store: InMemoryStore):
        self.store = store
        self.pending: dict[str, dict[str, Any]] = {"claims": {}, "preauths": {}, "policies": {}}
        self._token = object()
        self._keys: set[tuple[str, str]] = set()
        self._committed = False
        self.claims = InMemoryClaimRepository(self)
        self.preauths = InMemoryPreAuthRepository(self)
        self.policies = InMemoryBenefitPolicyRepository(self)

    def reserve(self, table: str, entity_id: str) -> bool:
        """Claim an entity for this unit of work; False if another holds it."""
        key = (table, entity_id)
        owner = self.store.reserved.setdefault(key, self._token)
        if owner is not self._token:
            return False
        self._keys.add(key)
        return True

    async def commit(self) -> None:
        for table, staged in self.pending.items():
            getattr(self.store, table).update(staged)
            staged.clear()
        self._release()
        self._committed = True

    async def rollback(self) -> None:
        if self._committed:
            return
        for staged in self.pending.values():
            staged.clear()
        self._release()

    def _release(self) -> None:
        for key in self._keys:
            if self.store.reserved.get(key) is self._token:
                del self.store.reserved[key]
        self._keys.clear()


class InMemoryAuditLogRepository(AuditLogRepository):
    """Append-only list; each append is immediately visible."""

    def __init__(self, store: InMemoryStore):
        self._store = store

    async def append(self, entry: ClaimAuditLog) -> ClaimAuditLog:
        sequence = 1 + sum(
            1
            for row in self._store.audit_logs
            if row.entity_type == entry.entity_type and row.entity_id == entry.entity_id
        )
        stored = entry.model_copy(update={"sequence": sequence})
        self._store.audit_logs.append(stored)
        return stored

    async def list_for_entity(
        self, entity_type: AuditEntityType, entity_id: str
    ) -> list[ClaimAuditLog]:
        rows = [
            r
            for r in self._store.audit_logs
            if r.entity_type == entity_type and r.entity_id == entity_id
        ]
        return sorted(rows, key=lambda r: r.sequence)

    async def list_by_user(self, user_id: str) -> list[ClaimAuditLog]:
        return [r for r in self._store.audit_logs if r.actor_user_id == user_id]

    async def list_between(self, start: datetime, end: datetime) -> list[ClaimAuditLog]:
        return [r for r in self._store.audit_logs if start <= r.created_at <= end]


class InMemoryRecordLookup(RecordLookup):
    """Seedable lookup of members, providers, employers and medical services."""

    def __init__(self) -> None:
        self._members: dict[str, MemberRecord] = {}
        self._providers: dict[str, ProviderRecord] = {}
        self._employers: dict[str, EmployerRecord] = {}
        self._services: dict[str, MedicalServiceRecord] = {}

    def seed(
        self,
        members: Iterable[MemberRecord] = (),
        providers: Iterable[ProviderRecord] = (),
        employers: Iterable[EmployerRecord] = (),
        services: Iterable[MedicalServiceRecord] = (),
    ) -> None:
        """Load demo records, replacing any with the same id."""
        self._members.update({m.id: m for m in members})
        self._providers.update({p.id: p for p in providers})
        self._employers.update({e.id: e for e in employers})
        self._services.update({s.id: s for s in services})

    async def get_member(self, member_id: str) -> Optional[MemberRecord]:
        return self._members.get(member_id)

    async def get_provider(self, provider_id: str) -> Optional[ProviderRecord]:
        return self._providers.get(provider_id)

    async def get_employer(self, employer_id: str) -> Optional[EmployerRecord]:
        return self._employers.get(employer_id)

    async def get_medical_service(self, service_id: str) -> Optional[MedicalServiceRecord]:
        return self._services.get(service_id)

    async def get_medical_service_by_code(self, code: str) -> Optional[MedicalServiceRecord]:
        for service in self._services.values():
            if service.code == code:
                return service
        return None
