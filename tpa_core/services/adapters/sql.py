"""
SQLAlchemy Repositories (live mode).
Source: https://docs.sqlalchemy.org/en/20/orm/extensions/asyncio.html
Verified: 2025-12-18

Versioned saves are issued as ``UPDATE ... WHERE version = :expected``;
the row lock taken by that statement is held until the unit of work ends,
so a competing transition blocks and then matches zero rows.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tpa_core.core.enums import AuditEntityType, BenefitPolicyStatus, ClaimStatus, PreAuthStatus
from tpa_core.models.audit import ClaimAuditLogModel
from tpa_core.models.benefit_policy import BenefitPolicyModel, BenefitPolicyRuleModel
from tpa_core.models.claim import ClaimModel, PreAuthorizationModel
from tpa_core.schemas.audit import ClaimAuditLog
from tpa_core.schemas.benefit_policy import BenefitPolicy
from tpa_core.schemas.claim import Claim
from tpa_core.schemas.preauth import PreAuthorization
from tpa_core.services.adapters.base import (
    AuditLogRepository,
    BenefitPolicyRepository,
    ClaimRepository,
    PreAuthRepository,
    UnitOfWork,
)
from tpa_core.utils.errors import (
    ConcurrentModificationError,
    NotFoundError,
    TechnicalError,
)
from tpa_core.utils.logging import get_logger

logger = get_logger(__name__)


def _technical(action: str, error: Exception) -> TechnicalError:
    logger.opt(exception=error).error(f"Database failure while {action}")
    return TechnicalError(f"Database failure while {action}")


class _SqlVersionedTable:
    """Get/add/save for a flat versioned table."""

    model: Any = None
    schema: Any = None
    label: str = ""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, entity_id: str) -> Optional[Any]:
        try:
            row = await self._session.get(self.model, entity_id, populate_existing=True)
        except SQLAlchemyError as e:
            raise _technical(f"loading {self.label} {entity_id}", e) from e
        return self.schema.model_validate(row) if row is not None else None

    async def add(self, entity: Any) -> Any:
        try:
            self._session.add(self.model(**entity.model_dump()))
            await self._session.flush()
        except SQLAlchemyError as e:
            raise _technical(f"inserting {self.label} {entity.id}", e) from e
        return entity

    async def save(self, entity: Any, expected_version: Optional[int] = None) -> Any:
        values = entity.model_dump(exclude={"id", "created_at", "version"})
        stmt = update(self.model).where(self.model.id == entity.id)
        if expected_version is not None:
            stmt = stmt.where(self.model.version == expected_version)
            values["version"] = expected_version + 1

        try:
            result = await self._session.execute(
                stmt.values(**values).execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                actual = await self._session.scalar(
                    select(self.model.version).where(self.model.id == entity.id)
                )
        except SQLAlchemyError as e:
            raise _technical(f"saving {self.label} {entity.id}", e) from e

        if result.rowcount == 0:
            if actual is None:
                raise NotFoundError(self.label, entity.id)
            raise ConcurrentModificationError(self.label, entity.id, expected_version or 0, actual)

        if expected_version is not None:
            return entity.model_copy(update={"version": expected_version + 1})
        return entity

    async def _select(self, *criteria: Any) -> list[Any]:
        try:
            rows = (await self._session.scalars(select(self.model).where(*criteria))).all()
        except SQLAlchemyError as e:
            raise _technical(f"querying {self.label}", e) from e
        return [self.schema.model_validate(r) for r in rows]


class SqlClaimRepository(_SqlVersionedTable, ClaimRepository):
    model = ClaimModel
    schema = Claim
    label = "Claim"

    async def list_by_status(self, status: ClaimStatus) -> list[Claim]:
        return await self._select(ClaimModel.status == status)


class SqlPreAuthRepository(_SqlVersionedTable, PreAuthRepository):
    model = PreAuthorizationModel
    schema = PreAuthorization
    label = "PreAuthorization"

    async def list_by_status(self, status: PreAuthStatus) -> list[PreAuthorization]:
        return await self._select(PreAuthorizationModel.status == status)


class SqlBenefitPolicyRepository(BenefitPolicyRepository):
    """Policies with their rules as child rows."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, entity_id: str) -> Optional[BenefitPolicy]:
        try:
            row = await self._session.get(BenefitPolicyModel, entity_id, populate_existing=True)
        except SQLAlchemyError as e:
            raise _technical(f"loading BenefitPolicy {entity_id}", e) from e
        return BenefitPolicy.model_validate(row) if row is not None else None

    async def add(self, entity: BenefitPolicy) -> BenefitPolicy:
        row = BenefitPolicyModel(**entity.model_dump(exclude={"rules"}))
        row.rules = [self._rule_row(entity.id, pos, rule) for pos, rule in enumerate(entity.rules)]
        try:
            self._session.add(row)
            await self._session.flush()
        except SQLAlchemyError as e:
            raise _technical(f"inserting BenefitPolicy {entity.id}", e) from e
        return entity

    async def save(
        self, entity: BenefitPolicy, expected_version: Optional[int] = None
    ) -> BenefitPolicy:
        try:
            row = await self._session.get(BenefitPolicyModel, entity.id)
            if row is None:
                raise NotFoundError("BenefitPolicy", entity.id)

            for key, value in entity.model_dump(exclude={"id", "rules", "created_at"}).items():
                setattr(row, key, value)

            existing = {r.id: r for r in row.rules}
            rules = []
            for pos, rule in enumerate(entity.rules):
                current = existing.get(rule.id)
                if current is None:
                    rules.append(self._rule_row(entity.id, pos, rule))
                    continue
                for key, value in rule.model_dump(exclude={"id", "policy_id"}).items():
                    setattr(current, key, value)
                current.position = pos
                rules.append(current)
            row.rules = rules
            await self._session.flush()
        except SQLAlchemyError as e:
            raise _technical(f"saving BenefitPolicy {entity.id}", e) from e
        return entity

    async def list_by_employer(self, employer_id: str) -> list[BenefitPolicy]:
        return await self._select(BenefitPolicyModel.employer_id == employer_id)

    async def list_by_status(self, status: BenefitPolicyStatus) -> list[BenefitPolicy]:
        return await self._select(BenefitPolicyModel.status == status)

    async def lock_employer(self, employer_id: str) -> None:
        """Transaction-scoped advisory lock on PostgreSQL."""
        if self._session.get_bind().dialect.name != "postgresql":
            return
        try:
            await self._session.execute(
                select(func.pg_advisory_xact_lock(func.hashtext(employer_id)))
            )
        except SQLAlchemyError as e:
            raise _technical(f"locking employer {employer_id}", e) from e

    async def _select(self, *criteria: Any) -> list[BenefitPolicy]:
        try:
            rows = (await self._session.scalars(select(BenefitPolicyModel).where(*criteria))).all()
        except SQLAlchemyError as e:
            raise _technical("querying BenefitPolicy", e) from e
        return [BenefitPolicy.model_validate(r) for r in rows]

    @staticmethod
    def _rule_row(policy_id: str, position: int, rule: Any) -> BenefitPolicyRuleModel:
        data = rule.model_dump(exclude={"policy_id"})
        return BenefitPolicyRuleModel(policy_id=policy_id, position=position, **data)


class SqlUnitOfWork(UnitOfWork):
    """One session, one transaction."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session = session_maker()
        self._committed = False
        self.claims = SqlClaimRepository(self._session)
        self.preauths = SqlPreAuthRepository(self._session)
        self.policies = SqlBenefitPolicyRepository(self._session)

    async def commit(self) -> None:
        try:
            await self._session.commit()
        except SQLAlchemyError as e:
            raise _technical("committing unit of work", e) from e
        self._committed = True

    async def rollback(self) -> None:
        if self._committed:
            return
        try:
            await self._session.rollback()
        except SQLAlchemyError as e:
            raise _technical("rolling back unit of work", e) from e

    async def close(self) -> None:
        await self._session.close()


class SqlAuditLogRepository(AuditLogRepository):
    """Each append opens and commits its own session."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def append(self, entry: ClaimAuditLog) -> ClaimAuditLog:
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    last = await session.scalar(
                        select(func.coalesce(func.max(ClaimAuditLogModel.sequence), 0)).where(
                            ClaimAuditLogModel.entity_type == entry.entity_type,
                            ClaimAuditLogModel.entity_id == entry.entity_id,
                        )
                    )
                    stored = entry.model_copy(update={"sequence": last + 1})
                    session.add(ClaimAuditLogModel(**stored.model_dump()))
        except SQLAlchemyError as e:
            raise _technical(f"appending audit row for {entry.entity_id}", e) from e
        return stored

    async def list_for_entity(
        self, entity_type: AuditEntityType, entity_id: str
    ) -> list[ClaimAuditLog]:
        return await self._query(
            select(ClaimAuditLogModel)
            .where(
                ClaimAuditLogModel.entity_type == entity_type,
                ClaimAuditLogModel.entity_id == entity_id,
            )
            .order_by(ClaimAuditLogModel.sequence)
        )

    async def list_by_user(self, user_id: str) -> list[ClaimAuditLog]:
        return await self._query(
            select(ClaimAuditLogModel)
            .where(ClaimAuditLogModel.actor_user_id == user_id)
            .order_by(ClaimAuditLogModel.created_at)
        )

    async def list_between(self, start: datetime, end: datetime) -> list[ClaimAuditLog]:
        return await self._query(
            select(ClaimAuditLogModel)
            .where(ClaimAuditLogModel.created_at.between(start, end))
            .order_by(ClaimAuditLogModel.created_at)
        )

    async def _query(self, stmt: Any) -> list[ClaimAuditLog]:
        try:
            async with self._session_maker() as session:
                rows = (await session.scalars(stmt)).all()
        except SQLAlchemyError as e:
            raise _technical("querying audit trail", e) from e
        return [ClaimAuditLog.model_validate(r) for r in rows]
