"""
Benefit Policy Service.

Provides:
- Policy lifecycle (create, update, activate, suspend, expire, cancel, delete)
- At most one ACTIVE/SUSPENDED policy per employer over any date range
- Coverage rule management with single-target and uniqueness checks
- Expiry sweep and expiring-soon report

Activation and every other policy mutation are serialised per employer.

Source: Benefit policy design
Verified: 2025-12-18
"""

import asyncio
import weakref
from datetime import date, timedelta
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel

from tpa_core.core.config import AdjudicationSettings, get_settings
from tpa_core.core.enums import BenefitPolicyStatus
from tpa_core.schemas.benefit_policy import (
    BenefitPolicy,
    BenefitPolicyCreate,
    BenefitPolicyRule,
    BenefitPolicyRuleCreate,
    BenefitPolicyRuleUpdate,
    BenefitPolicyUpdate,
)
from tpa_core.schemas.common import utc_now
from tpa_core.services.adapters.base import UnitOfWork, UnitOfWorkFactory
from tpa_core.services.coverage_resolver import BLOCKING_STATUSES, CoverageResolver
from tpa_core.utils.errors import (
    BusinessRuleViolation,
    NotFoundError,
    PolicyOverlapError,
    StateTransitionError,
)
from tpa_core.utils.logging import get_logger

logger = get_logger(__name__)

POLICY_TRANSITIONS: dict[BenefitPolicyStatus, frozenset[BenefitPolicyStatus]] = {
    BenefitPolicyStatus.DRAFT: frozenset(
        {BenefitPolicyStatus.ACTIVE, BenefitPolicyStatus.CANCELLED}
    ),
    BenefitPolicyStatus.ACTIVE: frozenset(
        {BenefitPolicyStatus.SUSPENDED, BenefitPolicyStatus.EXPIRED, BenefitPolicyStatus.CANCELLED}
    ),
    BenefitPolicyStatus.SUSPENDED: frozenset(
        {BenefitPolicyStatus.ACTIVE, BenefitPolicyStatus.EXPIRED, BenefitPolicyStatus.CANCELLED}
    ),
}

TERMINAL_POLICY_STATUSES = frozenset({BenefitPolicyStatus.EXPIRED, BenefitPolicyStatus.CANCELLED})

# Fields an update may not clear
REQUIRED_POLICY_FIELDS = frozenset(
    {"name", "start_date", "end_date", "annual_limit", "default_waiting_period_days"}
)
REQUIRED_RULE_FIELDS = frozenset({"waiting_period_days", "requires_pre_approval"})

PolicyMutation = Callable[[BenefitPolicy, UnitOfWork], Awaitable[None]]


class BenefitPolicyService:
    """Service for benefit policy lifecycle and coverage rules."""

    def __init__(
        self,
        unit_of_work: UnitOfWorkFactory,
        resolver: Optional[CoverageResolver] = None,
        settings: Optional[AdjudicationSettings] = None,
    ):
        self._unit_of_work = unit_of_work
        self._resolver = resolver or CoverageResolver()
        self._settings = settings or get_settings()
        # Locks live only while some operation holds a reference
        self._employer_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _employer_lock(self, employer_id: str) -> asyncio.Lock:
        lock = self._employer_locks.get(employer_id)
        if lock is None:
            lock = asyncio.Lock()
            self._employer_locks[employer_id] = lock
        return lock

    # =========================================================================
    # Validation helpers
    # =========================================================================

    @staticmethod
    def _changes(data: BaseModel, required: frozenset[str]) -> dict[str, Any]:
        """Fields set on an update payload; clearing a required field is refused."""
        changes = data.model_dump(exclude_unset=True)
        cleared = sorted(key for key, value in changes.items() if value is None and key in required)
        if cleared:
            raise BusinessRuleViolation(
                f"Cannot clear required fields: {', '.join(cleared)}", {"fields": cleared}
            )
        return changes

    @staticmethod
    def validate_dates(start_date: date, end_date: date) -> None:
        if start_date >= end_date:
            raise BusinessRuleViolation(
                "Policy start date must be before end date",
                {"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
            )

    async def _ensure_no_overlap(self, uow: UnitOfWork, policy: BenefitPolicy) -> None:
        candidates = await uow.policies.list_by_employer(policy.employer_id)
        conflicts = self._resolver.overlapping(
            candidates, policy.employer_id, policy.start_date, policy.end_date, exclude_id=policy.id
        )
        if conflicts:
            codes = ", ".join(p.policy_code for p in conflicts)
            raise PolicyOverlapError(
                f"Policy {policy.policy_code} overlaps active policy {codes} "
                f"for employer {policy.employer_id}",
                {"conflicting_policy_ids": [p.id for p in conflicts]},
            )

    @staticmethod
    def _change_status(policy: BenefitPolicy, target: BenefitPolicyStatus) -> None:
        if target not in POLICY_TRANSITIONS.get(policy.status, frozenset()):
            raise StateTransitionError(
                f"Benefit policy {policy.policy_code} cannot move from "
                f"{policy.status.value} to {target.value}",
                policy.status,
                target,
            )
        policy.status = target

    @staticmethod
    def _ensure_modifiable(policy: BenefitPolicy) -> None:
        if policy.status in TERMINAL_POLICY_STATUSES or not policy.active:
            raise BusinessRuleViolation(
                f"Benefit policy {policy.policy_code} is {policy.status.value} and cannot be modified"
            )

    async def _mutate(self, policy_id: str, mutation: PolicyMutation) -> BenefitPolicy:
        """Load, change and save a policy while holding its employer's lock."""
        employer_id = (await self.get_policy(policy_id)).employer_id

        async with self._employer_lock(employer_id):
            async with self._unit_of_work() as uow:
                await uow.policies.lock_employer(employer_id)
                policy = await uow.policies.get(policy_id)
                if policy is None:
                    raise NotFoundError("BenefitPolicy", policy_id)
                await mutation(policy, uow)
                policy.updated_at = utc_now()
                saved = await uow.policies.save(policy)
                await uow.commit()
        return saved

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_policy(self, policy_id: str) -> BenefitPolicy:
        async with self._unit_of_work() as uow:
            policy = await uow.policies.get(policy_id)
        if policy is None:
            raise NotFoundError("BenefitPolicy", policy_id)
        return policy

    async def list_employer_policies(self, employer_id: str) -> list[BenefitPolicy]:
        async with self._unit_of_work() as uow:
            return await uow.policies.list_by_employer(employer_id)

    async def has_overlap(
        self,
        employer_id: str,
        start_date: date,
        end_date: date,
        exclude_id: Optional[str] = None,
    ) -> bool:
        """True if another ACTIVE/SUSPENDED policy of the employer touches the range."""
        policies = await self.list_employer_policies(employer_id)
        return self._resolver.has_overlap(policies, employer_id, start_date, end_date, exclude_id)

    async def find_effective_policy(
        self, employer_id: str, on_date: date
    ) -> Optional[BenefitPolicy]:
        for policy in await self.list_employer_policies(employer_id):
            if self._resolver.is_effective_on(policy, on_date):
                return policy
        return None

    async def find_expiring_soon(
        self, today: Optional[date] = None, days: Optional[int] = None
    ) -> list[BenefitPolicy]:
        """ACTIVE policies ending within the look-ahead window."""
        today = today or date.today()
        horizon = today + timedelta(days=self._settings.POLICY_EXPIRING_SOON_DAYS if days is None else days)
        async with self._unit_of_work() as uow:
            active = await uow.policies.list_by_status(BenefitPolicyStatus.ACTIVE)
        return sorted(
            (p for p in active if today <= p.end_date <= horizon),
            key=lambda p: p.end_date,
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def create_policy(self, data: BenefitPolicyCreate) -> BenefitPolicy:
        """Create a DRAFT policy, or an ACTIVE one when ``data.activate`` is set."""
        self.validate_dates(data.start_date, data.end_date)
        policy = BenefitPolicy(**data.model_dump(exclude={"activate"}))

        async with self._employer_lock(policy.employer_id):
            async with self._unit_of_work() as uow:
                await uow.policies.lock_employer(policy.employer_id)
                if data.activate:
                    await self._ensure_no_overlap(uow, policy)
                    policy.status = BenefitPolicyStatus.ACTIVE
                await uow.policies.add(policy)
                await uow.commit()

        logger.info(f"Created benefit policy {policy.policy_code} ({policy.status.value})")
        return policy

    async def update_policy(self, policy_id: str, data: BenefitPolicyUpdate) -> BenefitPolicy:
        """Change policy terms; date changes of a live policy are re-checked for overlap."""

        changes = self._changes(data, REQUIRED_POLICY_FIELDS)

        async def apply(policy: BenefitPolicy, uow: UnitOfWork) -> None:
            self._ensure_modifiable(policy)
            for key, value in changes.items():
                setattr(policy, key, value)
            self.validate_dates(policy.start_date, policy.end_date)
            if policy.status in BLOCKING_STATUSES:
                await self._ensure_no_overlap(uow, policy)

        policy = await self._mutate(policy_id, apply)
        logger.info(f"Updated benefit policy {policy.policy_code}")
        return policy

    async def activate_policy(self, policy_id: str) -> BenefitPolicy:
        """
        Activate a DRAFT or SUSPENDED policy.

        Raises:
            PolicyOverlapError: another active policy of the employer overlaps
            StateTransitionError: the policy cannot be activated from its status
        """

        async def apply(policy: BenefitPolicy, uow: UnitOfWork) -> None:
            if policy.status == BenefitPolicyStatus.ACTIVE:
                return
            if not policy.active:
                raise BusinessRuleViolation(f"Benefit policy {policy.policy_code} has been deleted")
            self._change_status(policy, BenefitPolicyStatus.ACTIVE)
            await self._ensure_no_overlap(uow, policy)

        policy = await self._mutate(policy_id, apply)
        logger.info(f"Activated benefit policy {policy.policy_code}")
        return policy

    async def suspend_policy(self, policy_id: str) -> BenefitPolicy:
        return await self._set_status(policy_id, BenefitPolicyStatus.SUSPENDED)

    async def expire_policy(self, policy_id: str) -> BenefitPolicy:
        return await self._set_status(policy_id, BenefitPolicyStatus.EXPIRED)

    async def cancel_policy(self, policy_id: str) -> BenefitPolicy:
        return await self._set_status(policy_id, BenefitPolicyStatus.CANCELLED)

    async def delete_policy(self, policy_id: str) -> BenefitPolicy:
        """Soft delete: the policy stays on record, inactive and CANCELLED."""

        async def apply(policy: BenefitPolicy, uow: UnitOfWork) -> None:
            policy.active = False
            policy.status = BenefitPolicyStatus.CANCELLED

        policy = await self._mutate(policy_id, apply)
        logger.info(f"Deleted benefit policy {policy.policy_code}")
        return policy

    async def _set_status(self, policy_id: str, target: BenefitPolicyStatus) -> BenefitPolicy:
        async def apply(policy: BenefitPolicy, uow: UnitOfWork) -> None:
            if policy.status != target:
                self._change_status(policy, target)

        policy = await self._mutate(policy_id, apply)
        logger.info(f"Benefit policy {policy.policy_code} is now {target.value}")
        return policy

    async def expire_old_policies(self, today: Optional[date] = None) -> int:
        """Move ACTIVE policies whose end date has passed to EXPIRED."""
        today = today or date.today()
        expired = 0
        async with self._unit_of_work() as uow:
            for policy in await uow.policies.list_by_status(BenefitPolicyStatus.ACTIVE):
                if policy.end_date < today:
                    policy.status = BenefitPolicyStatus.EXPIRED
                    policy.updated_at = utc_now()
                    await uow.policies.save(policy)
                    expired += 1
            await uow.commit()

        if expired:
            logger.info(f"Expired {expired} benefit policies ended before {today.isoformat()}")
        return expired

    # =========================================================================
    # Coverage rules
    # =========================================================================

    @staticmethod
    def _check_rule_target(policy: BenefitPolicy, data: BenefitPolicyRuleCreate) -> None:
        has_category = data.medical_category_id is not None
        has_service = data.medical_service_id is not None
        if has_category == has_service:
            raise BusinessRuleViolation(
                "A coverage rule must target exactly one of medical category or medical service"
            )

        for rule in policy.rules:
            if has_category and rule.medical_category_id == data.medical_category_id:
                raise BusinessRuleViolation(
                    f"Policy {policy.policy_code} already has a rule for category "
                    f"{data.medical_category_id}"
                )
            if has_service and rule.medical_service_id == data.medical_service_id:
                raise BusinessRuleViolation(
                    f"Policy {policy.policy_code} already has a rule for service "
                    f"{data.medical_service_id}"
                )

    async def add_rule(self, policy_id: str, data: BenefitPolicyRuleCreate) -> BenefitPolicyRule:
        created: list[BenefitPolicyRule] = []

        async def apply(policy: BenefitPolicy, uow: UnitOfWork) -> None:
            self._ensure_modifiable(policy)
            self._check_rule_target(policy, data)
            rule = BenefitPolicyRule(policy_id=policy.id, **data.model_dump())
            policy.rules.append(rule)
            created.append(rule)

        policy = await self._mutate(policy_id, apply)
        logger.info(f"Added coverage rule {created[0].id} to policy {policy.policy_code}")
        return created[0]

    async def update_rule(
        self, policy_id: str, rule_id: str, data: BenefitPolicyRuleUpdate
    ) -> BenefitPolicyRule:
        changes = self._changes(data, REQUIRED_RULE_FIELDS)

        async def apply(policy: BenefitPolicy, uow: UnitOfWork) -> None:
            self._ensure_modifiable(policy)
            rule = self._require_rule(policy, rule_id)
            for key, value in changes.items():
                setattr(rule, key, value)

        policy = await self._mutate(policy_id, apply)
        return self._require_rule(policy, rule_id)

    async def toggle_rule_active(self, policy_id: str, rule_id: str) -> BenefitPolicyRule:
        async def apply(policy: BenefitPolicy, uow: UnitOfWork) -> None:
            self._ensure_modifiable(policy)
            rule = self._require_rule(policy, rule_id)
            rule.active = not rule.active

        policy = await self._mutate(policy_id, apply)
        return self._require_rule(policy, rule_id)

    async def remove_rule(self, policy_id: str, rule_id: str) -> None:
        async def apply(policy: BenefitPolicy, uow: UnitOfWork) -> None:
            self._ensure_modifiable(policy)
            self._require_rule(policy, rule_id)
            policy.rules = [r for r in policy.rules if r.id != rule_id]

        policy = await self._mutate(policy_id, apply)
        logger.info(f"Removed coverage rule {rule_id} from policy {policy.policy_code}")

    @staticmethod
    def _require_rule(policy: BenefitPolicy, rule_id: str) -> BenefitPolicyRule:
        rule = policy.find_rule(rule_id)
        if rule is None:
            raise NotFoundError("BenefitPolicyRule", rule_id)
        return rule
