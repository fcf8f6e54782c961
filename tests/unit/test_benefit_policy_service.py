"""
Unit Tests for the Benefit Policy Service

Tests the policy lifecycle, overlap protection, coverage rule management
and the expiry sweep.
"""

import asyncio
import gc
from datetime import date, timedelta
from decimal import Decimal

import pytest

from tpa_core.core.enums import BenefitPolicyStatus
from tpa_core.schemas.benefit_policy import (
    BenefitPolicyCreate,
    BenefitPolicyRuleCreate,
    BenefitPolicyRuleUpdate,
    BenefitPolicyUpdate,
)
from tpa_core.utils.errors import (
    BusinessRuleViolation,
    NotFoundError,
    PolicyOverlapError,
    StateTransitionError,
)

EMPLOYER = "emp-new"


def _create(code: str, start: date, end: date, activate: bool = False, employer: str = EMPLOYER):
    return BenefitPolicyCreate(
        name=f"Policy {code}",
        policy_code=code,
        employer_id=employer,
        start_date=start,
        end_date=end,
        annual_limit=Decimal("10000"),
        activate=activate,
    )


@pytest.mark.unit
class TestPolicyLifecycle:
    """Test create, activate, suspend, cancel and delete"""

    @pytest.mark.asyncio
    async def test_create_draft(self, policy_service):
        """Test that new policies start as DRAFT"""
        policy = await policy_service.create_policy(_create("A", date(2026, 1, 1), date(2026, 12, 31)))

        assert policy.status == BenefitPolicyStatus.DRAFT
        assert (await policy_service.get_policy(policy.id)).policy_code == "A"

    @pytest.mark.asyncio
    async def test_create_rejects_inverted_dates(self, policy_service):
        """Test that start must precede end"""
        with pytest.raises(BusinessRuleViolation):
            await policy_service.create_policy(_create("A", date(2026, 12, 31), date(2026, 1, 1)))

    @pytest.mark.asyncio
    async def test_create_active(self, policy_service):
        """Test creating an already active policy"""
        policy = await policy_service.create_policy(
            _create("A", date(2026, 1, 1), date(2026, 12, 31), activate=True)
        )

        assert policy.status == BenefitPolicyStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_suspend_and_reactivate(self, policy_service):
        """Test ACTIVE -> SUSPENDED -> ACTIVE"""
        policy = await policy_service.create_policy(
            _create("A", date(2026, 1, 1), date(2026, 12, 31), activate=True)
        )

        suspended = await policy_service.suspend_policy(policy.id)
        reactivated = await policy_service.activate_policy(policy.id)

        assert suspended.status == BenefitPolicyStatus.SUSPENDED
        assert reactivated.status == BenefitPolicyStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_draft_cannot_be_suspended(self, policy_service):
        """Test that invalid policy transitions are refused"""
        policy = await policy_service.create_policy(_create("A", date(2026, 1, 1), date(2026, 12, 31)))

        with pytest.raises(StateTransitionError):
            await policy_service.suspend_policy(policy.id)

    @pytest.mark.asyncio
    async def test_cancelled_is_terminal(self, policy_service):
        """Test that a cancelled policy cannot be reactivated"""
        policy = await policy_service.create_policy(_create("A", date(2026, 1, 1), date(2026, 12, 31)))
        await policy_service.cancel_policy(policy.id)

        with pytest.raises(StateTransitionError):
            await policy_service.activate_policy(policy.id)

    @pytest.mark.asyncio
    async def test_soft_delete(self, policy_service):
        """Test that deletion keeps the record but deactivates it"""
        policy = await policy_service.create_policy(_create("A", date(2026, 1, 1), date(2026, 12, 31)))

        deleted = await policy_service.delete_policy(policy.id)

        assert not deleted.active
        assert deleted.status == BenefitPolicyStatus.CANCELLED
        with pytest.raises(BusinessRuleViolation):
            await policy_service.update_policy(policy.id, BenefitPolicyUpdate(name="Renamed"))

    @pytest.mark.asyncio
    async def test_unknown_policy(self, policy_service):
        """Test that unknown ids raise NotFoundError"""
        with pytest.raises(NotFoundError):
            await policy_service.activate_policy("missing")

    @pytest.mark.asyncio
    async def test_update_terms(self, policy_service):
        """Test a partial update"""
        policy = await policy_service.create_policy(_create("A", date(2026, 1, 1), date(2026, 12, 31)))

        updated = await policy_service.update_policy(
            policy.id, BenefitPolicyUpdate(default_coverage_percent=70, notes="renewed")
        )

        assert updated.default_coverage_percent == 70
        assert updated.name == "Policy A"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [{"start_date": None}, {"name": None}, {"end_date": None, "notes": "x"}])
    async def test_update_cannot_clear_required_fields(self, policy_service, payload):
        """Test that explicit nulls on required terms are refused and nothing changes"""
        policy = await policy_service.create_policy(_create("A", date(2026, 1, 1), date(2026, 12, 31)))

        with pytest.raises(BusinessRuleViolation, match="Cannot clear"):
            await policy_service.update_policy(policy.id, BenefitPolicyUpdate.model_validate(payload))

        stored = await policy_service.get_policy(policy.id)
        assert stored.start_date == date(2026, 1, 1)
        assert stored.end_date == date(2026, 12, 31)
        assert stored.name == "Policy A"

    @pytest.mark.asyncio
    async def test_update_clears_optional_fields(self, policy_service):
        """Test that optional terms can be cleared with an explicit null"""
        policy = await policy_service.create_policy(_create("A", date(2026, 1, 1), date(2026, 12, 31)))
        await policy_service.update_policy(policy.id, BenefitPolicyUpdate(notes="renewed"))

        updated = await policy_service.update_policy(
            policy.id, BenefitPolicyUpdate.model_validate({"notes": None, "per_member_limit": None})
        )

        assert updated.notes is None
        assert updated.per_member_limit is None


@pytest.mark.unit
class TestOverlapProtection:
    """Test one live policy per employer per date range"""

    @pytest.mark.asyncio
    async def test_overlapping_activation_rejected(self, policy_service):
        """Test that a second overlapping policy cannot be activated"""
        await policy_service.create_policy(_create("A", date(2026, 1, 1), date(2026, 12, 31), activate=True))
        draft = await policy_service.create_policy(_create("B", date(2026, 12, 31), date(2027, 12, 31)))

        with pytest.raises(PolicyOverlapError):
            await policy_service.activate_policy(draft.id)

        assert (await policy_service.get_policy(draft.id)).status == BenefitPolicyStatus.DRAFT

    @pytest.mark.asyncio
    async def test_has_overlap_after_activation(self, policy_service):
        """Test that has_overlap reports the active range and excludes the policy itself"""
        active = await policy_service.create_policy(
            _create("A", date(2026, 1, 1), date(2026, 12, 31), activate=True)
        )

        assert await policy_service.has_overlap(EMPLOYER, date(2026, 6, 1), date(2027, 6, 1))
        assert not await policy_service.has_overlap(
            EMPLOYER, date(2026, 6, 1), date(2027, 6, 1), exclude_id=active.id
        )
        assert not await policy_service.has_overlap(EMPLOYER, date(2027, 1, 1), date(2027, 12, 31))

    @pytest.mark.asyncio
    async def test_adjacent_policy_activates(self, policy_service):
        """Test that back-to-back policies may both be active"""
        await policy_service.create_policy(_create("A", date(2026, 1, 1), date(2026, 12, 31), activate=True))
        draft = await policy_service.create_policy(_create("B", date(2027, 1, 1), date(2027, 12, 31)))

        assert (await policy_service.activate_policy(draft.id)).status == BenefitPolicyStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_date_change_rechecked(self, policy_service):
        """Test that extending an active policy into another is refused"""
        await policy_service.create_policy(_create("A", date(2026, 1, 1), date(2026, 12, 31), activate=True))
        second = await policy_service.create_policy(
            _create("B", date(2027, 1, 1), date(2027, 12, 31), activate=True)
        )

        with pytest.raises(PolicyOverlapError):
            await policy_service.update_policy(second.id, BenefitPolicyUpdate(start_date=date(2026, 12, 1)))

    @pytest.mark.asyncio
    async def test_concurrent_activation_single_winner(self, policy_service):
        """Test that two overlapping drafts activated concurrently yield one active policy"""
        first = await policy_service.create_policy(_create("A", date(2026, 1, 1), date(2026, 12, 31)))
        second = await policy_service.create_policy(_create("B", date(2026, 6, 1), date(2027, 5, 31)))

        results = await asyncio.gather(
            policy_service.activate_policy(first.id),
            policy_service.activate_policy(second.id),
            return_exceptions=True,
        )

        assert sum(isinstance(r, PolicyOverlapError) for r in results) == 1
        active = [
            p for p in await policy_service.list_employer_policies(EMPLOYER)
            if p.status == BenefitPolicyStatus.ACTIVE
        ]
        assert len(active) == 1

    @pytest.mark.asyncio
    async def test_employer_locks_released(self, policy_service):
        """Test that per-employer locks do not accumulate once operations finish"""
        for index in range(3):
            await policy_service.create_policy(
                _create(f"L{index}", date(2026, 1, 1), date(2026, 12, 31), employer=f"emp-lock-{index}")
            )
        gc.collect()

        assert len(policy_service._employer_locks) == 0


@pytest.mark.unit
class TestCoverageRules:
    """Test coverage rule management"""

    @pytest.mark.asyncio
    async def test_add_and_update_rule(self, policy_service):
        """Test adding a rule and changing its limits"""
        policy = await policy_service.create_policy(_create("A", date(2026, 1, 1), date(2026, 12, 31)))

        rule = await policy_service.add_rule(
            policy.id, BenefitPolicyRuleCreate(medical_category_id="LAB", coverage_percent=70)
        )
        updated = await policy_service.update_rule(
            policy.id, rule.id, BenefitPolicyRuleUpdate(amount_limit=Decimal("300"))
        )

        assert updated.coverage_percent == 70
        assert updated.amount_limit == Decimal("300")
        assert updated.policy_id == policy.id

    @pytest.mark.asyncio
    async def test_update_rule_cannot_clear_waiting_period(self, policy_service):
        """Test that a rule's waiting period cannot be set to null"""
        policy = await policy_service.create_policy(_create("A", date(2026, 1, 1), date(2026, 12, 31)))
        rule = await policy_service.add_rule(
            policy.id, BenefitPolicyRuleCreate(medical_category_id="LAB", waiting_period_days=30)
        )

        with pytest.raises(BusinessRuleViolation):
            await policy_service.update_rule(
                policy.id, rule.id, BenefitPolicyRuleUpdate.model_validate({"waiting_period_days": None})
            )

        stored = (await policy_service.get_policy(policy.id)).find_rule(rule.id)
        assert stored.waiting_period_days == 30

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            BenefitPolicyRuleCreate(),
            BenefitPolicyRuleCreate(medical_category_id="LAB", medical_service_id="svc-cbc"),
        ],
    )
    async def test_rule_needs_exactly_one_target(self, policy_service, payload):
        """Test that a rule targets a category or a service, not both or neither"""
        policy = await policy_service.create_policy(_create("A", date(2026, 1, 1), date(2026, 12, 31)))

        with pytest.raises(BusinessRuleViolation):
            await policy_service.add_rule(policy.id, payload)

    @pytest.mark.asyncio
    async def test_duplicate_target_rejected(self, policy_service):
        """Test that a policy has at most one rule per target"""
        policy = await policy_service.create_policy(_create("A", date(2026, 1, 1), date(2026, 12, 31)))
        await policy_service.add_rule(policy.id, BenefitPolicyRuleCreate(medical_service_id="svc-cbc"))

        with pytest.raises(BusinessRuleViolation):
            await policy_service.add_rule(policy.id, BenefitPolicyRuleCreate(medical_service_id="svc-cbc"))

    @pytest.mark.asyncio
    async def test_toggle_and_remove(self, policy_service):
        """Test disabling and removing a rule"""
        policy = await policy_service.create_policy(_create("A", date(2026, 1, 1), date(2026, 12, 31)))
        rule = await policy_service.add_rule(policy.id, BenefitPolicyRuleCreate(medical_category_id="LAB"))

        toggled = await policy_service.toggle_rule_active(policy.id, rule.id)
        await policy_service.remove_rule(policy.id, rule.id)

        assert not toggled.active
        assert (await policy_service.get_policy(policy.id)).rules == []
        with pytest.raises(NotFoundError):
            await policy_service.toggle_rule_active(policy.id, rule.id)


@pytest.mark.unit
class TestPolicyQueries:
    """Test effective-policy lookup and expiry handling"""

    @pytest.mark.asyncio
    async def test_find_effective_policy(self, policy_service):
        """Test lookup of the policy in force on a date"""
        active = await policy_service.create_policy(
            _create("A", date(2026, 1, 1), date(2026, 12, 31), activate=True)
        )

        assert (await policy_service.find_effective_policy(EMPLOYER, date(2026, 3, 1))).id == active.id
        assert await policy_service.find_effective_policy(EMPLOYER, date(2027, 3, 1)) is None

    @pytest.mark.asyncio
    async def test_expire_old_policies(self, policy_service):
        """Test that ended active policies are expired and others untouched"""
        today = date(2026, 6, 1)
        ended = await policy_service.create_policy(
            _create("OLD", date(2025, 1, 1), date(2025, 12, 31), activate=True)
        )
        current = await policy_service.create_policy(
            _create("CUR", date(2026, 1, 1), date(2026, 12, 31), activate=True)
        )

        expired = await policy_service.expire_old_policies(today)

        assert expired >= 1
        assert (await policy_service.get_policy(ended.id)).status == BenefitPolicyStatus.EXPIRED
        assert (await policy_service.get_policy(current.id)).status == BenefitPolicyStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_find_expiring_soon(self, policy_service):
        """Test the expiring-soon report window"""
        today = date(2026, 12, 10)
        await policy_service.create_policy(_create("A", date(2026, 1, 1), date(2026, 12, 31), activate=True))

        soon = await policy_service.find_expiring_soon(today, days=30)
        later = await policy_service.find_expiring_soon(today, days=5)

        assert [p.policy_code for p in soon if p.employer_id == EMPLOYER] == ["A"]
        assert [p for p in later if p.employer_id == EMPLOYER] == []
