"""
Unit Tests for the Eligibility Engine

Tests ordering, short-circuiting on hard failures, warnings and the
technical-error path.
"""

from dataclasses import replace
from datetime import date

import pytest

from tpa_core.core.enums import EligibilityStatus, MemberStatus
from tpa_core.schemas.records import ProviderRecord
from tpa_core.services.eligibility.context import EligibilityContext
from tpa_core.services.eligibility.engine import EligibilityEngine, get_eligibility_engine
from tpa_core.services.eligibility.reasons import EligibilityReason
from tpa_core.services.eligibility.rules import Rule, RuleResult, default_rules
from tpa_core.utils.errors import BusinessRuleViolation, TechnicalError

TODAY = date.today()


class _RecordingRule(Rule):
    """Rule with a fixed outcome that records its evaluation."""

    def __init__(self, code, priority, passes=True, hard=True, calls=None):
        self.code = code
        self.priority = priority
        self.hard = hard
        self._passes = passes
        self._calls = calls if calls is not None else []

    def evaluate(self, context):
        self._calls.append(self.code)
        if self._passes:
            return self.passed()
        return self.failed(EligibilityReason.MEMBER_INACTIVE)


class _Exploding(Rule):
    code = "EXPLODING"
    priority = 1

    def evaluate(self, context):
        raise ZeroDivisionError("bad data")


@pytest.fixture
def engine(resolver):
    return EligibilityEngine(default_rules(resolver))


@pytest.fixture
def context(member, policy, employer, consultation):
    return EligibilityContext(
        member_id=member.id,
        benefit_policy_id=policy.id,
        service_date=TODAY,
        service_code=consultation.code,
        member=member,
        benefit_policy=policy,
        employer=employer,
        medical_service=consultation,
    )


@pytest.mark.unit
class TestEngineOrdering:
    """Test rule ordering"""

    def test_sorted_by_priority(self):
        """Test that rules run in ascending priority"""
        calls = []
        engine = EligibilityEngine([_RecordingRule("C", 30, calls=calls), _RecordingRule("A", 10, calls=calls)])

        engine.evaluate(EligibilityContext())

        assert calls == ["A", "C"]

    def test_ties_keep_registration_order(self):
        """Test that equal priorities run in registration order"""
        calls = []
        engine = EligibilityEngine(
            [_RecordingRule("FIRST", 10, calls=calls), _RecordingRule("SECOND", 10, calls=calls), _RecordingRule("ZERO", 0, calls=calls)]
        )

        engine.evaluate(EligibilityContext())

        assert calls == ["ZERO", "FIRST", "SECOND"]

    def test_inapplicable_rules_not_recorded(self, engine):
        """Test that rules without their data are skipped"""
        decision = engine.evaluate(EligibilityContext(service_date=TODAY))

        assert "PROVIDER_NETWORK" not in decision.evaluated_codes


@pytest.mark.unit
class TestEngineDecisions:
    """Test aggregate decisions"""

    def test_eligible(self, engine, context):
        """Test that a fully valid context is eligible"""
        decision = engine.evaluate(context)

        assert decision.eligible
        assert decision.status == EligibilityStatus.ELIGIBLE
        assert decision.primary_reason is None
        assert decision.request_id == context.request_id

    def test_suspended_member_halts(self, engine, context, member):
        """Test that a suspended member stops evaluation at the member status rule"""
        suspended = member.model_copy(update={"status": MemberStatus.SUSPENDED})
        context = replace(context, member=suspended)

        decision = engine.evaluate(context)

        assert not decision.eligible
        assert decision.primary_reason == EligibilityReason.MEMBER_SUSPENDED
        assert decision.evaluated_codes[-1] == "MEMBER_ACTIVE"
        assert "POLICY_EXISTS" not in decision.evaluated_codes

    def test_hard_failure_stops_after_soft_warning(self):
        """Test that warnings before a hard failure are kept"""
        calls = []
        engine = EligibilityEngine(
            [
                _RecordingRule("WARN", 1, passes=False, hard=False, calls=calls),
                _RecordingRule("FAIL", 2, passes=False, calls=calls),
                _RecordingRule("NEVER", 3, calls=calls),
            ]
        )

        decision = engine.evaluate(EligibilityContext())

        assert calls == ["WARN", "FAIL"]
        assert [r.rule_code for r in decision.reasons()] == ["FAIL", "WARN"]
        assert decision.status == EligibilityStatus.NOT_ELIGIBLE

    def test_soft_failures_keep_eligible(self, engine, context):
        """Test that soft failures produce warnings only"""
        provider = ProviderRecord(id="p-x", name="Far Clinic", in_network=False)
        context = replace(context, provider=provider)

        decision = engine.evaluate(context)

        assert decision.eligible
        assert decision.status == EligibilityStatus.ELIGIBLE_WITH_WARNINGS
        assert [w.reason for w in decision.warnings] == [EligibilityReason.PROVIDER_NOT_IN_NETWORK]

    def test_pre_approval_warning(self, engine, context, mri):
        """Test that services needing pre-approval warn"""
        context = replace(context, medical_service=mri, service_code=mri.code)

        decision = engine.evaluate(context)

        assert decision.eligible
        assert EligibilityReason.PRE_APPROVAL_REQUIRED in [w.reason for w in decision.warnings]

    def test_response_shape(self, engine, context):
        """Test conversion to the endpoint response"""
        provider = ProviderRecord(id="p-x", name="Far Clinic", in_network=False)
        context = replace(context, provider=provider)

        response = engine.evaluate(context).to_response()

        assert response.eligible
        assert response.reasons[0].code == "PROVIDER_NOT_IN_NETWORK"
        assert response.reasons[0].hard is False
        assert response.rules_evaluated > 0


@pytest.mark.unit
class TestEngineErrors:
    """Test unexpected failures inside rules"""

    def test_unexpected_error_becomes_technical(self):
        """Test that a crashing rule raises TechnicalError instead of an ineligible result"""
        engine = EligibilityEngine([_Exploding()])

        with pytest.raises(TechnicalError) as exc_info:
            engine.evaluate(EligibilityContext())

        assert exc_info.value.details["rule_code"] == "EXPLODING"
        assert isinstance(exc_info.value.__cause__, ZeroDivisionError)

    def test_domain_errors_propagate(self):
        """Test that domain errors raised by a rule pass through unchanged"""

        class _Strict(Rule):
            code = "STRICT"

            def evaluate(self, context):
                raise BusinessRuleViolation("strict")

        with pytest.raises(BusinessRuleViolation):
            EligibilityEngine([_Strict()]).evaluate(EligibilityContext())

    def test_singleton(self):
        """Test that the default engine is shared"""
        assert get_eligibility_engine() is get_eligibility_engine()
