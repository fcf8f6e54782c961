"""
Pytest Configuration and Fixtures.
Shared test fixtures for all test modules.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from tpa_core.core.config import AdjudicationSettings, reset_settings
from tpa_core.core.enums import BenefitPolicyStatus, CardStatus, Environment, MemberStatus
from tpa_core.core.permissions import Role
from tpa_core.schemas.benefit_policy import BenefitPolicy, BenefitPolicyRule
from tpa_core.schemas.claim import Claim
from tpa_core.schemas.common import Actor
from tpa_core.schemas.preauth import PreAuthorization
from tpa_core.schemas.records import (
    EmployerRecord,
    MedicalServiceRecord,
    MemberRecord,
    ProviderRecord,
)
from tpa_core.services.adapters.memory import (
    InMemoryAuditLogRepository,
    InMemoryRecordLookup,
    InMemoryStore,
)
from tpa_core.services.audit_trail import AuditTrailRecorder
from tpa_core.services.benefit_policy_service import BenefitPolicyService
from tpa_core.services.claim_workflow import ClaimWorkflowService
from tpa_core.services.coverage_resolver import CoverageResolver
from tpa_core.services.preauth_workflow import PreAuthWorkflowService

TODAY = date.today()
EMPLOYER_ID = "emp-acme"
POLICY_ID = "pol-gold"


@pytest.fixture(autouse=True)
def fresh_settings():
    """Drop cached settings around every test."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings():
    return AdjudicationSettings(ENVIRONMENT=Environment.TESTING)


# =============================================================================
# Actors
# =============================================================================


def make_actor(username: str, *roles: Role, **kwargs) -> Actor:
    return Actor(
        user_id=f"u-{username}",
        username=username,
        roles=frozenset(r.value for r in roles),
        **kwargs,
    )


@pytest.fixture
def reviewer():
    return make_actor("rita", Role.REVIEWER)


@pytest.fixture
def insurance_admin():
    return make_actor("ian", Role.INSURANCE_ADMIN)


@pytest.fixture
def employer_admin():
    return make_actor("erin", Role.EMPLOYER_ADMIN, company_scope_id=EMPLOYER_ID)


@pytest.fixture
def provider_user():
    return make_actor("pete", Role.PROVIDER)


@pytest.fixture
def super_admin():
    return make_actor("root", Role.SUPER_ADMIN, super_admin=True)


# =============================================================================
# Reference data
# =============================================================================


@pytest.fixture
def employer():
    return EmployerRecord(id=EMPLOYER_ID, name="Acme Trading")


@pytest.fixture
def member():
    return MemberRecord(
        id="mem-1",
        full_name="Jane Roe",
        employer_id=EMPLOYER_ID,
        benefit_policy_id=POLICY_ID,
        status=MemberStatus.ACTIVE,
        card_status=CardStatus.ACTIVE,
        start_date=TODAY - timedelta(days=365),
    )


@pytest.fixture
def provider():
    return ProviderRecord(id="prov-1", name="City Clinic")


@pytest.fixture
def consultation():
    return MedicalServiceRecord(id="svc-cons", code="CONS", name="Consultation", category_id="OUTPATIENT")


@pytest.fixture
def blood_test():
    return MedicalServiceRecord(id="svc-cbc", code="CBC", name="Blood count", category_id="LAB")


@pytest.fixture
def mri():
    return MedicalServiceRecord(id="svc-mri", code="MRI", name="MRI scan", category_id="IMAGING")


@pytest.fixture
def dental():
    return MedicalServiceRecord(id="svc-den", code="DEN", name="Dental cleaning", category_id="DENTAL")


@pytest.fixture
def policy():
    """Active policy: outpatient 70%, consultation 90%, lab at policy default, MRI needs pre-approval."""
    return BenefitPolicy(
        id=POLICY_ID,
        name="Gold",
        policy_code="GOLD",
        employer_id=EMPLOYER_ID,
        start_date=TODAY - timedelta(days=180),
        end_date=TODAY + timedelta(days=185),
        annual_limit=Decimal("50000"),
        default_coverage_percent=80,
        status=BenefitPolicyStatus.ACTIVE,
        rules=[
            BenefitPolicyRule(policy_id=POLICY_ID, medical_category_id="OUTPATIENT", coverage_percent=70),
            BenefitPolicyRule(policy_id=POLICY_ID, medical_service_id="svc-cons", coverage_percent=90),
            BenefitPolicyRule(policy_id=POLICY_ID, medical_category_id="LAB"),
            BenefitPolicyRule(
                policy_id=POLICY_ID,
                medical_category_id="IMAGING",
                coverage_percent=60,
                amount_limit=Decimal("500"),
                requires_pre_approval=True,
            ),
        ],
    )


# =============================================================================
# Adapters and services
# =============================================================================


@pytest.fixture
def store(policy):
    store = InMemoryStore()
    store.policies[policy.id] = policy
    return store


@pytest.fixture
def lookup(member, provider, employer, consultation, blood_test, mri, dental):
    lookup = InMemoryRecordLookup()
    lookup.seed(
        members=[member],
        providers=[provider],
        employers=[employer],
        services=[consultation, blood_test, mri, dental],
    )
    return lookup


@pytest.fixture
def audit_repository(store):
    return InMemoryAuditLogRepository(store)


@pytest.fixture
def recorder(audit_repository):
    return AuditTrailRecorder(audit_repository)


@pytest.fixture
def resolver():
    return CoverageResolver(default_coverage_percent=80)


@pytest.fixture
def policy_service(store, resolver, settings):
    return BenefitPolicyService(store.unit_of_work, resolver, settings)


@pytest.fixture
def claim_workflow(store, recorder, lookup, resolver):
    return ClaimWorkflowService(store.unit_of_work, recorder, lookup, resolver=resolver)


@pytest.fixture
def preauth_workflow(store, recorder, settings):
    return PreAuthWorkflowService(store.unit_of_work, recorder, settings=settings)


@pytest.fixture
def new_claim(member):
    return Claim(
        member_id=member.id,
        benefit_policy_id=POLICY_ID,
        employer_id=EMPLOYER_ID,
        provider_id="prov-1",
        provider_name="City Clinic",
        medical_service_id="svc-cons",
        diagnosis="J06.9",
        service_date=TODAY - timedelta(days=3),
        requested_amount=Decimal("200.00"),
    )


@pytest.fixture
def new_preauth(member):
    return PreAuthorization(
        member_id=member.id,
        benefit_policy_id=POLICY_ID,
        provider_id="prov-1",
        medical_service_id="svc-mri",
        expected_service_date=TODAY + timedelta(days=10),
        requested_amount=Decimal("1200.00"),
    )


# Configure pytest markers
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
