"""
Eligibility Service.

Resolves every record an eligibility check needs, builds the immutable
context and hands it to the engine. An id the caller supplied that does not
resolve is a NotFoundError; a failing lookup is a TechnicalError. Neither is
ever reported as ineligibility.
"""

from typing import Any, Awaitable, Optional

from tpa_core.schemas.common import Actor
from tpa_core.schemas.eligibility import EligibilityCheckRequest, EligibilityCheckResponse
from tpa_core.services.adapters.base import RecordLookup, UnitOfWorkFactory
from tpa_core.services.eligibility.context import EligibilityContext
from tpa_core.services.eligibility.engine import (
    EligibilityDecision,
    EligibilityEngine,
    get_eligibility_engine,
)
from tpa_core.utils.errors import AdjudicationError, NotFoundError, TechnicalError
from tpa_core.utils.logging import get_logger

logger = get_logger(__name__)


class EligibilityService:
    """Entry point for eligibility checks."""

    def __init__(
        self,
        lookup: RecordLookup,
        unit_of_work: UnitOfWorkFactory,
        engine: Optional[EligibilityEngine] = None,
    ):
        self._lookup = lookup
        self._unit_of_work = unit_of_work
        self._engine = engine or get_eligibility_engine()

    async def _fetch(self, what: str, call: Awaitable[Any]) -> Any:
        try:
            return await call
        except AdjudicationError:
            raise
        except Exception as e:
            logger.opt(exception=e).error(f"Lookup of {what} failed")
            raise TechnicalError(f"Lookup of {what} failed") from e

    async def build_context(
        self, request: EligibilityCheckRequest, actor: Actor
    ) -> EligibilityContext:
        """
        Resolve the records referenced by a request.

        Raises:
            NotFoundError: a supplied id does not resolve
            TechnicalError: a lookup failed
        """
        member = await self._fetch("member", self._lookup.get_member(request.member_id))
        if member is None:
            raise NotFoundError("Member", request.member_id)

        policy_id = request.requested_policy_id or member.benefit_policy_id
        policy = None
        if policy_id is not None:
            async with self._unit_of_work() as uow:
                policy = await self._fetch("benefit policy", uow.policies.get(policy_id))
            if policy is None and request.requested_policy_id is not None:
                raise NotFoundError("BenefitPolicy", policy_id)

        provider = None
        if request.provider_id is not None:
            provider = await self._fetch("provider", self._lookup.get_provider(request.provider_id))
            if provider is None:
                raise NotFoundError("Provider", request.provider_id)

        service = None
        if request.service_code is not None:
            service = await self._fetch(
                "medical service", self._lookup.get_medical_service_by_code(request.service_code)
            )
            if service is None:
                raise NotFoundError("MedicalService", request.service_code)

        employer = None
        if member.employer_id is not None:
            employer = await self._fetch("employer", self._lookup.get_employer(member.employer_id))

        return EligibilityContext(
            member_id=member.id,
            benefit_policy_id=policy.id if policy else policy_id,
            provider_id=request.provider_id,
            service_date=request.service_date,
            service_code=request.service_code,
            member=member,
            benefit_policy=policy,
            provider=provider,
            employer=employer,
            medical_service=service,
            checked_by_user_id=actor.user_id,
            checked_by_username=actor.username,
            company_scope_id=actor.company_scope_id,
            super_admin=actor.super_admin,
        )

    async def check(self, request: EligibilityCheckRequest, actor: Actor) -> EligibilityDecision:
        context = await self.build_context(request, actor)
        decision = self._engine.evaluate(context)
        logger.info(
            f"Eligibility check {decision.request_id} for member {request.member_id} "
            f"by {actor.username}: {decision.status.value}"
        )
        return decision

    async def check_response(
        self, request: EligibilityCheckRequest, actor: Actor
    ) -> EligibilityCheckResponse:
        """Eligibility decision in the endpoint response shape."""
        return (await self.check(request, actor)).to_response()
