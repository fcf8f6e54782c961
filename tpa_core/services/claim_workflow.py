"""
Claim Workflow Service.

Each operation runs read -> validate -> write -> audit inside one unit of
work. The claim is saved with a version check, so of two concurrent
transitions from the same state only one can win. Nothing is persisted or
audited when validation fails, and a failed audit write rolls the
transition back.

Source: Claims lifecycle design
Verified: 2025-12-18
"""

from decimal import Decimal
from typing import Optional

from tpa_core.core.enums import AuditChangeType, ClaimStatus
from tpa_core.schemas.claim import Claim, ClaimTransitionRequest
from tpa_core.schemas.common import Actor, utc_now
from tpa_core.services.adapters.base import RecordLookup, UnitOfWork, UnitOfWorkFactory
from tpa_core.services.audit_trail import AuditTrailRecorder
from tpa_core.services.claim_state_machine import ClaimStateMachine, get_claim_state_machine
from tpa_core.services.coverage_resolver import CoverageResolver
from tpa_core.services.lifecycle import is_blank, save_transition
from tpa_core.utils.errors import BusinessRuleViolation, NotFoundError
from tpa_core.utils.logging import get_logger

logger = get_logger(__name__)


class ClaimWorkflowService:
    """Claim creation and lifecycle actions."""

    def __init__(
        self,
        unit_of_work: UnitOfWorkFactory,
        audit: AuditTrailRecorder,
        lookup: Optional[RecordLookup] = None,
        state_machine: Optional[ClaimStateMachine] = None,
        resolver: Optional[CoverageResolver] = None,
    ):
        self._unit_of_work = unit_of_work
        self._audit = audit
        self._lookup = lookup
        self._machine = state_machine or get_claim_state_machine()
        self._resolver = resolver or CoverageResolver()

    @staticmethod
    async def _load(uow: UnitOfWork, claim_id: str) -> Claim:
        claim = await uow.claims.get(claim_id)
        if claim is None:
            raise NotFoundError("Claim", claim_id)
        return claim

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_claim(self, claim_id: str) -> Claim:
        async with self._unit_of_work() as uow:
            return await self._load(uow, claim_id)

    async def available_transitions(self, claim_id: str, actor: Actor) -> list[ClaimStatus]:
        return self._machine.available_transitions(await self.get_claim(claim_id), actor)

    # =========================================================================
    # Creation / editing
    # =========================================================================

    async def create_claim(self, claim: Claim, actor: Actor) -> Claim:
        """Store a new DRAFT claim and its creation audit row."""
        if claim.requested_amount <= 0:
            raise BusinessRuleViolation("Requested amount must be greater than zero")

        now = utc_now()
        claim = claim.model_copy(
            update={
                "status": ClaimStatus.DRAFT,
                "version": 1,
                "created_by": actor.username,
                "updated_by": actor.username,
                "created_at": now,
                "updated_at": now,
            }
        )
        async with self._unit_of_work() as uow:
            await uow.claims.add(claim)
            await self._audit.record_creation(claim, actor)
            await uow.commit()

        logger.info(f"Created claim {claim.id} for member {claim.member_id}")
        return claim

    async def update_requested_amount(
        self,
        claim_id: str,
        amount: Decimal,
        actor: Actor,
        comment: Optional[str] = None,
    ) -> Claim:
        """Change the requested amount while the claim is still editable."""
        if amount <= 0:
            raise BusinessRuleViolation("Requested amount must be greater than zero")

        async with self._unit_of_work() as uow:
            claim = await self._load(uow, claim_id)
            if not claim.allows_edit:
                raise BusinessRuleViolation(
                    f"Claim {claim_id} cannot be edited in status {claim.status.value}"
                )
            if amount == claim.requested_amount:
                return claim

            working = claim.model_copy(
                update={"requested_amount": amount, "updated_by": actor.username, "updated_at": utc_now()}
            )
            saved = await save_transition(uow.claims, working, claim.version, claim.status, "Claim")
            await self._audit.record_change(
                AuditChangeType.AMOUNT_CHANGE, claim, saved, actor, comment
            )
            await uow.commit()
        return saved

    # =========================================================================
    # Transitions
    # =========================================================================

    async def transition(
        self,
        claim_id: str,
        request: ClaimTransitionRequest,
        actor: Actor,
    ) -> Claim:
        """
        Move a claim to ``request.target_status``.

        Returns:
            The updated claim, or the unchanged claim for a no-op

        Raises:
            NotFoundError: unknown claim
            StateTransitionError: invalid transition or lost concurrent race
            TechnicalError: persistence or audit failure
        """
        target = request.target_status
        comment = request.comment
        if target == ClaimStatus.REJECTED and not is_blank(request.reason):
            comment = request.reason

        async with self._unit_of_work() as uow:
            claim = await self._load(uow, claim_id)
            if target == claim.status:
                return claim

            amount = request.amount
            if target == ClaimStatus.APPROVED and request.use_system_calculation:
                amount = await self._system_amount(uow, claim)

            working = claim.model_copy(deep=True)
            self._machine.transition(
                working,
                target,
                actor,
                comment=comment,
                approved_amount=amount,
                payment_reference=request.payment_reference,
            )

            saved = await save_transition(uow.claims, working, claim.version, target, "Claim")
            await self._record_transition(claim, saved, actor, comment)
            await uow.commit()

        return saved

    async def _record_transition(
        self, before: Claim, after: Claim, actor: Actor, comment: Optional[str]
    ) -> None:
        if after.status == ClaimStatus.APPROVED:
            await self._audit.record_approval(before, after, actor, comment)
        elif after.status == ClaimStatus.REJECTED:
            await self._audit.record_rejection(before, after, actor, comment)
        elif after.status == ClaimStatus.SETTLED:
            await self._audit.record_settlement(before, after, actor, comment)
        else:
            await self._audit.record_status_change(before, after, actor, comment)

    async def _system_amount(self, uow: UnitOfWork, claim: Claim) -> Decimal:
        """Approval amount derived from the claim's policy coverage."""
        if claim.benefit_policy_id is None or claim.medical_service_id is None:
            raise BusinessRuleViolation(
                f"Claim {claim.id} needs a benefit policy and a medical service for automatic calculation"
            )
        if self._lookup is None:
            raise BusinessRuleViolation("Automatic calculation is not configured")

        policy = await uow.policies.get(claim.benefit_policy_id)
        if policy is None:
            raise NotFoundError("BenefitPolicy", claim.benefit_policy_id)
        service = await self._lookup.get_medical_service(claim.medical_service_id)
        if service is None:
            raise NotFoundError("MedicalService", claim.medical_service_id)

        amount = self._resolver.calculate_approved_amount(policy, service, claim.requested_amount)
        logger.info(f"System-calculated approval for claim {claim.id}: {amount}")
        return amount

    async def submit(self, claim_id: str, actor: Actor) -> Claim:
        return await self.transition(
            claim_id, ClaimTransitionRequest(target_status=ClaimStatus.SUBMITTED), actor
        )

    async def start_review(self, claim_id: str, actor: Actor) -> Claim:
        return await self.transition(
            claim_id, ClaimTransitionRequest(target_status=ClaimStatus.UNDER_REVIEW), actor
        )

    async def return_for_info(self, claim_id: str, actor: Actor, comment: str) -> Claim:
        return await self.transition(
            claim_id,
            ClaimTransitionRequest(target_status=ClaimStatus.RETURNED_FOR_INFO, comment=comment),
            actor,
        )

    async def resubmit(self, claim_id: str, actor: Actor, comment: Optional[str] = None) -> Claim:
        """Send a RETURNED_FOR_INFO claim back to review."""
        return await self.transition(
            claim_id,
            ClaimTransitionRequest(target_status=ClaimStatus.SUBMITTED, comment=comment),
            actor,
        )

    async def approve(
        self,
        claim_id: str,
        actor: Actor,
        amount: Optional[Decimal] = None,
        use_system_calculation: bool = False,
        comment: Optional[str] = None,
    ) -> Claim:
        return await self.transition(
            claim_id,
            ClaimTransitionRequest(
                target_status=ClaimStatus.APPROVED,
                amount=amount,
                use_system_calculation=use_system_calculation,
                comment=comment,
            ),
            actor,
        )

    async def reject(self, claim_id: str, actor: Actor, reason: Optional[str]) -> Claim:
        """Reject under review; a blank reason is refused by the state machine."""
        return await self.transition(
            claim_id,
            ClaimTransitionRequest(target_status=ClaimStatus.REJECTED, reason=reason),
            actor,
        )

    async def settle(
        self,
        claim_id: str,
        actor: Actor,
        payment_reference: str,
        comment: Optional[str] = None,
    ) -> Claim:
        return await self.transition(
            claim_id,
            ClaimTransitionRequest(
                target_status=ClaimStatus.SETTLED,
                payment_reference=payment_reference,
                comment=comment,
            ),
            actor,
        )
