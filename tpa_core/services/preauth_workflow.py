"""
Pre-Authorization Workflow Service.

Same read -> validate -> write -> audit sequence as the claim workflow.
Expiry is driven by the system actor, either for one pre-authorization or
as a sweep over all approvals past their expiry date.

Source: Pre-authorization lifecycle design
Verified: 2025-12-18
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from tpa_core.core.config import AdjudicationSettings, get_settings
from tpa_core.core.enums import PreAuthStatus
from tpa_core.schemas.common import Actor, utc_now
from tpa_core.schemas.preauth import PreAuthorization, PreAuthTransitionRequest
from tpa_core.services.adapters.base import UnitOfWork, UnitOfWorkFactory
from tpa_core.services.audit_trail import AuditTrailRecorder
from tpa_core.services.lifecycle import save_transition
from tpa_core.services.preauth_state_machine import (
    PreAuthStateMachine,
    get_preauth_state_machine,
)
from tpa_core.utils.errors import BusinessRuleViolation, NotFoundError, StateTransitionError
from tpa_core.utils.logging import get_logger

logger = get_logger(__name__)


class PreAuthWorkflowService:
    """Pre-authorization creation, review and expiry."""

    def __init__(
        self,
        unit_of_work: UnitOfWorkFactory,
        audit: AuditTrailRecorder,
        state_machine: Optional[PreAuthStateMachine] = None,
        settings: Optional[AdjudicationSettings] = None,
    ):
        self._unit_of_work = unit_of_work
        self._audit = audit
        self._machine = state_machine or get_preauth_state_machine()
        self._settings = settings or get_settings()

    @staticmethod
    async def _load(uow: UnitOfWork, preauth_id: str) -> PreAuthorization:
        preauth = await uow.preauths.get(preauth_id)
        if preauth is None:
            raise NotFoundError("PreAuthorization", preauth_id)
        return preauth

    async def get_preauth(self, preauth_id: str) -> PreAuthorization:
        async with self._unit_of_work() as uow:
            return await self._load(uow, preauth_id)

    async def available_transitions(self, preauth_id: str, actor: Actor) -> list[PreAuthStatus]:
        return self._machine.available_transitions(await self.get_preauth(preauth_id), actor)

    async def create_preauth(self, preauth: PreAuthorization, actor: Actor) -> PreAuthorization:
        """Store a new REQUESTED pre-authorization and its creation audit row."""
        if preauth.requested_amount <= 0:
            raise BusinessRuleViolation("Requested amount must be greater than zero")

        now = utc_now()
        preauth = preauth.model_copy(
            update={
                "status": PreAuthStatus.REQUESTED,
                "version": 1,
                "created_by": actor.username,
                "updated_by": actor.username,
                "created_at": now,
                "updated_at": now,
            }
        )
        async with self._unit_of_work() as uow:
            await uow.preauths.add(preauth)
            await self._audit.record_preauth_creation(preauth, actor)
            await uow.commit()

        logger.info(f"Created pre-authorization {preauth.id} for member {preauth.member_id}")
        return preauth

    async def transition(
        self,
        preauth_id: str,
        request: PreAuthTransitionRequest,
        actor: Actor,
    ) -> PreAuthorization:
        """
        Move a pre-authorization to ``request.target_status``.

        Raises:
            NotFoundError: unknown pre-authorization
            StateTransitionError: invalid transition or lost concurrent race
            TechnicalError: persistence or audit failure
        """
        target = request.target_status

        async with self._unit_of_work() as uow:
            preauth = await self._load(uow, preauth_id)
            if target == preauth.status:
                return preauth

            working = preauth.model_copy(deep=True)
            self._machine.transition(
                working,
                target,
                actor,
                reason=request.reason,
                approved_amount=request.amount,
                approval_expiry_date=request.approval_expiry_date,
                comment=request.comment,
            )

            saved = await save_transition(
                uow.preauths, working, preauth.version, target, "Pre-authorization"
            )
            await self._audit.record_preauth_transition(
                preauth, saved, actor, request.reason or request.comment
            )
            await uow.commit()

        return saved

    async def start_review(self, preauth_id: str, actor: Actor) -> PreAuthorization:
        return await self.transition(
            preauth_id, PreAuthTransitionRequest(target_status=PreAuthStatus.UNDER_REVIEW), actor
        )

    async def approve(
        self,
        preauth_id: str,
        actor: Actor,
        amount: Decimal,
        approval_expiry_date: Optional[date] = None,
        comment: Optional[str] = None,
    ) -> PreAuthorization:
        """Approve; the expiry defaults to the configured validity window from today."""
        if approval_expiry_date is None:
            approval_expiry_date = date.today() + timedelta(
                days=self._settings.PREAUTH_DEFAULT_VALIDITY_DAYS
            )
        return await self.transition(
            preauth_id,
            PreAuthTransitionRequest(
                target_status=PreAuthStatus.APPROVED,
                amount=amount,
                approval_expiry_date=approval_expiry_date,
                comment=comment,
            ),
            actor,
        )

    async def reject(self, preauth_id: str, actor: Actor, reason: Optional[str]) -> PreAuthorization:
        return await self.transition(
            preauth_id,
            PreAuthTransitionRequest(target_status=PreAuthStatus.REJECTED, reason=reason),
            actor,
        )

    async def request_more_info(self, preauth_id: str, actor: Actor, comment: str) -> PreAuthorization:
        return await self.transition(
            preauth_id,
            PreAuthTransitionRequest(
                target_status=PreAuthStatus.MORE_INFO_REQUIRED, comment=comment
            ),
            actor,
        )

    async def resubmit(
        self, preauth_id: str, actor: Actor, comment: Optional[str] = None
    ) -> PreAuthorization:
        return await self.transition(
            preauth_id,
            PreAuthTransitionRequest(target_status=PreAuthStatus.REQUESTED, comment=comment),
            actor,
        )

    # =========================================================================
    # Expiry
    # =========================================================================

    async def expire(self, preauth_id: str) -> PreAuthorization:
        """Expire one approved pre-authorization as the system actor."""
        return await self.transition(
            preauth_id,
            PreAuthTransitionRequest(
                target_status=PreAuthStatus.EXPIRED, comment="Approval validity elapsed"
            ),
            Actor.system(),
        )

    async def expire_overdue(self, today: Optional[date] = None) -> int:
        """
        Expire every approval whose expiry date is before ``today``.

        Returns:
            Number of pre-authorizations expired
        """
        today = today or date.today()
        async with self._unit_of_work() as uow:
            overdue = await uow.preauths.list_overdue_approvals(today)

        expired = 0
        for preauth in overdue:
            try:
                await self.expire(preauth.id)
            except StateTransitionError as e:
                logger.warning(f"Skipped expiry of pre-authorization {preauth.id}: {e.message}")
                continue
            expired += 1

        if expired:
            logger.info(f"Expired {expired} pre-authorization(s) overdue on {today}")
        return expired
