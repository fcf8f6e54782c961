"""
Scheduled Maintenance Sweep.

Expires benefit policies past their end date and approved
pre-authorizations past their validity. Meant to be run once a day by an
external scheduler.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional

from tpa_core.services.benefit_policy_service import BenefitPolicyService
from tpa_core.services.preauth_workflow import PreAuthWorkflowService
from tpa_core.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class SweepReport:
    """Counts from one maintenance run."""

    run_date: date
    policies_expired: int = 0
    preauths_expired: int = 0

    @property
    def total(self) -> int:
        return self.policies_expired + self.preauths_expired


class MaintenanceService:
    """Runs the daily expiry sweeps."""

    def __init__(
        self,
        policy_service: BenefitPolicyService,
        preauth_workflow: PreAuthWorkflowService,
    ):
        self._policy_service = policy_service
        self._preauth_workflow = preauth_workflow

    async def run(self, today: Optional[date] = None) -> SweepReport:
        today = today or date.today()
        report = SweepReport(run_date=today)

        report.policies_expired = await self._policy_service.expire_old_policies(today)
        report.preauths_expired = await self._preauth_workflow.expire_overdue(today)

        logger.info(
            f"Maintenance sweep {today}: {report.policies_expired} policies, "
            f"{report.preauths_expired} pre-authorizations expired"
        )
        return report
