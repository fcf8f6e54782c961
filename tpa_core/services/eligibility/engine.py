"""
Eligibility Engine.

Runs the applicable rules in priority order (registration order breaks
ties). A hard failure stops evaluation; soft failures are recorded and
evaluation continues. Ineligibility is a normal return value; only
unexpected rule errors escape, as TechnicalError.

Source: Eligibility design, engine
Verified: 2025-12-18
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from tpa_core.core.enums import EligibilityStatus
from tpa_core.schemas.eligibility import EligibilityCheckResponse, EligibilityReasonItem
from tpa_core.services.eligibility.context import EligibilityContext
from tpa_core.services.eligibility.reasons import EligibilityReason
from tpa_core.services.eligibility.rules import Rule, RuleResult, default_rules
from tpa_core.utils.errors import AdjudicationError, TechnicalError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EligibilityDecision:
    """Aggregate result of an eligibility check."""

    request_id: str
    eligible: bool
    results: tuple[RuleResult, ...]
    checked_at: datetime
    primary_failure: Optional[RuleResult] = None
    processing_time_ms: int = 0

    @property
    def status(self) -> EligibilityStatus:
        if not self.eligible:
            return EligibilityStatus.NOT_ELIGIBLE
        if self.warnings:
            return EligibilityStatus.ELIGIBLE_WITH_WARNINGS
        return EligibilityStatus.ELIGIBLE

    @property
    def primary_reason(self) -> Optional[EligibilityReason]:
        """First hard failure's reason, if any."""
        return self.primary_failure.reason if self.primary_failure else None

    @property
    def warnings(self) -> list[RuleResult]:
        return [r for r in self.results if r.is_soft_failure]

    @property
    def failures(self) -> list[RuleResult]:
        return [r for r in self.results if r.is_hard_failure]

    @property
    def rules_evaluated(self) -> int:
        return len(self.results)

    @property
    def evaluated_codes(self) -> list[str]:
        return [r.rule_code for r in self.results]

    def reasons(self) -> list[RuleResult]:
        """Hard failure first, then warnings in evaluation order."""
        return self.failures + self.warnings

    def to_response(self) -> EligibilityCheckResponse:
        return EligibilityCheckResponse(
            request_id=self.request_id,
            eligible=self.eligible,
            status=self.status,
            reasons=[
                EligibilityReasonItem(
                    code=r.reason.value,
                    message=r.message or r.reason.message,
                    rule_code=r.rule_code,
                    hard=r.hard,
                )
                for r in self.reasons()
            ],
            rules_evaluated=self.rules_evaluated,
            processing_time_ms=self.processing_time_ms,
            checked_at=self.checked_at,
        )


class EligibilityEngine:
    """Evaluates a fixed, ordered set of rules."""

    def __init__(self, rules: Optional[Sequence[Rule]] = None):
        """
        Initialize the engine.

        Args:
            rules: Rules in registration order; defaults to the standard set
        """
        registered = list(rules) if rules is not None else default_rules()
        # sorted() is stable: equal priorities keep registration order
        self._rules: tuple[Rule, ...] = tuple(sorted(registered, key=lambda r: r.priority))

    @property
    def rules(self) -> tuple[Rule, ...]:
        """Rules in evaluation order."""
        return self._rules

    def evaluate(self, context: EligibilityContext) -> EligibilityDecision:
        """
        Evaluate eligibility for a context.

        Args:
            context: Fully resolved eligibility context

        Returns:
            EligibilityDecision

        Raises:
            TechnicalError: a rule failed unexpectedly
        """
        started = time.perf_counter()
        results: list[RuleResult] = []
        primary_failure: Optional[RuleResult] = None

        for rule in self._rules:
            try:
                if not rule.is_applicable(context):
                    continue
                result = rule.evaluate(context)
            except AdjudicationError:
                raise
            except Exception as e:
                logger.exception(
                    f"Eligibility rule {rule.code} raised for request {context.request_id}"
                )
                raise TechnicalError(
                    f"Eligibility rule {rule.code} could not be evaluated",
                    {"rule_code": rule.code, "request_id": context.request_id},
                ) from e

            results.append(result)
            if result.is_hard_failure:
                primary_failure = result
                break

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        decision = EligibilityDecision(
            request_id=context.request_id,
            eligible=primary_failure is None,
            results=tuple(results),
            checked_at=context.check_timestamp,
            primary_failure=primary_failure,
            processing_time_ms=elapsed_ms,
        )

        if primary_failure is not None:
            logger.info(
                f"Eligibility {context.request_id}: NOT_ELIGIBLE "
                f"({primary_failure.reason.value} from {primary_failure.rule_code})"
            )
        else:
            logger.info(
                f"Eligibility {context.request_id}: {decision.status.value} "
                f"after {decision.rules_evaluated} rules"
            )
        return decision


# =============================================================================
# Singleton Instance
# =============================================================================


_engine: Optional[EligibilityEngine] = None


def get_eligibility_engine() -> EligibilityEngine:
    """Get singleton engine with the default rule set."""
    global _engine
    if _engine is None:
        _engine = EligibilityEngine()
    return _engine
