"""Eligibility rule pipeline."""

from tpa_core.services.eligibility.context import EligibilityContext
from tpa_core.services.eligibility.engine import (
    EligibilityDecision,
    EligibilityEngine,
    get_eligibility_engine,
)
from tpa_core.services.eligibility.reasons import EligibilityReason
from tpa_core.services.eligibility.rules import Rule, RuleResult, default_rules
from tpa_core.services.eligibility.service import EligibilityService

__all__ = [
    "EligibilityContext",
    "EligibilityDecision",
    "EligibilityEngine",
    "EligibilityReason",
    "EligibilityService",
    "Rule",
    "RuleResult",
    "default_rules",
    "get_eligibility_engine",
]
