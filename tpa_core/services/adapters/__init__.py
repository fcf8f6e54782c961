"""
Repository Adapters.

``build_adapters()`` wires the unit-of-work factory and audit repository for
the configured integration mode.
"""

from dataclasses import dataclass
from functools import partial
from typing import Optional

from tpa_core.core.config import AdjudicationSettings, get_settings
from tpa_core.core.enums import IntegrationMode
from tpa_core.services.adapters.base import (
    AuditLogRepository,
    BenefitPolicyRepository,
    ClaimRepository,
    PreAuthRepository,
    RecordLookup,
    UnitOfWork,
    UnitOfWorkFactory,
)
from tpa_core.services.adapters.memory import (
    InMemoryAuditLogRepository,
    InMemoryRecordLookup,
    InMemoryStore,
    InMemoryUnitOfWork,
)


@dataclass
class Adapters:
    """Persistence collaborators for one integration mode."""

    mode: IntegrationMode
    unit_of_work: UnitOfWorkFactory
    audit_log: AuditLogRepository
    store: Optional[InMemoryStore] = None


def build_adapters(settings: Optional[AdjudicationSettings] = None) -> Adapters:
    """Create adapters for the configured mode."""
    settings = settings or get_settings()

    if settings.INTEGRATION_MODE == IntegrationMode.LIVE:
        from tpa_core.db.connection import get_session_maker
        from tpa_core.services.adapters.sql import SqlAuditLogRepository, SqlUnitOfWork

        session_maker = get_session_maker()
        return Adapters(
            mode=IntegrationMode.LIVE,
            unit_of_work=partial(SqlUnitOfWork, session_maker),
            audit_log=SqlAuditLogRepository(session_maker),
        )

    store = InMemoryStore()
    return Adapters(
        mode=IntegrationMode.DEMO,
        unit_of_work=store.unit_of_work,
        audit_log=InMemoryAuditLogRepository(store),
        store=store,
    )


__all__ = [
    "Adapters",
    "AuditLogRepository",
    "BenefitPolicyRepository",
    "ClaimRepository",
    "InMemoryAuditLogRepository",
    "InMemoryRecordLookup",
    "InMemoryStore",
    "InMemoryUnitOfWork",
    "PreAuthRepository",
    "RecordLookup",
    "UnitOfWork",
    "UnitOfWorkFactory",
    "build_adapters",
]
