"""
Unit Tests for the In-Memory Adapters and Adapter Wiring
"""

from decimal import Decimal

import pytest

from tpa_core.core.config import AdjudicationSettings
from tpa_core.core.enums import ClaimStatus, IntegrationMode
from tpa_core.schemas.claim import Claim
from tpa_core.services.adapters import build_adapters
from tpa_core.services.adapters.memory import InMemoryStore
from tpa_core.utils.errors import ConcurrentModificationError, NotFoundError, TechnicalError


def _claim(claim_id="c-1") -> Claim:
    return Claim(id=claim_id, member_id="m-1", requested_amount=Decimal("10"))


@pytest.fixture
def memory_store():
    return InMemoryStore()


@pytest.mark.unit
class TestInMemoryUnitOfWork:
    """Test staging, commit and rollback"""

    @pytest.mark.asyncio
    async def test_uncommitted_changes_discarded(self, memory_store):
        """Test that leaving the block without commit discards writes"""
        async with memory_store.unit_of_work() as uow:
            await uow.claims.add(_claim())

        assert memory_store.claims == {}
        assert memory_store.reserved == {}

    @pytest.mark.asyncio
    async def test_commit_applies(self, memory_store):
        """Test that committed writes are visible to later units of work"""
        async with memory_store.unit_of_work() as uow:
            await uow.claims.add(_claim())
            await uow.commit()

        async with memory_store.unit_of_work() as uow:
            assert (await uow.claims.get("c-1")).member_id == "m-1"

    @pytest.mark.asyncio
    async def test_reads_are_copies(self, memory_store):
        """Test that mutating a loaded entity does not touch the store"""
        memory_store.claims["c-1"] = _claim()

        async with memory_store.unit_of_work() as uow:
            claim = await uow.claims.get("c-1")
            claim.status = ClaimStatus.SUBMITTED

        assert memory_store.claims["c-1"].status == ClaimStatus.DRAFT

    @pytest.mark.asyncio
    async def test_version_checked_save(self, memory_store):
        """Test compare-and-swap saves"""
        memory_store.claims["c-1"] = _claim()

        async with memory_store.unit_of_work() as uow:
            claim = await uow.claims.get("c-1")
            saved = await uow.claims.save(claim, expected_version=1)
            await uow.commit()

        assert saved.version == 2
        async with memory_store.unit_of_work() as uow:
            with pytest.raises(ConcurrentModificationError):
                await uow.claims.save(claim, expected_version=1)

    @pytest.mark.asyncio
    async def test_reserved_entity_refused(self, memory_store):
        """Test that an entity staged by one unit of work cannot be saved by another"""
        memory_store.claims["c-1"] = _claim()

        async with memory_store.unit_of_work() as first, memory_store.unit_of_work() as second:
            claim = await first.claims.get("c-1")
            await first.claims.save(claim, expected_version=1)

            with pytest.raises(ConcurrentModificationError):
                await second.claims.save(claim, expected_version=1)

    @pytest.mark.asyncio
    async def test_missing_and_duplicate(self, memory_store):
        """Test saving unknown entities and adding existing ones"""
        memory_store.claims["c-1"] = _claim()

        async with memory_store.unit_of_work() as uow:
            with pytest.raises(NotFoundError):
                await uow.claims.save(_claim("c-2"), expected_version=1)
            with pytest.raises(TechnicalError):
                await uow.claims.add(_claim())


@pytest.mark.unit
class TestBuildAdapters:
    """Test adapter wiring per integration mode"""

    def test_demo_mode(self):
        """Test that demo mode wires in-memory adapters over one store"""
        adapters = build_adapters(AdjudicationSettings(INTEGRATION_MODE=IntegrationMode.DEMO))

        assert adapters.mode == IntegrationMode.DEMO
        assert adapters.store is not None
        assert adapters.unit_of_work().store is adapters.store
