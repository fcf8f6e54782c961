"""
Reference Records.

Read-only views of data owned by other services (members, providers,
employers, medical services). They arrive through the record lookup
collaborator and are never mutated by the core.
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict

from tpa_core.core.enums import CardStatus, MemberStatus


class MemberRecord(BaseModel):
    """Insured member."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    full_name: str
    employer_id: Optional[str] = None
    benefit_policy_id: Optional[str] = None
    status: Optional[MemberStatus] = None
    card_status: Optional[CardStatus] = None
    start_date: Optional[date] = None
    join_date: Optional[date] = None
    end_date: Optional[date] = None

    @property
    def enrollment_date(self) -> Optional[date]:
        """Coverage start used for waiting periods."""
        return self.start_date or self.join_date


class ProviderRecord(BaseModel):
    """Healthcare provider."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    name: str
    active: bool = True
    in_network: bool = True
    contract_end_date: Optional[date] = None


class EmployerRecord(BaseModel):
    """Employer organization sponsoring the members."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    name: str
    active: bool = True


class MedicalServiceRecord(BaseModel):
    """Billable medical service and the category it belongs to."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    code: str
    name: str
    category_id: Optional[str] = None
