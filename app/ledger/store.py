"""Boundaries the ledger consumes. SQLAlchemy implementations live in the API layer."""

from __future__ import annotations

from typing import List, Optional, Protocol

from app.ledger.catalog import EligibilityFilter
from app.ledger.types import FulfillmentRecord, PupilContext, RequirementItem, TermContext


class RecordStore(Protocol):
    async def get(self, pupil_id: str, academic_year_id: str, term_id: str) -> List[FulfillmentRecord]: ...

    async def get_by_year(self, pupil_id: str, academic_year_id: str) -> List[FulfillmentRecord]: ...

    async def get_by_pupil(self, pupil_id: str) -> List[FulfillmentRecord]: ...

    async def get_by_id(self, record_id: str) -> Optional[FulfillmentRecord]: ...

    async def create(self, record: FulfillmentRecord) -> str: ...

    async def update(
        self, record_id: str, record: FulfillmentRecord, expected_version: Optional[int] = None
    ) -> FulfillmentRecord: ...

    async def delete(self, record_id: str) -> None: ...

    async def find_duplicates(self, pupil_id: str, academic_year_id: str) -> List[FulfillmentRecord]: ...


class CatalogProvider(Protocol):
    async def list_all(self) -> List[RequirementItem]: ...

    async def list_by_eligibility(self, flt: EligibilityFilter) -> List[RequirementItem]: ...


class ContextProvider(Protocol):
    async def get_pupil(self, pupil_id: str) -> PupilContext: ...

    async def get_term(self, term_id: str) -> TermContext: ...
