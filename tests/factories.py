"""Builders and doubles shared by the test modules."""

import uuid
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional

from app.auth.security import create_access_token
from app.core.enums import RequirementFrequency
from app.core.exceptions import StoreError
from app.ledger.types import FulfillmentRecord, PupilContext, RequirementItem, Single, TermContext

T0 = datetime(2025, 2, 3, 9, 0, tzinfo=timezone.utc)

YEAR = "year-2025"
TERM1 = TermContext(id="term-1", academic_year_id=YEAR, ordinal=1, start_date=date(2025, 1, 6))
TERM2 = TermContext(id="term-2", academic_year_id=YEAR, ordinal=2, start_date=date(2025, 5, 5))
NEXT_YEAR_TERM1 = TermContext(id="term-2026-1", academic_year_id="year-2026", ordinal=1, start_date=date(2026, 1, 5))


def item(id: str, price="100", quantity: int = 0, frequency=RequirementFrequency.TERMLY, **kwargs) -> RequirementItem:
    return RequirementItem(id=id, name=kwargs.pop("name", id), price=Decimal(price), quantity=quantity, frequency=frequency, **kwargs)


def pupil(**kwargs) -> PupilContext:
    defaults = dict(id="pupil-1", gender="Female", class_id="P4", section="Boarding", registration_date=date(2024, 1, 10))
    defaults.update(kwargs)
    return PupilContext(**defaults)


def record(requirement_id: str = "U1", term: TermContext = TERM1, selector=None, **kwargs) -> FulfillmentRecord:
    return FulfillmentRecord(
        pupil_id=kwargs.pop("pupil_id", "pupil-1"),
        selector=selector or Single(requirement_id),
        academic_year_id=term.academic_year_id,
        term_id=term.id,
        **kwargs,
    )


class InMemoryRecordStore:
    """RecordStore double. Ids listed in fail_for make create() raise StoreError."""

    def __init__(self, records: Optional[List[FulfillmentRecord]] = None, fail_for=()) -> None:
        self.records: Dict[str, FulfillmentRecord] = {}
        self.fail_for = set(fail_for)
        self.create_calls = 0
        self._seq = 0
        for r in records or []:
            self._put(r)

    def _put(self, r: FulfillmentRecord) -> str:
        self._seq += 1
        record_id = r.id or f"rec-{self._seq}"
        created = r.created_at or (T0 + timedelta(seconds=self._seq))
        self.records[record_id] = replace(r, id=record_id, created_at=created)
        return record_id

    async def get(self, pupil_id, academic_year_id, term_id):
        return [
            r for r in self.records.values()
            if r.pupil_id == pupil_id and r.academic_year_id == academic_year_id and r.term_id == term_id
        ]

    async def get_by_year(self, pupil_id, academic_year_id):
        return [r for r in self.records.values() if r.pupil_id == pupil_id and r.academic_year_id == academic_year_id]

    async def get_by_pupil(self, pupil_id):
        return [r for r in self.records.values() if r.pupil_id == pupil_id]

    async def get_by_id(self, record_id):
        return self.records.get(record_id)

    async def create(self, r: FulfillmentRecord) -> str:
        self.create_calls += 1
        if set(r.requirement_ids) & self.fail_for:
            raise StoreError("connection reset")
        return self._put(r)

    async def update(self, record_id, r, expected_version=None):
        self.records[record_id] = replace(r, version=r.version + 1)
        return self.records[record_id]

    async def delete(self, record_id) -> None:
        self.records.pop(record_id, None)

    async def find_duplicates(self, pupil_id, academic_year_id):
        raise NotImplementedError


def make_token(role: str = "ADMIN", permissions: Optional[Dict] = None, name: str = "Mrs. Achieng") -> str:
    user_id = str(uuid.uuid4())
    return create_access_token(
        subject={
            "sub": user_id,
            "user_id": user_id,
            "name": name,
            "role": role,
            "permissions": permissions or {},
        }
    )
