"""
Auto-assignment: create the records a pupil owes for a term, once per session.

Creation is best effort. Each candidate is re-checked against the store just
before it is written, duplicates are skipped and failed writes are logged;
only a run where every write failed is reported as an error.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import List, Optional

from app.core.enums import RequirementFrequency
from app.core.exceptions import DuplicateAssignmentError, StoreError
from app.ledger.catalog import Catalog
from app.ledger.eligibility import resolve
from app.ledger.store import RecordStore
from app.ledger.types import (
    AssignmentResult,
    AssignmentSession,
    FulfillmentRecord,
    PupilContext,
    RequirementItem,
    RequirementSelector,
    Single,
    TermContext,
)

logger = logging.getLogger(__name__)


def new_record(
    pupil: PupilContext,
    term: TermContext,
    selector: RequirementSelector,
    catalog: Catalog,
    now: Optional[datetime] = None,
) -> FulfillmentRecord:
    now = now or datetime.now(timezone.utc)
    return FulfillmentRecord(
        pupil_id=pupil.id,
        selector=selector,
        academic_year_id=term.academic_year_id,
        term_id=term.id,
        total_item_quantity_required=catalog.total_quantity(selector),
        created_at=now,
        updated_at=now,
    )


async def ensure_absent(
    store: RecordStore,
    pupil: PupilContext,
    term: TermContext,
    requirement_ids,
    catalog: Catalog,
) -> None:
    """Re-query the frequency scope of each id and raise DuplicateAssignmentError if it is already claimed."""
    term_records = year_records = ever_records = None
    for requirement_id in requirement_ids:
        item = catalog.get(requirement_id)
        if catalog.is_term_scoped(requirement_id):
            if term_records is None:
                term_records = await store.get(pupil.id, term.academic_year_id, term.id)
            scope = term_records
        else:
            if year_records is None:
                year_records = await store.get_by_year(pupil.id, term.academic_year_id)
            scope = year_records
            if item is not None and item.frequency == RequirementFrequency.ONE_TIME:
                if ever_records is None:
                    ever_records = await store.get_by_pupil(pupil.id)
                scope = list(year_records) + list(ever_records)
        if any(record.references(requirement_id) for record in scope):
            raise DuplicateAssignmentError(
                f"Requirement {requirement_id} is already assigned to pupil {pupil.id}", requirement_id
            )


async def fill_missing(
    pupil: PupilContext,
    term: TermContext,
    catalog: Catalog,
    store: RecordStore,
    now: Optional[datetime] = None,
) -> AssignmentResult:
    """Resolve eligibility and create a record for each item not yet assigned. Used by refresh."""
    term_records = await store.get(pupil.id, term.academic_year_id, term.id)
    year_records = await store.get_by_year(pupil.id, term.academic_year_id)
    ever_records = await store.get_by_pupil(pupil.id)
    candidates: List[RequirementItem] = resolve(pupil, term, catalog, term_records, year_records, ever_records)

    result = AssignmentResult()
    for item in candidates:
        try:
            await ensure_absent(store, pupil, term, (item.id,), catalog)
            record = new_record(pupil, term, Single(item.id), catalog, now)
            record_id = await store.create(record)
        except DuplicateAssignmentError as exc:
            logger.info("Skipping %s for pupil %s: %s", item.id, pupil.id, exc.message)
            result.skipped.append(item.id)
            continue
        except StoreError as exc:
            logger.error("Failed to assign %s to pupil %s: %s", item.id, pupil.id, exc.message)
            result.failed.append((item.id, exc.message))
            continue
        result.created.append(replace(record, id=record_id))

    if result.attempted and not result.created:
        raise StoreError(f"Could not assign any requirement to pupil {pupil.id} for term {term.id}")
    logger.info(
        "Assigned %d requirement(s) to pupil %s for term %s (%d skipped, %d failed)",
        len(result.created),
        pupil.id,
        term.id,
        len(result.skipped),
        len(result.failed),
    )
    return result


async def auto_assign(
    session: AssignmentSession,
    pupil: PupilContext,
    term: TermContext,
    catalog: Catalog,
    store: RecordStore,
    now: Optional[datetime] = None,
) -> AssignmentResult:
    """First-load assignment. A term that already has records is taken as assigned by an earlier session."""
    if session.is_processed(pupil, term):
        return AssignmentResult()

    term_records = await store.get(pupil.id, term.academic_year_id, term.id)
    if term_records:
        session.mark_processed(pupil, term)
        return AssignmentResult()

    result = await fill_missing(pupil, term, catalog, store, now)
    session.mark_processed(pupil, term)
    return result
