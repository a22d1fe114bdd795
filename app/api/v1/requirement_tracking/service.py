"""Requirement tracking service: wires the ledger to the SQL store for one request."""

import logging
from dataclasses import asdict
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.enums import CoverageMode, PaymentStatus, ReleaseStatus, SelectionMode
from app.core.exceptions import ServiceError
from app.ledger import assignment, coverage, history
from app.ledger.catalog import Catalog, EligibilityFilter
from app.ledger.eligibility import resolve
from app.ledger.types import (
    AssignmentResult,
    AssignmentSession,
    Bundle,
    CashContribution,
    FulfillmentRecord,
    HistoryEntry,
    ItemContribution,
    Single,
)

from .schemas import (
    AssignmentResponse,
    CoverageRequest,
    EligibleRequirementResponse,
    HistoryEntryResponse,
    PaymentLineResponse,
    ProgressItem,
    PupilProgressResponse,
    ReceiptLineResponse,
    ReceiptRequest,
    RecordCreate,
    RecordHistoryResponse,
    RecordResponse,
    RecordSummaryResponse,
    ReleaseRequest,
)
from .store import SqlCatalogProvider, SqlContextProvider, SqlRecordStore

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _entry_to_response(entry: HistoryEntry) -> HistoryEntryResponse:
    return HistoryEntryResponse(
        date=entry.date,
        kind=entry.kind,
        paid_amount=entry.paid_amount,
        coverage_mode=entry.coverage_mode,
        item_quantity_provided=entry.item_quantity_provided,
        item_quantity_received=entry.item_quantity_received,
        receipt_source=entry.receipt_source,
        receipt_type=entry.receipt_type,
        payment_status=entry.payment_status,
        release_status=entry.release_status,
        received_by=entry.received_by,
        released_by=entry.released_by,
        released_items=list(entry.released_items),
        academic_year_id=entry.academic_year_id,
        term_id=entry.term_id,
    )


def _record_to_response(record: FulfillmentRecord, catalog: Catalog) -> RecordResponse:
    summary = history.summarize(record, catalog)
    return RecordResponse(
        id=record.id,
        pupil_id=record.pupil_id,
        academic_year_id=record.academic_year_id,
        term_id=record.term_id,
        selection_mode=record.selector.mode,
        requirement_ids=list(record.requirement_ids),
        requirement_names=[item.name for item in catalog.items_for(record.selector)],
        paid_amount=record.paid_amount,
        payment_status=record.payment_status,
        payment_date=record.payment_date,
        release_status=record.release_status,
        release_date=record.release_date,
        released_by=record.released_by,
        received_by=record.received_by,
        coverage_mode=record.coverage_mode,
        item_quantity_provided=record.item_quantity_provided,
        total_item_quantity_required=record.total_item_quantity_required,
        item_quantity_received=record.item_quantity_received,
        item_quantity_received_from_office=record.item_quantity_received_from_office,
        item_quantity_received_from_parent=record.item_quantity_received_from_parent,
        last_class_receipt_date=record.last_class_receipt_date,
        last_class_received_by=record.last_class_received_by,
        released_items=list(record.released_items),
        history=[_entry_to_response(e) for e in record.history],
        version=record.version,
        summary=RecordSummaryResponse(**asdict(summary)),
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _result_to_response(result: AssignmentResult, catalog: Catalog) -> AssignmentResponse:
    return AssignmentResponse(
        created=[_record_to_response(r, catalog) for r in result.created],
        skipped=result.skipped,
        failed=[requirement_id for requirement_id, _ in result.failed],
    )


async def _full_catalog(db: AsyncSession) -> Catalog:
    """Every catalog item, superseded ones included, so older records keep their prices."""
    return Catalog(await SqlCatalogProvider(db).list_all())


async def _load_record(store: SqlRecordStore, record_id: UUID) -> FulfillmentRecord:
    record = await store.get_by_id(str(record_id))
    if record is None:
        raise ServiceError("Requirement record not found", status.HTTP_404_NOT_FOUND)
    return record


async def _assignment_context(db: AsyncSession, pupil_id: UUID, term_id: UUID):
    context = SqlContextProvider(db)
    pupil = await context.get_pupil(str(pupil_id))
    term = await context.get_term(str(term_id))
    eligible = await SqlCatalogProvider(db).list_by_eligibility(EligibilityFilter.for_pupil(pupil))
    return pupil, term, Catalog(eligible)


async def auto_assign(db: AsyncSession, pupil_id: UUID, term_id: UUID) -> AssignmentResponse:
    """First load of a pupil's term: assign owed requirements unless the term already has records."""
    pupil, term, eligible = await _assignment_context(db, pupil_id, term_id)
    # The processed set lives for this request only; across requests a term that
    # already has records is what stops a second assignment.
    result = await assignment.auto_assign(AssignmentSession(), pupil, term, eligible, SqlRecordStore(db), _now())
    return _result_to_response(result, await _full_catalog(db))


async def refresh(db: AsyncSession, pupil_id: UUID, term_id: UUID) -> AssignmentResponse:
    """Rerun eligibility and create whatever is still missing."""
    pupil, term, eligible = await _assignment_context(db, pupil_id, term_id)
    result = await assignment.fill_missing(pupil, term, eligible, SqlRecordStore(db), _now())
    return _result_to_response(result, await _full_catalog(db))


async def list_eligible(db: AsyncSession, pupil_id: UUID, term_id: UUID) -> List[EligibleRequirementResponse]:
    pupil, term, eligible = await _assignment_context(db, pupil_id, term_id)
    store = SqlRecordStore(db)
    items = resolve(
        pupil,
        term,
        eligible,
        await store.get(pupil.id, term.academic_year_id, term.id),
        await store.get_by_year(pupil.id, term.academic_year_id),
        await store.get_by_pupil(pupil.id),
    )
    return [
        EligibleRequirementResponse(
            id=item.id,
            name=item.name,
            group=item.group,
            price=item.price,
            quantity=item.quantity,
            frequency=item.frequency.value,
        )
        for item in items
    ]


async def create_record(db: AsyncSession, payload: RecordCreate) -> RecordResponse:
    """Manual assignment. Rejected with 409 when any requirement is already assigned in its scope."""
    context = SqlContextProvider(db)
    pupil = await context.get_pupil(str(payload.pupil_id))
    term = await context.get_term(str(payload.term_id))
    catalog = await _full_catalog(db)

    ids = [str(i) for i in payload.requirement_ids]
    for requirement_id in ids:
        item = catalog.get(requirement_id)
        if item is None or not item.is_active:
            raise ServiceError(f"Requirement {requirement_id} not found or inactive", status.HTTP_400_BAD_REQUEST)
    selector = Single(ids[0]) if payload.selection_mode == SelectionMode.ITEM else Bundle(tuple(ids))

    store = SqlRecordStore(db)
    await assignment.ensure_absent(store, pupil, term, ids, catalog)
    record = assignment.new_record(pupil, term, selector, catalog, _now())
    record_id = await store.create(record)
    logger.info("Created %s record %s for pupil %s", selector.mode.value, record_id, pupil.id)
    return _record_to_response(await _load_record(store, record_id), catalog)


async def list_pupil_records(
    db: AsyncSession,
    pupil_id: UUID,
    academic_year_id: Optional[UUID] = None,
    term_id: Optional[UUID] = None,
) -> List[RecordResponse]:
    store = SqlRecordStore(db)
    if term_id is not None and academic_year_id is not None:
        records = await store.get(str(pupil_id), str(academic_year_id), str(term_id))
    elif academic_year_id is not None:
        records = await store.get_by_year(str(pupil_id), str(academic_year_id))
    else:
        records = await store.get_by_pupil(str(pupil_id))
        if term_id is not None:
            records = [r for r in records if r.term_id == str(term_id)]
    catalog = await _full_catalog(db)
    return [_record_to_response(r, catalog) for r in records]


async def get_record(db: AsyncSession, record_id: UUID) -> RecordResponse:
    record = await _load_record(SqlRecordStore(db), record_id)
    return _record_to_response(record, await _full_catalog(db))


async def get_record_history(db: AsyncSession, record_id: UUID) -> RecordHistoryResponse:
    record = await _load_record(SqlRecordStore(db), record_id)
    catalog = await _full_catalog(db)
    return RecordHistoryResponse(
        record_id=record.id,
        payments=[
            PaymentLineResponse(
                entry=_entry_to_response(line.entry),
                running_total=line.running_total,
                remaining_balance=line.remaining_balance,
                is_full_payment=line.is_full_payment,
            )
            for line in history.payment_history(record, catalog)
        ],
        receipts=[
            ReceiptLineResponse(
                entry=_entry_to_response(line.entry),
                running_received=line.running_received,
                remaining_items=line.remaining_items,
                is_full_receipt=line.is_full_receipt,
            )
            for line in history.receipt_history(record, catalog)
        ],
    )


async def apply_coverage(
    db: AsyncSession,
    record_id: UUID,
    payload: CoverageRequest,
    actor: str,
) -> RecordResponse:
    store = SqlRecordStore(db)
    record = await _load_record(store, record_id)
    catalog = await _full_catalog(db)
    if payload.coverage_mode == CoverageMode.cash:
        contribution = CashContribution(payload.amount)
    else:
        contribution = ItemContribution(payload.quantity)

    updated = coverage.apply_coverage(
        record,
        contribution,
        catalog,
        actor,
        _now(),
        tolerance=settings.ledger_amount_tolerance,
        allow_overpayment=settings.ledger_allow_overpayment,
    )
    saved = await store.update(record.id, updated, expected_version=payload.expected_version)
    logger.info(
        "Record %s covered by %s: paid %s, status %s -> %s",
        record.id,
        actor,
        saved.paid_amount,
        record.payment_status.value,
        saved.payment_status.value,
    )
    return _record_to_response(saved, catalog)


async def apply_release(
    db: AsyncSession,
    record_id: UUID,
    payload: ReleaseRequest,
    actor: str,
) -> RecordResponse:
    store = SqlRecordStore(db)
    record = await _load_record(store, record_id)
    updated = coverage.apply_release(
        record,
        [str(i) for i in payload.released_item_ids],
        payload.is_full_release,
        actor,
        _now(),
    )
    saved = await store.update(record.id, updated, expected_version=payload.expected_version)
    if saved.release_status == ReleaseStatus.released:
        logger.info("Record %s fully released by %s", record.id, actor)
    return _record_to_response(saved, await _full_catalog(db))


async def apply_receipt(
    db: AsyncSession,
    record_id: UUID,
    payload: ReceiptRequest,
    actor: str,
) -> RecordResponse:
    store = SqlRecordStore(db)
    record = await _load_record(store, record_id)
    catalog = await _full_catalog(db)
    updated = coverage.apply_class_receipt(
        record,
        payload.quantity,
        payload.source,
        catalog,
        actor,
        _now(),
        tolerance=settings.ledger_amount_tolerance,
        allow_overpayment=settings.ledger_allow_overpayment,
    )
    saved = await store.update(record.id, updated, expected_version=payload.expected_version)
    return _record_to_response(saved, catalog)


async def find_duplicates(db: AsyncSession, pupil_id: UUID, academic_year_id: UUID) -> List[RecordResponse]:
    duplicates = await SqlRecordStore(db).find_duplicates(str(pupil_id), str(academic_year_id))
    catalog = await _full_catalog(db)
    return [_record_to_response(r, catalog) for r in duplicates]


async def cleanup_duplicates(db: AsyncSession, pupil_id: UUID, academic_year_id: UUID) -> List[str]:
    """Delete duplicate records, keeping the oldest record of each requirement scope."""
    store = SqlRecordStore(db)
    duplicates = await store.find_duplicates(str(pupil_id), str(academic_year_id))
    deleted = []
    for record in duplicates:
        await store.delete(record.id)
        deleted.append(record.id)
    if deleted:
        logger.warning("Deleted %d duplicate record(s) for pupil %s: %s", len(deleted), pupil_id, ", ".join(deleted))
    return deleted


async def pupil_progress(
    db: AsyncSession,
    pupil_id: UUID,
    academic_year_id: Optional[UUID] = None,
) -> PupilProgressResponse:
    store = SqlRecordStore(db)
    if academic_year_id is not None:
        records = await store.get_by_year(str(pupil_id), str(academic_year_id))
    else:
        records = await store.get_by_pupil(str(pupil_id))
    catalog = await _full_catalog(db)

    items: List[ProgressItem] = []
    for record in records:
        summary = history.summarize(record, catalog)
        items.append(
            ProgressItem(
                record_id=record.id,
                term_id=record.term_id,
                requirement_names=[item.name for item in catalog.items_for(record.selector)],
                total_amount=summary.total_amount,
                paid_amount=record.paid_amount,
                balance=summary.balance,
                required_quantity=summary.total_item_quantity_required,
                received_quantity=record.item_quantity_received,
                payment_status=record.payment_status,
                is_fully_released=summary.is_fully_released,
            )
        )

    return PupilProgressResponse(
        pupil_id=pupil_id,
        total_amount=sum((i.total_amount for i in items), Decimal("0")),
        paid_amount=sum((i.paid_amount for i in items), Decimal("0")),
        balance=sum((i.balance for i in items), Decimal("0")),
        required_quantity=sum(i.required_quantity for i in items),
        received_quantity=sum(i.received_quantity for i in items),
        records_paid=sum(1 for i in items if i.payment_status == PaymentStatus.paid),
        records_released=sum(1 for i in items if i.is_fully_released),
        items=items,
    )
