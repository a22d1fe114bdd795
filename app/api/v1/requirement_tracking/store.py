"""SQLAlchemy implementations of the ledger's record store, catalog provider and context provider."""

import logging
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.api.v1.requirements.service import to_domain_item
from app.core.enums import CoverageMode, PaymentStatus, ReleaseStatus
from app.core.exceptions import ConcurrencyConflictError, ServiceError, StoreError
from app.core.models import FulfillmentRecord as FulfillmentRecordModel
from app.core.models import Pupil, RequirementItem as RequirementItemModel, Term
from app.ledger.catalog import Catalog, EligibilityFilter, filter_items
from app.ledger.duplicates import find_duplicates
from app.ledger.types import (
    FulfillmentRecord,
    HistoryEntry,
    PupilContext,
    RequirementItem,
    TermContext,
    selector_from_ids,
)

logger = logging.getLogger(__name__)


def _to_uuid(val):
    if val is None:
        return None
    return val if isinstance(val, UUID) else UUID(str(val))


def _to_decimal(val) -> Decimal:
    if val is None:
        return Decimal("0")
    return val if isinstance(val, Decimal) else Decimal(str(val))


def to_domain_record(row: FulfillmentRecordModel) -> FulfillmentRecord:
    return FulfillmentRecord(
        id=str(row.id),
        pupil_id=str(row.pupil_id),
        selector=selector_from_ids(row.selection_mode, [str(i) for i in row.requirement_ids or []]),
        academic_year_id=str(row.academic_year_id),
        term_id=str(row.term_id),
        paid_amount=_to_decimal(row.paid_amount),
        payment_status=PaymentStatus(row.payment_status),
        payment_date=row.payment_date,
        release_status=ReleaseStatus(row.release_status),
        release_date=row.release_date,
        released_by=row.released_by,
        received_by=row.received_by,
        coverage_mode=CoverageMode(row.coverage_mode),
        item_quantity_provided=row.item_quantity_provided or 0,
        total_item_quantity_required=row.total_item_quantity_required or 0,
        item_quantity_received=row.item_quantity_received or 0,
        item_quantity_received_from_office=row.item_quantity_received_from_office or 0,
        item_quantity_received_from_parent=row.item_quantity_received_from_parent or 0,
        last_class_receipt_date=row.last_class_receipt_date,
        last_class_received_by=row.last_class_received_by,
        released_items=tuple(row.released_items or ()),
        history=tuple(HistoryEntry.from_dict(e) for e in row.history or []),
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _write_fields(row: FulfillmentRecordModel, record: FulfillmentRecord) -> None:
    """Copy the mutable state of a domain record onto its row. History is rewritten whole."""
    row.paid_amount = record.paid_amount
    row.payment_status = record.payment_status.value
    row.payment_date = record.payment_date
    row.release_status = record.release_status.value
    row.release_date = record.release_date
    row.released_by = record.released_by
    row.received_by = record.received_by
    row.coverage_mode = record.coverage_mode.value
    row.item_quantity_provided = record.item_quantity_provided
    row.total_item_quantity_required = record.total_item_quantity_required
    row.item_quantity_received = record.item_quantity_received
    row.item_quantity_received_from_office = record.item_quantity_received_from_office
    row.item_quantity_received_from_parent = record.item_quantity_received_from_parent
    row.last_class_receipt_date = record.last_class_receipt_date
    row.last_class_received_by = record.last_class_received_by
    row.released_items = list(record.released_items)
    row.history = [entry.to_dict() for entry in record.history]


class SqlRecordStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _select(self, *criteria) -> List[FulfillmentRecord]:
        stmt = (
            select(FulfillmentRecordModel)
            .where(*criteria)
            .order_by(FulfillmentRecordModel.created_at, FulfillmentRecordModel.id)
        )
        try:
            rows = (await self.db.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            raise StoreError(f"Could not load requirement records: {exc}") from exc
        return [to_domain_record(r) for r in rows]

    async def get(self, pupil_id: str, academic_year_id: str, term_id: str) -> List[FulfillmentRecord]:
        return await self._select(
            FulfillmentRecordModel.pupil_id == _to_uuid(pupil_id),
            FulfillmentRecordModel.academic_year_id == _to_uuid(academic_year_id),
            FulfillmentRecordModel.term_id == _to_uuid(term_id),
        )

    async def get_by_year(self, pupil_id: str, academic_year_id: str) -> List[FulfillmentRecord]:
        return await self._select(
            FulfillmentRecordModel.pupil_id == _to_uuid(pupil_id),
            FulfillmentRecordModel.academic_year_id == _to_uuid(academic_year_id),
        )

    async def get_by_pupil(self, pupil_id: str) -> List[FulfillmentRecord]:
        return await self._select(FulfillmentRecordModel.pupil_id == _to_uuid(pupil_id))

    async def get_by_id(self, record_id: str) -> Optional[FulfillmentRecord]:
        records = await self._select(FulfillmentRecordModel.id == _to_uuid(record_id))
        return records[0] if records else None

    async def create(self, record: FulfillmentRecord) -> str:
        row = FulfillmentRecordModel(
            pupil_id=_to_uuid(record.pupil_id),
            academic_year_id=_to_uuid(record.academic_year_id),
            term_id=_to_uuid(record.term_id),
            selection_mode=record.selector.mode.value,
            requirement_ids=list(record.requirement_ids),
        )
        if record.created_at is not None:
            row.created_at = record.created_at
            row.updated_at = record.updated_at or record.created_at
        _write_fields(row, record)
        self.db.add(row)
        try:
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise StoreError(f"Could not create requirement record: {exc}") from exc
        return str(row.id)

    async def update(
        self, record_id: str, record: FulfillmentRecord, expected_version: Optional[int] = None
    ) -> FulfillmentRecord:
        """Write the record back. The UPDATE matches on the version read here, so a concurrent
        writer that commits first makes this one fail with ConcurrencyConflictError."""
        row = await self.db.get(FulfillmentRecordModel, _to_uuid(record_id), populate_existing=True)
        if row is None:
            raise ServiceError("Requirement record not found", status.HTTP_404_NOT_FOUND)
        if expected_version is not None and row.version != expected_version:
            raise ConcurrencyConflictError(str(record_id), expected_version, row.version)
        read_version = row.version
        _write_fields(row, record)
        try:
            await self.db.commit()
        except StaleDataError:
            await self.db.rollback()
            actual = await self.db.scalar(
                select(FulfillmentRecordModel.version).where(FulfillmentRecordModel.id == _to_uuid(record_id))
            )
            logger.warning("Concurrent update of record %s lost the race (read version %s)", record_id, read_version)
            raise ConcurrencyConflictError(str(record_id), read_version, actual)
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise StoreError(f"Could not update requirement record: {exc}") from exc
        await self.db.refresh(row)
        return to_domain_record(row)

    async def delete(self, record_id: str) -> None:
        row = await self.db.get(FulfillmentRecordModel, _to_uuid(record_id))
        if row is None:
            return
        read_version = row.version
        await self.db.delete(row)
        try:
            await self.db.commit()
        except StaleDataError:
            await self.db.rollback()
            raise ConcurrencyConflictError(str(record_id), read_version, None)
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise StoreError(f"Could not delete requirement record: {exc}") from exc

    async def find_duplicates(self, pupil_id: str, academic_year_id: str) -> List[FulfillmentRecord]:
        records = await self.get_by_year(pupil_id, academic_year_id)
        catalog = Catalog(await SqlCatalogProvider(self.db).list_all())
        return find_duplicates(records, catalog)


class SqlCatalogProvider:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def list_all(self) -> List[RequirementItem]:
        try:
            rows = (await self.db.execute(select(RequirementItemModel))).scalars().all()
        except SQLAlchemyError as exc:
            raise StoreError(f"Could not load requirement catalog: {exc}") from exc
        return [to_domain_item(r) for r in rows]

    async def list_by_eligibility(self, flt: EligibilityFilter) -> List[RequirementItem]:
        stmt = select(RequirementItemModel)
        if flt.active_only:
            stmt = stmt.where(RequirementItemModel.is_active.is_(True))
        if flt.frequency is not None:
            stmt = stmt.where(RequirementItemModel.frequency == flt.frequency.value)
        try:
            rows = (await self.db.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            raise StoreError(f"Could not load requirement catalog: {exc}") from exc
        return filter_items((to_domain_item(r) for r in rows), flt)


class SqlContextProvider:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_pupil(self, pupil_id: str) -> PupilContext:
        pupil = await self.db.get(Pupil, _to_uuid(pupil_id))
        if pupil is None:
            raise ServiceError("Pupil not found", status.HTTP_404_NOT_FOUND)
        return PupilContext(
            id=str(pupil.id),
            gender=pupil.gender,
            class_id=pupil.class_id,
            section=pupil.section,
            registration_date=pupil.registration_date,
        )

    async def get_term(self, term_id: str) -> TermContext:
        term = await self.db.get(Term, _to_uuid(term_id))
        if term is None:
            raise ServiceError("Term not found", status.HTTP_404_NOT_FOUND)
        return TermContext(
            id=str(term.id),
            academic_year_id=str(term.academic_year_id),
            ordinal=term.ordinal,
            start_date=term.start_date,
        )
