"""Requirement catalog service. Items are never edited in place; an update supersedes the item."""

import logging
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import PupilSection, RequirementFrequency, RequirementGender, ScopeType
from app.core.exceptions import ServiceError
from app.core.models import RequirementItem as RequirementItemModel
from app.ledger.catalog import EligibilityFilter, filter_items
from app.ledger.types import RequirementItem

from .schemas import RequirementCreate, RequirementResponse

logger = logging.getLogger(__name__)


def _to_decimal(val) -> Decimal:
    if val is None:
        return Decimal("0")
    return val if isinstance(val, Decimal) else Decimal(str(val))


def to_domain_item(row: RequirementItemModel) -> RequirementItem:
    return RequirementItem(
        id=str(row.id),
        name=row.name,
        price=_to_decimal(row.price),
        quantity=row.quantity or 0,
        frequency=RequirementFrequency(row.frequency),
        gender=RequirementGender(row.gender),
        class_type=ScopeType(row.class_type),
        class_ids=tuple(str(c) for c in (row.class_ids or [])),
        section_type=ScopeType(row.section_type),
        section=PupilSection(row.section) if row.section else None,
        group=row.group,
        description=row.description,
        is_active=row.is_active,
    )


def _to_response(row: RequirementItemModel) -> RequirementResponse:
    return RequirementResponse.model_validate(row)


def _new_row(payload: RequirementCreate) -> RequirementItemModel:
    return RequirementItemModel(
        name=payload.name.strip(),
        group=(payload.group or "").strip() or None,
        description=payload.description,
        price=payload.price,
        quantity=payload.quantity,
        frequency=payload.frequency.value,
        gender=payload.gender.value,
        class_type=payload.class_type.value,
        class_ids=payload.class_ids if payload.class_type == ScopeType.SPECIFIC else [],
        section_type=payload.section_type.value,
        section=payload.section.value if payload.section_type == ScopeType.SPECIFIC and payload.section else None,
        is_active=True,
    )


async def create_requirement(db: AsyncSession, payload: RequirementCreate) -> RequirementResponse:
    row = _new_row(payload)
    db.add(row)
    await db.commit()
    await db.refresh(row)
    logger.info("Created requirement %s (%s)", row.id, row.name)
    return _to_response(row)


async def list_requirements(
    db: AsyncSession,
    gender: Optional[str] = None,
    class_id: Optional[str] = None,
    section: Optional[str] = None,
    frequency: Optional[RequirementFrequency] = None,
    active_only: bool = True,
) -> List[RequirementResponse]:
    """List catalog items. Scope filters keep items whose scope is "all" or matches the value."""
    stmt = select(RequirementItemModel)
    if active_only:
        stmt = stmt.where(RequirementItemModel.is_active.is_(True))
    if frequency:
        stmt = stmt.where(RequirementItemModel.frequency == frequency.value)
    stmt = stmt.order_by(RequirementItemModel.group, RequirementItemModel.name)
    rows = (await db.execute(stmt)).scalars().all()

    flt = EligibilityFilter(gender=gender, class_id=class_id, section=section, active_only=active_only)
    keep = {item.id for item in filter_items((to_domain_item(r) for r in rows), flt)}
    return [_to_response(r) for r in rows if str(r.id) in keep]


async def get_requirement(db: AsyncSession, requirement_id: UUID) -> Optional[RequirementResponse]:
    row = await db.get(RequirementItemModel, requirement_id)
    return _to_response(row) if row else None


async def supersede_requirement(
    db: AsyncSession,
    requirement_id: UUID,
    payload: RequirementCreate,
) -> RequirementResponse:
    """Create the edited item as a new row and deactivate the old one.

    Existing records keep pointing at the old id, so their totals do not move.
    """
    old = await db.get(RequirementItemModel, requirement_id)
    if not old:
        raise ServiceError("Requirement not found", status.HTTP_404_NOT_FOUND)
    if not old.is_active:
        raise ServiceError("Only active requirements can be updated", status.HTTP_400_BAD_REQUEST)

    new = _new_row(payload)
    db.add(new)
    await db.flush()
    old.is_active = False
    old.superseded_by = new.id
    await db.commit()
    await db.refresh(new)
    logger.info("Requirement %s superseded by %s", old.id, new.id)
    return _to_response(new)


async def set_requirement_status(
    db: AsyncSession,
    requirement_id: UUID,
    is_active: bool,
) -> RequirementResponse:
    row = await db.get(RequirementItemModel, requirement_id)
    if not row:
        raise ServiceError("Requirement not found", status.HTTP_404_NOT_FOUND)
    if is_active and row.superseded_by is not None:
        raise ServiceError("A superseded requirement cannot be reactivated", status.HTTP_400_BAD_REQUEST)
    row.is_active = is_active
    await db.commit()
    await db.refresh(row)
    return _to_response(row)
