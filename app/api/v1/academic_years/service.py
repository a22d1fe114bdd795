from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import ServiceError
from app.core.models import AcademicYear, Term

from .schemas import AcademicYearCreate, AcademicYearResponse, TermResponse


def _to_response(ay: AcademicYear) -> AcademicYearResponse:
    return AcademicYearResponse(
        id=ay.id,
        name=ay.name,
        start_date=ay.start_date,
        end_date=ay.end_date,
        is_current=ay.is_current,
        terms=[TermResponse.model_validate(t) for t in sorted(ay.terms, key=lambda t: t.ordinal)],
        created_at=ay.created_at,
        updated_at=ay.updated_at,
    )


def _validate_dates(start_date: date, end_date: date, what: str = "academic year") -> None:
    if end_date <= start_date:
        raise ServiceError(f"{what} end_date must be after start_date", status.HTTP_400_BAD_REQUEST)


async def _load(db: AsyncSession, academic_year_id: UUID) -> Optional[AcademicYear]:
    result = await db.execute(
        select(AcademicYear)
        .options(selectinload(AcademicYear.terms))
        .where(AcademicYear.id == academic_year_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def create_academic_year(db: AsyncSession, payload: AcademicYearCreate) -> AcademicYearResponse:
    """Create academic year and its terms. If set_as_current, unset current on all other years (transaction)."""
    _validate_dates(payload.start_date, payload.end_date)
    for t in payload.terms:
        _validate_dates(t.start_date, t.end_date, f"Term '{t.name}'")
        if t.start_date < payload.start_date or t.end_date > payload.end_date:
            raise ServiceError(f"Term '{t.name}' must fall within the academic year", status.HTTP_400_BAD_REQUEST)

    existing = await db.execute(select(AcademicYear).where(AcademicYear.name == payload.name.strip()))
    if existing.scalar_one_or_none():
        raise ServiceError(f"Academic year with name '{payload.name}' already exists", status.HTTP_409_CONFLICT)
    if payload.set_as_current:
        await db.execute(update(AcademicYear).values(is_current=False))

    ay = AcademicYear(
        name=payload.name.strip(),
        start_date=payload.start_date,
        end_date=payload.end_date,
        is_current=payload.set_as_current,
    )
    db.add(ay)
    await db.flush()
    for ordinal, t in enumerate(payload.terms, start=1):
        db.add(
            Term(
                academic_year_id=ay.id,
                name=t.name.strip(),
                ordinal=ordinal,
                start_date=t.start_date,
                end_date=t.end_date,
            )
        )
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Academic year name or term order conflict", status.HTTP_409_CONFLICT)
    return _to_response(await _load(db, ay.id))


async def list_academic_years(db: AsyncSession) -> List[AcademicYearResponse]:
    result = await db.execute(
        select(AcademicYear).options(selectinload(AcademicYear.terms)).order_by(AcademicYear.start_date.desc())
    )
    return [_to_response(ay) for ay in result.scalars().all()]


async def get_academic_year(db: AsyncSession, academic_year_id: UUID) -> Optional[AcademicYearResponse]:
    ay = await _load(db, academic_year_id)
    return _to_response(ay) if ay else None


async def get_current_academic_year(db: AsyncSession) -> Optional[AcademicYearResponse]:
    """Get the current academic year (is_current=true). Default for data operations."""
    result = await db.execute(
        select(AcademicYear).options(selectinload(AcademicYear.terms)).where(AcademicYear.is_current.is_(True))
    )
    ay = result.scalar_one_or_none()
    return _to_response(ay) if ay else None
