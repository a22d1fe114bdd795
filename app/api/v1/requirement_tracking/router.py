"""Requirement tracking router: assignment, coverage, release, class receipt, history, duplicates."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import check_permission
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import (
    AssignmentResponse,
    CoverageRequest,
    DuplicateCleanupResponse,
    EligibleRequirementResponse,
    PupilProgressResponse,
    ReceiptRequest,
    RecordCreate,
    RecordHistoryResponse,
    RecordResponse,
    ReleaseRequest,
)
from . import service

router = APIRouter(prefix="/api/v1/requirement-tracking", tags=["requirement-tracking"])


# --- Assignment ---
@router.post(
    "/auto-assign/{pupil_id}",
    response_model=AssignmentResponse,
    dependencies=[Depends(check_permission("requirement_tracking", "create"))],
)
async def auto_assign(
    pupil_id: UUID,
    term_id: UUID = Query(...),
    db: AsyncSession = Depends(get_db),
) -> AssignmentResponse:
    """Assign owed requirements on first load of a pupil's term. No-op when the term already has records."""
    try:
        return await service.auto_assign(db, pupil_id, term_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/refresh/{pupil_id}",
    response_model=AssignmentResponse,
    dependencies=[Depends(check_permission("requirement_tracking", "create"))],
)
async def refresh(
    pupil_id: UUID,
    term_id: UUID = Query(...),
    db: AsyncSession = Depends(get_db),
) -> AssignmentResponse:
    """Rerun eligibility for the term and create any missing records."""
    try:
        return await service.refresh(db, pupil_id, term_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/eligible/{pupil_id}",
    response_model=List[EligibleRequirementResponse],
    dependencies=[Depends(check_permission("requirement_tracking", "read"))],
)
async def list_eligible(
    pupil_id: UUID,
    term_id: UUID = Query(...),
    db: AsyncSession = Depends(get_db),
) -> List[EligibleRequirementResponse]:
    try:
        return await service.list_eligible(db, pupil_id, term_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "",
    response_model=RecordResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("requirement_tracking", "create"))],
)
async def create_record(
    payload: RecordCreate,
    db: AsyncSession = Depends(get_db),
) -> RecordResponse:
    try:
        return await service.create_record(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Read ---
@router.get(
    "/pupil/{pupil_id}",
    response_model=List[RecordResponse],
    dependencies=[Depends(check_permission("requirement_tracking", "read"))],
)
async def list_pupil_records(
    pupil_id: UUID,
    academic_year_id: Optional[UUID] = Query(None),
    term_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> List[RecordResponse]:
    try:
        return await service.list_pupil_records(db, pupil_id, academic_year_id=academic_year_id, term_id=term_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/pupil/{pupil_id}/progress",
    response_model=PupilProgressResponse,
    dependencies=[Depends(check_permission("requirement_tracking", "read"))],
)
async def pupil_progress(
    pupil_id: UUID,
    academic_year_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> PupilProgressResponse:
    try:
        return await service.pupil_progress(db, pupil_id, academic_year_id=academic_year_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Duplicates ---
@router.get(
    "/duplicates/{pupil_id}",
    response_model=List[RecordResponse],
    dependencies=[Depends(check_permission("requirement_tracking", "read"))],
)
async def find_duplicates(
    pupil_id: UUID,
    academic_year_id: UUID = Query(...),
    db: AsyncSession = Depends(get_db),
) -> List[RecordResponse]:
    try:
        return await service.find_duplicates(db, pupil_id, academic_year_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/duplicates/{pupil_id}/cleanup",
    response_model=DuplicateCleanupResponse,
    dependencies=[Depends(check_permission("requirement_tracking", "delete"))],
)
async def cleanup_duplicates(
    pupil_id: UUID,
    academic_year_id: UUID = Query(...),
    db: AsyncSession = Depends(get_db),
) -> DuplicateCleanupResponse:
    """Delete duplicate records of the year. The oldest record of each requirement is kept."""
    try:
        deleted = await service.cleanup_duplicates(db, pupil_id, academic_year_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return DuplicateCleanupResponse(deleted_ids=deleted)


# --- Single record ---
@router.get(
    "/{record_id}",
    response_model=RecordResponse,
    dependencies=[Depends(check_permission("requirement_tracking", "read"))],
)
async def get_record(
    record_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> RecordResponse:
    try:
        return await service.get_record(db, record_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{record_id}/history",
    response_model=RecordHistoryResponse,
    dependencies=[Depends(check_permission("requirement_tracking", "read"))],
)
async def get_record_history(
    record_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> RecordHistoryResponse:
    try:
        return await service.get_record_history(db, record_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{record_id}/coverage",
    response_model=RecordResponse,
    dependencies=[Depends(check_permission("requirement_tracking", "update"))],
)
async def apply_coverage(
    record_id: UUID,
    payload: CoverageRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> RecordResponse:
    """Record a cash payment or an item contribution."""
    try:
        return await service.apply_coverage(db, record_id, payload, actor=current_user.name)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{record_id}/release",
    response_model=RecordResponse,
    dependencies=[Depends(check_permission("requirement_tracking", "update"))],
)
async def apply_release(
    record_id: UUID,
    payload: ReleaseRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> RecordResponse:
    """Hand items over to the pupil, partially (selected ids) or in full."""
    try:
        return await service.apply_release(db, record_id, payload, actor=current_user.name)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{record_id}/receipt",
    response_model=RecordResponse,
    dependencies=[Depends(check_permission("requirement_tracking", "update"))],
)
async def apply_receipt(
    record_id: UUID,
    payload: ReceiptRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> RecordResponse:
    """Record items received in class from the office or brought by the parent."""
    try:
        return await service.apply_receipt(db, record_id, payload, actor=current_user.name)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
