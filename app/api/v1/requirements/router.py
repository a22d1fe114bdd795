"""Requirement catalog router."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import check_permission
from app.core.enums import RequirementFrequency
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import RequirementCreate, RequirementResponse, RequirementStatusUpdate
from . import service

router = APIRouter(prefix="/api/v1/requirements", tags=["requirements"])


@router.post(
    "",
    response_model=RequirementResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("requirements", "create"))],
)
async def create_requirement(
    payload: RequirementCreate,
    db: AsyncSession = Depends(get_db),
) -> RequirementResponse:
    return await service.create_requirement(db, payload)


@router.get(
    "",
    response_model=List[RequirementResponse],
    dependencies=[Depends(check_permission("requirements", "read"))],
)
async def list_requirements(
    gender: Optional[str] = Query(None, description="male or female"),
    class_id: Optional[str] = Query(None),
    section: Optional[str] = Query(None, description="Day or Boarding"),
    frequency: Optional[RequirementFrequency] = Query(None),
    active_only: bool = Query(True, description="Return only active requirements by default"),
    db: AsyncSession = Depends(get_db),
) -> List[RequirementResponse]:
    return await service.list_requirements(
        db,
        gender=gender,
        class_id=class_id,
        section=section,
        frequency=frequency,
        active_only=active_only,
    )


@router.get(
    "/{requirement_id}",
    response_model=RequirementResponse,
    dependencies=[Depends(check_permission("requirements", "read"))],
)
async def get_requirement(
    requirement_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> RequirementResponse:
    item = await service.get_requirement(db, requirement_id)
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Requirement not found")
    return item


@router.put(
    "/{requirement_id}",
    response_model=RequirementResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("requirements", "update"))],
)
async def update_requirement(
    requirement_id: UUID,
    payload: RequirementCreate,
    db: AsyncSession = Depends(get_db),
) -> RequirementResponse:
    """Supersede a requirement: the new version gets a new id and the old one is deactivated."""
    try:
        return await service.supersede_requirement(db, requirement_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch(
    "/{requirement_id}/status",
    response_model=RequirementResponse,
    dependencies=[Depends(check_permission("requirements", "update"))],
)
async def set_requirement_status(
    requirement_id: UUID,
    payload: RequirementStatusUpdate,
    db: AsyncSession = Depends(get_db),
) -> RequirementResponse:
    try:
        return await service.set_requirement_status(db, requirement_id, payload.is_active)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
