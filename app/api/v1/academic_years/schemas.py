from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class TermCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50, description="e.g. Term 1")
    start_date: date
    end_date: date


class AcademicYearCreate(BaseModel):
    """Create academic year with its terms. Terms are numbered in the order given (first = 1)."""

    name: str = Field(..., min_length=1, max_length=50, description="e.g. 2025-2026")
    start_date: date = Field(..., description="Academic year start date")
    end_date: date = Field(..., description="Academic year end date (must be after start_date)")
    set_as_current: bool = Field(False, description="Set this year as current; all other years become non-current.")
    terms: List[TermCreate] = Field(..., min_length=1)


class TermResponse(BaseModel):
    id: UUID
    academic_year_id: UUID
    name: str
    ordinal: int
    start_date: date
    end_date: date

    class Config:
        from_attributes = True


class AcademicYearResponse(BaseModel):
    id: UUID
    name: str
    start_date: date
    end_date: date
    is_current: bool
    terms: List[TermResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
