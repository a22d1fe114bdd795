"""Requirement catalog schemas."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from app.core.enums import PupilSection, RequirementFrequency, RequirementGender, ScopeType


class RequirementCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    group: Optional[str] = Field(None, max_length=100, description="e.g. Uniform, Stationery")
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0)
    quantity: int = Field(0, ge=0, description="Items covered by the price; 0 when not quantity based")
    frequency: RequirementFrequency = RequirementFrequency.TERMLY
    gender: RequirementGender = RequirementGender.ALL
    class_type: ScopeType = ScopeType.ALL
    class_ids: List[str] = Field(default_factory=list)
    section_type: ScopeType = ScopeType.ALL
    section: Optional[PupilSection] = None

    @model_validator(mode="after")
    def validate_scopes(self) -> "RequirementCreate":
        if self.class_type == ScopeType.SPECIFIC and not self.class_ids:
            raise ValueError("class_ids is required when class_type is specific")
        if self.section_type == ScopeType.SPECIFIC and self.section is None:
            raise ValueError("section is required when section_type is specific")
        return self


class RequirementStatusUpdate(BaseModel):
    is_active: bool


class RequirementResponse(BaseModel):
    id: UUID
    name: str
    group: Optional[str] = None
    description: Optional[str] = None
    price: Decimal
    quantity: int
    frequency: RequirementFrequency
    gender: RequirementGender
    class_type: ScopeType
    class_ids: List[str]
    section_type: ScopeType
    section: Optional[PupilSection] = None
    is_active: bool
    superseded_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
