"""Requirement tracking schemas: records, coverage, release, class receipt, history, progress."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from app.core.enums import (
    CoverageMode,
    HistoryKind,
    PaymentStatus,
    ReceiptSource,
    ReceiptType,
    ReleaseStatus,
    SelectionMode,
)


class RecordCreate(BaseModel):
    """Manual assignment of one requirement (item) or several as one record (bundle)."""

    pupil_id: UUID
    term_id: UUID
    selection_mode: SelectionMode = SelectionMode.ITEM
    requirement_ids: List[UUID] = Field(..., min_length=1)

    @model_validator(mode="after")
    def validate_selection(self) -> "RecordCreate":
        if self.selection_mode == SelectionMode.ITEM and len(self.requirement_ids) != 1:
            raise ValueError("selection_mode 'item' takes exactly one requirement id")
        if len(set(self.requirement_ids)) != len(self.requirement_ids):
            raise ValueError("requirement_ids must not repeat")
        return self


class CoverageRequest(BaseModel):
    coverage_mode: CoverageMode
    amount: Optional[Decimal] = Field(None, description="Cash amount; required when coverage_mode is cash")
    quantity: Optional[int] = Field(None, description="Items provided; required when coverage_mode is item")
    expected_version: Optional[int] = Field(None, description="Reject with 409 if the record changed since this version")

    @model_validator(mode="after")
    def validate_mode_fields(self) -> "CoverageRequest":
        if self.coverage_mode == CoverageMode.cash and self.amount is None:
            raise ValueError("amount is required for cash coverage")
        if self.coverage_mode == CoverageMode.item and self.quantity is None:
            raise ValueError("quantity is required for item coverage")
        return self


class ReleaseRequest(BaseModel):
    released_item_ids: List[UUID] = Field(default_factory=list)
    is_full_release: bool = False
    expected_version: Optional[int] = None


class ReceiptRequest(BaseModel):
    quantity: int
    source: ReceiptSource
    expected_version: Optional[int] = None


class HistoryEntryResponse(BaseModel):
    date: datetime
    kind: HistoryKind
    paid_amount: Decimal
    coverage_mode: Optional[CoverageMode] = None
    item_quantity_provided: int = 0
    item_quantity_received: int = 0
    receipt_source: Optional[ReceiptSource] = None
    receipt_type: Optional[ReceiptType] = None
    payment_status: PaymentStatus
    release_status: ReleaseStatus
    received_by: Optional[str] = None
    released_by: Optional[str] = None
    released_items: List[str] = Field(default_factory=list)
    academic_year_id: str
    term_id: str


class RecordSummaryResponse(BaseModel):
    total_amount: Decimal
    paid_amount: Decimal
    balance: Decimal
    price_per_item: Decimal
    paid_item_equivalent: int
    balance_item_equivalent: int
    total_item_quantity_required: int
    remaining_quantity: int
    is_fully_released: bool


class RecordResponse(BaseModel):
    id: UUID
    pupil_id: UUID
    academic_year_id: UUID
    term_id: UUID
    selection_mode: SelectionMode
    requirement_ids: List[str]
    requirement_names: List[str] = Field(default_factory=list)
    paid_amount: Decimal
    payment_status: PaymentStatus
    payment_date: Optional[datetime] = None
    release_status: ReleaseStatus
    release_date: Optional[datetime] = None
    released_by: Optional[str] = None
    received_by: Optional[str] = None
    coverage_mode: CoverageMode
    item_quantity_provided: int
    total_item_quantity_required: int
    item_quantity_received: int
    item_quantity_received_from_office: int
    item_quantity_received_from_parent: int
    last_class_receipt_date: Optional[datetime] = None
    last_class_received_by: Optional[str] = None
    released_items: List[str]
    history: List[HistoryEntryResponse] = Field(default_factory=list)
    version: int
    summary: RecordSummaryResponse
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AssignmentResponse(BaseModel):
    created: List[RecordResponse]
    skipped: List[str] = Field(default_factory=list, description="Requirement ids already assigned")
    failed: List[str] = Field(default_factory=list, description="Requirement ids whose record could not be written")


class EligibleRequirementResponse(BaseModel):
    id: UUID
    name: str
    group: Optional[str] = None
    price: Decimal
    quantity: int
    frequency: str


class PaymentLineResponse(BaseModel):
    entry: HistoryEntryResponse
    running_total: Decimal
    remaining_balance: Decimal
    is_full_payment: bool


class ReceiptLineResponse(BaseModel):
    entry: HistoryEntryResponse
    running_received: int
    remaining_items: int
    is_full_receipt: bool


class RecordHistoryResponse(BaseModel):
    record_id: UUID
    payments: List[PaymentLineResponse]
    receipts: List[ReceiptLineResponse]


class DuplicateCleanupResponse(BaseModel):
    deleted_ids: List[UUID]


class ProgressItem(BaseModel):
    record_id: UUID
    term_id: UUID
    requirement_names: List[str]
    total_amount: Decimal
    paid_amount: Decimal
    balance: Decimal
    required_quantity: int
    received_quantity: int
    payment_status: PaymentStatus
    is_fully_released: bool


class PupilProgressResponse(BaseModel):
    pupil_id: UUID
    total_amount: Decimal
    paid_amount: Decimal
    balance: Decimal
    required_quantity: int
    received_quantity: int
    records_paid: int
    records_released: int
    items: List[ProgressItem]
