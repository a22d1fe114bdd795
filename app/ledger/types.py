"""
Value objects of the requirement ledger.

Everything here is immutable except AssignmentSession. Records are updated by
building a new FulfillmentRecord with dataclasses.replace; the coverage engine
never mutates its input.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Set, Tuple, Union

from app.core.enums import (
    CoverageMode,
    HistoryKind,
    PaymentStatus,
    PupilSection,
    ReceiptSource,
    ReceiptType,
    ReleaseStatus,
    RequirementFrequency,
    RequirementGender,
    ScopeType,
    SelectionMode,
)

ZERO = Decimal("0")


@dataclass(frozen=True)
class RequirementItem:
    id: str
    name: str
    price: Decimal
    quantity: int = 0
    frequency: RequirementFrequency = RequirementFrequency.TERMLY
    gender: RequirementGender = RequirementGender.ALL
    class_type: ScopeType = ScopeType.ALL
    class_ids: Tuple[str, ...] = ()
    section_type: ScopeType = ScopeType.ALL
    section: Optional[PupilSection] = None
    group: Optional[str] = None
    description: Optional[str] = None
    is_active: bool = True

    @property
    def specificity(self) -> int:
        """Number of scopes narrowed below "all"."""
        return (
            (self.gender != RequirementGender.ALL)
            + (self.class_type != ScopeType.ALL)
            + (self.section_type != ScopeType.ALL)
        )


# Selector: which catalog item(s) a record covers.


@dataclass(frozen=True)
class Single:
    id: str

    mode = SelectionMode.ITEM

    @property
    def ids(self) -> Tuple[str, ...]:
        return (self.id,)


@dataclass(frozen=True)
class Bundle:
    ids: Tuple[str, ...]

    mode = SelectionMode.BUNDLE

    def __post_init__(self) -> None:
        if not self.ids:
            raise ValueError("A bundle needs at least one requirement id")
        object.__setattr__(self, "ids", tuple(self.ids))


RequirementSelector = Union[Single, Bundle]


def selector_from_ids(mode: Union[SelectionMode, str], ids: List[str]) -> RequirementSelector:
    """Rebuild a selector from its persisted form (selection_mode + ordered id list)."""
    if SelectionMode(mode) == SelectionMode.BUNDLE:
        return Bundle(tuple(ids))
    if len(ids) != 1:
        raise ValueError(f"A single-item selector needs exactly one id, got {len(ids)}")
    return Single(ids[0])


# Contribution: how a payment event covers the requirement.


@dataclass(frozen=True)
class CashContribution:
    amount: Decimal

    mode = CoverageMode.cash


@dataclass(frozen=True)
class ItemContribution:
    quantity: int

    mode = CoverageMode.item


Contribution = Union[CashContribution, ItemContribution]


@dataclass(frozen=True)
class HistoryEntry:
    """One appended transaction. Amounts and quantities are deltas; statuses are as they were before it."""

    date: datetime
    kind: HistoryKind
    payment_status: PaymentStatus
    release_status: ReleaseStatus
    academic_year_id: str
    term_id: str
    paid_amount: Decimal = ZERO
    coverage_mode: Optional[CoverageMode] = None
    item_quantity_provided: int = 0
    item_quantity_received: int = 0
    receipt_source: Optional[ReceiptSource] = None
    receipt_type: Optional[ReceiptType] = None
    received_by: Optional[str] = None
    released_by: Optional[str] = None
    released_items: Tuple[str, ...] = ()

    @property
    def includes_payment(self) -> bool:
        return self.receipt_type in (ReceiptType.payment_only, ReceiptType.payment_and_receipt)

    @property
    def includes_receipt(self) -> bool:
        return self.receipt_type in (ReceiptType.receipt_only, ReceiptType.payment_and_receipt)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe form stored in the record's history column."""
        return {
            "date": self.date.isoformat(),
            "kind": self.kind.value,
            "payment_status": self.payment_status.value,
            "release_status": self.release_status.value,
            "academic_year_id": self.academic_year_id,
            "term_id": self.term_id,
            "paid_amount": str(self.paid_amount),
            "coverage_mode": self.coverage_mode.value if self.coverage_mode else None,
            "item_quantity_provided": self.item_quantity_provided,
            "item_quantity_received": self.item_quantity_received,
            "receipt_source": self.receipt_source.value if self.receipt_source else None,
            "receipt_type": self.receipt_type.value if self.receipt_type else None,
            "received_by": self.received_by,
            "released_by": self.released_by,
            "released_items": list(self.released_items),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> HistoryEntry:
        return cls(
            date=datetime.fromisoformat(data["date"]),
            kind=HistoryKind(data["kind"]),
            payment_status=PaymentStatus(data["payment_status"]),
            release_status=ReleaseStatus(data["release_status"]),
            academic_year_id=data["academic_year_id"],
            term_id=data["term_id"],
            paid_amount=Decimal(data.get("paid_amount") or "0"),
            coverage_mode=CoverageMode(data["coverage_mode"]) if data.get("coverage_mode") else None,
            item_quantity_provided=int(data.get("item_quantity_provided") or 0),
            item_quantity_received=int(data.get("item_quantity_received") or 0),
            receipt_source=ReceiptSource(data["receipt_source"]) if data.get("receipt_source") else None,
            receipt_type=ReceiptType(data["receipt_type"]) if data.get("receipt_type") else None,
            received_by=data.get("received_by"),
            released_by=data.get("released_by"),
            released_items=tuple(data.get("released_items") or ()),
        )


@dataclass(frozen=True)
class FulfillmentRecord:
    pupil_id: str
    selector: RequirementSelector
    academic_year_id: str
    term_id: str
    id: Optional[str] = None
    paid_amount: Decimal = ZERO
    payment_status: PaymentStatus = PaymentStatus.pending
    payment_date: Optional[datetime] = None
    release_status: ReleaseStatus = ReleaseStatus.pending
    release_date: Optional[datetime] = None
    released_by: Optional[str] = None
    received_by: Optional[str] = None
    coverage_mode: CoverageMode = CoverageMode.cash
    item_quantity_provided: int = 0
    total_item_quantity_required: int = 0
    item_quantity_received: int = 0
    item_quantity_received_from_office: int = 0
    item_quantity_received_from_parent: int = 0
    last_class_receipt_date: Optional[datetime] = None
    last_class_received_by: Optional[str] = None
    released_items: Tuple[str, ...] = ()
    history: Tuple[HistoryEntry, ...] = ()
    version: int = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def requirement_ids(self) -> Tuple[str, ...]:
        return self.selector.ids

    @property
    def remaining_quantity(self) -> int:
        return max(0, self.total_item_quantity_required - self.item_quantity_provided)

    def references(self, requirement_id: str) -> bool:
        return requirement_id in self.selector.ids


# Context supplied by the pupil/term provider.


@dataclass(frozen=True)
class PupilContext:
    id: str
    gender: Optional[str] = None  # normalized to "male" / "female"
    class_id: Optional[str] = None
    section: Optional[str] = None  # "Day" / "Boarding"
    registration_date: Optional[date] = None

    def __post_init__(self) -> None:
        if self.gender:
            object.__setattr__(self, "gender", self.gender.strip().lower())


@dataclass(frozen=True)
class TermContext:
    id: str
    academic_year_id: str
    ordinal: int
    start_date: Optional[date] = None

    @property
    def is_first_term(self) -> bool:
        return self.ordinal == 1


@dataclass
class AssignmentSession:
    """(pupil, year, term) keys already auto-assigned during one viewing session."""

    processed: Set[Tuple[str, str, str]] = field(default_factory=set)

    @staticmethod
    def key(pupil: PupilContext, term: TermContext) -> Tuple[str, str, str]:
        return (pupil.id, term.academic_year_id, term.id)

    def is_processed(self, pupil: PupilContext, term: TermContext) -> bool:
        return self.key(pupil, term) in self.processed

    def mark_processed(self, pupil: PupilContext, term: TermContext) -> None:
        self.processed.add(self.key(pupil, term))


@dataclass
class AssignmentResult:
    created: List[FulfillmentRecord] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)  # requirement ids already covered
    failed: List[Tuple[str, str]] = field(default_factory=list)  # (requirement id, error)

    @property
    def attempted(self) -> int:
        return len(self.created) + len(self.failed)
