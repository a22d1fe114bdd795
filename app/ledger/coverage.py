"""
Coverage engine: payment, item contribution, class receipt and release events.

Every operation validates its input first, then returns a new record with one
or more history entries appended. Nothing here touches the store.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from app.core.enums import (
    CoverageMode,
    HistoryKind,
    PaymentStatus,
    ReceiptSource,
    ReceiptType,
    ReleaseStatus,
)
from app.core.exceptions import CoverageValidationError, ReleaseValidationError
from app.ledger.catalog import Catalog
from app.ledger.types import (
    ZERO,
    CashContribution,
    Contribution,
    FulfillmentRecord,
    HistoryEntry,
    ItemContribution,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
# Slack allowed above the total when over-payment is disabled.
DEFAULT_TOLERANCE = Decimal("0.01")


def to_money(value) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def total_amount(record: FulfillmentRecord, catalog: Catalog) -> Decimal:
    return catalog.total_price(record.selector)


def required_quantity(record: FulfillmentRecord, catalog: Catalog) -> int:
    """Quantity stored on the record, or the catalog's when the record predates quantity tracking."""
    return record.total_item_quantity_required or catalog.total_quantity(record.selector)


def price_per_item(total: Decimal, quantity: int) -> Decimal:
    if not quantity:
        return ZERO
    return total / quantity


def payment_status_for(paid: Decimal, total: Decimal) -> PaymentStatus:
    if paid > 0 and paid >= total:
        return PaymentStatus.paid
    if paid > 0:
        return PaymentStatus.partial
    return PaymentStatus.pending


def item_cash_equivalent(total: Decimal, required: int, provided_before: int, quantity: int) -> Decimal:
    """Cash credited for `quantity` more items.

    Taken as the difference of the rounded cumulative values, so the credits for
    every item of a requirement add up to exactly its total.
    """
    if not required:
        return ZERO
    before = to_money(total * provided_before / required)
    after = to_money(total * (provided_before + quantity) / required)
    return after - before


def is_fully_released(record: FulfillmentRecord) -> bool:
    if record.release_status == ReleaseStatus.released:
        return True
    released = set(record.released_items)
    return all(requirement_id in released for requirement_id in record.requirement_ids)


def _check_overpayment(
    record: FulfillmentRecord, new_paid: Decimal, total: Decimal, tolerance: Decimal, allow_overpayment: bool
) -> None:
    if not allow_overpayment and new_paid > total + tolerance:
        raise CoverageValidationError(
            f"Payment of {new_paid - record.paid_amount} exceeds the balance of {max(ZERO, total - record.paid_amount)}"
        )


def apply_coverage(
    record: FulfillmentRecord,
    contribution: Contribution,
    catalog: Catalog,
    actor: str,
    now: datetime,
    tolerance: Decimal = DEFAULT_TOLERANCE,
    allow_overpayment: bool = True,
) -> FulfillmentRecord:
    total = total_amount(record, catalog)
    required = required_quantity(record, catalog)
    provided = record.item_quantity_provided

    if isinstance(contribution, CashContribution):
        cash = to_money(contribution.amount) if contribution.amount is not None else ZERO
        if cash <= 0:
            raise CoverageValidationError("Cash amount must be at least 0.01")
        items = 0
    elif isinstance(contribution, ItemContribution):
        if contribution.quantity is None or contribution.quantity <= 0:
            raise CoverageValidationError("Item quantity must be greater than zero")
        items = contribution.quantity
        cash = item_cash_equivalent(total, required, provided, items)
    else:
        raise CoverageValidationError(f"Unsupported contribution {contribution!r}")

    new_paid = record.paid_amount + cash
    _check_overpayment(record, new_paid, total, tolerance, allow_overpayment)

    entry = HistoryEntry(
        date=now,
        kind=HistoryKind.coverage,
        payment_status=record.payment_status,
        release_status=record.release_status,
        academic_year_id=record.academic_year_id,
        term_id=record.term_id,
        paid_amount=cash,
        coverage_mode=contribution.mode,
        item_quantity_provided=items,
        receipt_type=ReceiptType.payment_only,
        received_by=actor,
    )
    logger.debug("Coverage on record %s: %s credited %s", record.id, contribution.mode.value, cash)
    return replace(
        record,
        paid_amount=new_paid,
        payment_status=payment_status_for(new_paid, total),
        payment_date=now,
        coverage_mode=contribution.mode,
        item_quantity_provided=provided + items,
        total_item_quantity_required=required,
        received_by=actor,
        history=record.history + (entry,),
        updated_at=now,
    )


def apply_class_receipt(
    record: FulfillmentRecord,
    quantity: int,
    source: ReceiptSource,
    catalog: Catalog,
    actor: str,
    now: datetime,
    tolerance: Decimal = DEFAULT_TOLERANCE,
    allow_overpayment: bool = True,
) -> FulfillmentRecord:
    """Items physically received in class.

    Items brought by the parent also count as an item contribution towards payment;
    items handed over by the office only count as received.
    """
    if quantity is None or quantity <= 0:
        raise CoverageValidationError("Received quantity must be greater than zero")
    required = required_quantity(record, catalog)
    if not required:
        raise CoverageValidationError("Requirement is not quantity based; nothing to receive")
    outstanding = required - record.item_quantity_received
    if quantity > outstanding:
        raise CoverageValidationError(f"Only {max(0, outstanding)} item(s) left to receive, got {quantity}")

    source = ReceiptSource(source)
    entry_fields = dict(
        date=now,
        kind=HistoryKind.receipt,
        payment_status=record.payment_status,
        release_status=record.release_status,
        academic_year_id=record.academic_year_id,
        term_id=record.term_id,
        item_quantity_received=quantity,
        receipt_source=source,
        received_by=actor,
    )
    updates = dict(
        item_quantity_received=record.item_quantity_received + quantity,
        total_item_quantity_required=required,
        last_class_receipt_date=now,
        last_class_received_by=actor,
        updated_at=now,
    )

    if source == ReceiptSource.parent:
        total = total_amount(record, catalog)
        cash = item_cash_equivalent(total, required, record.item_quantity_provided, quantity)
        new_paid = record.paid_amount + cash
        _check_overpayment(record, new_paid, total, tolerance, allow_overpayment)
        entry = HistoryEntry(
            paid_amount=cash,
            coverage_mode=CoverageMode.item,
            item_quantity_provided=quantity,
            receipt_type=ReceiptType.payment_and_receipt,
            **entry_fields,
        )
        updates.update(
            paid_amount=new_paid,
            payment_status=payment_status_for(new_paid, total),
            payment_date=now,
            coverage_mode=CoverageMode.item,
            item_quantity_provided=record.item_quantity_provided + quantity,
            item_quantity_received_from_parent=record.item_quantity_received_from_parent + quantity,
        )
    else:
        entry = HistoryEntry(receipt_type=ReceiptType.receipt_only, **entry_fields)
        updates.update(
            item_quantity_received_from_office=record.item_quantity_received_from_office + quantity,
        )

    return replace(record, history=record.history + (entry,), **updates)


def apply_release(
    record: FulfillmentRecord,
    released_item_ids: Optional[Iterable[str]],
    is_full_release: bool,
    actor: str,
    now: datetime,
) -> FulfillmentRecord:
    if record.release_status == ReleaseStatus.released:
        raise ReleaseValidationError("Requirement has already been released")

    requested = list(dict.fromkeys(released_item_ids or ()))
    unknown = [requirement_id for requirement_id in requested if requirement_id not in record.requirement_ids]
    if unknown:
        raise ReleaseValidationError(f"Requirement(s) {', '.join(unknown)} are not part of this record")

    already = set(record.released_items)
    if is_full_release:
        # A full release hands over everything still outstanding.
        delta = tuple(requirement_id for requirement_id in record.requirement_ids if requirement_id not in already)
    else:
        if not requested:
            raise ReleaseValidationError("Select at least one item to release")
        delta = tuple(requirement_id for requirement_id in requested if requirement_id not in already)
        if not delta:
            raise ReleaseValidationError("Selected items have already been released")

    release_entry = HistoryEntry(
        date=now,
        kind=HistoryKind.release,
        payment_status=record.payment_status,
        release_status=record.release_status,
        academic_year_id=record.academic_year_id,
        term_id=record.term_id,
        released_by=actor,
        released_items=delta,
    )
    released = record.released_items + delta

    if not is_full_release:
        return replace(
            record,
            released_items=released,
            history=record.history + (release_entry,),
            updated_at=now,
        )

    complete_entry = replace(release_entry, kind=HistoryKind.release_complete, released_items=())
    return replace(
        record,
        release_status=ReleaseStatus.released,
        release_date=now,
        released_by=actor,
        released_items=released,
        history=record.history + (release_entry, complete_entry),
        updated_at=now,
    )
