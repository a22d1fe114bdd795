"""Read-only projections over a record's history: payment and receipt ledgers, replay and summaries."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import Iterable, List, Tuple

from app.ledger.catalog import Catalog
from app.ledger.coverage import is_fully_released, price_per_item, required_quantity, to_money, total_amount
from app.ledger.types import ZERO, FulfillmentRecord, HistoryEntry

# Guards floor() against division residue such as 2.9999... for 100 / (100 / 3).
_RATIO_PRECISION = Decimal("0.000001")


@dataclass(frozen=True)
class PaymentLine:
    entry: HistoryEntry
    running_total: Decimal
    remaining_balance: Decimal
    is_full_payment: bool


@dataclass(frozen=True)
class ReceiptLine:
    entry: HistoryEntry
    running_received: int
    remaining_items: int
    is_full_receipt: bool


@dataclass(frozen=True)
class Replay:
    paid_amount: Decimal
    item_quantity_provided: int
    item_quantity_received: int
    released_items: Tuple[str, ...]


@dataclass(frozen=True)
class RecordSummary:
    total_amount: Decimal
    paid_amount: Decimal
    balance: Decimal
    price_per_item: Decimal
    paid_item_equivalent: int
    balance_item_equivalent: int
    total_item_quantity_required: int
    remaining_quantity: int
    is_fully_released: bool


def _chronological(history: Iterable[HistoryEntry]) -> List[HistoryEntry]:
    return sorted(history, key=lambda entry: entry.date)


def payment_history(record: FulfillmentRecord, catalog: Catalog) -> List[PaymentLine]:
    total = total_amount(record, catalog)
    running = ZERO
    lines = []
    for entry in _chronological(e for e in record.history if e.includes_payment):
        running += entry.paid_amount
        remaining = max(ZERO, total - running)
        lines.append(PaymentLine(entry, running, remaining, remaining == 0))
    return lines


def receipt_history(record: FulfillmentRecord, catalog: Catalog) -> List[ReceiptLine]:
    required = required_quantity(record, catalog)
    running = 0
    lines = []
    for entry in _chronological(e for e in record.history if e.includes_receipt):
        running += entry.item_quantity_received
        remaining = max(0, required - running)
        lines.append(ReceiptLine(entry, running, remaining, remaining == 0))
    return lines


def replay(history: Iterable[HistoryEntry]) -> Replay:
    """Fold the history from empty. Must reproduce the record's stored totals."""
    paid = ZERO
    provided = 0
    received = 0
    released: List[str] = []
    for entry in history:
        paid += entry.paid_amount
        provided += entry.item_quantity_provided
        received += entry.item_quantity_received
        released.extend(requirement_id for requirement_id in entry.released_items if requirement_id not in released)
    return Replay(paid, provided, received, tuple(released))


def item_equivalent(cash: Decimal, ppi: Decimal) -> int:
    if not ppi or cash <= 0:
        return 0
    ratio = (cash / ppi).quantize(_RATIO_PRECISION, rounding=ROUND_HALF_UP)
    return int(ratio.to_integral_value(rounding=ROUND_FLOOR))


def cash_equivalent(items: int, ppi: Decimal) -> Decimal:
    return to_money(items * ppi)


def summarize(record: FulfillmentRecord, catalog: Catalog) -> RecordSummary:
    total = total_amount(record, catalog)
    required = required_quantity(record, catalog)
    ppi = price_per_item(total, required)
    balance = max(ZERO, total - record.paid_amount)
    return RecordSummary(
        total_amount=total,
        paid_amount=record.paid_amount,
        balance=balance,
        price_per_item=to_money(ppi),
        paid_item_equivalent=item_equivalent(record.paid_amount, ppi),
        balance_item_equivalent=item_equivalent(balance, ppi),
        total_item_quantity_required=required,
        remaining_quantity=max(0, required - record.item_quantity_provided),
        is_fully_released=is_fully_released(record),
    )
