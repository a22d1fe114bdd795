from datetime import timedelta
from decimal import Decimal

from app.core.enums import ReceiptSource
from app.ledger.catalog import Catalog
from app.ledger.coverage import apply_class_receipt, apply_coverage, apply_release
from app.ledger.history import cash_equivalent, item_equivalent, payment_history, receipt_history, summarize
from app.ledger.types import Bundle, CashContribution, ItemContribution

from tests.factories import T0, item, record

CATALOG = Catalog([item("U1", price="100", quantity=2), item("BOOKS", price="100", quantity=3), item("FEE", price="75")])


def test_payment_history_running_totals() -> None:
    r = record("U1", total_item_quantity_required=2)
    r = apply_coverage(r, CashContribution(Decimal("60")), CATALOG, "bursar", T0)
    r = apply_release(r, ["U1"], False, "storekeeper", T0 + timedelta(hours=1))
    r = apply_coverage(r, ItemContribution(1), CATALOG, "bursar", T0 + timedelta(hours=2))

    lines = payment_history(r, CATALOG)
    assert [line.running_total for line in lines] == [Decimal("60"), Decimal("110")]
    assert [line.remaining_balance for line in lines] == [Decimal("40"), Decimal("0")]
    assert [line.is_full_payment for line in lines] == [False, True]


def test_payment_history_sorted_by_date() -> None:
    r = record("FEE")
    r = apply_coverage(r, CashContribution(Decimal("25")), CATALOG, "bursar", T0 + timedelta(days=2))
    r = apply_coverage(r, CashContribution(Decimal("10")), CATALOG, "bursar", T0)
    lines = payment_history(r, CATALOG)
    assert [line.entry.paid_amount for line in lines] == [Decimal("10"), Decimal("25")]
    assert lines[-1].running_total == Decimal("35")


def test_receipt_history_running_items() -> None:
    r = record("BOOKS", total_item_quantity_required=3)
    r = apply_coverage(r, CashContribution(Decimal("10")), CATALOG, "bursar", T0)
    r = apply_class_receipt(r, 1, ReceiptSource.office, CATALOG, "teacher", T0 + timedelta(hours=1))
    r = apply_class_receipt(r, 2, ReceiptSource.parent, CATALOG, "teacher", T0 + timedelta(hours=2))

    lines = receipt_history(r, CATALOG)
    assert [(line.running_received, line.remaining_items, line.is_full_receipt) for line in lines] == [
        (1, 2, False),
        (3, 0, True),
    ]
    # The parent receipt is also a payment.
    assert len(payment_history(r, CATALOG)) == 2


def test_item_and_cash_equivalents() -> None:
    ppi = Decimal("100") / 3
    assert item_equivalent(Decimal("100"), ppi) == 3
    assert item_equivalent(Decimal("66.66"), ppi) == 1
    assert item_equivalent(Decimal("50"), Decimal("0")) == 0
    assert cash_equivalent(2, Decimal("50")) == Decimal("100.00")


def test_summary_of_bundle() -> None:
    catalog = Catalog([item("U1", price="100", quantity=2), item("U2", price="60", quantity=2)])
    r = record(selector=Bundle(("U1", "U2")), total_item_quantity_required=4)
    r = apply_coverage(r, CashContribution(Decimal("80")), catalog, "bursar", T0)
    s = summarize(r, catalog)
    assert s.total_amount == Decimal("160")
    assert s.balance == Decimal("80")
    assert s.price_per_item == Decimal("40.00")
    assert s.paid_item_equivalent == 2
    assert s.balance_item_equivalent == 2
    assert s.remaining_quantity == 4
    assert s.is_fully_released is False


def test_summary_without_quantities_falls_back_to_cash() -> None:
    s = summarize(record("FEE"), CATALOG)
    assert s.price_per_item == Decimal("0.00")
    assert s.paid_item_equivalent == 0
    assert s.balance == Decimal("75")
