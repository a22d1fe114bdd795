from datetime import timedelta

import pytest

from app.core.enums import CoverageMode, PaymentStatus, ReleaseStatus, RequirementFrequency
from app.core.exceptions import DuplicateAssignmentError, StoreError
from app.ledger.assignment import auto_assign, ensure_absent, fill_missing
from app.ledger.catalog import Catalog
from app.ledger.duplicates import find_duplicates
from app.ledger.types import AssignmentSession, Bundle

from tests.factories import NEXT_YEAR_TERM1, T0, TERM1, TERM2, InMemoryRecordStore, item, pupil, record


CATALOG = Catalog(
    [
        item("U1", price="100", quantity=2),
        item("Y1", price="300", frequency=RequirementFrequency.YEARLY),
        item("O1", price="50", frequency=RequirementFrequency.ONE_TIME),
    ]
)


@pytest.mark.asyncio
async def test_first_load_creates_pending_records() -> None:
    store = InMemoryRecordStore()
    result = await auto_assign(AssignmentSession(), pupil(), TERM1, Catalog([item("U1", price="100", quantity=2)]), store, T0)

    assert len(result.created) == 1
    created = result.created[0]
    assert created.id in store.records
    assert created.requirement_ids == ("U1",)
    assert created.paid_amount == 0
    assert created.payment_status == PaymentStatus.pending
    assert created.release_status == ReleaseStatus.pending
    assert created.coverage_mode == CoverageMode.cash
    assert created.history == ()
    assert created.total_item_quantity_required == 2


@pytest.mark.asyncio
async def test_auto_assign_twice_creates_nothing_the_second_time() -> None:
    store = InMemoryRecordStore()
    first = await auto_assign(AssignmentSession(), pupil(), TERM1, CATALOG, store, T0)
    assert {r.requirement_ids[0] for r in first.created} == {"U1", "Y1", "O1"}

    # New session, same term: records already exist.
    second = await auto_assign(AssignmentSession(), pupil(), TERM1, CATALOG, store, T0)
    assert second.created == []
    assert len(store.records) == 3


@pytest.mark.asyncio
async def test_processed_session_is_a_noop() -> None:
    store = InMemoryRecordStore()
    session = AssignmentSession()
    await auto_assign(session, pupil(), TERM1, CATALOG, store, T0)
    calls = store.create_calls
    store.records.clear()

    result = await auto_assign(session, pupil(), TERM1, CATALOG, store, T0)
    assert result.created == []
    assert store.create_calls == calls


@pytest.mark.asyncio
async def test_term_with_records_is_marked_processed_without_creating() -> None:
    store = InMemoryRecordStore([record("U1", TERM1)])
    session = AssignmentSession()
    result = await auto_assign(session, pupil(), TERM1, CATALOG, store, T0)
    assert result.created == []
    assert session.is_processed(pupil(), TERM1)
    assert len(store.records) == 1


@pytest.mark.asyncio
async def test_refresh_fills_gaps_only() -> None:
    store = InMemoryRecordStore([record("U1", TERM1)])
    result = await fill_missing(pupil(), TERM1, CATALOG, store, T0)
    assert sorted(r.requirement_ids[0] for r in result.created) == ["O1", "Y1"]
    again = await fill_missing(pupil(), TERM1, CATALOG, store, T0)
    assert again.created == []


@pytest.mark.asyncio
async def test_second_term_gets_termly_items_only() -> None:
    store = InMemoryRecordStore()
    await auto_assign(AssignmentSession(), pupil(), TERM1, CATALOG, store, T0)
    result = await auto_assign(AssignmentSession(), pupil(), TERM2, CATALOG, store, T0)
    assert [r.requirement_ids for r in result.created] == [("U1",)]


@pytest.mark.asyncio
async def test_one_time_item_not_reassigned_next_year() -> None:
    store = InMemoryRecordStore()
    await auto_assign(AssignmentSession(), pupil(), TERM1, CATALOG, store, T0)
    result = await auto_assign(AssignmentSession(), pupil(), NEXT_YEAR_TERM1, CATALOG, store, T0)
    assert sorted(r.requirement_ids[0] for r in result.created) == ["U1", "Y1"]


@pytest.mark.asyncio
async def test_failed_create_is_logged_and_skipped() -> None:
    store = InMemoryRecordStore(fail_for={"Y1"})
    result = await auto_assign(AssignmentSession(), pupil(), TERM1, CATALOG, store, T0)
    assert sorted(r.requirement_ids[0] for r in result.created) == ["O1", "U1"]
    assert [requirement_id for requirement_id, _ in result.failed] == ["Y1"]


@pytest.mark.asyncio
async def test_store_error_when_nothing_could_be_created() -> None:
    store = InMemoryRecordStore(fail_for={"U1", "Y1", "O1"})
    session = AssignmentSession()
    with pytest.raises(StoreError):
        await auto_assign(session, pupil(), TERM1, CATALOG, store, T0)
    assert not session.is_processed(pupil(), TERM1)


@pytest.mark.asyncio
async def test_recheck_rejects_item_claimed_in_scope() -> None:
    store = InMemoryRecordStore([record("Y1", TERM1), record("U1", TERM1)])
    with pytest.raises(DuplicateAssignmentError):
        await ensure_absent(store, pupil(), TERM2, ["Y1"], CATALOG)
    # Termly items are only checked against the current term.
    await ensure_absent(store, pupil(), TERM2, ["U1"], CATALOG)


def test_find_duplicates_keeps_oldest_per_scope() -> None:
    oldest = record("U1", TERM1, id="a", created_at=T0)
    repeat = record("U1", TERM1, id="b", created_at=T0 + timedelta(minutes=1))
    other_term = record("U1", TERM2, id="c", created_at=T0 + timedelta(minutes=2))
    yearly = record("Y1", TERM1, id="d", created_at=T0)
    yearly_again = record("Y1", TERM2, id="e", created_at=T0 + timedelta(days=90))
    bundle = record(selector=Bundle(("O1", "U1")), term=TERM2, id="f", created_at=T0 + timedelta(days=91))

    duplicates = find_duplicates([bundle, yearly_again, repeat, oldest, other_term, yearly], CATALOG)
    assert [r.id for r in duplicates] == ["b", "e", "f"]
