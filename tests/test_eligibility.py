from datetime import date

import pytest

from app.core.enums import PupilSection, RequirementFrequency, RequirementGender, ScopeType
from app.core.exceptions import EligibilityError
from app.ledger.catalog import Catalog, EligibilityFilter
from app.ledger.eligibility import matches_scope, resolve

from tests.factories import NEXT_YEAR_TERM1, TERM1, TERM2, item, pupil, record


def ids(items):
    return [i.id for i in items]


def test_termly_item_with_no_record_is_eligible() -> None:
    catalog = Catalog([item("U1", price="100", quantity=2)])
    assert ids(resolve(pupil(), TERM1, catalog, [], [])) == ["U1"]


def test_termly_item_hidden_when_term_already_has_it() -> None:
    catalog = Catalog([item("U1")])
    existing = [record("U1", TERM1)]
    assert resolve(pupil(), TERM1, catalog, existing, existing) == []
    # A record in another term does not hide a termly item.
    assert ids(resolve(pupil(), TERM2, catalog, [], existing)) == ["U1"]


def test_yearly_item_only_in_first_term() -> None:
    catalog = Catalog([item("Y1", frequency=RequirementFrequency.YEARLY)])
    assert ids(resolve(pupil(), TERM1, catalog, [], [])) == ["Y1"]
    assert resolve(pupil(), TERM2, catalog, [], []) == []


def test_yearly_item_with_record_in_term_one_is_excluded_in_term_two() -> None:
    catalog = Catalog([item("Y1", frequency=RequirementFrequency.YEARLY), item("U1")])
    year_records = [record("Y1", TERM1)]
    assert ids(resolve(pupil(), TERM2, catalog, [], year_records)) == ["U1"]
    assert ids(resolve(pupil(), TERM1, catalog, year_records, year_records)) == ["U1"]


def test_one_time_item_is_lifetime_once_when_history_supplied() -> None:
    catalog = Catalog([item("O1", frequency=RequirementFrequency.ONE_TIME)])
    last_year = [record("O1", TERM1)]
    assert ids(resolve(pupil(), NEXT_YEAR_TERM1, catalog, [], [])) == ["O1"]
    assert resolve(pupil(), NEXT_YEAR_TERM1, catalog, [], [], existing_records_ever=last_year) == []


def test_scope_filters() -> None:
    catalog = Catalog(
        [
            item("BOYS", gender=RequirementGender.MALE),
            item("GIRLS", gender=RequirementGender.FEMALE),
            item("P4", class_type=ScopeType.SPECIFIC, class_ids=("P4", "P5")),
            item("P7", class_type=ScopeType.SPECIFIC, class_ids=("P7",)),
            item("DAY", section_type=ScopeType.SPECIFIC, section=PupilSection.DAY),
            item("BOARD", section_type=ScopeType.SPECIFIC, section=PupilSection.BOARDING),
        ]
    )
    assert set(ids(resolve(pupil(), TERM1, catalog, [], []))) == {"GIRLS", "P4", "BOARD"}


def test_pupil_without_class_gets_only_all_scope_class_items() -> None:
    catalog = Catalog([item("ALL"), item("P4", class_type=ScopeType.SPECIFIC, class_ids=("P4",))])
    assert ids(resolve(pupil(class_id=None), TERM1, catalog, [], [])) == ["ALL"]


def test_missing_gender_skips_only_gendered_items() -> None:
    girls = item("GIRLS", gender=RequirementGender.FEMALE)
    with pytest.raises(EligibilityError):
        matches_scope(girls, pupil(gender=None))
    catalog = Catalog([girls, item("ALL")])
    assert ids(resolve(pupil(gender=None), TERM1, catalog, [], [])) == ["ALL"]


def test_inactive_items_are_skipped() -> None:
    catalog = Catalog([item("OLD", is_active=False), item("NEW")])
    assert ids(resolve(pupil(), TERM1, catalog, [], [])) == ["NEW"]


def test_pupil_registered_after_term_start_owes_nothing() -> None:
    catalog = Catalog([item("U1")])
    late = pupil(registration_date=date(2025, 2, 1))
    assert resolve(late, TERM1, catalog, [], []) == []
    assert ids(resolve(late, TERM2, catalog, [], [])) == ["U1"]


def test_ordering_by_frequency_specificity_then_price() -> None:
    catalog = Catalog(
        [
            item("T-cheap", price="10"),
            item("T-dear", price="90"),
            item("T-specific", price="5", gender=RequirementGender.FEMALE),
            item("Y", price="1", frequency=RequirementFrequency.YEARLY),
            item("O", price="1", frequency=RequirementFrequency.ONE_TIME),
        ]
    )
    assert ids(resolve(pupil(), TERM1, catalog, [], [])) == ["O", "Y", "T-dear", "T-cheap", "T-specific"]


def test_eligibility_filter_prefilters_scope() -> None:
    items = [
        item("BOYS", gender=RequirementGender.MALE),
        item("ALL"),
        item("P7", class_type=ScopeType.SPECIFIC, class_ids=("P7",)),
        item("OFF", is_active=False),
    ]
    flt = EligibilityFilter.for_pupil(pupil())
    assert [i.id for i in items if flt.matches(i)] == ["ALL"]
