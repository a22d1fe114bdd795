"""
Eligibility resolver: which catalog items a pupil still owes in a term.

Scope predicates (gender, class, section) narrow the catalog, frequency rules
hide items that an existing record already covers, and the result is ordered
one-time first, then yearly, then termly, by ascending specificity score within
a tier and dearer items first on ties.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

from app.core.enums import RequirementFrequency, RequirementGender, ScopeType
from app.core.exceptions import EligibilityError
from app.ledger.types import FulfillmentRecord, PupilContext, RequirementItem, TermContext

logger = logging.getLogger(__name__)

FREQUENCY_RANK = {
    RequirementFrequency.ONE_TIME: 0,
    RequirementFrequency.YEARLY: 1,
    RequirementFrequency.TERMLY: 2,
}


def matches_scope(item: RequirementItem, pupil: PupilContext) -> bool:
    """Gender/class/section match. Raises EligibilityError when the pupil lacks a needed attribute."""
    if item.gender != RequirementGender.ALL:
        if not pupil.gender:
            raise EligibilityError(f"Pupil {pupil.id} has no gender for {item.gender.value}-only item", item.id)
        if pupil.gender != item.gender.value:
            return False

    if item.class_type == ScopeType.SPECIFIC:
        # No class means no class-specific obligations.
        if not pupil.class_id or pupil.class_id not in item.class_ids:
            return False

    if item.section_type == ScopeType.SPECIFIC:
        if not pupil.section:
            raise EligibilityError(f"Pupil {pupil.id} has no section for a section-specific item", item.id)
        if item.section is None or item.section.value.lower() != pupil.section.lower():
            return False

    return True


def _referenced(records: Iterable[FulfillmentRecord], requirement_id: str) -> bool:
    return any(record.references(requirement_id) for record in records)


def is_visible(
    item: RequirementItem,
    term: TermContext,
    existing_records_this_term: Sequence[FulfillmentRecord],
    existing_records_this_year: Sequence[FulfillmentRecord],
    existing_records_ever: Optional[Sequence[FulfillmentRecord]] = None,
) -> bool:
    if item.frequency == RequirementFrequency.TERMLY:
        return not _referenced(existing_records_this_term, item.id)
    if item.frequency == RequirementFrequency.YEARLY:
        return term.is_first_term and not _referenced(existing_records_this_year, item.id)
    # one-time
    if _referenced(existing_records_this_year, item.id):
        return False
    return existing_records_ever is None or not _referenced(existing_records_ever, item.id)


def sort_key(item: RequirementItem):
    return (FREQUENCY_RANK[item.frequency], item.specificity, -item.price)


def resolve(
    pupil: PupilContext,
    term: TermContext,
    catalog: Iterable[RequirementItem],
    existing_records_this_term: Sequence[FulfillmentRecord],
    existing_records_this_year: Sequence[FulfillmentRecord],
    existing_records_ever: Optional[Sequence[FulfillmentRecord]] = None,
) -> List[RequirementItem]:
    if pupil.registration_date and term.start_date and pupil.registration_date > term.start_date:
        logger.info(
            "Pupil %s registered on %s, after term %s started; no requirements apply",
            pupil.id,
            pupil.registration_date,
            term.id,
        )
        return []

    eligible: List[RequirementItem] = []
    for item in catalog:
        if not item.is_active:
            continue
        try:
            if not matches_scope(item, pupil):
                continue
        except EligibilityError as exc:
            logger.warning("Skipping requirement %s: %s", item.id, exc.message)
            continue
        if is_visible(item, term, existing_records_this_term, existing_records_this_year, existing_records_ever):
            eligible.append(item)

    eligible.sort(key=sort_key)
    return eligible
