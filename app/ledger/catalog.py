"""In-memory view over the requirement catalog: lookups, totals and pre-filtering."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, Iterator, List, Optional

from app.core.enums import RequirementFrequency, RequirementGender, ScopeType
from app.ledger.types import ZERO, RequirementItem, RequirementSelector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EligibilityFilter:
    """Coarse scope filter applied before the frequency rules. None means "do not filter"."""

    gender: Optional[str] = None
    class_id: Optional[str] = None
    section: Optional[str] = None
    frequency: Optional[RequirementFrequency] = None
    active_only: bool = True

    @classmethod
    def for_pupil(cls, pupil) -> EligibilityFilter:
        return cls(gender=pupil.gender, class_id=pupil.class_id, section=pupil.section)

    def matches(self, item: RequirementItem) -> bool:
        if self.active_only and not item.is_active:
            return False
        if self.frequency is not None and item.frequency != self.frequency:
            return False
        if self.gender and item.gender not in (RequirementGender.ALL, self.gender.lower()):
            return False
        if self.class_id and item.class_type == ScopeType.SPECIFIC and self.class_id not in item.class_ids:
            return False
        if (
            self.section
            and item.section_type == ScopeType.SPECIFIC
            and (item.section is None or item.section.value.lower() != self.section.lower())
        ):
            return False
        return True


def filter_items(items: Iterable[RequirementItem], flt: EligibilityFilter) -> List[RequirementItem]:
    return [item for item in items if flt.matches(item)]


class Catalog:
    """Requirement items keyed by id. Unknown ids are logged and contribute nothing to totals."""

    def __init__(self, items: Iterable[RequirementItem]) -> None:
        self._items: Dict[str, RequirementItem] = {item.id: item for item in items}

    def __iter__(self) -> Iterator[RequirementItem]:
        return iter(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, requirement_id: str) -> bool:
        return requirement_id in self._items

    def get(self, requirement_id: str) -> Optional[RequirementItem]:
        return self._items.get(requirement_id)

    def items_for(self, selector: RequirementSelector) -> List[RequirementItem]:
        found = []
        for requirement_id in selector.ids:
            item = self._items.get(requirement_id)
            if item is None:
                logger.warning("Requirement %s not found in catalog", requirement_id)
                continue
            found.append(item)
        return found

    def total_price(self, selector: RequirementSelector) -> Decimal:
        return sum((item.price for item in self.items_for(selector)), ZERO)

    def total_quantity(self, selector: RequirementSelector) -> int:
        return sum(item.quantity for item in self.items_for(selector))

    def is_term_scoped(self, requirement_id: str) -> bool:
        """Termly items (and ids the catalog no longer knows) are unique per term; the rest per year."""
        item = self._items.get(requirement_id)
        return item is None or item.frequency == RequirementFrequency.TERMLY
