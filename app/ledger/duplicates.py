"""Duplicate detection: records that claim the same requirement within its frequency scope."""

from __future__ import annotations

from typing import Dict, Iterable, List, Tuple

from app.ledger.catalog import Catalog
from app.ledger.types import FulfillmentRecord


def scope_keys(record: FulfillmentRecord, catalog: Catalog) -> List[Tuple[str, ...]]:
    """Termly requirements are unique per term, yearly and one-time requirements per year."""
    return [
        (requirement_id, record.term_id) if catalog.is_term_scoped(requirement_id) else (requirement_id,)
        for requirement_id in record.requirement_ids
    ]


def find_duplicates(records: Iterable[FulfillmentRecord], catalog: Catalog) -> List[FulfillmentRecord]:
    """Records of one pupil and year that repeat a requirement already claimed by an older record.

    The oldest record of each group is kept and never reported.
    """
    records = list(records)
    dated = sorted((r for r in records if r.created_at), key=lambda r: (r.created_at, r.id or ""))
    ordered = dated + [r for r in records if not r.created_at]
    claimed: Dict[Tuple[str, ...], str] = {}
    duplicates = []
    for record in ordered:
        keys = scope_keys(record, catalog)
        if any(key in claimed for key in keys):
            duplicates.append(record)
            continue
        for key in keys:
            claimed[key] = record.id
    return duplicates
