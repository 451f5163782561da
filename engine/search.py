"""
Record Search

Case-insensitive substring search over name, description, era and
category, plus a short "hot items" list shown for an empty query.
"""

from __future__ import annotations
from typing import Any, List, Optional, Sequence
import logging

import numpy as np

from .contracts.base import optional_canonical_id
from .contracts.records import Record


logger = logging.getLogger(__name__)

HOT_CATEGORIES = ("person", "artifact")
HOT_PER_CATEGORY = 3
HOT_TOTAL = 5


class RecordSearch:
    """Search over the currently loaded record list."""

    def __init__(self, records: Sequence[Record] = (), rng: Optional[np.random.Generator] = None):
        self._records: List[Record] = list(records)
        self._rng = rng

    def reset(self, records: Sequence[Record]) -> None:
        self._records = list(records)

    def search(self, query: str, limit: Optional[int] = None) -> List[Record]:
        term = (query or "").strip().lower()
        if not term:
            return []
        matches = [r for r in self._records if self._matches(r, term)]
        logger.debug("search %r matched %d records", query, len(matches))
        return matches if limit is None else matches[:limit]

    def find(self, key: Any) -> Optional[Record]:
        """Resolve a record by primary id or external-graph id."""
        canonical = optional_canonical_id(key)
        if canonical is None:
            return None
        for record in self._records:
            if record.record_id == canonical or record.external_graph_id == canonical:
                return record
        return None

    def hot_items(self, count: int = HOT_TOTAL) -> List[Record]:
        """Up to HOT_PER_CATEGORY of each hot category, padded from the rest."""
        picked: List[Record] = []
        for category in HOT_CATEGORIES:
            pool = self._shuffled([r for r in self._records if r.category == category])
            picked.extend(pool[:HOT_PER_CATEGORY])

        if len(picked) < HOT_TOTAL:
            chosen = {r.record_id for r in picked}
            rest = self._shuffled([r for r in self._records if r.record_id not in chosen])
            picked.extend(rest[:HOT_TOTAL - len(picked)])
        return picked[:count]

    @staticmethod
    def _matches(record: Record, term: str) -> bool:
        fields = (record.name, record.description, record.era, record.category)
        return any(term in value.lower() for value in fields if value)

    def _shuffled(self, records: List[Record]) -> List[Record]:
        if self._rng is None or len(records) < 2:
            return records
        order = self._rng.permutation(len(records))
        return [records[i] for i in order]
