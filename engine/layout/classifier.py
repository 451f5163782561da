"""
Entity Classifier
=================

Partitions records into named groups for one grouping mode.

RULES:
======
1. Named records go to the group keyed by the mode's derived label
2. Uninformative (unnamed) records are redistributed round-robin across
   the groups that have named members: floor(n/k) each, the first n%k
   get one more. With no named group at all they keep their own labels
3. In by-category mode the catch-all group never receives
   redistributed records
4. Groups with zero members produce no cluster
5. Zero records in -> zero groups out (caller surfaces "no data")

Conservation: sum(named members) + redistributed == total records.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple
import logging

from ..contracts.base import GroupingMode, UNCLASSIFIED
from ..contracts.records import Record


logger = logging.getLogger(__name__)


# Era label -> keywords matched by containment (case-insensitive)
ERA_TABLE: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("tang", ("唐", "tang")),
    ("song", ("宋", "song")),
    ("yuan", ("元", "yuan")),
    ("ming", ("明", "ming")),
    ("qing", ("清", "qing")),
)


def era_label(era: str) -> str:
    """Map a free-text era to a fixed era label, else the catch-all."""
    if not era:
        return UNCLASSIFIED
    text = era.strip().lower()
    for label, keywords in ERA_TABLE:
        if any(keyword in text for keyword in keywords):
            return label
    return UNCLASSIFIED


def category_label(category: str) -> str:
    if not category or not category.strip():
        return UNCLASSIFIED
    return category.strip().lower()


def group_label(record: Record, mode: GroupingMode) -> str:
    """Derived label of a record under a grouping mode."""
    if mode is GroupingMode.BY_ERA:
        return era_label(record.era)
    return category_label(record.category)


# =============================================================================
# CLASSIFICATION RESULT
# =============================================================================

@dataclass(frozen=True)
class GroupAssignment:
    """Members of one group: its own named records plus redistributed ones."""
    key: str
    members: Tuple[Record, ...]
    redistributed: Tuple[Record, ...] = field(default_factory=tuple)

    @property
    def member_count(self) -> int:
        return len(self.members) + len(self.redistributed)

    def all_records(self) -> Tuple[Record, ...]:
        return self.members + self.redistributed


@dataclass(frozen=True)
class Classification:
    """Output of one classifier run. Groups are ordered by member count, descending."""
    mode: GroupingMode
    groups: Tuple[GroupAssignment, ...]
    total_count: int
    uninformative_count: int

    @property
    def is_empty(self) -> bool:
        return not self.groups

    @property
    def keys(self) -> Tuple[str, ...]:
        return tuple(g.key for g in self.groups)

    def counts(self) -> Dict[str, int]:
        return {g.key: g.member_count for g in self.groups}

    def group(self, key: str) -> GroupAssignment:
        for g in self.groups:
            if g.key == key:
                return g
        raise KeyError(key)


# =============================================================================
# CLASSIFIER
# =============================================================================

class EntityClassifier:
    """
    Splits records into groups and redistributes uninformative records.

    Stateless: classify() is a pure function of its inputs.
    """

    def classify(self, records: Sequence[Record], mode: GroupingMode) -> Classification:
        if not records:
            logger.warning("classifier received no records; emitting no groups")
            return Classification(mode=mode, groups=(), total_count=0, uninformative_count=0)

        named: Dict[str, List[Record]] = {}
        uninformative: List[Record] = []

        for record in records:
            if record.is_uninformative:
                uninformative.append(record)
            else:
                named.setdefault(group_label(record, mode), []).append(record)

        # Largest named groups receive the remainder first
        ordered = sorted(named, key=lambda k: (-len(named[k]), k))
        targets = self._redistribution_targets(ordered, mode)
        if targets:
            redistributed = self._round_robin(uninformative, targets)
        else:
            # No named group anywhere: unnamed records keep their own labels
            redistributed = {}
            for record in uninformative:
                redistributed.setdefault(group_label(record, mode), []).append(record)

        keys = ordered + [k for k in redistributed if k not in named]
        groups = []
        for key in keys:
            assignment = GroupAssignment(
                key=key,
                members=tuple(named.get(key, ())),
                redistributed=tuple(redistributed.get(key, ())),
            )
            if assignment.member_count > 0:
                groups.append(assignment)

        groups.sort(key=lambda g: (-g.member_count, g.key))

        logger.debug(
            "classified %d records (%d uninformative) into %d groups [%s]",
            len(records), len(uninformative), len(groups), mode.value
        )
        return Classification(
            mode=mode,
            groups=tuple(groups),
            total_count=len(records),
            uninformative_count=len(uninformative),
        )

    def _redistribution_targets(self, ordered: List[str], mode: GroupingMode) -> List[str]:
        if mode is GroupingMode.BY_CATEGORY:
            targets = [k for k in ordered if k != UNCLASSIFIED]
            if targets:
                return targets
            # Only the catch-all has named members, or nothing does
            return list(ordered)
        return list(ordered)

    @staticmethod
    def _round_robin(records: List[Record], targets: List[str]) -> Dict[str, List[Record]]:
        if not records or not targets:
            return {}

        per_group, remainder = divmod(len(records), len(targets))
        assigned: Dict[str, List[Record]] = {}
        cursor = 0
        for index, key in enumerate(targets):
            count = per_group + (1 if index < remainder else 0)
            assigned[key] = records[cursor:cursor + count]
            cursor += count
        return assigned
