"""
Observability & Audit Collectors

RESPONSIBILITY: record focus transitions, user-facing notices and counters
ALLOWED INPUTS: copies of transition outcomes and notice texts
OUTPUTS: TransitionRecord history, visible notices, counter snapshots

WHAT THIS LAYER MUST NOT DO:
============================
- Modify scene or focus state
- Make decisions based on logged data
- Block a transition

Collectors are append-only. NoticeBoard is the one exception to pure
accumulation: notices expire after their ttl, measured in scene time.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple


# =============================================================================
# TRANSITION LOG
# =============================================================================

@dataclass(frozen=True)
class TransitionRecord:
    """One attempted focus transition, accepted or not."""
    trigger: str
    from_state: str
    to_state: str
    accepted: bool
    error_code: Optional[str]
    generation: int
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class TransitionLog:
    """Append-only history of focus transitions."""

    def __init__(self):
        self._records: List[TransitionRecord] = []

    def record(
        self,
        trigger: str,
        from_state: str,
        to_state: str,
        accepted: bool,
        error_code: Optional[str] = None,
        generation: int = 0
    ) -> TransitionRecord:
        entry = TransitionRecord(
            trigger=trigger,
            from_state=from_state,
            to_state=to_state,
            accepted=accepted,
            error_code=error_code,
            generation=generation,
        )
        self._records.append(entry)
        return entry

    @property
    def records(self) -> Tuple[TransitionRecord, ...]:
        return tuple(self._records)

    def rejected(self) -> Tuple[TransitionRecord, ...]:
        return tuple(r for r in self._records if not r.accepted)

    def for_trigger(self, trigger: str) -> Tuple[TransitionRecord, ...]:
        return tuple(r for r in self._records if r.trigger == trigger)

    def __len__(self) -> int:
        return len(self._records)


# =============================================================================
# NOTICES
# =============================================================================

@dataclass(frozen=True)
class Notice:
    """Transient user-facing message."""
    text: str
    kind: str
    created_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.created_at >= self.ttl


class NoticeBoard:
    """Holds notices until their ttl elapses."""

    def __init__(self, default_ttl: float = 2.0):
        self._default_ttl = default_ttl
        self._notices: List[Notice] = []

    def post(self, text: str, now: float, kind: str = "info", ttl: Optional[float] = None) -> Notice:
        notice = Notice(
            text=text,
            kind=kind,
            created_at=now,
            ttl=self._default_ttl if ttl is None else ttl,
        )
        self._notices.append(notice)
        return notice

    def expire(self, now: float) -> int:
        before = len(self._notices)
        self._notices = [n for n in self._notices if not n.is_expired(now)]
        return before - len(self._notices)

    def visible(self, now: float) -> Tuple[Notice, ...]:
        return tuple(n for n in self._notices if not n.is_expired(now))


# =============================================================================
# COUNTERS
# =============================================================================

class EngineCounters:
    """Monotonic event counters (builds, relation failures, lookup misses...)."""

    def __init__(self):
        self._counts: Dict[str, int] = {}

    def increment(self, name: str, amount: int = 1) -> int:
        self._counts[name] = self._counts.get(name, 0) + amount
        return self._counts[name]

    def get(self, name: str) -> int:
        return self._counts.get(name, 0)

    def snapshot(self) -> Dict[str, int]:
        return dict(self._counts)
