"""
Base Contracts and Shared Types

Foundational types used across the engine layers.
All types here are IMMUTABLE and represent pure data.

BOUNDARY ENFORCEMENT:
=====================
- Layers may import types but MUST NOT modify this module
- All identifiers pass through canonical_id() at ingestion
- Soft failures are Error values, never exceptions
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, auto
from typing import Any, Optional, Tuple


# =============================================================================
# ERROR STATES (Explicit, never silent)
# =============================================================================

class ErrorCode(Enum):
    """
    Explicit error codes for local, non-propagating failures.
    None of these abort the running scene.
    """
    # Data errors
    DATA_UNAVAILABLE = auto()
    LOOKUP_MISS = auto()
    RELATION_FETCH_FAILURE = auto()

    # Interaction errors
    INVALID_TRANSITION = auto()
    REBUILD_IN_PROGRESS = auto()

    # Layout errors
    PLACEMENT_RETRY_EXHAUSTED = auto()
    INDEX_NOT_READY = auto()
    BUILD_TIMEOUT = auto()

    # Persistence errors
    VIEWSTATE_CORRUPT = auto()


@dataclass(frozen=True)
class Error:
    """
    Immutable error representation with full context.
    Errors are data, not exceptions - they can be stored and queried.
    """
    code: ErrorCode
    message: str
    timestamp: datetime
    context: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    @staticmethod
    def create(code: ErrorCode, message: str, **context: Any) -> Error:
        return Error(
            code=code,
            message=message,
            timestamp=datetime.now(timezone.utc),
            context=tuple((k, str(v)) for k, v in sorted(context.items()))
        )

    def with_context(self, key: str, value: str) -> Error:
        """Return new Error with additional context (immutable)."""
        return Error(
            code=self.code,
            message=self.message,
            timestamp=self.timestamp,
            context=self.context + ((key, value),)
        )


@dataclass(frozen=True)
class Result:
    """
    Generic result type for operations that can fail softly.
    Either contains a value OR an error, never both.
    """
    value: Optional[object] = None
    error: Optional[Error] = None

    @property
    def is_success(self) -> bool:
        return self.error is None

    @property
    def is_failure(self) -> bool:
        return self.error is not None

    @staticmethod
    def success(value: object) -> Result:
        return Result(value=value, error=None)

    @staticmethod
    def failure(error: Error) -> Result:
        return Result(value=None, error=error)


class IndexNotReadyError(RuntimeError):
    """Raised when a SpatialIndex is queried before its build completed."""


# =============================================================================
# IDENTITY
# =============================================================================

def canonical_id(value: Any) -> str:
    """
    Normalize an identifier to its one canonical string form.

    Integers and integral floats collapse to their decimal form, strings
    are stripped. 42, 42.0, "42" and " 42 " are the same key.
    """
    if value is None:
        raise ValueError("identifier must not be None")
    if isinstance(value, bool):
        raise ValueError("identifier must not be a boolean")
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    text = str(value).strip()
    if not text:
        raise ValueError("identifier must be a non-empty value")
    return text


def optional_canonical_id(value: Any) -> Optional[str]:
    """canonical_id() that maps missing/blank values to None."""
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return canonical_id(value)


# =============================================================================
# GROUPING MODE
# =============================================================================

class GroupingMode(Enum):
    """Dimension used to partition records into clusters."""
    BY_ERA = "by-era"
    BY_CATEGORY = "by-category"

    @staticmethod
    def parse(value: str) -> GroupingMode:
        """Accept the canonical values plus the legacy 'dynasty'/'type' aliases."""
        aliases = {
            "by-era": GroupingMode.BY_ERA,
            "era": GroupingMode.BY_ERA,
            "dynasty": GroupingMode.BY_ERA,
            "by-category": GroupingMode.BY_CATEGORY,
            "category": GroupingMode.BY_CATEGORY,
            "type": GroupingMode.BY_CATEGORY,
        }
        try:
            return aliases[value.strip().lower()]
        except (KeyError, AttributeError):
            raise ValueError(f"Unknown grouping mode: {value!r}")


# Catch-all cluster label shared by both grouping modes
UNCLASSIFIED = "unclassified"
