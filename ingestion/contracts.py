"""
Ingestion Contracts

Results of pulling the record list from the data API.

PRINCIPLES:
===========
1. Failed fetches are first-class results, not exceptions
2. An empty record list is DATA_UNAVAILABLE, never an empty success
3. Malformed entries are skipped and counted, never fatal
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from engine.contracts.base import Error, ErrorCode
from engine.contracts.records import Record


class FetchStatus(Enum):
    """Status of a fetch attempt."""
    SUCCESS = "success"
    EMPTY = "empty"
    TIMEOUT = "timeout"
    HTTP_ERROR = "http_error"
    PARSE_ERROR = "parse_error"
    NETWORK_ERROR = "network_error"
    SERVICE_ERROR = "service_error"


@dataclass(frozen=True)
class FetchResult:
    """
    Result of a record-list fetch (success or failure).

    records is empty unless status is SUCCESS.
    """
    url: str
    attempted_at: datetime
    completed_at: datetime
    status: FetchStatus
    records: Tuple[Record, ...] = field(default_factory=tuple)
    skipped: int = 0
    http_status: Optional[int] = None
    error_message: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == FetchStatus.SUCCESS

    @property
    def duration_ms(self) -> int:
        return int((self.completed_at - self.attempted_at).total_seconds() * 1000)

    def to_error(self) -> Optional[Error]:
        """DATA_UNAVAILABLE error describing a failed fetch, None on success."""
        if self.success:
            return None
        return Error.create(
            ErrorCode.DATA_UNAVAILABLE,
            self.error_message or self.status.value,
            url=self.url,
            status=self.status.value,
        )
