"""
Record Fetcher

Pulls the record list from the data API.

    GET {base_url}/api/cultural-entities
    -> {"success": true, "data": [ {...record payload...}, ... ]}

PRINCIPLES:
===========
1. Every call returns a FetchResult; network failures never raise
2. Bounded timeout (10s default)
3. Parse with tolerance: a bad entry is skipped, not fatal
"""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple
import json
import logging

import httpx

from engine.contracts.records import Record
from .contracts import FetchResult, FetchStatus


logger = logging.getLogger(__name__)

RECORDS_PATH = "/api/cultural-entities"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def parse_records(body: Any) -> Tuple[List[Record], int]:
    """
    Parse a response body (envelope or bare list) into Records.

    Returns (records, skipped). Raises ValueError if the body has no
    record list at all.
    """
    if isinstance(body, dict):
        if not body.get("success", True):
            raise ValueError(body.get("message") or "service reported failure")
        items = body.get("data")
    else:
        items = body
    if not isinstance(items, list):
        raise ValueError("response carries no record list")

    records: List[Record] = []
    skipped = 0
    for item in items:
        if not isinstance(item, dict):
            skipped += 1
            continue
        try:
            records.append(Record.from_payload(item))
        except (ValueError, TypeError) as e:
            skipped += 1
            logger.debug("skipping malformed record payload: %s", e)
    return records, skipped


class RecordFetcher:
    """
    Fetches the record list.

    GUARANTEES:
    ===========
    1. Failed fetches return FetchResult with error details
    2. An empty list is reported as EMPTY, which callers surface as
       DATA_UNAVAILABLE
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        user_agent: str = "CulturalNebula/1.0",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sync_transport: Optional[httpx.BaseTransport] = None
    ):
        self._url = base_url.rstrip("/") + RECORDS_PATH
        self._timeout = timeout
        self._user_agent = user_agent
        self._transport = transport
        self._sync_transport = sync_transport

    @property
    def url(self) -> str:
        return self._url

    async def fetch(self) -> FetchResult:
        attempted_at = _now()
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.get(self._url, headers={'User-Agent': self._user_agent})
        except httpx.TimeoutException:
            return self._failure(attempted_at, FetchStatus.TIMEOUT, "Request timed out")
        except httpx.HTTPError as e:
            return self._failure(attempted_at, FetchStatus.NETWORK_ERROR, str(e))
        return self._from_response(attempted_at, response)

    def fetch_sync(self) -> FetchResult:
        """Synchronous version of fetch."""
        attempted_at = _now()
        try:
            with httpx.Client(timeout=self._timeout, transport=self._sync_transport) as client:
                response = client.get(self._url, headers={'User-Agent': self._user_agent})
        except httpx.TimeoutException:
            return self._failure(attempted_at, FetchStatus.TIMEOUT, "Request timed out")
        except httpx.HTTPError as e:
            return self._failure(attempted_at, FetchStatus.NETWORK_ERROR, str(e))
        return self._from_response(attempted_at, response)

    def _from_response(self, attempted_at: datetime, response: httpx.Response) -> FetchResult:
        if response.status_code != 200:
            return self._failure(
                attempted_at,
                FetchStatus.HTTP_ERROR,
                f"HTTP {response.status_code}",
                http_status=response.status_code,
            )

        try:
            records, skipped = parse_records(response.json())
        except ValueError as e:
            return self._failure(
                attempted_at, FetchStatus.PARSE_ERROR, str(e), http_status=response.status_code
            )

        if not records:
            return self._failure(
                attempted_at,
                FetchStatus.EMPTY,
                "record list is empty",
                http_status=response.status_code,
            )

        logger.info("fetched %d records from %s (%d skipped)", len(records), self._url, skipped)
        return FetchResult(
            url=self._url,
            attempted_at=attempted_at,
            completed_at=_now(),
            status=FetchStatus.SUCCESS,
            records=tuple(records),
            skipped=skipped,
            http_status=response.status_code,
        )

    def _failure(
        self,
        attempted_at: datetime,
        status: FetchStatus,
        message: str,
        http_status: Optional[int] = None
    ) -> FetchResult:
        logger.warning("record fetch from %s failed: %s", self._url, message)
        return FetchResult(
            url=self._url,
            attempted_at=attempted_at,
            completed_at=_now(),
            status=status,
            http_status=http_status,
            error_message=message,
        )


def load_records_file(path: str) -> FetchResult:
    """Read records from a JSON file holding an envelope or a bare list."""
    attempted_at = _now()
    url = f"file://{path}"
    try:
        with open(path, 'r', encoding='utf-8') as f:
            body = json.load(f)
        records, skipped = parse_records(body)
    except OSError as e:
        return FetchResult(url, attempted_at, _now(), FetchStatus.NETWORK_ERROR, error_message=str(e))
    except ValueError as e:
        return FetchResult(url, attempted_at, _now(), FetchStatus.PARSE_ERROR, error_message=str(e))

    if not records:
        return FetchResult(url, attempted_at, _now(), FetchStatus.EMPTY, error_message="record list is empty")
    return FetchResult(
        url, attempted_at, _now(), FetchStatus.SUCCESS, records=tuple(records), skipped=skipped
    )
