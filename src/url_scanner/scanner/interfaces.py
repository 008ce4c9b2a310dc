"""Capability interfaces the scan pipeline is built against.

The orchestrator, worker, progress tracker and reader receive these
collaborators through their constructors.  Production implementations live
in :mod:`url_scanner.storage` (SQLAlchemy, Redis, MinIO),
:mod:`url_scanner.scanner.publisher` (Celery) and
:mod:`url_scanner.scanner.http_fetcher` (httpx).

Store writes are staged on the underlying session until ``commit()``.  Both
store protocols expose ``commit``/``rollback``; the production stores share
one session, so committing either commits both.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol, Sequence

from url_scanner.core.models.scans import ResultStatus, ScanRequest, ScanResult
from url_scanner.scanner.messages import ChunkMessage


# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InsertedResult:
    """Identity of a freshly inserted placeholder row."""

    id: uuid.UUID
    original_index: int
    url: str


@dataclass(frozen=True)
class FetchOutcome:
    """Terminal outcome of fetching one URL.

    Attributes:
        status: ``ResultStatus.SUCCESS`` or ``ResultStatus.ERROR``.
        fetched_at: When the fetch was attempted.
        status_code: HTTP status code, or ``None`` if no response arrived.
        title: Page title, for successful fetches with a ``<title>``.
        content_ref: Blob key of the stored body, for successful fetches.
        error_message: Failure description, for ``error`` outcomes.
    """

    status: ResultStatus
    fetched_at: datetime
    status_code: Optional[int] = None
    title: Optional[str] = None
    content_ref: Optional[str] = None
    error_message: Optional[str] = None


@dataclass(frozen=True)
class ResultUpdate:
    """A fetch outcome addressed to a result row by primary key."""

    result_id: uuid.UUID
    outcome: FetchOutcome


@dataclass(frozen=True)
class Caller:
    """The authenticated identity reading a scan.

    Attributes:
        owner_id: Identity compared against ``ScanRequest.owner_id``.
        is_admin: Administrators may read every scan.
    """

    owner_id: str
    is_admin: bool = False


# ---------------------------------------------------------------------------
# Relational store
# ---------------------------------------------------------------------------


class ScanRequestStore(Protocol):
    async def create(
        self, request_id: uuid.UUID, total: int, owner_id: Optional[str]
    ) -> None:
        """Stage a new ``in_progress`` request with ``processed = 0``."""

    async def get(self, request_id: uuid.UUID) -> Optional[ScanRequest]:
        """Return the current row, bypassing any cached copy."""

    async def advance_processed(self, request_id: uuid.UUID, count: int) -> bool:
        """Set ``processed = count`` only if that raises it.  Returns whether it did."""

    async def mark_completed(self, request_id: uuid.UUID) -> bool:
        """Flip the status to ``completed`` unless already completed."""

    async def delete(self, request_id: uuid.UUID) -> None:
        """Remove the request and, by cascade, its result rows."""

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


class ScanResultStore(Protocol):
    async def insert_batch(
        self, request_id: uuid.UUID, offset: int, urls: Sequence[str]
    ) -> list[InsertedResult]:
        """Stage ``pending`` rows indexed ``offset + i``; return ids in input order."""

    async def update_batch(self, updates: Sequence[ResultUpdate]) -> None:
        """Overwrite each addressed row with its outcome."""

    async def count_not_pending(self, request_id: uuid.UUID) -> int:
        """Count rows of the request in a terminal status."""

    async def find_range(
        self, request_id: uuid.UUID, cursor: int, limit: int
    ) -> list[ScanResult]:
        """Return up to ``limit`` rows with ``original_index >= cursor``, ascending."""

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


# ---------------------------------------------------------------------------
# Cache, blob store, queue, fetcher
# ---------------------------------------------------------------------------


class ResultCache(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...


class BlobStore(Protocol):
    async def put_text(self, key: str, body: str, content_type: str) -> None: ...

    async def get_text(self, key: str) -> str: ...


class ChunkPublisher(Protocol):
    async def publish(self, message: ChunkMessage) -> None: ...


class UrlFetcher(Protocol):
    async def fetch_and_store(self, url: str, request_id: uuid.UUID) -> FetchOutcome:
        """Fetch ``url``, store its body and return a terminal outcome.  Never raises."""
