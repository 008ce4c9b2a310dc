"""In-memory implementations of the scan pipeline interfaces.

The stores keep plain dicts of column values and hand out fresh transient
ORM instances on every read, so tests observe the same "row copy" semantics
as the SQLAlchemy store.  ``commit()`` snapshots the state and
``rollback()`` restores the last snapshot.

Failures are injected per operation name through ``fail_on``::

    store.fail_on["insert_batch"] = RuntimeError("db down")
"""

from __future__ import annotations

import copy
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence

from url_scanner.core.models.scans import ResultStatus, ScanRequest, ScanResult, ScanStatus
from url_scanner.scanner.interfaces import FetchOutcome, InsertedResult, ResultUpdate
from url_scanner.scanner.messages import ChunkMessage


class InMemoryScanStore:
    """Both relational store protocols over dicts, with transaction snapshots."""

    def __init__(self) -> None:
        self.requests: dict[uuid.UUID, dict[str, Any]] = {}
        self.results: dict[uuid.UUID, dict[str, Any]] = {}
        self._snapshot: tuple[dict, dict] = ({}, {})
        self.fail_on: dict[str, BaseException] = {}
        self.calls: list[str] = []
        self.commits = 0
        self.rollbacks = 0

    def _enter(self, op: str) -> None:
        self.calls.append(op)
        exc = self.fail_on.get(op)
        if exc is not None:
            raise exc

    # ---- transaction control ---------------------------------------------

    async def commit(self) -> None:
        self._enter("commit")
        self._snapshot = (copy.deepcopy(self.requests), copy.deepcopy(self.results))
        self.commits += 1

    async def rollback(self) -> None:
        self.calls.append("rollback")
        self.requests, self.results = copy.deepcopy(self._snapshot)
        self.rollbacks += 1

    # ---- scan_requests ---------------------------------------------------

    async def create(
        self, request_id: uuid.UUID, total: int, owner_id: Optional[str]
    ) -> None:
        self._enter("create")
        self.requests[request_id] = {
            "id": request_id,
            "owner_id": owner_id,
            "total": total,
            "processed": 0,
            "status": ScanStatus.IN_PROGRESS,
            "created_at": datetime.now(timezone.utc),
            "completed_at": None,
        }

    async def get(self, request_id: uuid.UUID) -> Optional[ScanRequest]:
        self._enter("get")
        row = self.requests.get(request_id)
        return ScanRequest(**row) if row is not None else None

    async def advance_processed(self, request_id: uuid.UUID, count: int) -> bool:
        self._enter("advance_processed")
        row = self.requests.get(request_id)
        if row is None or row["processed"] >= count:
            return False
        row["processed"] = count
        return True

    async def mark_completed(self, request_id: uuid.UUID) -> bool:
        self._enter("mark_completed")
        row = self.requests.get(request_id)
        if row is None or row["status"] == ScanStatus.COMPLETED:
            return False
        row["status"] = ScanStatus.COMPLETED
        row["completed_at"] = datetime.now(timezone.utc)
        return True

    async def delete(self, request_id: uuid.UUID) -> None:
        self._enter("delete")
        self.requests.pop(request_id, None)
        for result_id in [k for k, v in self.results.items() if v["request_id"] == request_id]:
            del self.results[result_id]

    # ---- scan_results ----------------------------------------------------

    async def insert_batch(
        self, request_id: uuid.UUID, offset: int, urls: Sequence[str]
    ) -> list[InsertedResult]:
        self._enter("insert_batch")
        if request_id not in self.requests:
            raise LookupError(f"foreign key violation: no scan request {request_id}")
        taken = {
            v["original_index"] for v in self.results.values() if v["request_id"] == request_id
        }
        inserted = []
        for i, url in enumerate(urls):
            index = offset + i
            if index in taken:
                raise ValueError(f"duplicate original_index {index}")
            result_id = uuid.uuid4()
            self.results[result_id] = {
                "id": result_id,
                "request_id": request_id,
                "original_index": index,
                "url": url,
                "status": ResultStatus.PENDING,
                "status_code": None,
                "title": None,
                "content_ref": None,
                "error_message": None,
                "fetched_at": None,
            }
            inserted.append(InsertedResult(id=result_id, original_index=index, url=url))
        return inserted

    async def update_batch(self, updates: Sequence[ResultUpdate]) -> None:
        self._enter("update_batch")
        for update in updates:
            row = self.results.get(update.result_id)
            if row is None:
                continue
            outcome = update.outcome
            row.update(
                status=outcome.status,
                status_code=outcome.status_code,
                title=outcome.title,
                content_ref=outcome.content_ref,
                error_message=outcome.error_message,
                fetched_at=outcome.fetched_at,
            )

    async def count_not_pending(self, request_id: uuid.UUID) -> int:
        self._enter("count_not_pending")
        return sum(
            1
            for v in self.results.values()
            if v["request_id"] == request_id and v["status"] != ResultStatus.PENDING
        )

    async def find_range(
        self, request_id: uuid.UUID, cursor: int, limit: int
    ) -> list[ScanResult]:
        self._enter("find_range")
        rows = sorted(
            (
                v
                for v in self.results.values()
                if v["request_id"] == request_id and v["original_index"] >= cursor
            ),
            key=lambda v: v["original_index"],
        )
        return [ScanResult(**row) for row in rows[:limit]]

    # ---- test helpers ----------------------------------------------------

    def results_for(self, request_id: uuid.UUID) -> list[dict[str, Any]]:
        """Return the result rows of a request ordered by ``original_index``."""
        return sorted(
            (v for v in self.results.values() if v["request_id"] == request_id),
            key=lambda v: v["original_index"],
        )


class InMemoryResultCache:
    def __init__(self) -> None:
        self.entries: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.get_calls: list[str] = []
        self.set_calls: list[str] = []
        self.fail_get: Optional[BaseException] = None
        self.fail_set: Optional[BaseException] = None

    async def get(self, key: str) -> Optional[str]:
        self.get_calls.append(key)
        if self.fail_get is not None:
            raise self.fail_get
        return self.entries.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self.set_calls.append(key)
        if self.fail_set is not None:
            raise self.fail_set
        self.entries[key] = value
        self.ttls[key] = ttl_seconds


class InMemoryBlobStore:
    def __init__(self) -> None:
        self.objects: dict[str, tuple[str, str]] = {}
        self.fail_put: Optional[BaseException] = None

    async def put_text(self, key: str, body: str, content_type: str) -> None:
        if self.fail_put is not None:
            raise self.fail_put
        self.objects[key] = (body, content_type)

    async def get_text(self, key: str) -> str:
        try:
            return self.objects[key][0]
        except KeyError:
            raise FileNotFoundError(f"no object {key}") from None


class RecordingPublisher:
    """Collects published messages; optionally fails on the N-th publish (0-based)."""

    def __init__(
        self,
        fail_at: Optional[int] = None,
        on_publish: Optional[Callable[[ChunkMessage], None]] = None,
    ) -> None:
        self.messages: list[ChunkMessage] = []
        self.fail_at = fail_at
        self.on_publish = on_publish

    async def publish(self, message: ChunkMessage) -> None:
        if self.fail_at is not None and len(self.messages) == self.fail_at:
            raise ConnectionError("broker unavailable")
        if self.on_publish is not None:
            self.on_publish(message)
        self.messages.append(message)


class StubFetcher:
    """Returns canned outcomes per URL; successes by default."""

    def __init__(self, outcomes: Optional[dict[str, FetchOutcome]] = None) -> None:
        self.outcomes = outcomes or {}
        self.calls: list[tuple[str, uuid.UUID]] = []

    async def fetch_and_store(self, url: str, request_id: uuid.UUID) -> FetchOutcome:
        self.calls.append((url, request_id))
        if url in self.outcomes:
            return self.outcomes[url]
        return success_outcome(url, request_id)


def success_outcome(url: str, request_id: uuid.UUID, title: str = "Title") -> FetchOutcome:
    return FetchOutcome(
        status=ResultStatus.SUCCESS,
        fetched_at=datetime.now(timezone.utc),
        status_code=200,
        title=title,
        content_ref=f"{request_id}/{abs(hash(url))}.html",
    )


def error_outcome(message: str = "timeout", status_code: Optional[int] = None) -> FetchOutcome:
    return FetchOutcome(
        status=ResultStatus.ERROR,
        fetched_at=datetime.now(timezone.utc),
        status_code=status_code,
        error_message=message,
    )
