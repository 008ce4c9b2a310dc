"""Scan admission: persist the request and its placeholders, then dispatch.

Admission is split into two phases:

1. **Persist** the ``scan_requests`` row and one ``pending`` ``scan_results``
   row per URL in a single transaction.  Any error rolls the whole thing
   back.
2. **Publish** one chunk message per ``chunk_size`` URLs, only after the
   commit, so a worker can never receive ids that are not yet visible.

If a publish fails the scan request is deleted (result rows cascade) and the
publish error is re-raised.  Chunks published before the failure then find
no rows to update; their worker run reconciles a missing request and exits.
"""

from __future__ import annotations

import uuid
from typing import Optional, Sequence

import structlog

from url_scanner.scanner.config import DEFAULT_CHUNK_SIZE
from url_scanner.scanner.interfaces import (
    ChunkPublisher,
    InsertedResult,
    ScanRequestStore,
    ScanResultStore,
)
from url_scanner.scanner.messages import ChunkItem, ChunkMessage
from url_scanner.scanner.progress import ProgressTracker

logger = structlog.get_logger(__name__)


def _chunks(urls: Sequence[str], size: int) -> list[tuple[int, Sequence[str]]]:
    """Split ``urls`` into ``(offset, chunk)`` pairs preserving order."""
    return [(offset, urls[offset : offset + size]) for offset in range(0, len(urls), size)]


class ScanOrchestrator:
    """Admits scans and fans them out to the chunk queue.

    Args:
        requests: Store for ``scan_requests``.
        results: Store for ``scan_results``.  Must share its transaction
            with ``requests``.
        publisher: Queue publisher for chunk messages.
        tracker: Used to complete empty submissions immediately.
        chunk_size: Number of URLs per chunk message.
    """

    def __init__(
        self,
        requests: ScanRequestStore,
        results: ScanResultStore,
        publisher: ChunkPublisher,
        tracker: ProgressTracker,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self._requests = requests
        self._results = results
        self._publisher = publisher
        self._tracker = tracker
        self._chunk_size = chunk_size

    async def submit(self, urls: Sequence[str], owner_id: Optional[str] = None) -> uuid.UUID:
        """Admit a scan of ``urls`` and dispatch its chunks.

        Args:
            urls: URLs in submission order.  Duplicates are kept; each gets
                its own result row.
            owner_id: Identity allowed to read the scan back.

        Returns:
            The new scan request ID.

        Raises:
            Exception: Store and queue errors propagate after rollback or
                compensation.
        """
        request_id = uuid.uuid4()
        log = logger.bind(request_id=str(request_id), total=len(urls))

        batches: list[list[InsertedResult]] = []
        try:
            await self._requests.create(request_id, total=len(urls), owner_id=owner_id)
            for offset, chunk in _chunks(urls, self._chunk_size):
                batches.append(await self._results.insert_batch(request_id, offset, chunk))
            await self._requests.commit()
        except Exception:
            log.exception("orchestrator.persist_failed")
            await self._requests.rollback()
            raise

        if not batches:
            await self._tracker.reconcile(request_id)
            log.info("orchestrator.empty_scan_completed")
            return request_id

        try:
            for inserted in batches:
                await self._publisher.publish(
                    ChunkMessage(
                        request_id=request_id,
                        inputs=[
                            ChunkItem(scan_id=request_id, url_id=row.id, url=row.url)
                            for row in inserted
                        ],
                    )
                )
        except Exception:
            log.exception("orchestrator.publish_failed")
            await self._compensate(request_id)
            raise

        log.info("orchestrator.submitted", chunks=len(batches))
        return request_id

    async def _compensate(self, request_id: uuid.UUID) -> None:
        try:
            await self._requests.delete(request_id)
            await self._requests.commit()
        except Exception:
            logger.exception("orchestrator.compensation_failed", request_id=str(request_id))
            await self._requests.rollback()
