"""Chunk processing: fetch every URL of a chunk, record outcomes, reconcile."""

from __future__ import annotations

import asyncio
from typing import Optional

import structlog

from url_scanner.scanner.interfaces import ResultUpdate, ScanResultStore, UrlFetcher
from url_scanner.scanner.messages import ChunkMessage
from url_scanner.scanner.progress import ProgressTracker, ScanProgress

logger = structlog.get_logger(__name__)


class ChunkWorker:
    """Processes one chunk message end to end.

    Safe under redelivery: result rows are overwritten by id and progress
    is recomputed from the rows, never incremented.

    Args:
        results: Store for ``scan_results``.
        fetcher: Single-URL fetcher.  Must not raise.
        tracker: Progress tracker run after the outcomes are written.
    """

    def __init__(
        self,
        results: ScanResultStore,
        fetcher: UrlFetcher,
        tracker: ProgressTracker,
    ) -> None:
        self._results = results
        self._fetcher = fetcher
        self._tracker = tracker

    async def process(self, message: ChunkMessage) -> Optional[ScanProgress]:
        """Fetch all URLs concurrently, write outcomes in one pass, reconcile.

        Returns:
            The reconciled progress, or ``None`` if the scan no longer exists.
        """
        log = logger.bind(request_id=str(message.request_id), items=len(message.inputs))

        outcomes = await asyncio.gather(
            *(
                self._fetcher.fetch_and_store(item.url, message.request_id)
                for item in message.inputs
            )
        )
        updates = [
            ResultUpdate(result_id=item.url_id, outcome=outcome)
            for item, outcome in zip(message.inputs, outcomes)
        ]
        await self._results.update_batch(updates)
        await self._results.commit()
        log.debug(
            "worker.outcomes_written",
            errors=sum(1 for u in updates if u.outcome.error_message is not None),
        )

        return await self._tracker.reconcile(message.request_id)
