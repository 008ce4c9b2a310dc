"""Progress reconciliation for scan requests.

``processed`` is never incremented.  It is recomputed from durable state
(the number of result rows no longer ``pending``) and written through a
guarded update that only ever raises it::

    UPDATE scan_requests SET processed = :count
    WHERE id = :id AND processed < :count

A redelivered chunk therefore cannot double-count, and two workers
reconciling the same scan concurrently can at worst leave a transient
undercount that the next reconciliation heals.  The completion flip is
guarded the same way (``WHERE status != 'completed'``).

The read and the two writes are separate transactions.  Each write is
monotonic or idempotent on its own, so no lock spans them.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional

import structlog

from url_scanner.core.models.scans import ScanStatus
from url_scanner.scanner.interfaces import ScanRequestStore, ScanResultStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ScanProgress:
    """Snapshot of a scan request after reconciliation."""

    request_id: uuid.UUID
    total: int
    processed: int
    status: ScanStatus


class ProgressTracker:
    """Recomputes ``processed`` and flips scans to ``completed``.

    Args:
        requests: Store for ``scan_requests``.
        results: Store for ``scan_results``.
    """

    def __init__(self, requests: ScanRequestStore, results: ScanResultStore) -> None:
        self._requests = requests
        self._results = results

    async def reconcile(self, request_id: uuid.UUID) -> Optional[ScanProgress]:
        """Bring the request's counter and status in line with its results.

        Returns:
            The reconciled progress, or ``None`` when the request no longer
            exists (its admission was compensated).

        Raises:
            Exception: Store errors propagate unchanged.
        """
        log = logger.bind(request_id=str(request_id))

        count = await self._results.count_not_pending(request_id)
        if await self._requests.advance_processed(request_id, count):
            log.debug("progress.advanced", processed=count)
        await self._requests.commit()

        scan = await self._requests.get(request_id)
        if scan is None:
            log.warning("progress.request_missing", counted=count)
            return None

        status = scan.status
        if scan.processed >= scan.total and status != ScanStatus.COMPLETED:
            if await self._requests.mark_completed(request_id):
                log.info("progress.completed", total=scan.total)
            await self._requests.commit()
            status = ScanStatus.COMPLETED

        return ScanProgress(
            request_id=request_id,
            total=scan.total,
            processed=scan.processed,
            status=status,
        )
