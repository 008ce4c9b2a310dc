"""Celery task consuming chunk messages.

``process_chunk_task``
    Validates the payload, runs :class:`~url_scanner.scanner.worker.ChunkWorker`
    inside ``asyncio.run()`` and reconciles the scan's progress.

Task naming convention::

    url_scanner.scanner.tasks.<action>

Retry policy:
    ``max_retries=0``.  Any failure, including a malformed payload, is
    logged and the message is rejected without requeue, which dead-letters
    it to ``scan.chunks.dead``.  The task is acknowledged late, so a worker
    that dies mid-chunk leaves the message to be redelivered; redelivery is
    harmless because result updates are keyed by id and progress is
    recomputed from stored rows.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from celery.exceptions import Reject

from url_scanner.api.metrics import scan_chunks_total
from url_scanner.scanner.config import CHUNK_TASK_NAME
from url_scanner.scanner.messages import ChunkMessage
from url_scanner.scanner.progress import ScanProgress
from url_scanner.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


async def _process_chunk(message: ChunkMessage) -> Optional[ScanProgress]:
    """Compose the production collaborators and process one chunk."""
    from url_scanner.config.settings import get_settings  # noqa: PLC0415
    from url_scanner.core.database import AsyncSessionLocal  # noqa: PLC0415
    from url_scanner.scanner.http_fetcher import (  # noqa: PLC0415
        HttpUrlFetcher,
        build_http_client,
    )
    from url_scanner.scanner.progress import ProgressTracker  # noqa: PLC0415
    from url_scanner.scanner.worker import ChunkWorker  # noqa: PLC0415
    from url_scanner.storage.blob_store import MinioBlobStore  # noqa: PLC0415
    from url_scanner.storage.scan_store import SqlAlchemyScanStore  # noqa: PLC0415

    settings = get_settings()
    blob_store = MinioBlobStore.from_settings(settings)

    async with AsyncSessionLocal() as session, build_http_client(settings) as client:
        store = SqlAlchemyScanStore(session)
        worker = ChunkWorker(
            results=store,
            fetcher=HttpUrlFetcher(
                client,
                blob_store,
                settings.fetch_max_content_bytes,
                deadline_seconds=settings.fetch_timeout_seconds,
            ),
            tracker=ProgressTracker(store, store),
        )
        return await worker.process(message)


@celery_app.task(
    name=CHUNK_TASK_NAME,
    bind=True,
    acks_late=True,
    max_retries=0,
)
def process_chunk_task(self: Any, payload: Any) -> Optional[dict[str, Any]]:
    """Process one chunk message.

    Args:
        payload: Decoded message body,
            ``{"requestId": ..., "inputs": [{"scanId", "urlId", "url"}, ...]}``.

    Returns:
        ``{"requestId", "processed", "total", "status"}`` after
        reconciliation, or ``None`` if the scan no longer exists.

    Raises:
        celery.exceptions.Reject: On any failure, with ``requeue=False``.
    """
    try:
        message = ChunkMessage.from_payload(payload)
        progress = asyncio.run(_process_chunk(message))
    except Exception as exc:
        logger.exception(
            "process_chunk_task: rejecting message of task %s to dead-letter queue",
            self.request.id,
        )
        scan_chunks_total.labels(outcome="rejected").inc()
        raise Reject(exc, requeue=False) from exc

    scan_chunks_total.labels(outcome="processed").inc()
    if progress is None:
        logger.info(
            "process_chunk_task: scan %s no longer exists; chunk discarded",
            message.request_id,
        )
        return None

    logger.info(
        "process_chunk_task: scan %s at %d/%d (%s)",
        progress.request_id,
        progress.processed,
        progress.total,
        progress.status.value,
    )
    return {
        "requestId": str(progress.request_id),
        "processed": progress.processed,
        "total": progress.total,
        "status": progress.status.value,
    }
