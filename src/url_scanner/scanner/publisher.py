"""Celery-backed chunk publisher."""

from __future__ import annotations

import asyncio
import functools
import logging

from celery import Celery

from url_scanner.scanner.config import (
    CHUNK_QUEUE,
    CHUNK_ROUTING_KEY,
    CHUNK_TASK_NAME,
    SCAN_EXCHANGE,
)
from url_scanner.scanner.messages import ChunkMessage

logger = logging.getLogger(__name__)


class CeleryChunkPublisher:
    """Publishes chunk messages as ``process_chunk_task`` invocations.

    ``send_task`` is synchronous and may block on the broker connection, so
    it runs on the default executor.  Broker errors propagate to the caller.

    Args:
        app: Celery application whose broker receives the messages.
    """

    def __init__(self, app: Celery) -> None:
        self._app = app

    async def publish(self, message: ChunkMessage) -> None:
        send = functools.partial(
            self._app.send_task,
            CHUNK_TASK_NAME,
            args=[message.to_payload()],
            queue=CHUNK_QUEUE,
            exchange=SCAN_EXCHANGE,
            routing_key=CHUNK_ROUTING_KEY,
        )
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, send)
        logger.debug(
            "publisher: chunk of %d for %s sent as task %s",
            len(message.inputs),
            message.request_id,
            result.id,
        )
