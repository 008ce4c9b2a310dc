"""Unit tests for the chunk queue topology and the Celery publisher."""

from __future__ import annotations

import uuid
from unittest.mock import MagicMock

import pytest

from url_scanner.config import get_settings
from url_scanner.scanner.config import (
    CHUNK_QUEUE,
    CHUNK_ROUTING_KEY,
    CHUNK_TASK_NAME,
    DEAD_LETTER_EXCHANGE,
    DEAD_LETTER_QUEUE,
    SCAN_EXCHANGE,
)
from url_scanner.scanner.messages import ChunkItem, ChunkMessage
from url_scanner.scanner.publisher import CeleryChunkPublisher
from url_scanner.workers.celery_app import celery_app, chunk_queue, dead_letter_queue


class TestTopology:
    def test_chunk_queue_dead_letters_to_dlx(self) -> None:
        assert chunk_queue.durable is True
        assert chunk_queue.exchange.name == SCAN_EXCHANGE
        assert chunk_queue.queue_arguments == {
            "x-dead-letter-exchange": DEAD_LETTER_EXCHANGE,
            "x-dead-letter-routing-key": CHUNK_ROUTING_KEY,
        }

    def test_dead_letter_queue_bound_to_dlx(self) -> None:
        assert dead_letter_queue.name == DEAD_LETTER_QUEUE
        assert dead_letter_queue.exchange.name == DEAD_LETTER_EXCHANGE
        assert dead_letter_queue.routing_key == CHUNK_ROUTING_KEY

    def test_at_least_once_delivery_settings(self) -> None:
        conf = celery_app.conf
        assert conf.task_acks_late is True
        assert conf.task_reject_on_worker_lost is True
        assert conf.worker_prefetch_multiplier == 1

    def test_time_limits_leave_room_above_the_fetch_deadline(self) -> None:
        conf = celery_app.conf
        fetch_deadline = get_settings().fetch_timeout_seconds
        assert conf.task_soft_time_limit >= fetch_deadline * 10
        assert conf.task_time_limit > conf.task_soft_time_limit

    def test_chunk_task_is_registered(self) -> None:
        import url_scanner.scanner.tasks  # noqa: F401, PLC0415

        assert CHUNK_TASK_NAME in celery_app.tasks


class TestCeleryChunkPublisher:
    async def test_sends_camel_case_payload_to_chunk_queue(self) -> None:
        app = MagicMock()
        request_id = uuid.uuid4()
        message = ChunkMessage(
            request_id=request_id,
            inputs=[ChunkItem(scan_id=request_id, url_id=uuid.uuid4(), url="https://e.com/")],
        )

        await CeleryChunkPublisher(app).publish(message)

        app.send_task.assert_called_once_with(
            CHUNK_TASK_NAME,
            args=[message.to_payload()],
            queue=CHUNK_QUEUE,
            exchange=SCAN_EXCHANGE,
            routing_key=CHUNK_ROUTING_KEY,
        )

    async def test_broker_errors_propagate(self) -> None:
        app = MagicMock()
        app.send_task.side_effect = ConnectionError("broker down")
        request_id = uuid.uuid4()

        with pytest.raises(ConnectionError):
            await CeleryChunkPublisher(app).publish(ChunkMessage(request_id=request_id, inputs=[]))
