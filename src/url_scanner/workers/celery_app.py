"""Celery application for URL Scanner.

Configures the broker, serialization and the chunk queue topology.  All
configuration values are sourced from ``Settings`` so that no secrets or
environment-specific values are hard-coded here.

Queue topology (RabbitMQ)::

    scans (topic) --scan.chunk--> scan.chunks
                                    | x-dead-letter-exchange=scans.dlx
                                    v
    scans.dlx (topic) --scan.chunk--> scan.chunks.dead

A chunk task that fails raises ``Reject(requeue=False)``; RabbitMQ then moves
the message to ``scan.chunks.dead`` for inspection or manual replay.

Usage (starting a worker)::

    celery -A url_scanner.workers.celery_app worker -Q scan.chunks --loglevel=info
"""

from __future__ import annotations

import logging

from celery import Celery
from celery.signals import task_postrun, worker_process_init
from dotenv import load_dotenv
from kombu import Exchange, Queue

from url_scanner.scanner.config import (
    CHUNK_QUEUE,
    CHUNK_ROUTING_KEY,
    CHUNK_TASK_NAME,
    DEAD_LETTER_EXCHANGE,
    DEAD_LETTER_QUEUE,
    SCAN_EXCHANGE,
)

_logger = logging.getLogger(__name__)

load_dotenv()

from url_scanner.config.settings import get_settings  # noqa: E402

settings = get_settings()

#: The global Celery application instance.
celery_app = Celery(
    "url_scanner",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["url_scanner.scanner.tasks"],
)

# ---------------------------------------------------------------------------
# Queue topology
# ---------------------------------------------------------------------------

scan_exchange = Exchange(SCAN_EXCHANGE, type="topic", durable=True)
dead_letter_exchange = Exchange(DEAD_LETTER_EXCHANGE, type="topic", durable=True)

chunk_queue = Queue(
    CHUNK_QUEUE,
    exchange=scan_exchange,
    routing_key=CHUNK_ROUTING_KEY,
    durable=True,
    queue_arguments={
        "x-dead-letter-exchange": DEAD_LETTER_EXCHANGE,
        "x-dead-letter-routing-key": CHUNK_ROUTING_KEY,
    },
)

dead_letter_queue = Queue(
    DEAD_LETTER_QUEUE,
    exchange=dead_letter_exchange,
    routing_key=CHUNK_ROUTING_KEY,
    durable=True,
)

# ---------------------------------------------------------------------------
# Core configuration
# ---------------------------------------------------------------------------

celery_app.conf.update(
    # JSON only: chunk payloads are plain dicts.
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    # Acknowledge only after the task has finished, so a crashed worker's
    # chunk is redelivered.  Redelivery is safe: updates are keyed by id and
    # progress is recomputed.
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    # One chunk at a time per worker process.
    worker_prefetch_multiplier=1,
    # Fetches in a chunk run concurrently, each under the fetch deadline, so
    # a healthy chunk finishes far inside the soft limit.  Hitting the soft
    # limit dead-letters the chunk through Reject.  A hard kill acks the
    # message (acks_on_failure_or_timeout) and the chunk is dropped, not
    # dead-lettered.
    task_soft_time_limit=300,
    task_time_limit=360,
    task_ignore_result=settings.celery_result_backend is None,
    task_queues=(chunk_queue, dead_letter_queue),
    task_default_queue=CHUNK_QUEUE,
    task_default_exchange=SCAN_EXCHANGE,
    task_default_exchange_type="topic",
    task_default_routing_key=CHUNK_ROUTING_KEY,
    task_routes={
        CHUNK_TASK_NAME: {
            "queue": CHUNK_QUEUE,
            "exchange": SCAN_EXCHANGE,
            "routing_key": CHUNK_ROUTING_KEY,
        },
    },
)


# ---------------------------------------------------------------------------
# Logging and engine disposal on fork
# ---------------------------------------------------------------------------
@worker_process_init.connect
def _init_worker_process(**kwargs: object) -> None:  # noqa: ARG001
    """Configure logging and reset the DB pool in a freshly forked worker.

    The async engine creates connection objects tied to the parent's event
    loop.  After ``fork()``, those connections cannot be reused because the
    child process has a different loop.
    """
    from url_scanner.core import database as _db  # noqa: PLC0415
    from url_scanner.core.logging_config import configure_logging  # noqa: PLC0415

    configure_logging(settings.log_level)
    _db.async_engine.sync_engine.dispose(close=False)


# ---------------------------------------------------------------------------
# Engine disposal after each task: prevents cross-task event loop errors
# ---------------------------------------------------------------------------
@task_postrun.connect
def _dispose_async_engine_after_task(**kwargs: object) -> None:  # noqa: ARG001
    """Dispose the async engine's connection pool after each task completes.

    Each chunk task calls ``asyncio.run()``, which creates and then destroys
    an event loop.  asyncpg connections left in the pool are bound to that
    dead loop, so the next task must start with a clean pool.
    """
    try:
        from url_scanner.core import database as _db  # noqa: PLC0415

        _db.async_engine.sync_engine.dispose(close=False)
    except Exception:  # noqa: BLE001
        _logger.warning("celery_app: engine disposal after task failed", exc_info=True)
