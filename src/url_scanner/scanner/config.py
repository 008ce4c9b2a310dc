"""Constants and tuning parameters for the scan pipeline."""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Admission
# ---------------------------------------------------------------------------

#: Default number of URLs per queue message.  Overridden by
#: ``Settings.scan_chunk_size``.
DEFAULT_CHUNK_SIZE: int = 50

# ---------------------------------------------------------------------------
# Queue topology
# ---------------------------------------------------------------------------

#: Topic exchange chunk messages are published to.
SCAN_EXCHANGE: str = "scans"

#: Routing key of every chunk message, also used for dead-lettering.
CHUNK_ROUTING_KEY: str = "scan.chunk"

#: Durable queue consumed by chunk workers.
CHUNK_QUEUE: str = "scan.chunks"

#: Exchange that receives messages rejected by a chunk worker.
DEAD_LETTER_EXCHANGE: str = "scans.dlx"

#: Durable queue bound to :data:`DEAD_LETTER_EXCHANGE` for inspection and
#: out-of-band replay.
DEAD_LETTER_QUEUE: str = "scan.chunks.dead"

#: Registered Celery name of the chunk task.
CHUNK_TASK_NAME: str = "url_scanner.scanner.tasks.process_chunk_task"

# ---------------------------------------------------------------------------
# Result reader
# ---------------------------------------------------------------------------

#: Page size used when the caller does not pass ``limit``.
DEFAULT_RESULTS_LIMIT: int = 100

#: Largest accepted ``limit``.
MAX_RESULTS_LIMIT: int = 100

#: Default lifetime of a cached results page (seconds).
RESULTS_CACHE_TTL: int = 3_600

#: Error placed on a result row whose stored content could not be read.
HYDRATION_ERROR_MESSAGE: str = "Failed to retrieve content"

# ---------------------------------------------------------------------------
# Fetching
# ---------------------------------------------------------------------------

#: User-agent string sent with every HTTP request.
USER_AGENT: str = "URLScanner/1.0 (+single-page fetch service)"

#: Content type recorded for stored page bodies.
STORED_CONTENT_TYPE: str = "text/html"
