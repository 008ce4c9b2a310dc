"""Scan pipeline: admission, chunk processing, progress and result reads.

Sub-modules:
    config        — queue topology names and tuning constants
    interfaces    — Protocols the pipeline is built against, value objects
    messages      — ChunkMessage wire format
    http_fetcher  — HttpUrlFetcher (httpx + blob store upload)
    orchestrator  — ScanOrchestrator (admission and dispatch)
    worker        — ChunkWorker (fetch, write outcomes, reconcile)
    progress      — ProgressTracker (guarded monotonic counter)
    reader        — ResultReader (status, pagination, cache, hydration)
    publisher     — CeleryChunkPublisher
    tasks         — process_chunk_task Celery task
    router        — FastAPI routes under /scans
"""

from __future__ import annotations
