"""Health check route handlers for the URL Scanner API.

``GET /api/health``
    Dependency check: verifies the process can reach the database
    (``SELECT 1``), Redis (``PING``), the blob store (bucket lookup) and at
    least one Celery worker.  Always returns HTTP 200; the ``status`` field
    distinguishes ``"ok"`` from ``"degraded"``.

The liveness endpoint ``GET /health`` lives in ``api/main.py``.

These endpoints are diagnostic — they must never raise HTTP 5xx errors.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

import redis.asyncio as aioredis
import sqlalchemy as sa
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from url_scanner.config.settings import get_settings
from url_scanner.core.database import AsyncSessionLocal

logger = logging.getLogger(__name__)

router = APIRouter(tags=["system"])

# ---------------------------------------------------------------------------
# Helper: DB check
# ---------------------------------------------------------------------------


async def _check_database() -> str:
    """Run ``SELECT 1`` against the configured database.

    Returns:
        ``"ok"`` if the query succeeds, ``"error"`` otherwise.
    """
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(sa.text("SELECT 1"))
        return "ok"
    except Exception:
        logger.exception("Health check: database unreachable")
        return "error"


# ---------------------------------------------------------------------------
# Helper: Redis check
# ---------------------------------------------------------------------------


async def _check_redis() -> str:
    """Send ``PING`` to the configured Redis instance.

    Returns:
        ``"ok"`` if Redis responds, ``"error"`` otherwise.
    """
    settings = get_settings()
    try:
        client: aioredis.Redis = aioredis.from_url(
            settings.redis_url,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await client.ping()
        finally:
            await client.aclose()
        return "ok"
    except Exception:
        logger.exception("Health check: Redis unreachable")
        return "error"


# ---------------------------------------------------------------------------
# Helper: blob store check
# ---------------------------------------------------------------------------


async def _check_blob_store() -> str:
    """Check that the content bucket exists.

    Returns:
        ``"ok"`` if the bucket exists, ``"missing_bucket"`` if MinIO is
        reachable but the bucket is absent, ``"error"`` otherwise.
    """
    from url_scanner.storage.blob_store import build_minio_client  # noqa: PLC0415

    settings = get_settings()
    try:
        client = build_minio_client(settings)
        loop = asyncio.get_running_loop()
        exists = await loop.run_in_executor(None, client.bucket_exists, settings.minio_bucket)
        return "ok" if exists else "missing_bucket"
    except Exception:
        logger.exception("Health check: blob store unreachable")
        return "error"


# ---------------------------------------------------------------------------
# Helper: Celery worker check
# ---------------------------------------------------------------------------


async def _check_celery_workers() -> str:
    """Check if any Celery workers are responding.

    This is a soft check: no workers responding returns ``"no_workers"``
    instead of ``"error"`` since scans can still be admitted; their chunks
    wait in the queue.

    Returns:
        ``"ok"`` if at least one worker responds, ``"no_workers"`` if none
        respond, or ``"error"`` if the broker connection fails.
    """
    try:
        from url_scanner.workers.celery_app import celery_app  # noqa: PLC0415

        loop = asyncio.get_running_loop()
        inspect = celery_app.control.inspect(timeout=2.0)
        ping_result = await loop.run_in_executor(None, inspect.ping)

        # {"celery@hostname": {"ok": "pong"}} or None if no workers responded.
        if ping_result:
            return "ok"
        return "no_workers"
    except Exception:
        logger.exception("Health check: Celery inspect failed")
        return "error"


# ---------------------------------------------------------------------------
# GET /api/health
# ---------------------------------------------------------------------------


@router.get("/api/health", include_in_schema=True)
async def system_health() -> JSONResponse:
    """Return process-level health including every backing service.

    Runs the database, Redis, blob store and Celery checks in parallel.

    Always returns HTTP 200.  The ``status`` field is ``"ok"`` when every
    check passes and ``"degraded"`` otherwise.

    Returns:
        JSON with keys: ``status``, ``version``, ``database``, ``redis``,
        ``blob_store``, ``celery``, ``timestamp``.
    """
    db_status, redis_status, blob_status, celery_status = await asyncio.gather(
        _check_database(),
        _check_redis(),
        _check_blob_store(),
        _check_celery_workers(),
    )

    checks = (db_status, redis_status, blob_status, celery_status)
    overall = "ok" if all(check == "ok" for check in checks) else "degraded"

    payload = {
        "status": overall,
        "version": "0.1.0",
        "database": db_status,
        "redis": redis_status,
        "blob_store": blob_status,
        "celery": celery_status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    logger.info("system_health_check", extra={"health": payload})
    return JSONResponse(payload)
