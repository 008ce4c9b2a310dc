"""FastAPI dependency injection providers.

Provides reusable dependencies for API-key authentication, Redis access and
the composition of the scan pipeline services from their production
implementations.

Dependency hierarchy::

    get_current_caller   — requires a valid API key (X-API-Key or Bearer)
    get_scan_store       — SqlAlchemyScanStore on the request's session
    get_orchestrator     — ScanOrchestrator publishing through Celery
    get_reader           — ResultReader backed by Redis and MinIO

Tests replace any of these through ``app.dependency_overrides``.
"""

from __future__ import annotations

import secrets
from functools import lru_cache
from typing import Annotated, AsyncGenerator, Optional

import redis.asyncio as aioredis
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from url_scanner.config.settings import get_settings
from url_scanner.core.api_keys import verify_api_key
from url_scanner.core.database import get_db
from url_scanner.scanner.interfaces import Caller
from url_scanner.scanner.orchestrator import ScanOrchestrator
from url_scanner.scanner.progress import ProgressTracker
from url_scanner.scanner.publisher import CeleryChunkPublisher
from url_scanner.scanner.reader import ResultReader
from url_scanner.storage.blob_store import MinioBlobStore
from url_scanner.storage.result_cache import RedisResultCache
from url_scanner.storage.scan_store import SqlAlchemyScanStore

#: Identity assigned to callers presenting ``ADMIN_API_KEY``.
ADMIN_OWNER_ID = "admin"


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


def _extract_api_key(request: Request) -> Optional[str]:
    """Return the key from ``X-API-Key``, falling back to ``Authorization: Bearer``."""
    key = request.headers.get("x-api-key")
    if not key:
        authorization = request.headers.get("authorization", "")
        scheme, _, token = authorization.partition(" ")
        if scheme == "Bearer" and token:
            key = token.strip()
    return key or None


async def get_current_caller(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Caller:
    """Authenticate the request by API key.

    The administrative key from settings is checked first and needs no
    database access.  Any other key is looked up by its SHA-256 hash among
    active ``api_keys`` rows.

    Returns:
        The authenticated :class:`~url_scanner.scanner.interfaces.Caller`.

    Raises:
        HTTPException 401: If the key is missing or not recognised.
    """
    key = _extract_api_key(request)
    if key is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key missing.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    admin_key = get_settings().admin_api_key
    if admin_key and secrets.compare_digest(key, admin_key):
        return Caller(owner_id=ADMIN_OWNER_ID, is_admin=True)

    api_key = await verify_api_key(db, key)
    if api_key is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return Caller(owner_id=api_key.owner_id, is_admin=False)


# ---------------------------------------------------------------------------
# Redis async client
# ---------------------------------------------------------------------------


async def get_redis() -> AsyncGenerator[aioredis.Redis, None]:
    """Yield a per-request async Redis client and close it on teardown.

    Uses ``REDIS_URL`` from application settings.  The connection is opened
    lazily on first I/O, so requests that never touch the cache never
    connect.

    Yields:
        An ``aioredis.Redis`` instance configured to decode responses as
        strings.
    """
    settings = get_settings()
    client: aioredis.Redis = aioredis.from_url(
        settings.redis_url,
        decode_responses=True,
    )
    try:
        yield client
    finally:
        await client.aclose()


# ---------------------------------------------------------------------------
# Scan pipeline composition
# ---------------------------------------------------------------------------


@lru_cache
def get_blob_store() -> MinioBlobStore:
    """Return the process-wide MinIO blob store."""
    return MinioBlobStore.from_settings(get_settings())


def get_publisher() -> CeleryChunkPublisher:
    from url_scanner.workers.celery_app import celery_app  # noqa: PLC0415

    return CeleryChunkPublisher(celery_app)


def get_scan_store(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> SqlAlchemyScanStore:
    return SqlAlchemyScanStore(db)


def get_orchestrator(
    store: Annotated[SqlAlchemyScanStore, Depends(get_scan_store)],
    publisher: Annotated[CeleryChunkPublisher, Depends(get_publisher)],
) -> ScanOrchestrator:
    return ScanOrchestrator(
        requests=store,
        results=store,
        publisher=publisher,
        tracker=ProgressTracker(store, store),
        chunk_size=get_settings().scan_chunk_size,
    )


def get_reader(
    store: Annotated[SqlAlchemyScanStore, Depends(get_scan_store)],
    redis: Annotated[aioredis.Redis, Depends(get_redis)],
    blob_store: Annotated[MinioBlobStore, Depends(get_blob_store)],
) -> ResultReader:
    return ResultReader(
        requests=store,
        results=store,
        cache=RedisResultCache(redis),
        blob_store=blob_store,
        cache_ttl_seconds=get_settings().results_cache_ttl_seconds,
    )
