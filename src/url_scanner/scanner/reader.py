"""Read access to scan status and paginated, content-hydrated results.

Pagination is a cursor over ``original_index``: a page holds the rows with
``original_index >= cursor`` in ascending order, and ``nextCursor`` is the
index after the last row when the page is full.  Workers finish rows out of
order, so an in-progress scan's page may include ``pending`` rows.

Only pages of ``completed`` scans are cached, since nothing about them can
change any more.  The cached value is the metadata-only page; page bodies are
always loaded from the blob store at read time.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Optional

from pydantic import ValidationError

from url_scanner.api.metrics import (
    content_hydration_failures_total,
    scan_results_cache_total,
)
from url_scanner.core.exceptions import (
    ContentHydrationError,
    ScanAccessDeniedError,
    ScanNotFoundError,
)
from url_scanner.core.models.scans import ResultStatus, ScanRequest, ScanResult, ScanStatus
from url_scanner.core.schemas.scans import (
    CachedResultsPage,
    ResultMetadata,
    ResultsMeta,
    ScanResultRead,
    ScanResultsPage,
    ScanStatusRead,
)
from url_scanner.scanner.config import (
    DEFAULT_RESULTS_LIMIT,
    HYDRATION_ERROR_MESSAGE,
    MAX_RESULTS_LIMIT,
    RESULTS_CACHE_TTL,
)
from url_scanner.scanner.interfaces import (
    BlobStore,
    Caller,
    ResultCache,
    ScanRequestStore,
    ScanResultStore,
)
from url_scanner.storage.result_cache import results_cache_key

logger = logging.getLogger(__name__)


def progress_percentage(processed: int, total: int) -> float:
    """Return ``processed / total`` as a percentage rounded to two decimals."""
    if total == 0:
        return 0.0
    return round(processed / total * 100, 2)


def _metadata(row: ScanResult) -> ResultMetadata:
    return ResultMetadata(
        original_index=row.original_index,
        url=row.url,
        status=row.status,
        status_code=row.status_code,
        title=row.title,
        content_ref=row.content_ref,
        error=row.error_message,
        fetched_at=row.fetched_at,
    )


class ResultReader:
    """Serves scan status and results pages to authorised callers.

    Args:
        requests: Store for ``scan_requests``.
        results: Store for ``scan_results``.
        cache: Cache for completed-scan pages.
        blob_store: Source of stored page bodies.
        cache_ttl_seconds: Lifetime of a cached page.
    """

    def __init__(
        self,
        requests: ScanRequestStore,
        results: ScanResultStore,
        cache: ResultCache,
        blob_store: BlobStore,
        cache_ttl_seconds: int = RESULTS_CACHE_TTL,
    ) -> None:
        self._requests = requests
        self._results = results
        self._cache = cache
        self._blob_store = blob_store
        self._cache_ttl_seconds = cache_ttl_seconds

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_status(self, request_id: uuid.UUID, caller: Caller) -> ScanStatusRead:
        """Return the progress of a scan.

        Raises:
            ScanNotFoundError: If the scan does not exist.
            ScanAccessDeniedError: If ``caller`` may not read it.
        """
        scan = await self._authorize(request_id, caller)
        return ScanStatusRead(
            status=scan.status,
            total=scan.total,
            processed=scan.processed,
            percentage=progress_percentage(scan.processed, scan.total),
        )

    async def get_results(
        self,
        request_id: uuid.UUID,
        caller: Caller,
        cursor: int = 0,
        limit: int = DEFAULT_RESULTS_LIMIT,
    ) -> ScanResultsPage:
        """Return one page of results with page bodies attached.

        Args:
            request_id: Scan to read.
            caller: Authenticated identity.
            cursor: Smallest ``original_index`` to include.
            limit: Maximum number of rows, ``1..MAX_RESULTS_LIMIT``.

        Raises:
            ValueError: If ``cursor`` or ``limit`` is out of range.
            ScanNotFoundError: If the scan does not exist.
            ScanAccessDeniedError: If ``caller`` may not read it.
        """
        if cursor < 0:
            raise ValueError(f"cursor must be >= 0, got {cursor}")
        if not 1 <= limit <= MAX_RESULTS_LIMIT:
            raise ValueError(f"limit must be between 1 and {MAX_RESULTS_LIMIT}, got {limit}")

        scan = await self._authorize(request_id, caller)
        cacheable = scan.status == ScanStatus.COMPLETED
        key = results_cache_key(request_id, cursor, limit)

        page: Optional[CachedResultsPage] = None
        if cacheable:
            page = await self._read_cache(key)

        if page is None:
            rows = await self._results.find_range(request_id, cursor, limit)
            next_cursor = rows[-1].original_index + 1 if len(rows) == limit else None
            page = CachedResultsPage(
                status=scan.status,
                data=[_metadata(row) for row in rows],
                meta=ResultsMeta(next_cursor=next_cursor),
            )
            if cacheable:
                await self._write_cache(key, page)

        data = await asyncio.gather(*(self._hydrate(item) for item in page.data))
        return ScanResultsPage(status=page.status, data=list(data), meta=page.meta)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _authorize(self, request_id: uuid.UUID, caller: Caller) -> ScanRequest:
        scan = await self._requests.get(request_id)
        if scan is None:
            raise ScanNotFoundError(request_id)
        if not caller.is_admin and caller.owner_id != scan.owner_id:
            raise ScanAccessDeniedError(request_id)
        return scan

    async def _read_cache(self, key: str) -> Optional[CachedResultsPage]:
        try:
            raw = await self._cache.get(key)
        except Exception as exc:  # noqa: BLE001
            logger.warning("reader: cache read failed for %s: %s", key, exc)
            scan_results_cache_total.labels(outcome="error").inc()
            return None
        if raw is None:
            scan_results_cache_total.labels(outcome="miss").inc()
            return None
        try:
            page = CachedResultsPage.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning("reader: discarding malformed cache entry %s: %s", key, exc)
            scan_results_cache_total.labels(outcome="error").inc()
            return None
        scan_results_cache_total.labels(outcome="hit").inc()
        return page

    async def _write_cache(self, key: str, page: CachedResultsPage) -> None:
        try:
            await self._cache.set(
                key, page.model_dump_json(by_alias=True), self._cache_ttl_seconds
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("reader: cache write failed for %s: %s", key, exc)

    async def _hydrate(self, item: ResultMetadata) -> ScanResultRead:
        view = ScanResultRead(
            url=item.url,
            status=item.status,
            status_code=item.status_code,
            title=item.title,
            error=item.error,
            fetched_at=item.fetched_at,
        )
        if item.status != ResultStatus.SUCCESS or not item.content_ref:
            return view
        try:
            content = await self._load_content(item.content_ref)
        except ContentHydrationError as exc:
            logger.error("reader: %s", exc)
            content_hydration_failures_total.inc()
            return view.model_copy(update={"error": HYDRATION_ERROR_MESSAGE})
        return view.model_copy(update={"content": content})

    async def _load_content(self, content_ref: str) -> str:
        try:
            return await self._blob_store.get_text(content_ref)
        except Exception as exc:
            raise ContentHydrationError(content_ref, cause=exc) from exc
