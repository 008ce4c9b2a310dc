"""FastAPI router for scan submission and read access.

All routes require an API key.  Scans are owner-scoped: a caller can only
read scans submitted with its own identity.  The administrative key bypasses
the ownership check.

Routes:
    POST   /scans                      — admit a scan and dispatch its chunks
    GET    /scans/{request_id}/status  — progress counters
    GET    /scans/{request_id}/results — cursor-paginated results with content

Domain errors (``ScanNotFoundError``, ``ScanAccessDeniedError``) are mapped
to 404 and 403 by the exception handlers in ``api/main.py``.
"""

from __future__ import annotations

import uuid
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from url_scanner.api.dependencies import get_current_caller, get_orchestrator, get_reader
from url_scanner.api.limiter import SUBMIT_RATE_LIMIT, limiter
from url_scanner.api.metrics import scans_submitted_total
from url_scanner.config.settings import get_settings
from url_scanner.core.schemas.scans import (
    ScanCreate,
    ScanResultsPage,
    ScanStatusRead,
    ScanSubmitted,
)
from url_scanner.scanner.config import DEFAULT_RESULTS_LIMIT, MAX_RESULTS_LIMIT
from url_scanner.scanner.interfaces import Caller
from url_scanner.scanner.orchestrator import ScanOrchestrator
from url_scanner.scanner.reader import ResultReader

logger = structlog.get_logger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Submit
# ---------------------------------------------------------------------------


@router.post("", response_model=ScanSubmitted, status_code=status.HTTP_202_ACCEPTED)
@limiter.limit(SUBMIT_RATE_LIMIT)
async def submit_scan(
    request: Request,  # noqa: ARG001
    payload: ScanCreate,
    caller: Annotated[Caller, Depends(get_current_caller)],
    orchestrator: Annotated[ScanOrchestrator, Depends(get_orchestrator)],
) -> ScanSubmitted:
    """Admit a scan of the submitted URLs.

    The response is sent once the scan and its placeholder rows are stored
    and every chunk has been queued; fetching happens asynchronously.

    Args:
        request: The incoming HTTP request (used by the rate limiter).
        payload: Validated :class:`~url_scanner.core.schemas.scans.ScanCreate`.
        caller: The authenticated caller, recorded as the scan owner.
        orchestrator: Injected admission service.

    Returns:
        ``{"message", "requestId", "resultCount"}``.

    Raises:
        HTTPException 422: If more URLs are submitted than
            ``MAX_URLS_PER_REQUEST`` allows.
    """
    max_urls = get_settings().max_urls_per_request
    if len(payload.urls) > max_urls:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"At most {max_urls} URLs may be submitted per request.",
        )

    request_id = await orchestrator.submit(payload.urls, owner_id=caller.owner_id)
    scans_submitted_total.inc()
    logger.info(
        "scan_submitted",
        scan_id=str(request_id),
        url_count=len(payload.urls),
        owner_id=caller.owner_id,
    )
    return ScanSubmitted(request_id=request_id, result_count=len(payload.urls))


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------


@router.get("/{request_id}/status", response_model=ScanStatusRead)
async def get_scan_status(
    request_id: uuid.UUID,
    caller: Annotated[Caller, Depends(get_current_caller)],
    reader: Annotated[ResultReader, Depends(get_reader)],
) -> ScanStatusRead:
    """Return the progress of a scan."""
    return await reader.get_status(request_id, caller)


@router.get("/{request_id}/results", response_model=ScanResultsPage)
async def get_scan_results(
    request_id: uuid.UUID,
    caller: Annotated[Caller, Depends(get_current_caller)],
    reader: Annotated[ResultReader, Depends(get_reader)],
    cursor: Annotated[int, Query(ge=0)] = 0,
    limit: Annotated[int, Query(ge=1, le=MAX_RESULTS_LIMIT)] = DEFAULT_RESULTS_LIMIT,
) -> ScanResultsPage:
    """Return one page of results, ordered by submission position.

    Pass ``meta.nextCursor`` from the previous page as ``cursor`` to continue.
    ``nextCursor`` is ``null`` on the last page.
    """
    return await reader.get_results(request_id, caller, cursor=cursor, limit=limit)
