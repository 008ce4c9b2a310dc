"""Single-URL fetcher: GET a page, store its body, report the outcome.

Uses ``httpx`` for all HTTP requests.  The body is streamed so that
oversized responses are abandoned once they cross the size limit instead of
being buffered in full.  Successful bodies are written to the blob store
under ``{request_id}/{md5(url)}.html``.

:meth:`HttpUrlFetcher.fetch_and_store` never raises: every failure becomes
an ``error`` outcome carrying a human-readable message.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Optional

import httpx

from url_scanner.config.settings import Settings
from url_scanner.core.models.scans import ResultStatus
from url_scanner.scanner.config import STORED_CONTENT_TYPE, USER_AGENT
from url_scanner.scanner.interfaces import BlobStore, FetchOutcome

logger = logging.getLogger(__name__)

_TITLE_RE = re.compile(r"<title[^>]*>([^<]*)</title>", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def content_key(request_id: uuid.UUID, url: str) -> str:
    """Return the blob key a page body is stored under."""
    digest = hashlib.md5(url.encode("utf-8"), usedforsecurity=False).hexdigest()
    return f"{request_id}/{digest}.html"


def extract_title(html: str) -> Optional[str]:
    """Return the stripped text of the first ``<title>`` element, if any."""
    match = _TITLE_RE.search(html)
    if match is None:
        return None
    title = match.group(1).strip()
    return title or None


def build_http_client(settings: Settings) -> httpx.AsyncClient:
    """Create the shared client with the configured timeout and redirect cap."""
    return httpx.AsyncClient(
        timeout=settings.fetch_timeout_seconds,
        follow_redirects=True,
        max_redirects=settings.fetch_max_redirects,
        headers={"User-Agent": USER_AGENT},
    )


def _decode(body: bytes, charset: Optional[str]) -> str:
    try:
        return body.decode(charset or "utf-8", errors="replace")
    except LookupError:
        return body.decode("utf-8", errors="replace")


class _BodyTooLarge(Exception):
    pass


# ---------------------------------------------------------------------------
# Fetcher
# ---------------------------------------------------------------------------


class HttpUrlFetcher:
    """Fetch URLs with a shared :class:`httpx.AsyncClient`.

    Args:
        client: Client configured with timeout, redirect cap and user agent
            (see :func:`build_http_client`).
        blob_store: Destination for successful page bodies.
        max_content_bytes: Bodies larger than this are recorded as errors.
        deadline_seconds: Overall bound on the request and body read.  The
            client timeout only bounds each network operation, so a server
            trickling bytes is cut off here.  ``None`` disables it.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        blob_store: BlobStore,
        max_content_bytes: int,
        deadline_seconds: Optional[float] = None,
    ) -> None:
        self._client = client
        self._blob_store = blob_store
        self._max_content_bytes = max_content_bytes
        self._deadline_seconds = deadline_seconds

    async def fetch_and_store(self, url: str, request_id: uuid.UUID) -> FetchOutcome:
        """Fetch ``url`` and store its body.

        Performs the following steps in order:

        1. **HTTP GET** following redirects up to the client's cap, with the
           request and body read bounded by ``deadline_seconds``.
        2. **HTTP error status**: a 4xx/5xx response is an ``error`` outcome
           that keeps the status code.
        3. **Body read**, abandoned once it exceeds ``max_content_bytes``.
        4. **Title extraction** from the decoded body.
        5. **Blob upload** under :func:`content_key`.

        Returns:
            A terminal :class:`FetchOutcome`.
        """
        fetched_at = datetime.now(timezone.utc)

        def _error(message: str, status_code: Optional[int] = None) -> FetchOutcome:
            return FetchOutcome(
                status=ResultStatus.ERROR,
                fetched_at=fetched_at,
                status_code=status_code,
                error_message=message,
            )

        status_code: Optional[int] = None
        try:
            async with asyncio.timeout(self._deadline_seconds):
                async with self._client.stream("GET", url) as response:
                    status_code = response.status_code
                    if status_code >= 400:
                        logger.info("fetcher: HTTP %d for %s", status_code, url)
                        return _error(f"HTTP {status_code}", status_code)
                    body = await self._read_body(response)
                    charset = response.charset_encoding
        except (httpx.TimeoutException, TimeoutError):
            logger.warning("fetcher: timeout fetching %s", url)
            return _error("timeout")
        except httpx.TooManyRedirects:
            logger.warning("fetcher: too many redirects for %s", url)
            return _error("too many redirects")
        except _BodyTooLarge:
            logger.warning(
                "fetcher: body of %s exceeds %d bytes", url, self._max_content_bytes
            )
            return _error(f"content exceeds {self._max_content_bytes} bytes", status_code)
        except httpx.HTTPError as exc:
            logger.warning("fetcher: request error for %s: %s", url, exc)
            return _error(f"request error: {exc}")
        except httpx.InvalidURL as exc:
            logger.warning("fetcher: invalid URL %r: %s", url, exc)
            return _error(f"invalid url: {exc}")
        except Exception as exc:  # noqa: BLE001
            logger.error("fetcher: unexpected error fetching %s: %s", url, exc)
            return _error(f"unexpected error: {exc}", status_code)

        html = _decode(body, charset)
        key = content_key(request_id, url)
        try:
            await self._blob_store.put_text(key, html, STORED_CONTENT_TYPE)
        except Exception as exc:  # noqa: BLE001
            logger.error("fetcher: failed to store content of %s as %s: %s", url, key, exc)
            return _error(f"storage error: {exc}", status_code)

        return FetchOutcome(
            status=ResultStatus.SUCCESS,
            fetched_at=fetched_at,
            status_code=status_code,
            title=extract_title(html),
            content_ref=key,
        )

    async def _read_body(self, response: httpx.Response) -> bytes:
        buf = bytearray()
        async for chunk in response.aiter_bytes():
            buf.extend(chunk)
            if len(buf) > self._max_content_bytes:
                raise _BodyTooLarge()
        return bytes(buf)
