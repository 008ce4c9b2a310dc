"""SQLAlchemy implementation of the scan request and scan result stores.

One :class:`SqlAlchemyScanStore` wraps one ``AsyncSession`` and satisfies
both ``ScanRequestStore`` and ``ScanResultStore``.  Writes are flushed to the
session but never committed here; the orchestrator, worker and progress
tracker call :meth:`commit` at their own transaction boundaries.

The only statements that touch ``scan_requests.processed`` and
``scan_requests.status`` after admission are the two guarded updates in
:meth:`advance_processed` and :meth:`mark_completed`.  Their ``WHERE``
clauses keep the counter monotonic and the status terminal under
concurrent workers.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional, Sequence

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from url_scanner.core.models.scans import (
    ResultStatus,
    ScanRequest,
    ScanResult,
    ScanStatus,
)
from url_scanner.scanner.interfaces import InsertedResult, ResultUpdate

logger = logging.getLogger(__name__)


class SqlAlchemyScanStore:
    """Relational store for scans backed by an ``AsyncSession``.

    Args:
        session: Session used for every statement.  The caller owns its
            lifetime.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Transaction control
    # ------------------------------------------------------------------

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()

    # ------------------------------------------------------------------
    # scan_requests
    # ------------------------------------------------------------------

    async def create(
        self, request_id: uuid.UUID, total: int, owner_id: Optional[str]
    ) -> None:
        self._session.add(
            ScanRequest(
                id=request_id,
                owner_id=owner_id,
                total=total,
                processed=0,
                status=ScanStatus.IN_PROGRESS,
            )
        )
        # Flush so the FK target exists before the result rows are inserted.
        await self._session.flush()

    async def get(self, request_id: uuid.UUID) -> Optional[ScanRequest]:
        """Load a scan request, refreshing any instance already in the session.

        ``populate_existing`` matters for the progress tracker, which re-reads
        the row after a guarded update issued through Core.
        """
        stmt = (
            sa.select(ScanRequest)
            .where(ScanRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def advance_processed(self, request_id: uuid.UUID, count: int) -> bool:
        stmt = (
            sa.update(ScanRequest)
            .where(ScanRequest.id == request_id)
            .where(ScanRequest.processed < count)
            .values(processed=count)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return bool(result.rowcount)

    async def mark_completed(self, request_id: uuid.UUID) -> bool:
        stmt = (
            sa.update(ScanRequest)
            .where(ScanRequest.id == request_id)
            .where(ScanRequest.status != ScanStatus.COMPLETED)
            .values(status=ScanStatus.COMPLETED, completed_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return bool(result.rowcount)

    async def delete(self, request_id: uuid.UUID) -> None:
        # scan_results rows go with it through ON DELETE CASCADE.
        await self._session.execute(
            sa.delete(ScanRequest)
            .where(ScanRequest.id == request_id)
            .execution_options(synchronize_session=False)
        )

    # ------------------------------------------------------------------
    # scan_results
    # ------------------------------------------------------------------

    async def insert_batch(
        self, request_id: uuid.UUID, offset: int, urls: Sequence[str]
    ) -> list[InsertedResult]:
        """Insert ``pending`` placeholder rows for one chunk.

        ``RETURNING`` gives no ordering guarantee for multi-row inserts, so
        the returned rows are re-sorted by ``original_index``.
        """
        if not urls:
            return []
        rows = [
            {
                "request_id": request_id,
                "original_index": offset + i,
                "url": url,
                "status": ResultStatus.PENDING,
            }
            for i, url in enumerate(urls)
        ]
        stmt = (
            sa.insert(ScanResult)
            .values(rows)
            .returning(ScanResult.id, ScanResult.original_index, ScanResult.url)
        )
        result = await self._session.execute(stmt)
        inserted = [
            InsertedResult(id=row.id, original_index=row.original_index, url=row.url)
            for row in result
        ]
        inserted.sort(key=lambda r: r.original_index)
        return inserted

    async def update_batch(self, updates: Sequence[ResultUpdate]) -> None:
        """Write each outcome to its row by primary key.

        Updates are unconditional: a redelivered chunk simply overwrites the
        earlier outcome.  Ids whose rows no longer exist match nothing.
        """
        if not updates:
            return
        table = ScanResult.__table__
        stmt = (
            sa.update(table)
            .where(table.c.id == sa.bindparam("b_id"))
            .values(
                status=sa.bindparam("b_status"),
                status_code=sa.bindparam("b_status_code"),
                title=sa.bindparam("b_title"),
                content_ref=sa.bindparam("b_content_ref"),
                error_message=sa.bindparam("b_error_message"),
                fetched_at=sa.bindparam("b_fetched_at"),
            )
        )
        params = [
            {
                "b_id": u.result_id,
                "b_status": u.outcome.status,
                "b_status_code": u.outcome.status_code,
                "b_title": u.outcome.title,
                "b_content_ref": u.outcome.content_ref,
                "b_error_message": u.outcome.error_message,
                "b_fetched_at": u.outcome.fetched_at,
            }
            for u in updates
        ]
        # One executemany round trip.
        await self._session.execute(stmt, params)

    async def count_not_pending(self, request_id: uuid.UUID) -> int:
        stmt = (
            sa.select(sa.func.count())
            .select_from(ScanResult)
            .where(ScanResult.request_id == request_id)
            .where(ScanResult.status != ResultStatus.PENDING)
        )
        result = await self._session.execute(stmt)
        return int(result.scalar_one())

    async def find_range(
        self, request_id: uuid.UUID, cursor: int, limit: int
    ) -> list[ScanResult]:
        stmt = (
            sa.select(ScanResult)
            .where(ScanResult.request_id == request_id)
            .where(ScanResult.original_index >= cursor)
            .order_by(ScanResult.original_index.asc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())
