"""SQLAlchemy ORM models for scan requests and their per-URL results.

A ``ScanRequest`` is one submitted batch of URLs.  Each submitted URL gets
exactly one ``ScanResult`` row, created ``pending`` at admission time and
moved to ``success`` or ``error`` by a chunk worker.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from url_scanner.core.models.base import Base


class ScanStatus(str, enum.Enum):
    """Lifecycle of a scan request.  ``completed`` is terminal."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ResultStatus(str, enum.Enum):
    """Lifecycle of a single URL within a scan.

    ``pending`` rows are placeholders; ``success`` and ``error`` are terminal.
    """

    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class ScanRequest(Base):
    """A submitted batch of URLs and its progress counter.

    Attributes:
        id: UUID primary key, assigned by the orchestrator at admission.
        owner_id: Identity of the submitting caller, used for read access
            control.  ``None`` for scans submitted without an owner.
        total: Number of URLs submitted.  Never changes after creation.
        processed: Number of results in a terminal status.  Only ever
            raised, through a guarded conditional update.
        status: ``in_progress`` until ``processed`` reaches ``total``.
        created_at: Timestamp when the scan was admitted.
        completed_at: Timestamp when the status flipped to ``completed``.
    """

    __tablename__ = "scan_requests"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
    )
    owner_id: Mapped[Optional[str]] = mapped_column(
        sa.String(64),
        nullable=True,
    )
    total: Mapped[int] = mapped_column(
        sa.Integer,
        nullable=False,
    )
    processed: Mapped[int] = mapped_column(
        sa.Integer,
        nullable=False,
        server_default=sa.text("0"),
    )
    status: Mapped[ScanStatus] = mapped_column(
        sa.Enum(
            ScanStatus,
            name="scan_status",
            native_enum=False,
            length=20,
            values_callable=_enum_values,
        ),
        nullable=False,
        server_default=sa.text("'in_progress'"),
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=sa.text("NOW()"),
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        sa.CheckConstraint("processed >= 0 AND processed <= total", name="ck_scan_requests_processed"),
        sa.Index("idx_scan_requests_owner_id", "owner_id"),
    )


class ScanResult(Base):
    """Outcome of fetching one submitted URL.

    Attributes:
        id: UUID primary key generated by the database.  Carried in the queue
            message so the worker can update the row without looking it up.
        request_id: Owning scan request.
        original_index: 0-based position of the URL in the submitted list.
            Unique within a request; defines result ordering.
        url: The URL as submitted.
        status: ``pending``, ``success`` or ``error``.
        status_code: HTTP status of the response, when one was received.
        title: Contents of the page ``<title>`` element.
        content_ref: Blob store key of the stored page body.
        error_message: Why the fetch failed.
        fetched_at: When the fetch was attempted.
    """

    __tablename__ = "scan_results"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )
    request_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("scan_requests.id", ondelete="CASCADE"),
        nullable=False,
    )
    original_index: Mapped[int] = mapped_column(
        sa.Integer,
        nullable=False,
    )
    url: Mapped[str] = mapped_column(
        sa.Text,
        nullable=False,
    )
    status: Mapped[ResultStatus] = mapped_column(
        sa.Enum(
            ResultStatus,
            name="result_status",
            native_enum=False,
            length=20,
            values_callable=_enum_values,
        ),
        nullable=False,
        server_default=sa.text("'pending'"),
    )
    status_code: Mapped[Optional[int]] = mapped_column(
        sa.Integer,
        nullable=True,
    )
    title: Mapped[Optional[str]] = mapped_column(
        sa.Text,
        nullable=True,
    )
    content_ref: Mapped[Optional[str]] = mapped_column(
        sa.String(512),
        nullable=True,
    )
    error_message: Mapped[Optional[str]] = mapped_column(
        sa.Text,
        nullable=True,
    )
    fetched_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        # Serves the cursor range scan: WHERE request_id = ? AND original_index >= ?
        sa.UniqueConstraint(
            "request_id", "original_index", name="uq_scan_results_request_index"
        ),
        sa.Index("idx_scan_results_request_status", "request_id", "status"),
    )
