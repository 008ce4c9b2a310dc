"""SQLAlchemy ORM model for API keys.

Only the SHA-256 hash of a key is stored.  The plain key is shown once, by
``scripts/generate_api_key.py``, and cannot be recovered afterwards.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from url_scanner.core.models.base import Base


class ApiKey(Base):
    """An API key that authenticates callers as ``owner_id``.

    Attributes:
        id: UUID primary key.
        owner_id: Identity the key authenticates as.  Scans submitted with
            this key are owned by it.
        name: Human-readable label.
        key_hash: Hex SHA-256 digest of the full key.
        truncated_key: Last four characters of the key, for display.
        is_active: ``False`` once revoked.
        created_at: Timestamp when the key was issued.
        last_used_at: Timestamp of the last successful authentication,
            refreshed at most once per hour.
    """

    __tablename__ = "api_keys"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )
    owner_id: Mapped[str] = mapped_column(
        sa.String(64),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(
        sa.String(255),
        nullable=False,
    )
    key_hash: Mapped[str] = mapped_column(
        sa.String(64),
        nullable=False,
        unique=True,
    )
    truncated_key: Mapped[Optional[str]] = mapped_column(
        sa.String(4),
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean,
        nullable=False,
        server_default=sa.text("true"),
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=sa.text("NOW()"),
    )
    last_used_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        sa.Index("idx_api_keys_owner_id", "owner_id"),
    )
