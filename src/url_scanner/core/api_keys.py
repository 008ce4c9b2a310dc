"""API key issuance and verification.

Keys are ``sk_live_`` followed by 64 hex characters.  Only the SHA-256 hex
digest is stored; the plain key is shown once at creation.  Verification is
a single indexed lookup on ``api_keys.key_hash``.

``last_used_at`` is refreshed at most once per :data:`LAST_USED_RESOLUTION`
so that a busy key does not write on every request.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from url_scanner.core.models.api_keys import ApiKey

logger = logging.getLogger(__name__)

KEY_PREFIX = "sk_live_"

LAST_USED_RESOLUTION = timedelta(hours=1)


def hash_api_key(key: str) -> str:
    """Return the SHA-256 hex digest stored for ``key``."""
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def generate_api_key() -> str:
    """Return a new plain-text API key."""
    return f"{KEY_PREFIX}{secrets.token_hex(32)}"


async def create_api_key(
    session: AsyncSession, owner_id: str, name: str
) -> tuple[str, ApiKey]:
    """Issue a key for ``owner_id`` and stage its row.

    The caller commits.

    Returns:
        ``(plain_key, row)``.  The plain key cannot be recovered later.
    """
    plain = generate_api_key()
    row = ApiKey(
        owner_id=owner_id,
        name=name,
        key_hash=hash_api_key(plain),
        truncated_key=plain[-4:],
        is_active=True,
    )
    session.add(row)
    await session.flush()
    logger.info("api_keys: issued key %s for owner %s", row.id, owner_id)
    return plain, row


async def verify_api_key(session: AsyncSession, key: str) -> Optional[ApiKey]:
    """Return the active key row matching ``key``, or ``None``.

    Touches ``last_used_at`` when it is unset or older than
    :data:`LAST_USED_RESOLUTION`, committing that write.  A failure of the
    touch is logged and does not fail verification.
    """
    result = await session.execute(
        sa.select(ApiKey).where(
            ApiKey.key_hash == hash_api_key(key),
            ApiKey.is_active.is_(True),
        )
    )
    row = result.scalar_one_or_none()
    if row is None:
        return None

    now = datetime.now(timezone.utc)
    if row.last_used_at is None or row.last_used_at < now - LAST_USED_RESOLUTION:
        try:
            row.last_used_at = now
            await session.commit()
        except sa.exc.SQLAlchemyError:
            logger.exception("api_keys: failed to update last_used_at for %s", row.id)
            await session.rollback()
    return row


async def revoke_api_key(session: AsyncSession, key_id: uuid.UUID, owner_id: str) -> bool:
    """Deactivate a key owned by ``owner_id``.  Returns whether one matched.

    The caller commits.
    """
    result = await session.execute(
        sa.update(ApiKey)
        .where(ApiKey.id == key_id, ApiKey.owner_id == owner_id)
        .values(is_active=False)
    )
    return bool(result.rowcount)
