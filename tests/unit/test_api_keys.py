"""Unit tests for API key issuance and verification with a mocked session."""

from __future__ import annotations

import hashlib
import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from url_scanner.core.api_keys import (
    KEY_PREFIX,
    create_api_key,
    generate_api_key,
    hash_api_key,
    revoke_api_key,
    verify_api_key,
)
from url_scanner.core.models.api_keys import ApiKey


def _session(row: ApiKey | None = None) -> MagicMock:
    session = MagicMock()
    result = MagicMock()
    result.scalar_one_or_none.return_value = row
    session.execute = AsyncMock(return_value=result)
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


def _key_row(last_used_at: datetime | None) -> ApiKey:
    return ApiKey(
        id=uuid.uuid4(),
        owner_id="team-a",
        name="ci",
        key_hash="h",
        is_active=True,
        last_used_at=last_used_at,
    )


class TestGeneration:
    def test_key_format(self) -> None:
        key = generate_api_key()

        assert key.startswith(KEY_PREFIX)
        assert len(key) == len(KEY_PREFIX) + 64

    def test_keys_are_unique(self) -> None:
        assert generate_api_key() != generate_api_key()

    def test_hash_is_sha256_hex(self) -> None:
        assert hash_api_key("abc") == hashlib.sha256(b"abc").hexdigest()


class TestCreate:
    async def test_stores_only_hash(self) -> None:
        session = _session()

        plain, row = await create_api_key(session, "team-a", "ci")

        assert row.key_hash == hash_api_key(plain)
        assert row.truncated_key == plain[-4:]
        assert row.owner_id == "team-a"
        session.add.assert_called_once_with(row)
        session.flush.assert_awaited_once()
        session.commit.assert_not_awaited()


class TestVerify:
    async def test_unknown_key_returns_none(self) -> None:
        session = _session(None)

        assert await verify_api_key(session, "sk_live_nope") is None
        session.commit.assert_not_awaited()

    async def test_stale_last_used_is_touched(self) -> None:
        row = _key_row(datetime.now(timezone.utc) - timedelta(days=2))
        session = _session(row)

        assert await verify_api_key(session, "sk_live_x") is row

        assert row.last_used_at > datetime.now(timezone.utc) - timedelta(minutes=1)
        session.commit.assert_awaited_once()

    async def test_recent_last_used_is_left_alone(self) -> None:
        recent = datetime.now(timezone.utc) - timedelta(minutes=5)
        row = _key_row(recent)
        session = _session(row)

        assert await verify_api_key(session, "sk_live_x") is row

        assert row.last_used_at == recent
        session.commit.assert_not_awaited()

    async def test_touch_failure_does_not_fail_verification(self) -> None:
        row = _key_row(None)
        session = _session(row)
        session.commit.side_effect = OperationalError("UPDATE", {}, Exception("gone"))

        assert await verify_api_key(session, "sk_live_x") is row
        session.rollback.assert_awaited_once()


class TestRevoke:
    @pytest.mark.parametrize(("rowcount", "expected"), [(1, True), (0, False)])
    async def test_reports_match(self, rowcount: int, expected: bool) -> None:
        session = MagicMock()
        session.execute = AsyncMock(return_value=MagicMock(rowcount=rowcount))

        assert await revoke_api_key(session, uuid.uuid4(), "team-a") is expected
