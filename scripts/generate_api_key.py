#!/usr/bin/env python
"""Issue or revoke an API key for an owner identity.

Run from the project root::

    python scripts/generate_api_key.py --owner team-a --name "ingest job"

The script generates a ``sk_live_`` key with 32 bytes of cryptographic random
data, stores its SHA-256 hash in ``api_keys`` and prints the key to stdout.
This is the **only** time the plain-text key is displayed.

Usage::

    python scripts/generate_api_key.py --owner OWNER [--name NAME]
    python scripts/generate_api_key.py --owner OWNER --revoke KEY_ID

Options:
    --owner   (required) Owner identity the key authenticates as.  Scans
              submitted with the key are readable only by this owner.
    --name    Label stored with the key.  Defaults to "default".
    --revoke  Deactivate the key with this ID instead of issuing one.

Exit codes:
    0 — Success.
    1 — Key not found, invalid arguments, or database error.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
import uuid
from typing import Optional

# Ensure the src layout is on sys.path when run as a standalone script.
_SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
_SRC_DIR = os.path.join(os.path.dirname(_SCRIPT_DIR), "src")
if _SRC_DIR not in sys.path:
    sys.path.insert(0, _SRC_DIR)


async def _run(owner: str, name: str, revoke: Optional[uuid.UUID]) -> None:
    """Issue a key for ``owner``, or revoke key ``revoke`` if given.

    Raises:
        SystemExit: With code 1 if the key to revoke does not exist.
    """
    from url_scanner.core.api_keys import create_api_key, revoke_api_key  # noqa: PLC0415
    from url_scanner.core.database import AsyncSessionLocal  # noqa: PLC0415

    async with AsyncSessionLocal() as session:
        if revoke is not None:
            if not await revoke_api_key(session, revoke, owner):
                print(
                    f"[generate_api_key] ERROR: No key '{revoke}' owned by '{owner}'.",
                    file=sys.stderr,
                )
                sys.exit(1)
            await session.commit()
            print(f"[generate_api_key] API key '{revoke}' revoked for '{owner}'.")
            return

        plain, row = await create_api_key(session, owner, name)
        await session.commit()
        print(f"[generate_api_key] API key {row.id} generated for '{owner}':")
        print(f"\n  {plain}\n")
        print(
            "Store this key securely — it cannot be retrieved again.\n"
            "Use it in API requests as:\n"
            f"  X-API-Key: {plain}\n"
            "or:\n"
            f"  Authorization: Bearer {plain}"
        )


def main() -> None:
    """Parse CLI arguments and run the async key operation."""
    parser = argparse.ArgumentParser(
        description="Issue or revoke an API key for an owner identity.",
    )
    parser.add_argument("--owner", required=True, help="Owner identity of the key.")
    parser.add_argument("--name", default="default", help="Label stored with the key.")
    parser.add_argument(
        "--revoke",
        type=uuid.UUID,
        default=None,
        metavar="KEY_ID",
        help="Deactivate this key instead of issuing a new one.",
    )
    args = parser.parse_args()

    if len(args.owner) > 64:
        parser.error("--owner must be at most 64 characters")

    try:
        asyncio.run(_run(args.owner, args.name, args.revoke))
    except SystemExit:
        raise
    except Exception as exc:  # noqa: BLE001
        print(f"[generate_api_key] ERROR: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
