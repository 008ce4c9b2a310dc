"""Shared slowapi rate-limiter singleton.

Keeping the ``Limiter`` instance in its own module breaks the circular
import that would arise if route modules imported directly from ``main.py``
(which itself imports every route module).

Usage in route modules::

    from url_scanner.api.limiter import limiter

    @router.post("")
    @limiter.limit("20/minute")
    async def submit_scan(request: Request, ...):
        ...

The ``request`` parameter **must** be present in the route function
signature for slowapi to resolve the rate-limit key.
"""

from __future__ import annotations

from slowapi import Limiter
from slowapi.util import get_remote_address

#: Limit applied to scan submission, per client address.
SUBMIT_RATE_LIMIT = "20/minute"

limiter: Limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["100/minute"],
)
"""Global rate-limiter instance.

Default limit: 100 requests/minute per IP address (enforced globally via
``SlowAPIMiddleware`` registered in ``main.create_app()``).
"""
