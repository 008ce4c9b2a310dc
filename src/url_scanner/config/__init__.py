"""Configuration package for URL Scanner.

Re-exports the settings symbols so that callers can write::

    from url_scanner.config import get_settings
"""

from __future__ import annotations

from url_scanner.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
