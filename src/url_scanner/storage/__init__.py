"""Infrastructure-backed implementations of the scan pipeline interfaces.

Sub-modules:
    scan_store   — SqlAlchemyScanStore (scan_requests and scan_results)
    result_cache — RedisResultCache (completed-scan results pages)
    blob_store   — MinioBlobStore (fetched page bodies)
"""

from __future__ import annotations
