"""Pydantic schemas for request/response validation.

Sub-modules:
    scans — ScanCreate, ScanSubmitted, ScanStatusRead, ScanResultsPage and
            the cached page format
"""

from __future__ import annotations
