"""SQLAlchemy ORM models for URL Scanner.

All models are imported here so that:
1. Alembic autogenerate can discover them via Base.metadata.
2. Application code can do `from url_scanner.core.models import ScanRequest`
   without knowing which sub-module a model lives in.
"""

from __future__ import annotations

from url_scanner.core.models.base import Base
from url_scanner.core.models.api_keys import ApiKey
from url_scanner.core.models.scans import (
    ResultStatus,
    ScanRequest,
    ScanResult,
    ScanStatus,
)

__all__ = [
    "Base",
    "ApiKey",
    "ResultStatus",
    "ScanRequest",
    "ScanResult",
    "ScanStatus",
]
