"""Wire format of the chunk messages exchanged through the queue.

One message is published per chunk of a scan::

    {
        "requestId": "<scan request uuid>",
        "inputs": [
            {"scanId": "<scan request uuid>", "urlId": "<result row uuid>", "url": "https://..."},
            ...
        ]
    }

``urlId`` is the primary key of the placeholder ``scan_results`` row the
worker must update.
"""

from __future__ import annotations

import uuid
from typing import Any, List

from pydantic import BaseModel, ConfigDict, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from url_scanner.core.exceptions import InvalidChunkMessageError


class ChunkItem(BaseModel):
    """One unit of work: fetch ``url`` and write the outcome to row ``url_id``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    scan_id: uuid.UUID
    url_id: uuid.UUID
    url: str


class ChunkMessage(BaseModel):
    """A chunk of a scan's URL list, as carried by one queue message."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    request_id: uuid.UUID
    inputs: List[ChunkItem]

    @model_validator(mode="after")
    def _items_belong_to_request(self) -> "ChunkMessage":
        for item in self.inputs:
            if item.scan_id != self.request_id:
                raise ValueError(
                    f"item {item.url_id} belongs to scan {item.scan_id}, "
                    f"not {self.request_id}"
                )
        return self

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON-serialisable camelCase payload."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_payload(cls, payload: Any) -> "ChunkMessage":
        """Validate a decoded queue payload.

        Raises:
            InvalidChunkMessageError: If the payload does not match the
                message schema.
        """
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            raise InvalidChunkMessageError(
                f"Invalid chunk message: {exc.error_count()} validation error(s)",
                payload=payload,
            ) from exc
