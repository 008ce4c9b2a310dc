"""Unit tests for the chunk message wire format."""

from __future__ import annotations

import uuid

import pytest

from url_scanner.core.exceptions import InvalidChunkMessageError
from url_scanner.scanner.messages import ChunkItem, ChunkMessage

REQUEST_ID = uuid.uuid4()
URL_ID = uuid.uuid4()


def _payload(**overrides: object) -> dict:
    payload = {
        "requestId": str(REQUEST_ID),
        "inputs": [{"scanId": str(REQUEST_ID), "urlId": str(URL_ID), "url": "https://e.com/"}],
    }
    payload.update(overrides)
    return payload


class TestToPayload:
    def test_camel_case_json_types(self) -> None:
        message = ChunkMessage(
            request_id=REQUEST_ID,
            inputs=[ChunkItem(scan_id=REQUEST_ID, url_id=URL_ID, url="https://e.com/")],
        )

        assert message.to_payload() == _payload()


class TestFromPayload:
    def test_parses_valid_payload(self) -> None:
        message = ChunkMessage.from_payload(_payload())

        assert message.request_id == REQUEST_ID
        assert message.inputs[0].url_id == URL_ID
        assert message.inputs[0].url == "https://e.com/"

    def test_empty_inputs_are_allowed(self) -> None:
        assert ChunkMessage.from_payload(_payload(inputs=[])).inputs == []

    @pytest.mark.parametrize(
        "payload",
        [
            None,
            "not a dict",
            {"inputs": []},
            {"requestId": "not-a-uuid", "inputs": []},
            {"requestId": str(REQUEST_ID), "inputs": [{"url": "https://e.com/"}]},
        ],
    )
    def test_malformed_payload_raises(self, payload: object) -> None:
        with pytest.raises(InvalidChunkMessageError) as exc_info:
            ChunkMessage.from_payload(payload)
        assert exc_info.value.payload == payload

    def test_item_of_other_scan_is_rejected(self) -> None:
        other = str(uuid.uuid4())
        payload = _payload(
            inputs=[{"scanId": other, "urlId": str(URL_ID), "url": "https://e.com/"}]
        )

        with pytest.raises(InvalidChunkMessageError):
            ChunkMessage.from_payload(payload)
