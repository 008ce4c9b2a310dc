"""Unit tests for scan admission and chunked dispatch."""

from __future__ import annotations

import pytest

from url_scanner.core.models.scans import ResultStatus, ScanStatus
from url_scanner.scanner.orchestrator import ScanOrchestrator
from url_scanner.scanner.progress import ProgressTracker

from tests.fakes import InMemoryScanStore, RecordingPublisher


def _urls(n: int) -> list[str]:
    return [f"https://example.com/page/{i}" for i in range(n)]


def _orchestrator(
    store: InMemoryScanStore,
    publisher: RecordingPublisher,
    chunk_size: int = 50,
) -> ScanOrchestrator:
    return ScanOrchestrator(
        requests=store,
        results=store,
        publisher=publisher,
        tracker=ProgressTracker(store, store),
        chunk_size=chunk_size,
    )


class TestSubmit:
    async def test_creates_request_and_dense_pending_rows(
        self, store: InMemoryScanStore, publisher: RecordingPublisher
    ) -> None:
        urls = _urls(120)
        request_id = await _orchestrator(store, publisher).submit(urls, owner_id="team-a")

        scan = store.requests[request_id]
        assert scan["total"] == 120
        assert scan["processed"] == 0
        assert scan["status"] == ScanStatus.IN_PROGRESS
        assert scan["owner_id"] == "team-a"

        rows = store.results_for(request_id)
        assert [r["original_index"] for r in rows] == list(range(120))
        assert [r["url"] for r in rows] == urls
        assert all(r["status"] == ResultStatus.PENDING for r in rows)

    async def test_publishes_one_message_per_chunk_in_order(
        self, store: InMemoryScanStore, publisher: RecordingPublisher
    ) -> None:
        urls = _urls(120)
        request_id = await _orchestrator(store, publisher).submit(urls)

        assert [len(m.inputs) for m in publisher.messages] == [50, 50, 20]
        published_urls = [item.url for m in publisher.messages for item in m.inputs]
        assert published_urls == urls

        rows_by_id = {r["id"]: r for r in store.results_for(request_id)}
        for message in publisher.messages:
            assert message.request_id == request_id
            for item in message.inputs:
                assert item.scan_id == request_id
                assert rows_by_id[item.url_id]["url"] == item.url

    async def test_exact_multiple_of_chunk_size(
        self, store: InMemoryScanStore, publisher: RecordingPublisher
    ) -> None:
        await _orchestrator(store, publisher, chunk_size=10).submit(_urls(30))
        assert [len(m.inputs) for m in publisher.messages] == [10, 10, 10]

    async def test_duplicate_urls_get_separate_rows(
        self, store: InMemoryScanStore, publisher: RecordingPublisher
    ) -> None:
        urls = ["https://example.com/a", "https://example.com/a", "https://example.com/b"]
        request_id = await _orchestrator(store, publisher).submit(urls)

        rows = store.results_for(request_id)
        assert len(rows) == 3
        assert len({r["id"] for r in rows}) == 3
        item_ids = [item.url_id for item in publisher.messages[0].inputs]
        assert item_ids == [r["id"] for r in rows]

    async def test_commits_before_first_publish(self, store: InMemoryScanStore) -> None:
        commits_seen: list[int] = []
        publisher = RecordingPublisher(on_publish=lambda _m: commits_seen.append(store.commits))

        await _orchestrator(store, publisher, chunk_size=2).submit(_urls(5))

        assert commits_seen == [1, 1, 1]

    async def test_empty_submission_completes_immediately(
        self, store: InMemoryScanStore, publisher: RecordingPublisher
    ) -> None:
        request_id = await _orchestrator(store, publisher).submit([])

        scan = store.requests[request_id]
        assert scan["total"] == 0
        assert scan["status"] == ScanStatus.COMPLETED
        assert publisher.messages == []


class TestSubmitFailures:
    async def test_persistence_failure_rolls_back_and_propagates(
        self, store: InMemoryScanStore, publisher: RecordingPublisher
    ) -> None:
        store.fail_on["insert_batch"] = RuntimeError("db down")

        with pytest.raises(RuntimeError, match="db down"):
            await _orchestrator(store, publisher).submit(_urls(3))

        assert store.requests == {}
        assert store.results == {}
        assert store.rollbacks == 1
        assert publisher.messages == []

    async def test_publish_failure_deletes_request_and_propagates(
        self, store: InMemoryScanStore
    ) -> None:
        publisher = RecordingPublisher(fail_at=1)

        with pytest.raises(ConnectionError):
            await _orchestrator(store, publisher, chunk_size=2).submit(_urls(5))

        assert len(publisher.messages) == 1
        assert store.requests == {}
        assert store.results == {}
        assert "delete" in store.calls

    async def test_publish_error_survives_failed_compensation(
        self, store: InMemoryScanStore
    ) -> None:
        store.fail_on["delete"] = RuntimeError("db gone too")
        publisher = RecordingPublisher(fail_at=0)

        with pytest.raises(ConnectionError):
            await _orchestrator(store, publisher).submit(_urls(3))


class TestConstruction:
    def test_rejects_non_positive_chunk_size(
        self, store: InMemoryScanStore, publisher: RecordingPublisher
    ) -> None:
        with pytest.raises(ValueError):
            _orchestrator(store, publisher, chunk_size=0)
