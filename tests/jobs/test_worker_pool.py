from __future__ import annotations

import threading
from unittest.mock import MagicMock

import pytest

from phim_backend.config import QueueSettings, Settings
from phim_backend.jobs.handlers import InvalidJobPayloadError, build_handlers
from phim_backend.jobs.queue import DETAIL_QUEUE, DISCOVER_QUEUE, SYNC_QUEUE, JobRecord
from phim_backend.jobs.scheduler import prepare_queues
from phim_backend.jobs.worker import WorkerPool
from tests.fakes import FakeCatalog, FakeStoreProvider


def _job(queue: str = DETAIL_QUEUE, payload: dict | None = None, attempts: int = 1) -> JobRecord:
    return JobRecord(id=5, queue=queue, payload=payload or {}, attempts=attempts, max_attempts=3)


def _queue(concurrency: int = 2) -> MagicMock:
    queue = MagicMock()
    queue.queue_settings.return_value = QueueSettings(concurrency=concurrency)
    return queue


def test_execute_completes_successful_job() -> None:
    queue = _queue()
    handler = MagicMock()
    pool = WorkerPool(queue, {DETAIL_QUEUE: handler}, Settings())

    assert pool.execute(_job()) is True

    handler.assert_called_once()
    queue.complete.assert_called_once()
    queue.fail.assert_not_called()


def test_execute_reports_failure_when_completion_write_fails() -> None:
    queue = _queue()
    queue.complete.side_effect = RuntimeError("connection lost")
    handler = MagicMock()
    pool = WorkerPool(queue, {DETAIL_QUEUE: handler}, Settings())

    assert pool.execute(_job()) is False

    handler.assert_called_once()
    queue.fail.assert_not_called()


def test_execute_retries_failed_job_without_audit() -> None:
    queue = _queue()
    queue.fail.return_value = True
    catalog = FakeCatalog()
    pool = WorkerPool(queue, {DETAIL_QUEUE: MagicMock(side_effect=RuntimeError("boom"))}, Settings(), audit=FakeStoreProvider(catalog))

    assert pool.execute(_job()) is False

    queue.fail.assert_called_once()
    queue.complete.assert_not_called()
    assert catalog.crawl_logs == []


def test_execute_audits_terminal_failure() -> None:
    queue = _queue()
    queue.fail.return_value = False
    catalog = FakeCatalog()
    pool = WorkerPool(queue, {SYNC_QUEUE: MagicMock(side_effect=RuntimeError("boom"))}, Settings(), audit=FakeStoreProvider(catalog))

    pool.execute(_job(SYNC_QUEUE, {"source_item_id": 4}, attempts=3))

    log = catalog.crawl_logs[-1]
    assert log["level"] == "error"
    assert log["message"] == "job failed: boom"
    assert log["meta"] == {"queue": SYNC_QUEUE, "job_id": 5, "payload": {"source_item_id": 4}, "attempts": 3}


def test_execute_fails_job_without_handler() -> None:
    queue = _queue()
    queue.fail.return_value = True
    pool = WorkerPool(queue, {}, Settings())

    assert pool.execute(_job(DISCOVER_QUEUE)) is False
    queue.fail.assert_called_once()


def test_run_once_claims_up_to_concurrency() -> None:
    queue = _queue(concurrency=3)
    queue.claim.return_value = [_job(), _job(), _job()]
    handler = MagicMock()
    pool = WorkerPool(queue, {DETAIL_QUEUE: handler}, Settings())
    try:
        processed = pool.run_once(DETAIL_QUEUE)
    finally:
        pool.shutdown()

    assert processed == 3
    queue.claim.assert_called_once_with(DETAIL_QUEUE, 3)
    assert handler.call_count == 3
    assert queue.complete.call_count == 3


def test_run_once_with_empty_queue() -> None:
    queue = _queue()
    queue.claim.return_value = []
    pool = WorkerPool(queue, {}, Settings())

    assert pool.run_once(DETAIL_QUEUE) == 0


def test_run_forever_stops_on_event() -> None:
    queue = _queue()
    queue.claim.return_value = []
    stop = threading.Event()
    pool = WorkerPool(queue, {}, Settings(worker_poll_seconds=0.01))
    stop.set()

    pool.run_forever([DETAIL_QUEUE], stop)

    assert stop.is_set()


def test_handlers_route_payloads() -> None:
    orchestrator = MagicMock()
    orchestrator.fetch_detail.return_value = MagicMock(ok=False, error="HTTP 404")
    sync_service = MagicMock()
    handlers = build_handlers(orchestrator, sync_service)

    handlers[DISCOVER_QUEUE](_job(DISCOVER_QUEUE, {"source": "ophim"}))
    handlers[DETAIL_QUEUE](_job(DETAIL_QUEUE, {"source": "kkphim", "external_id": "abc"}))
    handlers[SYNC_QUEUE](_job(SYNC_QUEUE, {"source_item_id": "12"}))

    orchestrator.discover.assert_called_once_with("ophim", 1)
    orchestrator.fetch_detail.assert_called_once_with("kkphim", "abc")
    sync_service.sync_source_item.assert_called_once_with(12)


@pytest.mark.parametrize(
    ("queue", "payload"),
    [(DISCOVER_QUEUE, {}), (DETAIL_QUEUE, {"source": "ophim"}), (SYNC_QUEUE, {"source_item_id": ""})],
)
def test_handlers_reject_incomplete_payloads(queue, payload) -> None:
    handlers = build_handlers(MagicMock(), MagicMock())

    with pytest.raises(InvalidJobPayloadError):
        handlers[queue](_job(queue, payload))


def test_prepare_queues_releases_stale_jobs_and_registers_discovery() -> None:
    queue = MagicMock()
    orchestrator = MagicMock()
    orchestrator.ensure_repeatable_jobs.return_value = ["discover-ophim"]

    assert prepare_queues(queue, orchestrator) == ["discover-ophim"]
    assert [c.args[0] for c in queue.release_stale.call_args_list] == [DISCOVER_QUEUE, DETAIL_QUEUE, SYNC_QUEUE]
