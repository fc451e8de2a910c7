from __future__ import annotations

from contextlib import contextmanager
from unittest.mock import MagicMock, patch

import pytest

from phim_backend.config import QueueSettings, Settings
from phim_backend.jobs.queue import (
    DETAIL_QUEUE,
    DISCOVER_QUEUE,
    SYNC_QUEUE,
    JobQueue,
    JobRecord,
    compute_backoff_seconds,
)


class _Database:
    def __init__(self) -> None:
        self.cursor = MagicMock()
        self.transactions = 0

    @contextmanager
    def transaction(self):
        self.transactions += 1
        yield self.cursor


def _queue() -> tuple[JobQueue, _Database]:
    settings = Settings(
        job_lease_seconds=120,
        detail_queue=QueueSettings(concurrency=4, max_attempts=5, backoff_seconds=2.0),
    )
    database = _Database()
    return JobQueue(database, settings), database


def _job(**overrides) -> JobRecord:
    values = {"id": 10, "queue": DETAIL_QUEUE, "payload": {"source": "ophim"}, "attempts": 1, "max_attempts": 3, "backoff_seconds": 5.0}
    values.update(overrides)
    return JobRecord(**values)


@pytest.mark.parametrize(("attempts", "expected"), [(1, 5.0), (2, 10.0), (3, 20.0), (0, 5.0)])
def test_compute_backoff_seconds_doubles_per_attempt(attempts, expected) -> None:
    assert compute_backoff_seconds(attempts, 5.0) == expected


def test_queue_settings_per_queue() -> None:
    queue, _ = _queue()

    assert queue.queue_settings(DETAIL_QUEUE).concurrency == 4
    assert queue.queue_settings(DISCOVER_QUEUE).concurrency == 2
    assert queue.queue_settings(SYNC_QUEUE).concurrency == 3
    with pytest.raises(ValueError):
        queue.queue_settings("nope")


def test_enqueue_uses_queue_retry_policy() -> None:
    queue, database = _queue()

    with patch("phim_backend.jobs.queue.jobs_repo.enqueue_job", return_value=77) as enqueue_job:
        job_id = queue.enqueue(DETAIL_QUEUE, {"source": "ophim", "external_id": "x"})

    assert job_id == 77
    enqueue_job.assert_called_once_with(
        database.cursor,
        DETAIL_QUEUE,
        {"source": "ophim", "external_id": "x"},
        max_attempts=5,
        backoff_seconds=2.0,
        delay_seconds=0,
    )


def test_claim_maps_rows_to_records() -> None:
    queue, _ = _queue()
    rows = [{"id": 1, "queue": SYNC_QUEUE, "payload": {"source_item_id": 9}, "attempts": 2, "max_attempts": 3, "backoff_seconds": 5}]

    with patch("phim_backend.jobs.queue.jobs_repo.claim_jobs", return_value=rows):
        jobs = queue.claim(SYNC_QUEUE, 3)

    assert jobs == [
        JobRecord(id=1, queue=SYNC_QUEUE, payload={"source_item_id": 9}, attempts=2, max_attempts=3, backoff_seconds=5.0)
    ]
    assert jobs[0].is_repeating is False


def test_fail_retries_with_exponential_backoff() -> None:
    queue, database = _queue()

    with patch("phim_backend.jobs.queue.jobs_repo.reschedule_job") as reschedule:
        retried = queue.fail(_job(attempts=2), RuntimeError("boom"))

    assert retried is True
    reschedule.assert_called_once()
    assert reschedule.call_args.kwargs["delay_seconds"] == 10.0
    assert str(reschedule.call_args.kwargs["error"]) == "boom"


def test_fail_marks_exhausted_job_failed() -> None:
    queue, _ = _queue()

    with patch("phim_backend.jobs.queue.jobs_repo.mark_job_failed") as mark_failed, patch(
        "phim_backend.jobs.queue.jobs_repo.reschedule_job"
    ) as reschedule:
        retried = queue.fail(_job(attempts=3), RuntimeError("boom"))

    assert retried is False
    mark_failed.assert_called_once()
    reschedule.assert_not_called()


def test_exhausted_repeating_job_waits_for_next_slot() -> None:
    queue, _ = _queue()
    job = _job(attempts=3, queue=DISCOVER_QUEUE, job_key="discover-ophim", repeat_every_seconds=600)

    with patch("phim_backend.jobs.queue.jobs_repo.reschedule_job") as reschedule, patch(
        "phim_backend.jobs.queue.jobs_repo.mark_job_failed"
    ) as mark_failed:
        retried = queue.fail(job, RuntimeError("page down"))

    assert retried is False
    mark_failed.assert_not_called()
    assert reschedule.call_args.kwargs["delay_seconds"] == 600.0
    assert reschedule.call_args.kwargs["reset_attempts"] is True


def test_complete_one_shot_and_repeating() -> None:
    queue, _ = _queue()

    with patch("phim_backend.jobs.queue.jobs_repo.mark_job_done") as done, patch(
        "phim_backend.jobs.queue.jobs_repo.reschedule_job"
    ) as reschedule:
        queue.complete(_job())
        queue.complete(_job(job_key="discover-ophim", repeat_every_seconds=600))

    done.assert_called_once()
    assert reschedule.call_args.kwargs == {"delay_seconds": 600.0, "reset_attempts": True}


def test_release_stale_uses_lease() -> None:
    queue, database = _queue()

    with patch("phim_backend.jobs.queue.jobs_repo.release_stale_jobs", return_value=2) as release:
        assert queue.release_stale(DETAIL_QUEUE) == 2

    release.assert_called_once_with(database.cursor, DETAIL_QUEUE, lease_seconds=120)


def test_job_record_from_row_tolerates_bad_payload() -> None:
    record = JobRecord.from_row({"id": "3", "queue": DISCOVER_QUEUE, "payload": "oops", "attempts": None})

    assert record.payload == {}
    assert record.attempts == 0
    assert record.max_attempts == 1
    assert record.exhausted is False
