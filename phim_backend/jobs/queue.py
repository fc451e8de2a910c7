"""
Postgres job queue over the `crawl_jobs` table.

Semantics:
- `attempts` is incremented when a worker claims a job.
- a failed job is requeued after `backoff_seconds * 2^(attempts - 1)` until
  `attempts >= max_attempts`, then marked `failed`.
- a repeating job goes back to `queued` after `repeat_every_seconds` on success, with its
  attempt counter reset; one-shot jobs become `done`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol

from phim_backend.config import QueueSettings, Settings
from phim_backend.repositories import jobs as jobs_repo

logger = logging.getLogger(__name__)

DISCOVER_QUEUE = "crawl-discover"
DETAIL_QUEUE = "crawl-detail"
SYNC_QUEUE = "sync-source-item"

QUEUE_NAMES: tuple[str, ...] = (DISCOVER_QUEUE, DETAIL_QUEUE, SYNC_QUEUE)


class JobEnqueuer(Protocol):
    def enqueue(self, queue: str, payload: Mapping[str, Any], *, delay_seconds: float = 0) -> int: ...

    def schedule_repeating(
        self, queue: str, job_key: str, payload: Mapping[str, Any], *, every_seconds: int
    ) -> int: ...


@dataclass(frozen=True)
class JobRecord:
    id: int
    queue: str
    payload: dict[str, Any] = field(default_factory=dict)
    attempts: int = 1
    max_attempts: int = 3
    backoff_seconds: float = 5.0
    job_key: str | None = None
    repeat_every_seconds: int | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "JobRecord":
        payload = row.get("payload")
        repeat = row.get("repeat_every_seconds")
        return cls(
            id=int(row["id"]),
            queue=str(row["queue"]),
            payload=dict(payload) if isinstance(payload, Mapping) else {},
            attempts=int(row.get("attempts") or 0),
            max_attempts=int(row.get("max_attempts") or 1),
            backoff_seconds=float(row.get("backoff_seconds") or 0),
            job_key=row.get("job_key"),
            repeat_every_seconds=int(repeat) if repeat else None,
        )

    @property
    def is_repeating(self) -> bool:
        return bool(self.repeat_every_seconds)

    @property
    def exhausted(self) -> bool:
        return self.attempts >= self.max_attempts


def compute_backoff_seconds(attempts: int, backoff_seconds: float) -> float:
    """Exponential backoff: base, 2*base, 4*base, ... for attempts 1, 2, 3, ..."""
    return float(backoff_seconds) * (2 ** (max(1, int(attempts)) - 1))


class JobQueue:
    """
    Enqueue/claim/settle jobs. Every call runs in its own short transaction, so job state is
    independent of the work a handler does.
    """

    def __init__(self, database: Any, settings: Settings) -> None:
        self.database = database
        self.settings = settings

    def queue_settings(self, queue: str) -> QueueSettings:
        if queue == DISCOVER_QUEUE:
            return self.settings.discover_queue
        if queue == DETAIL_QUEUE:
            return self.settings.detail_queue
        if queue == SYNC_QUEUE:
            return self.settings.sync_queue
        raise ValueError(f"Unknown queue: {queue}")

    def enqueue(self, queue: str, payload: Mapping[str, Any], *, delay_seconds: float = 0) -> int:
        qs = self.queue_settings(queue)
        with self.database.transaction() as cur:
            job_id = jobs_repo.enqueue_job(
                cur,
                queue,
                payload,
                max_attempts=qs.max_attempts,
                backoff_seconds=qs.backoff_seconds,
                delay_seconds=delay_seconds,
            )
        logger.debug(f"[JOBS] enqueued queue={queue} job_id={job_id} payload={dict(payload)}")
        return job_id

    def schedule_repeating(self, queue: str, job_key: str, payload: Mapping[str, Any], *, every_seconds: int) -> int:
        qs = self.queue_settings(queue)
        with self.database.transaction() as cur:
            job_id = jobs_repo.upsert_repeating_job(
                cur,
                queue,
                job_key,
                payload,
                every_seconds=every_seconds,
                max_attempts=qs.max_attempts,
                backoff_seconds=qs.backoff_seconds,
            )
        logger.info(f"[JOBS] repeating job registered key={job_key} queue={queue} every={every_seconds}s")
        return job_id

    def claim(self, queue: str, limit: int) -> list[JobRecord]:
        with self.database.transaction() as cur:
            rows = jobs_repo.claim_jobs(cur, queue, limit)
        return [JobRecord.from_row(row) for row in rows]

    def complete(self, job: JobRecord) -> None:
        with self.database.transaction() as cur:
            if job.is_repeating:
                jobs_repo.reschedule_job(
                    cur,
                    job.id,
                    delay_seconds=float(job.repeat_every_seconds or 0),
                    reset_attempts=True,
                )
            else:
                jobs_repo.mark_job_done(cur, job.id)

    def fail(self, job: JobRecord, error: object) -> bool:
        """
        Settle a failed attempt. Returns True when the job will be retried.

        A repeating job that exhausts its attempts is not dropped: it waits for its next
        regular slot with a fresh attempt counter.
        """
        with self.database.transaction() as cur:
            if not job.exhausted:
                delay = compute_backoff_seconds(job.attempts, job.backoff_seconds)
                jobs_repo.reschedule_job(cur, job.id, delay_seconds=delay, error=error)
                return True
            if job.is_repeating:
                jobs_repo.reschedule_job(
                    cur,
                    job.id,
                    delay_seconds=float(job.repeat_every_seconds or 0),
                    reset_attempts=True,
                    error=error,
                )
                return False
            jobs_repo.mark_job_failed(cur, job.id, error=error)
            return False

    def release_stale(self, queue: str) -> int:
        with self.database.transaction() as cur:
            released = jobs_repo.release_stale_jobs(cur, queue, lease_seconds=self.settings.job_lease_seconds)
        if released:
            logger.warning(f"[JOBS] released stale jobs queue={queue} count={released}")
        return released
