from __future__ import annotations

from typing import Any, Mapping

from psycopg2.extras import Json

from phim_backend.repositories._sql import execute, fetch_all, fetch_one, returning_id


class JobRepositoryError(RuntimeError):
    pass


def _truncate_error(value: object, *, max_length: int = 1000) -> str | None:
    if value is None:
        return None
    text = str(value)
    if not text:
        return None
    return text[: max(1, int(max_length))]


def enqueue_job(
    cur: Any,
    queue: str,
    payload: Mapping[str, Any],
    *,
    max_attempts: int,
    backoff_seconds: float,
    delay_seconds: float = 0,
) -> int:
    row = fetch_one(
        cur,
        """
        INSERT INTO crawl_jobs (queue, payload, max_attempts, backoff_seconds, run_after)
        VALUES (%s, %s, %s, %s, NOW() + (%s * INTERVAL '1 second'))
        RETURNING id
        """,
        (queue, Json(dict(payload)), int(max_attempts), float(backoff_seconds), float(delay_seconds)),
        error_cls=JobRepositoryError,
        context=f"enqueueing {queue} job",
    )
    return returning_id(row, error_cls=JobRepositoryError, context=f"{queue} job")


def upsert_repeating_job(
    cur: Any,
    queue: str,
    job_key: str,
    payload: Mapping[str, Any],
    *,
    every_seconds: int,
    max_attempts: int,
    backoff_seconds: float,
) -> int:
    """
    Register a standing job under a stable key.

    Re-registering refreshes payload and interval without creating a second row; a row that
    previously ended as done/failed is revived.
    """
    row = fetch_one(
        cur,
        """
        INSERT INTO crawl_jobs (queue, job_key, payload, max_attempts, backoff_seconds, repeat_every_seconds)
        VALUES (%s, %s, %s, %s, %s, %s)
        ON CONFLICT (job_key)
        DO UPDATE SET
            queue = EXCLUDED.queue,
            payload = EXCLUDED.payload,
            max_attempts = EXCLUDED.max_attempts,
            backoff_seconds = EXCLUDED.backoff_seconds,
            repeat_every_seconds = EXCLUDED.repeat_every_seconds,
            status = CASE WHEN crawl_jobs.status IN ('done', 'failed') THEN 'queued' ELSE crawl_jobs.status END,
            attempts = CASE WHEN crawl_jobs.status IN ('done', 'failed') THEN 0 ELSE crawl_jobs.attempts END,
            updated_at = NOW()
        RETURNING id
        """,
        (queue, job_key, Json(dict(payload)), int(max_attempts), float(backoff_seconds), int(every_seconds)),
        error_cls=JobRepositoryError,
        context=f"registering repeating job {job_key}",
    )
    return returning_id(row, error_cls=JobRepositoryError, context=f"repeating job {job_key}")


def claim_jobs(cur: Any, queue: str, limit: int) -> list[dict[str, Any]]:
    """
    Atomically move up to `limit` due jobs to `running` and count the attempt.

    `SKIP LOCKED` lets several worker processes poll the same queue without double delivery.
    """
    if limit <= 0:
        return []
    return fetch_all(
        cur,
        """
        UPDATE crawl_jobs
        SET status = 'running',
            attempts = attempts + 1,
            locked_at = NOW(),
            updated_at = NOW()
        WHERE id IN (
            SELECT id
            FROM crawl_jobs
            WHERE queue = %s AND status = 'queued' AND run_after <= NOW()
            ORDER BY run_after, id
            LIMIT %s
            FOR UPDATE SKIP LOCKED
        )
        RETURNING id, queue, job_key, payload, attempts, max_attempts, backoff_seconds, repeat_every_seconds
        """,
        (queue, int(limit)),
        error_cls=JobRepositoryError,
        context=f"claiming {queue} jobs",
    )


def mark_job_done(cur: Any, job_id: int) -> None:
    execute(
        cur,
        """
        UPDATE crawl_jobs
        SET status = 'done', locked_at = NULL, last_error = NULL, updated_at = NOW()
        WHERE id = %s
        """,
        (job_id,),
        error_cls=JobRepositoryError,
        context=f"completing job_id={job_id}",
    )


def reschedule_job(
    cur: Any,
    job_id: int,
    *,
    delay_seconds: float,
    reset_attempts: bool = False,
    error: object = None,
) -> None:
    execute(
        cur,
        """
        UPDATE crawl_jobs
        SET status = 'queued',
            run_after = NOW() + (%s * INTERVAL '1 second'),
            attempts = CASE WHEN %s THEN 0 ELSE attempts END,
            locked_at = NULL,
            last_error = %s,
            updated_at = NOW()
        WHERE id = %s
        """,
        (float(delay_seconds), bool(reset_attempts), _truncate_error(error), job_id),
        error_cls=JobRepositoryError,
        context=f"rescheduling job_id={job_id}",
    )


def mark_job_failed(cur: Any, job_id: int, *, error: object) -> None:
    execute(
        cur,
        """
        UPDATE crawl_jobs
        SET status = 'failed', locked_at = NULL, last_error = %s, updated_at = NOW()
        WHERE id = %s
        """,
        (_truncate_error(error), job_id),
        error_cls=JobRepositoryError,
        context=f"failing job_id={job_id}",
    )


def release_stale_jobs(cur: Any, queue: str, *, lease_seconds: int) -> int:
    """Return jobs stuck in `running` past their lease (worker crash) to the queue."""
    execute(
        cur,
        """
        UPDATE crawl_jobs
        SET status = 'queued', locked_at = NULL, updated_at = NOW()
        WHERE queue = %s
          AND status = 'running'
          AND locked_at < NOW() - (%s * INTERVAL '1 second')
        """,
        (queue, int(lease_seconds)),
        error_cls=JobRepositoryError,
        context=f"releasing stale {queue} jobs",
    )
    return int(getattr(cur, "rowcount", 0) or 0)
