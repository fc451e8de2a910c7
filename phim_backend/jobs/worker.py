"""
Worker pool draining the job queues.

Each queue gets its own polling thread and a `ThreadPoolExecutor` sized to the queue's
configured concurrency. A poll claims at most that many jobs, runs them, and settles each
one (done / retry with backoff / failed).
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Iterable, Mapping

from phim_backend.config import Settings
from phim_backend.db.store import StoreProvider
from phim_backend.jobs.handlers import JobHandler
from phim_backend.jobs.queue import QUEUE_NAMES, JobQueue, JobRecord

logger = logging.getLogger(__name__)


class WorkerPool:
    def __init__(
        self,
        queue: JobQueue,
        handlers: Mapping[str, JobHandler],
        settings: Settings,
        *,
        audit: StoreProvider | None = None,
    ) -> None:
        self.queue = queue
        self.handlers = dict(handlers)
        self.settings = settings
        self.audit = audit
        self._executors: dict[str, ThreadPoolExecutor] = {}
        self._lock = threading.Lock()

    def _executor(self, queue_name: str) -> ThreadPoolExecutor:
        with self._lock:
            executor = self._executors.get(queue_name)
            if executor is None:
                concurrency = self.queue.queue_settings(queue_name).concurrency
                executor = ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix=queue_name)
                self._executors[queue_name] = executor
            return executor

    def execute(self, job: JobRecord) -> bool:
        """Run one claimed job and settle it. Returns True on success."""
        handler = self.handlers.get(job.queue)
        try:
            if handler is None:
                raise RuntimeError(f"No handler registered for queue {job.queue}")
            handler(job)
        except Exception as exc:
            logger.exception(
                f"[JOBS] job failed queue={job.queue} job_id={job.id} attempt={job.attempts}/{job.max_attempts}"
            )
            retried = self.queue.fail(job, exc)
            if not retried:
                self._audit_failure(job, exc)
            return False

        try:
            self.queue.complete(job)
        except Exception:
            # Row stays `running` until release_stale picks it up.
            logger.exception(f"[JOBS] completing job failed queue={job.queue} job_id={job.id}")
            return False
        return True

    def run_once(self, queue_name: str) -> int:
        """Claim and run one batch. Returns the number of jobs processed."""
        concurrency = self.queue.queue_settings(queue_name).concurrency
        jobs = self.queue.claim(queue_name, concurrency)
        if not jobs:
            return 0

        executor = self._executor(queue_name)
        futures = {executor.submit(self.execute, job): job for job in jobs}
        succeeded = 0
        for future in as_completed(futures):
            if future.result():
                succeeded += 1
        logger.info(f"[JOBS] batch queue={queue_name} claimed={len(jobs)} succeeded={succeeded}")
        return len(jobs)

    def _poll(self, queue_name: str, stop: threading.Event) -> None:
        while not stop.is_set():
            try:
                processed = self.run_once(queue_name)
            except Exception:
                logger.exception(f"[JOBS] poll failed queue={queue_name}")
                processed = 0
            if not processed:
                stop.wait(self.settings.worker_poll_seconds)

    def run_forever(self, queues: Iterable[str] = QUEUE_NAMES, stop: threading.Event | None = None) -> None:
        stop = stop or threading.Event()
        threads = [
            threading.Thread(target=self._poll, args=(name, stop), name=f"poll-{name}", daemon=True)
            for name in queues
        ]
        for thread in threads:
            thread.start()
        logger.info(f"[JOBS] workers started queues={[t.name for t in threads]}")
        try:
            while not stop.is_set():
                stop.wait(1.0)
        except KeyboardInterrupt:
            logger.info("[JOBS] interrupt received, stopping workers")
            stop.set()
        for thread in threads:
            thread.join()
        self.shutdown()

    def shutdown(self) -> None:
        with self._lock:
            executors = list(self._executors.values())
            self._executors.clear()
        for executor in executors:
            executor.shutdown(wait=True)

    def _audit_failure(self, job: JobRecord, error: Exception) -> None:
        if self.audit is None:
            return
        meta = {"queue": job.queue, "job_id": job.id, "payload": job.payload, "attempts": job.attempts}
        try:
            with self.audit.autocommit() as store:
                store.insert_crawl_log(level="error", message=f"job failed: {error}", meta=meta)
        except Exception as exc:
            logger.warning(f"[JOBS] audit log write failed job_id={job.id}: {exc}")
