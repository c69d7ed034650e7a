"""Bounded worker pool executing volume jobs.

Responsibilities:
- Accept jobs without blocking the caller; reject them when the queue is full.
- Run each job synchronously on one of `worker_count` daemon threads.
- Track the last reported progress per job id in a lock-guarded registry.
- Convert exceptions escaping a job into a failed outcome (-1) and keep the
  worker alive.
"""

from __future__ import annotations

import queue
import threading

from ..telemetry.logger import RunLogger
from .models import (
    PROGRESS_COMPLETE,
    PROGRESS_FAILED,
    JobRequest,
    JobWork,
    status_for,
)


class ProgressRegistry:
    """Thread-safe map of job id to last reported progress."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._progress: dict[str, int] = {}

    def set(self, job_id: str, value: int) -> None:
        with self._lock:
            self._progress[job_id] = int(value)

    def get(self, job_id: str) -> int:
        """Return the last value, or 0 for unknown ids."""

        with self._lock:
            return self._progress.get(job_id, 0)

    def contains(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._progress


class JobDispatcher:
    """Fixed-size thread pool reading from one bounded FIFO queue."""

    def __init__(
        self,
        worker_count: int = 2,
        queue_size: int = 100,
        run_logger: RunLogger | None = None,
    ) -> None:
        if worker_count < 1:
            raise ValueError("`worker_count` must be a positive integer.")
        if queue_size < 1:
            raise ValueError("`queue_size` must be a positive integer.")

        self.run_logger = run_logger or RunLogger()
        self.registry = ProgressRegistry()
        self._queue: queue.Queue[JobRequest | None] = queue.Queue(maxsize=queue_size)
        self._lock = threading.Lock()
        self._closed = False
        self._workers = [
            threading.Thread(
                target=self._worker_loop,
                args=(index,),
                name=f"bookscene-worker-{index}",
                daemon=True,
            )
            for index in range(1, worker_count + 1)
        ]
        for worker in self._workers:
            worker.start()

    def enqueue(self, job_id: str, work: JobWork) -> bool:
        """Queue a job without blocking.

        Returns:
            `True` when accepted; `False` when the queue is full or the
            dispatcher is shut down. A rejected job gets no progress entry.
        """

        with self._lock:
            if self._closed:
                self.run_logger.log_event(
                    "WARNING", "job_rejected", "dispatch", job_id=job_id, reason="shutdown"
                )
                return False
            try:
                self._queue.put_nowait(JobRequest(job_id=job_id, work=work))
            except queue.Full:
                self.run_logger.log_event(
                    "WARNING", "job_dropped", "dispatch", job_id=job_id, reason="queue_full"
                )
                return False
            self.registry.set(job_id, 0)
        return True

    def get_progress(self, job_id: str) -> int:
        return self.registry.get(job_id)

    def get_status(self, job_id: str) -> str:
        return status_for(self.registry.get(job_id))

    def shutdown(self) -> None:
        """Stop accepting jobs, abandon unstarted ones, and join all workers.

        Abandoned jobs are recorded as failed (-1). Jobs already running
        finish normally.
        """

        with self._lock:
            if self._closed:
                return
            self._closed = True
            abandoned = 0
            while True:
                try:
                    pending = self._queue.get_nowait()
                except queue.Empty:
                    break
                self._queue.task_done()
                if pending is not None:
                    self.registry.set(pending.job_id, PROGRESS_FAILED)
                    abandoned += 1

        for _ in self._workers:
            self._queue.put(None)
        if abandoned:
            self.run_logger.log_event("WARNING", "jobs_abandoned", "dispatch", count=abandoned)
        for worker in self._workers:
            worker.join()

    def _worker_loop(self, index: int) -> None:
        self.run_logger.log_event("DEBUG", "worker_start", "dispatch", worker=index)
        while True:
            request = self._queue.get()
            try:
                if request is None:
                    break
                self._run(request)
            finally:
                self._queue.task_done()
        self.run_logger.log_event("DEBUG", "worker_stop", "dispatch", worker=index)

    def _run(self, request: JobRequest) -> None:
        job_id = request.job_id
        self.registry.set(job_id, 0)
        self.run_logger.log_event("INFO", "job_start", "dispatch", job_id=job_id)

        def report_progress(value: int) -> None:
            self.registry.set(job_id, value)

        try:
            result = request.work.execute(report_progress)
        except Exception as exc:
            self.registry.set(job_id, PROGRESS_FAILED)
            self.run_logger.log_event(
                "ERROR",
                "job_crashed",
                "dispatch",
                job_id=job_id,
                error_type=type(exc).__name__,
            )
            return

        if result.ok:
            self.registry.set(job_id, PROGRESS_COMPLETE)
            self.run_logger.log_event("INFO", "job_complete", "dispatch", job_id=job_id)
        else:
            self.registry.set(job_id, PROGRESS_FAILED)
            self.run_logger.log_event("ERROR", "job_failed", "dispatch", job_id=job_id)
