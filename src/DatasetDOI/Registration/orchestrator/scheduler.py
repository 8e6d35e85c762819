# === NAVMAP v1 ===
# {
#   "module": "DatasetDOI.Registration.orchestrator.scheduler",
#   "purpose": "Dispatcher assigning queued jobs to a fixed pool of workers",
#   "sections": [
#     {"id": "dispatcherconfig", "name": "DispatcherSettings", "anchor": "#class-dispatchersettings", "kind": "class"},
#     {"id": "dispatcher", "name": "Dispatcher", "anchor": "#class-dispatcher", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Dispatcher and worker pool management.

**Architecture:**

    Dispatcher (main)
      ├─ Dispatcher Loop: waits for an idle slot, then takes the oldest job
      ├─ Idle workers: deque of Worker objects not currently running a job
      └─ Executor: fixed pool of N threads running Worker.run_one

Bounded concurrency comes from a counted semaphore with one permit per
worker. A permit is taken before a job leaves the intake queue, so jobs are
assigned in FIFO order and never more than N run at once. The permit and the
worker are returned as soon as the job is terminal; the job name is released
from the intake queue right after. Jobs the dispatcher itself has to fail
(no thread available, a crashed worker) are reported like any other failure.

**Usage:**

    dispatcher = Dispatcher(DispatcherSettings(max_workers=3), queue, workers)
    dispatcher.start()
    ...
    dispatcher.stop()
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from typing import Deque, Dict, Optional, Sequence

from .models import Job, JobState
from .queue import IntakeQueue
from .workers import Worker

__all__ = ["Dispatcher", "DispatcherSettings"]

logger = logging.getLogger(__name__)


class DispatcherSettings:
    """Runtime settings for the Dispatcher."""

    def __init__(self, max_workers: int = 3, poll_interval_seconds: float = 0.5) -> None:
        """Initialize dispatcher settings.

        Args:
            max_workers: Number of jobs allowed to run concurrently
            poll_interval_seconds: How long the loop blocks before re-checking stop
        """
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.max_workers = max_workers
        self.poll_interval_seconds = poll_interval_seconds


class Dispatcher:
    """Assigns queued jobs to idle workers.

    Attributes:
        settings: DispatcherSettings
        queue: IntakeQueue the jobs are taken from
    """

    def __init__(
        self,
        settings: DispatcherSettings,
        queue: IntakeQueue,
        workers: Sequence[Worker],
    ) -> None:
        if len(workers) != settings.max_workers:
            raise ValueError(
                f"Expected {settings.max_workers} workers, got {len(workers)}"
            )
        self.settings = settings
        self.queue = queue

        self._slots = threading.Semaphore(settings.max_workers)
        self._idle_lock = threading.Lock()
        self._workers = tuple(workers)
        self._idle: Deque[Worker] = deque(workers)
        self._active = 0
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._executor: Optional[ThreadPoolExecutor] = None

        logger.info(f"Dispatcher initialized with {settings.max_workers} workers")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the worker threads and the dispatcher loop."""
        if self.running:
            return
        self._stop.clear()
        self._executor = ThreadPoolExecutor(
            max_workers=self.settings.max_workers, thread_name_prefix="doi-worker"
        )
        self._thread = threading.Thread(
            target=self._dispatcher_loop, daemon=True, name="dispatcher"
        )
        self._thread.start()
        logger.info("Dispatcher started")

    def stop(self, wait: bool = True) -> None:
        """Stop assigning new jobs; optionally wait for running jobs to finish."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=max(5.0, self.settings.poll_interval_seconds * 4))
            self._thread = None
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None
        logger.info("Dispatcher stopped")

    def stats(self) -> Dict[str, int]:
        with self._idle_lock:
            active = self._active
            idle = len(self._idle)
        return {"workers": self.settings.max_workers, "active": active, "idle": idle}

    def _dispatcher_loop(self) -> None:
        logger.debug("Dispatcher loop started")
        poll = self.settings.poll_interval_seconds

        while not self._stop.is_set():
            if not self._slots.acquire(timeout=poll):
                continue
            job = self.queue.get(timeout=poll)
            if job is None:
                self._slots.release()
                continue
            try:
                self._assign(job)
            except Exception:
                logger.exception("Dispatcher error while assigning job %s", job.name)
                self._slots.release()
                if job.can_advance(JobState.FAILED):
                    job.fail("internal error: could not assign job")
                    self._workers[0].notify(job)
                if job.is_terminal:
                    self.queue.complete(job)

        logger.debug("Dispatcher loop stopped")

    def _assign(self, job: Job) -> None:
        job.advance(JobState.ASSIGNED)
        with self._idle_lock:
            worker = self._idle.popleft()
            self._active += 1
        logger.debug(f"Assigned job {job.name} to {worker.worker_id}")
        assert self._executor is not None
        try:
            self._executor.submit(self._run, worker, job)
        except RuntimeError:
            self._return_worker(worker)
            raise

    def _run(self, worker: Worker, job: Job) -> None:
        try:
            worker.run_one(job)
        except Exception:
            logger.exception("Worker %s crashed on job %s", worker.worker_id, job.name)
            if job.can_advance(JobState.FAILED):
                job.fail("internal error: worker crashed")
                worker.notify(job)
        finally:
            self._return_worker(worker)
            self._slots.release()
            if job.is_terminal:
                self.queue.complete(job)

    def _return_worker(self, worker: Worker) -> None:
        with self._idle_lock:
            self._idle.append(worker)
            self._active -= 1
