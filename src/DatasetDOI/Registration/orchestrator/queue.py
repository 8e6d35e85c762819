# === NAVMAP v1 ===
# {
#   "module": "DatasetDOI.Registration.orchestrator.queue",
#   "purpose": "Bounded FIFO intake queue with an in-flight registry keyed by job name",
#   "sections": [
#     {"id": "intakequeue", "name": "IntakeQueue", "anchor": "#class-intakequeue", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""In-memory intake queue for registration jobs.

Guarantees:

- **FIFO**: jobs are handed out in enqueue order.
- **Bounded**: at most ``max_size`` jobs wait; a full queue rejects at once
  instead of blocking the caller.
- **At most one per name**: a job name stays registered as in flight from
  ``enqueue`` until ``complete``; a second job with the same name is
  rejected in between.

**Usage:**

    queue = IntakeQueue(max_size=100)
    queue.enqueue(job)            # raises DuplicateJobError / QueueFullError
    job = queue.get(timeout=0.5)  # None when nothing is waiting
    ...                           # run the job to a terminal state
    queue.complete(job)
    queue.stats()                 # {"queued": 0, "in_progress": 0, ...}

There is no durable backing store: jobs waiting or running are lost when the
process exits.

**Thread Safety:**

All methods may be called from any thread. The lock is held only for the
bookkeeping of a single call, never while a job runs.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections import deque
from typing import Deque, Dict, List, Optional, Set

from ..errors import DuplicateJobError, QueueFullError
from .models import Job, JobResult, JobState

__all__ = ["IntakeQueue"]

logger = logging.getLogger(__name__)


class IntakeQueue:
    """Bounded FIFO of admitted jobs plus the set of job names in flight."""

    def __init__(self, max_size: int = 100, history_size: int = 1000) -> None:
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self.max_size = max_size
        self._pending: "queue.Queue[Job]" = queue.Queue(maxsize=max_size)
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._in_flight: Set[str] = set()
        self._results: Deque[JobResult] = deque(maxlen=history_size)
        self._counts: Dict[str, int] = {"succeeded": 0, "failed": 0}

    def enqueue(self, job: Job) -> None:
        """Admit ``job`` for processing.

        Raises:
            DuplicateJobError: If a job with the same name is in flight
            QueueFullError: If ``max_size`` jobs are already waiting
        """
        if job.state is not JobState.QUEUED:
            raise ValueError(f"Job {job.name} is {job.state.value}, expected queued")

        with self._lock:
            if job.name in self._in_flight:
                logger.debug(f"Job {job.name} already in flight")
                raise DuplicateJobError(job.name)
            try:
                self._pending.put_nowait(job)
            except queue.Full:
                logger.warning(f"Intake queue full ({self.max_size}); rejecting {job.name}")
                raise QueueFullError(self.max_size) from None
            self._in_flight.add(job.name)

        logger.debug(f"Enqueued job {job.name} ({job.repository})")

    def get(self, timeout: Optional[float] = None) -> Optional[Job]:
        """Return the oldest waiting job, or None if none arrives in ``timeout``."""
        try:
            if timeout is None:
                return self._pending.get_nowait()
            return self._pending.get(timeout=timeout)
        except queue.Empty:
            return None

    def complete(self, job: Job) -> JobResult:
        """Release ``job``'s name once it reached a terminal state."""
        if not job.is_terminal:
            raise ValueError(f"Job {job.name} is {job.state.value}, not terminal")

        result = job.result()
        with self._lock:
            self._in_flight.discard(job.name)
            self._results.append(result)
            self._counts[job.state.value] += 1
            if not self._in_flight:
                self._idle.notify_all()
        logger.debug(f"Job {job.name} released ({job.state.value})")
        return result

    def in_flight(self, name: str) -> bool:
        with self._lock:
            return name in self._in_flight

    def results(self) -> List[JobResult]:
        """Return results of recently completed jobs in completion order."""
        with self._lock:
            return list(self._results)

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait until no job is waiting or running.

        Returns:
            True if the queue drained, False on timeout
        """
        with self._idle:
            return self._idle.wait_for(lambda: not self._in_flight, timeout=timeout)

    def stats(self) -> Dict[str, int]:
        """Get queue statistics.

        Returns:
            Dict with queued, in_progress, succeeded, failed, capacity counts
        """
        with self._lock:
            queued = self._pending.qsize()
            return {
                "queued": queued,
                "in_progress": len(self._in_flight) - queued,
                "succeeded": self._counts["succeeded"],
                "failed": self._counts["failed"],
                "capacity": self.max_size,
            }
