# === NAVMAP v1 ===
# {
#   "module": "DatasetDOI.Registration.orchestrator.workers",
#   "purpose": "Runs one registration job through archive, emit, store and notify",
#   "sections": [
#     {"id": "worker", "name": "Worker", "anchor": "#class-worker", "kind": "class"},
#     {"id": "run-with-timeout", "name": "run_with_timeout", "anchor": "#function-run-with-timeout", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Job execution for the registration pipeline.

A :class:`Worker` takes an ASSIGNED job and drives it to a terminal state:

    ASSIGNED → ARCHIVING   clone and bundle (bounded by ``archive_timeout``)
             → EMITTING    build the RegistrationRecord
             → FINALIZING  storage.put(identifier, archive, record)
             → SUCCEEDED / FAILED

The outcome report is sent after the terminal state is set. A report that
cannot be delivered is logged and does not change the outcome. Jobs are never
retried; a failed registration is resubmitted as a new request.

**Usage:**

    worker = Worker(
        worker_id="worker-0",
        archiver=GitArchiver(datasource, work_dir),
        emitter=RegistrationMetadataEmitter(identity),
        storage=LocalStorage(target, store_url),
        notifier=MailNotifier(...),
        work_dir=Path("work"),
        archive_timeout=4 * 3600,
    )
    result = worker.run_one(job)
"""

from __future__ import annotations

import logging
import shutil
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, List, Optional, TypeVar

from ..archiver import Archiver
from ..emitter import RegistrationMetadataEmitter
from ..errors import ArchiveFailure, NotificationError, StorageError
from ..logging_utils import log_event
from ..models import ArchiveResult
from ..notify import NotificationSink, Report
from ..storage import Storage
from .models import Job, JobResult, JobState

__all__ = ["Worker", "run_with_timeout"]

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def run_with_timeout(
    func: Callable[[threading.Event], T],
    timeout: Optional[float],
    *,
    name: str = "archive",
    cancel: Optional[threading.Event] = None,
) -> T:
    """Run ``func(cancel)`` in a helper thread and wait at most ``timeout`` seconds.

    When the deadline passes, ``cancel`` is set and the helper is joined, so
    no work started by ``func`` outlives this call. ``func`` is expected to
    watch the event and return or raise promptly once it is set.

    Raises:
        TimeoutError: If ``func`` did not finish in time.
    """
    cancel = cancel if cancel is not None else threading.Event()
    if timeout is None:
        return func(cancel)

    outcome: List[Any] = []
    failure: List[BaseException] = []

    def _target() -> None:
        try:
            outcome.append(func(cancel))
        except BaseException as exc:  # noqa: BLE001 - re-raised in the caller thread
            failure.append(exc)

    thread = threading.Thread(target=_target, daemon=True, name=f"{name}-step")
    thread.start()
    thread.join(timeout)
    if thread.is_alive():
        cancel.set()
        logger.warning("%s step timed out after %gs; waiting for it to stop", name, timeout)
        thread.join()
        raise TimeoutError(f"timed out after {timeout:g}s")
    if failure:
        raise failure[0]
    return outcome[0]


class Worker:
    """Executes registration jobs, one at a time.

    Attributes:
        worker_id: Identifier used in logs
        archive_timeout: Upper bound in seconds on the archive step
        work_dir: Scratch directory; every attempt archives into its own
            directory below it
    """

    def __init__(
        self,
        worker_id: str,
        archiver: Archiver,
        emitter: RegistrationMetadataEmitter,
        storage: Storage,
        notifier: NotificationSink,
        work_dir: Path,
        archive_timeout: Optional[float] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.worker_id = worker_id
        self.archiver = archiver
        self.emitter = emitter
        self.storage = storage
        self.notifier = notifier
        self.work_dir = Path(work_dir)
        self.archive_timeout = archive_timeout
        self.clock = clock

        logger.debug(f"Worker initialized: {worker_id}")

    def run_one(self, job: Job) -> JobResult:
        """Drive an ASSIGNED job to SUCCEEDED or FAILED and report it.

        Never raises for pipeline errors; unexpected exceptions fail the job
        with ``"internal error: ..."``.
        """
        logger.debug(f"Worker {self.worker_id} processing job {job.name} ({job.repository})")
        destination: Optional[Path] = None
        try:
            self.work_dir.mkdir(parents=True, exist_ok=True)
            destination = Path(tempfile.mkdtemp(prefix=f"{job.name}-", dir=self.work_dir))
            self._execute(job, destination)
        except Exception as exc:
            logger.exception("Unexpected error while running job %s", job.name)
            if not job.can_advance(JobState.FAILED):
                raise
            job.fail(f"internal error: {exc}")
        finally:
            if destination is not None:
                shutil.rmtree(destination, ignore_errors=True)

        log_event(
            logger,
            f"Job {job.name} completed: {job.state.value}",
            level=logging.INFO if job.state is JobState.SUCCEEDED else logging.WARNING,
            job=job.name,
            stage=job.state.value,
            repository=job.repository,
            reason=job.reason or None,
        )
        self.notify(job)
        return job.result()

    def _execute(self, job: Job, destination: Path) -> None:
        job.advance(JobState.ARCHIVING)
        try:
            archive = self._archive(job, destination)
        except ArchiveFailure as exc:
            job.fail(f"archive failed: {exc}")
            return

        job.advance(JobState.EMITTING)
        record = self.emitter.emit(job.info, job.name, archive.size, self.clock())
        job.record = record

        job.advance(JobState.FINALIZING)
        try:
            job.ack = self.storage.put(job.name, archive, record)
        except StorageError as exc:
            job.fail(f"storage failed: {exc}")
            return
        job.advance(JobState.SUCCEEDED)

    def _archive(self, job: Job, destination: Path) -> ArchiveResult:
        log_event(logger, f"Archiving {job.repository}", job=job.name, stage="archiving")
        try:
            return run_with_timeout(
                lambda cancel: self.archiver.archive(job.repository, destination, cancel=cancel),
                self.archive_timeout,
                name=job.name,
            )
        except TimeoutError as exc:
            raise ArchiveFailure(str(exc), repository=job.repository) from exc

    def _report(self, job: Job) -> Report:
        requester = job.requester
        if job.state is JobState.SUCCEEDED and job.record is not None:
            return Report.success(
                job_name=job.name,
                repository=job.repository,
                identifier=job.record.identifier,
                doi=job.record.doi,
                resolution_url=job.record.resolution_url,
                storage_url=job.ack.url if job.ack is not None else "",
                requester=requester.username if requester else "",
                requester_email=requester.email if requester else "",
                warnings=job.warnings,
            )
        return Report.failure(
            job_name=job.name,
            repository=job.repository,
            reason=job.reason,
            requester=requester.username if requester else "",
            requester_email=requester.email if requester else "",
        )

    def notify(self, job: Job) -> None:
        """Send the outcome report of a terminal job; delivery errors are logged."""
        try:
            self.notifier.notify(self._report(job))
        except NotificationError as exc:
            logger.error(f"Could not deliver report for job {job.name}: {exc}")
        except Exception:
            logger.exception("Notification sink crashed for job %s", job.name)
