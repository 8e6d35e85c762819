"""Tests for the Dispatcher and its worker pool.

Tests cover:
- Jobs assigned in FIFO order
- Never more than max_workers jobs running at once
- Names released and stats updated once jobs finish
- Start/stop lifecycle and worker count validation
- Jobs failed by the dispatcher itself still reported
"""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Callable, List, Optional, Type

import pytest

from DatasetDOI.Registration.emitter import RegistrationMetadataEmitter
from DatasetDOI.Registration.errors import DuplicateJobError
from DatasetDOI.Registration.orchestrator.models import Job, JobState
from DatasetDOI.Registration.orchestrator.queue import IntakeQueue
from DatasetDOI.Registration.orchestrator import scheduler as scheduler_module
from DatasetDOI.Registration.orchestrator.scheduler import Dispatcher, DispatcherSettings
from DatasetDOI.Registration.orchestrator.workers import Worker
from DatasetDOI.Registration.testing import FakeArchiver, RecordingNotifier, RecordingStorage
from DatasetDOI.Registration.validation import parse_registration_info

from .conftest import COMPLETE_DATACITE


def _wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def _job(index: int) -> Job:
    return Job(
        name=f"{index:032x}",
        repository=f"owner/dataset-{index}",
        info=parse_registration_info(COMPLETE_DATACITE),
    )


def _dispatcher(
    tmp_path: Path,
    archiver: FakeArchiver,
    max_workers: int,
    queue: IntakeQueue,
    notifier: Optional[RecordingNotifier] = None,
    worker_class: Type[Worker] = Worker,
) -> Dispatcher:
    storage = RecordingStorage()
    notifier = notifier or RecordingNotifier()
    workers = [
        worker_class(
            worker_id=f"worker-{idx}",
            archiver=archiver,
            emitter=RegistrationMetadataEmitter(),
            storage=storage,
            notifier=notifier,
            work_dir=tmp_path / "archives",
        )
        for idx in range(max_workers)
    ]
    settings = DispatcherSettings(max_workers=max_workers, poll_interval_seconds=0.02)
    return Dispatcher(settings, queue, workers)


def test_jobs_assigned_in_fifo_order(tmp_path: Path) -> None:
    archiver = FakeArchiver(size=8)
    queue = IntakeQueue(max_size=10)
    jobs = [_job(i) for i in range(5)]
    for job in jobs:
        queue.enqueue(job)

    dispatcher = _dispatcher(tmp_path, archiver, 1, queue)
    dispatcher.start()
    try:
        assert queue.join(timeout=5)
    finally:
        dispatcher.stop()

    assert archiver.calls == [job.repository for job in jobs]
    assert all(job.state is JobState.SUCCEEDED for job in jobs)


def test_concurrency_is_bounded(tmp_path: Path) -> None:
    gate = threading.Event()
    archiver = FakeArchiver(size=8, gate=gate)
    queue = IntakeQueue(max_size=10)
    jobs = [_job(i) for i in range(5)]
    for job in jobs:
        queue.enqueue(job)

    dispatcher = _dispatcher(tmp_path, archiver, 2, queue)
    dispatcher.start()
    try:
        assert _wait_until(lambda: len(archiver.calls) == 2)
        time.sleep(0.2)

        assert len(archiver.calls) == 2
        assert dispatcher.stats() == {"workers": 2, "active": 2, "idle": 0}
        stats = queue.stats()
        assert stats["queued"] == 3
        assert stats["in_progress"] == 2

        gate.set()
        assert queue.join(timeout=5)
    finally:
        gate.set()
        dispatcher.stop()

    assert len(archiver.calls) == 5
    assert queue.stats()["succeeded"] == 5
    assert dispatcher.stats()["idle"] == 2


def test_names_released_after_completion(tmp_path: Path) -> None:
    queue = IntakeQueue()
    job = _job(1)
    queue.enqueue(job)

    dispatcher = _dispatcher(tmp_path, FakeArchiver(failure="boom"), 1, queue)
    dispatcher.start()
    try:
        assert queue.join(timeout=5)
    finally:
        dispatcher.stop()

    assert job.state is JobState.FAILED
    assert not queue.in_flight(job.name)
    assert queue.stats()["failed"] == 1
    queue.enqueue(_job(1))


def test_same_name_never_runs_twice_concurrently(tmp_path: Path) -> None:
    gate = threading.Event()
    active: List[str] = []
    lock = threading.Lock()
    overlaps: List[str] = []

    def track(uri: str) -> None:
        with lock:
            if uri in active:
                overlaps.append(uri)
            active.append(uri)

    archiver = FakeArchiver(size=1, gate=gate, on_archive=track)
    queue = IntakeQueue()
    dispatcher = _dispatcher(tmp_path, archiver, 3, queue)
    dispatcher.start()
    try:
        queue.enqueue(_job(7))
        assert _wait_until(lambda: len(archiver.calls) == 1)
        with pytest.raises(DuplicateJobError):
            queue.enqueue(_job(7))
        gate.set()
        assert queue.join(timeout=5)
    finally:
        gate.set()
        dispatcher.stop()

    assert overlaps == []
    assert archiver.calls == ["owner/dataset-7"]


def test_start_and_stop(tmp_path: Path) -> None:
    dispatcher = _dispatcher(tmp_path, FakeArchiver(), 1, IntakeQueue())
    assert not dispatcher.running

    dispatcher.start()
    dispatcher.start()
    assert dispatcher.running

    dispatcher.stop()
    assert not dispatcher.running


def test_worker_count_must_match(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        Dispatcher(DispatcherSettings(max_workers=2), IntakeQueue(), [])


def test_settings_reject_zero_workers() -> None:
    with pytest.raises(ValueError):
        DispatcherSettings(max_workers=0)


class RejectingExecutor(scheduler_module.ThreadPoolExecutor):
    def submit(self, *args, **kwargs):  # type: ignore[override]
        raise RuntimeError("cannot schedule new futures after shutdown")


def test_assignment_failure_is_reported(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(scheduler_module, "ThreadPoolExecutor", RejectingExecutor)
    notifier = RecordingNotifier()
    queue = IntakeQueue(max_size=10)
    job = _job(1)
    queue.enqueue(job)

    dispatcher = _dispatcher(tmp_path, FakeArchiver(size=1), 1, queue, notifier=notifier)
    dispatcher.start()
    try:
        assert queue.join(timeout=5)
    finally:
        dispatcher.stop()

    assert job.state is JobState.FAILED
    (report,) = notifier.reports
    assert not report.succeeded
    assert report.job_name == job.name
    assert report.reason == "internal error: could not assign job"
    assert dispatcher.stats()["idle"] == 1


class CrashingWorker(Worker):
    def run_one(self, job):  # type: ignore[override]
        raise RuntimeError("worker bug")


def test_worker_crash_is_reported(tmp_path: Path) -> None:
    notifier = RecordingNotifier()
    queue = IntakeQueue(max_size=10)
    job = _job(2)
    queue.enqueue(job)

    dispatcher = _dispatcher(
        tmp_path, FakeArchiver(size=1), 1, queue, notifier=notifier, worker_class=CrashingWorker
    )
    dispatcher.start()
    try:
        assert queue.join(timeout=5)
    finally:
        dispatcher.stop()

    assert job.state is JobState.FAILED
    (report,) = notifier.reports
    assert report.reason == "internal error: worker crashed"
    assert report.repository == job.repository
    assert not queue.in_flight(job.name)
