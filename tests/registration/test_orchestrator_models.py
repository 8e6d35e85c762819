"""Tests for the job state machine.

Tests cover:
- The happy path queued → assigned → archiving → emitting → finalizing → succeeded
- Every allowed failure edge
- Terminal states having no outgoing transitions
- InvalidTransition for illegal moves, with the job left unchanged
- JobResult built from a finished job
"""

from __future__ import annotations

import pytest

from DatasetDOI.Registration.errors import InvalidTransition
from DatasetDOI.Registration.models import RegistrationInfo
from DatasetDOI.Registration.orchestrator.models import TRANSITIONS, Job, JobState

HAPPY_PATH = [
    JobState.ASSIGNED,
    JobState.ARCHIVING,
    JobState.EMITTING,
    JobState.FINALIZING,
    JobState.SUCCEEDED,
]


def _job() -> Job:
    return Job(name="abc", repository="owner/repo", info=RegistrationInfo(title="t"))


def test_new_job_is_queued_with_history() -> None:
    job = _job()
    assert job.state is JobState.QUEUED
    assert job.states() == [JobState.QUEUED]


def test_happy_path() -> None:
    job = _job()
    for state in HAPPY_PATH:
        job.advance(state)

    assert job.is_terminal
    assert job.states() == [JobState.QUEUED, *HAPPY_PATH]


@pytest.mark.parametrize(
    "path",
    [
        [JobState.ASSIGNED],
        [JobState.ASSIGNED, JobState.ARCHIVING],
        [JobState.ASSIGNED, JobState.ARCHIVING, JobState.EMITTING, JobState.FINALIZING],
    ],
)
def test_failure_edges(path: list[JobState]) -> None:
    job = _job()
    for state in path:
        job.advance(state)

    job.fail("boom")

    assert job.state is JobState.FAILED
    assert job.reason == "boom"


def test_queued_job_cannot_fail_directly() -> None:
    job = _job()
    with pytest.raises(InvalidTransition):
        job.fail("nope")
    assert job.state is JobState.QUEUED
    assert job.reason == ""


@pytest.mark.parametrize("terminal", [JobState.SUCCEEDED, JobState.FAILED])
def test_terminal_states_have_no_exits(terminal: JobState) -> None:
    assert TRANSITIONS[terminal] == frozenset()
    assert terminal.is_terminal


def test_succeeded_job_cannot_fail() -> None:
    job = _job()
    for state in HAPPY_PATH:
        job.advance(state)

    with pytest.raises(InvalidTransition) as excinfo:
        job.fail("late")

    assert job.state is JobState.SUCCEEDED
    assert excinfo.value.current == "succeeded"
    assert excinfo.value.target == "failed"


@pytest.mark.parametrize(
    "start,target",
    [
        (JobState.QUEUED, JobState.ARCHIVING),
        (JobState.ASSIGNED, JobState.EMITTING),
        (JobState.ARCHIVING, JobState.FINALIZING),
        (JobState.EMITTING, JobState.SUCCEEDED),
    ],
)
def test_skipping_stages_is_illegal(start: JobState, target: JobState) -> None:
    job = Job(name="abc", repository="r", info=RegistrationInfo(), state=start)
    with pytest.raises(InvalidTransition):
        job.advance(target)
    assert job.state is start


def test_every_state_has_a_transition_entry() -> None:
    assert set(TRANSITIONS) == set(JobState)


def test_result_of_failed_job() -> None:
    job = _job()
    job.advance(JobState.ASSIGNED)
    job.fail("archive failed: timed out")

    result = job.result()

    assert result.job_name == "abc"
    assert result.state is JobState.FAILED
    assert result.reason == "archive failed: timed out"
    assert result.is_terminal() and not result.is_success()
    assert result.doi is None
