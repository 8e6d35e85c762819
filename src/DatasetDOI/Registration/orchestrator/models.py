# === NAVMAP v1 ===
# {
#   "module": "DatasetDOI.Registration.orchestrator.models",
#   "purpose": "Job state enum, transition table, job and result types",
#   "sections": [
#     {"id": "jobstate", "name": "JobState", "anchor": "#class-jobstate", "kind": "enum"},
#     {"id": "job", "name": "Job", "anchor": "#class-job", "kind": "dataclass"},
#     {"id": "jobresult", "name": "JobResult", "anchor": "#class-jobresult", "kind": "dataclass"}
#   ]
# }
# === /NAVMAP ===

"""Job state models.

**State Machine (Jobs):**

    QUEUED
      ↓ (idle worker slot free, FIFO)
    ASSIGNED ─────────────┐
      ↓                   │
    ARCHIVING ────────────┤ (archive failed / timed out)
      ↓                   │
    EMITTING ─────────────┤ (internal error only)
      ↓                   │
    FINALIZING ───────────┤ (storage failed)
      ↓                   ↓
    SUCCEEDED           FAILED

SUCCEEDED and FAILED are terminal. Any other move raises
:class:`~DatasetDOI.Registration.errors.InvalidTransition`.

A job is private to whoever owns it: the intake queue until it is assigned,
then exactly one worker until it is terminal. Nothing here is locked.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple

from ..errors import InvalidTransition
from ..models import CallerIdentity, RegistrationInfo, RegistrationRecord, StorageAck

__all__ = ["JobState", "TRANSITIONS", "Job", "JobResult"]


class JobState(str, Enum):
    """Job lifecycle states."""

    QUEUED = "queued"
    ASSIGNED = "assigned"
    ARCHIVING = "archiving"
    EMITTING = "emitting"
    FINALIZING = "finalizing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.SUCCEEDED, JobState.FAILED)


TRANSITIONS: Dict[JobState, FrozenSet[JobState]] = {
    JobState.QUEUED: frozenset({JobState.ASSIGNED}),
    JobState.ASSIGNED: frozenset({JobState.ARCHIVING, JobState.FAILED}),
    JobState.ARCHIVING: frozenset({JobState.EMITTING, JobState.FAILED}),
    JobState.EMITTING: frozenset({JobState.FINALIZING, JobState.FAILED}),
    JobState.FINALIZING: frozenset({JobState.SUCCEEDED, JobState.FAILED}),
    JobState.SUCCEEDED: frozenset(),
    JobState.FAILED: frozenset(),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Job:
    """One registration request travelling through the pipeline.

    Attributes:
        name: Job name; equal to the repository's derived identifier.
        repository: Source repository URI.
        info: Validated registration metadata.
        requester: Authenticated caller, when known.
        warnings: Non-blocking metadata notes collected at admission.
        state: Current state.
        reason: Failure reason once FAILED.
        history: ``(state, entered_at)`` pairs in order.
        record: Emitted registration record once EMITTING completes.
        ack: Storage acknowledgement once SUCCEEDED.
    """

    name: str
    repository: str
    info: RegistrationInfo
    requester: Optional[CallerIdentity] = None
    warnings: Tuple[str, ...] = ()
    state: JobState = JobState.QUEUED
    reason: str = ""
    history: List[Tuple[JobState, datetime]] = field(default_factory=list)
    record: Optional[RegistrationRecord] = None
    ack: Optional[StorageAck] = None

    def __post_init__(self) -> None:
        if not self.history:
            self.history.append((self.state, _utcnow()))

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def can_advance(self, target: JobState) -> bool:
        return target in TRANSITIONS[self.state]

    def advance(self, target: JobState) -> None:
        """Move to ``target`` or raise InvalidTransition."""

        if not self.can_advance(target):
            raise InvalidTransition(self.name, self.state.value, target.value)
        self.state = target
        self.history.append((target, _utcnow()))

    def fail(self, reason: str) -> None:
        self.advance(JobState.FAILED)
        self.reason = reason

    def states(self) -> List[JobState]:
        return [state for state, _ in self.history]

    def result(self) -> "JobResult":
        return JobResult(
            job_name=self.name,
            repository=self.repository,
            state=self.state,
            reason=self.reason,
            doi=self.record.doi if self.record is not None else None,
            archive_size=self.record.archive_size if self.record is not None else None,
            storage_url=self.ack.url if self.ack is not None else None,
        )


@dataclass(frozen=True)
class JobResult:
    """Outcome of a finished job.

    Attributes:
        job_name: Job name (identifier)
        repository: Source repository URI
        state: Terminal JobState
        reason: Failure reason (empty on success)
        doi: Minted DOI, once a record was emitted
        archive_size: Archive size in bytes, once archived
        storage_url: Public storage URL on success
    """

    job_name: str
    repository: str
    state: JobState
    reason: str = ""
    doi: Optional[str] = None
    archive_size: Optional[int] = None
    storage_url: Optional[str] = None

    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def is_success(self) -> bool:
        return self.state == JobState.SUCCEEDED
