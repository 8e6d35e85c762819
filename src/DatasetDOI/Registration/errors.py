# === NAVMAP v1 ===
# {
#   "module": "DatasetDOI.Registration.errors",
#   "purpose": "Error taxonomy for admission, archival, storage and notification.",
#   "sections": [
#     {"id": "registrationerror", "name": "RegistrationError", "anchor": "class-registrationerror", "kind": "class"},
#     {"id": "admissionerror", "name": "AdmissionError", "anchor": "class-admissionerror", "kind": "class"},
#     {"id": "archivefailure", "name": "ArchiveFailure", "anchor": "class-archivefailure", "kind": "class"},
#     {"id": "storageerror", "name": "StorageError", "anchor": "class-storageerror", "kind": "class"},
#     {"id": "notificationerror", "name": "NotificationError", "anchor": "class-notificationerror", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Error taxonomy for DOI registration.

Responsibilities
----------------
- ``AdmissionError`` and its subclasses are caller-facing. They are raised by
  the admission checks and converted into a ``Rejected`` outcome at the
  :class:`~DatasetDOI.Registration.intake.IntakeHandler` boundary; they never
  reach the work queue.
- ``ArchiveFailure`` and ``StorageError`` are pipeline-fatal for one job. The
  worker turns them into a ``failed`` terminal state and a failure report.
- ``NotificationError`` is only ever logged. A job's terminal state is decided
  before any report is sent.

Design Notes
------------
Exceptions carry the structured context (job name, identifier, cause) needed
for an operator to re-submit a registration by hand, since storage writes are
idempotent and safe to repeat.
"""

from __future__ import annotations

from typing import Iterable, Sequence

__all__ = (
    "RegistrationError",
    "AdmissionError",
    "AuthenticationError",
    "InvalidRepositoryError",
    "MetadataParseError",
    "QueueFullError",
    "DuplicateJobError",
    "DataSourceError",
    "ArchiveFailure",
    "StorageError",
    "NotificationError",
    "InvalidTransition",
)


class RegistrationError(Exception):
    """Base class for all registration service errors."""


class AdmissionError(RegistrationError):
    """Raised when a registration request cannot be admitted.

    Attributes:
        reasons: Human-readable reasons returned to the caller.
    """

    def __init__(self, reasons: str | Iterable[str]) -> None:
        if isinstance(reasons, str):
            reasons = [reasons]
        self.reasons: tuple[str, ...] = tuple(reasons)
        super().__init__("; ".join(self.reasons))


class AuthenticationError(AdmissionError):
    """Raised when the caller cannot be authenticated."""

    def __init__(self, detail: str | None = None) -> None:
        super().__init__("not authenticated")
        self.detail = detail


class InvalidRepositoryError(AdmissionError):
    """Raised when a repository URI does not lead to fetchable metadata."""

    def __init__(self, repository: str, detail: str | None = None) -> None:
        super().__init__("invalid repository")
        self.repository = repository
        self.detail = detail


class MetadataParseError(AdmissionError):
    """Raised when the registration metadata file cannot be parsed."""


class QueueFullError(AdmissionError):
    """Raised when the bounded intake queue has no free capacity."""

    def __init__(self, capacity: int) -> None:
        super().__init__("registration queue is full")
        self.capacity = capacity


class DuplicateJobError(AdmissionError):
    """Raised when a job with the same name is already in flight."""

    def __init__(self, job_name: str) -> None:
        super().__init__("registration already in progress")
        self.job_name = job_name


class DataSourceError(RegistrationError):
    """Raised when the version-control data source cannot serve a request."""

    def __init__(self, message: str, *, url: str | None = None, status: int | None = None):
        super().__init__(message)
        self.url = url
        self.status = status


class ArchiveFailure(RegistrationError):
    """Raised when cloning or bundling a repository fails."""

    def __init__(self, message: str, *, repository: str | None = None, command: Sequence[str] = ()):
        super().__init__(message)
        self.repository = repository
        self.command = tuple(command)


class StorageError(RegistrationError):
    """Raised when the storage collaborator cannot persist a registration."""

    def __init__(self, message: str, *, identifier: str | None = None):
        super().__init__(message)
        self.identifier = identifier


class NotificationError(RegistrationError):
    """Raised when an outcome report cannot be delivered."""


class InvalidTransition(RegistrationError, ValueError):
    """Raised when a job is moved along an edge the state machine forbids."""

    def __init__(self, job_name: str, current: str, target: str) -> None:
        super().__init__(f"Job {job_name}: illegal transition {current} -> {target}")
        self.job_name = job_name
        self.current = current
        self.target = target
