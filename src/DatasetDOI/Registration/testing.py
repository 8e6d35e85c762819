"""In-memory collaborators for tests and local experiments.

Each double implements the same capability interface as its real
counterpart, so a whole service can be built with
:func:`~DatasetDOI.Registration.service.build_service` without network, git or
SMTP access.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from .errors import ArchiveFailure, AuthenticationError, DataSourceError, StorageError
from .models import ArchiveResult, CallerIdentity, RegistrationRecord, StorageAck
from .notify import Report

__all__ = [
    "InMemoryDataSource",
    "FakeArchiver",
    "RecordingStorage",
    "RecordingNotifier",
    "StaticResolver",
    "StaticAuthenticator",
]


class InMemoryDataSource:
    """Serves metadata files and repository trees from dictionaries.

    ``trees`` maps a repository URI to ``{relative path: bytes}``; ``clone``
    writes those files below the destination.
    """

    def __init__(
        self,
        files: Optional[Mapping[str, bytes]] = None,
        trees: Optional[Mapping[str, Mapping[str, bytes]]] = None,
    ) -> None:
        self.files: Dict[str, bytes] = dict(files or {})
        self.trees: Dict[str, Dict[str, bytes]] = {k: dict(v) for k, v in (trees or {}).items()}
        self.fetched: List[str] = []

    def fetch_registration_file(self, uri: str) -> bytes:
        self.fetched.append(uri)
        try:
            return self.files[uri]
        except KeyError:
            raise DataSourceError(f"could not get datacite.yml: 404 for {uri}", status=404) from None

    def clone(
        self,
        uri: str,
        dest: Path,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Path:
        if uri not in self.trees:
            raise DataSourceError(f"repository {uri} not found")
        if cancel is not None and cancel.is_set():
            raise DataSourceError(f"clone of {uri} cancelled")
        worktree = Path(dest) / uri.rstrip("/").rsplit("/", 1)[-1]
        for relative, content in self.trees[uri].items():
            path = worktree / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        worktree.mkdir(parents=True, exist_ok=True)
        return worktree


class FakeArchiver:
    """Archiver returning a fixed size without touching git.

    Writes a placeholder bundle of ``size`` bytes so storage doubles have a
    real file to look at. ``failure`` makes every call raise ArchiveFailure;
    ``gate`` blocks each call until the event is set or the call is cancelled.
    ``finished`` lists the URIs of calls that have returned or raised.
    """

    def __init__(
        self,
        size: int = 0,
        *,
        failure: Optional[str] = None,
        gate: Optional[threading.Event] = None,
        on_archive: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.size = size
        self.failure = failure
        self.gate = gate
        self.on_archive = on_archive
        self.calls: List[str] = []
        self.finished: List[str] = []
        self._lock = threading.Lock()

    def archive(
        self, uri: str, destination: Path, cancel: Optional[threading.Event] = None
    ) -> ArchiveResult:
        with self._lock:
            self.calls.append(uri)
        try:
            return self._archive(uri, destination, cancel)
        finally:
            with self._lock:
                self.finished.append(uri)

    def _archive(
        self, uri: str, destination: Path, cancel: Optional[threading.Event]
    ) -> ArchiveResult:
        if self.on_archive is not None:
            self.on_archive(uri)
        if self.gate is not None:
            while not self.gate.wait(0.01):
                if cancel is not None and cancel.is_set():
                    raise ArchiveFailure("cancelled", repository=uri)
        if self.failure is not None:
            raise ArchiveFailure(self.failure, repository=uri)
        destination = Path(destination)
        destination.mkdir(parents=True, exist_ok=True)
        path = destination / f"{uri.rstrip('/').rsplit('/', 1)[-1]}.zip"
        path.write_bytes(b"\0" * self.size)
        return ArchiveResult(path=path, size=self.size)


class RecordingStorage:
    """Keeps every ``put`` in memory; ``fail_with`` makes puts raise StorageError."""

    def __init__(self, store_url: str = "https://doid.example.org/", fail_with: Optional[str] = None):
        self.store_url = store_url
        self.fail_with = fail_with
        self.puts: List[Tuple[str, ArchiveResult, RegistrationRecord]] = []
        self.records: Dict[str, RegistrationRecord] = {}
        self._lock = threading.Lock()

    def put(
        self, identifier: str, archive: ArchiveResult, record: RegistrationRecord
    ) -> StorageAck:
        with self._lock:
            self.puts.append((identifier, archive, record))
            if self.fail_with is not None:
                raise StorageError(self.fail_with, identifier=identifier)
            self.records[identifier] = record
        return StorageAck(identifier=identifier, url=f"{self.store_url}{identifier}/")


class RecordingNotifier:
    """Collects reports; raises ``error`` after recording when one is given."""

    def __init__(self, error: Optional[Exception] = None) -> None:
        self.error = error
        self.reports: List[Report] = []
        self._lock = threading.Lock()

    def notify(self, report: Report) -> None:
        with self._lock:
            self.reports.append(report)
        if self.error is not None:
            raise self.error


class StaticResolver:
    """Resolver answering from a fixed set of DOIs."""

    def __init__(self, registered: Iterable[str] = ()) -> None:
        self.registered: Set[str] = set(registered)
        self.queries: List[str] = []

    def exists(self, doi: str) -> bool:
        self.queries.append(doi)
        return doi in self.registered


class StaticAuthenticator:
    """Accepts exactly the configured ``{token: username}`` pairs."""

    def __init__(self, tokens: Optional[Mapping[str, str]] = None) -> None:
        self.tokens: Dict[str, str] = dict(tokens or {})

    def authenticate(self, username: str, token: str) -> CallerIdentity:
        owner = self.tokens.get(token)
        if owner is None or (username and owner != username):
            raise AuthenticationError("unknown token")
        return CallerIdentity(username=owner, email=f"{owner}@example.org")
