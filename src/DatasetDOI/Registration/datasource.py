# === NAVMAP v1 ===
# {
#   "module": "DatasetDOI.Registration.datasource",
#   "purpose": "Version-control data source: raw metadata fetch and full clones.",
#   "sections": [
#     {"id": "datasource", "name": "DataSource", "anchor": "class-datasource", "kind": "class"},
#     {"id": "gindatasource", "name": "GinDataSource", "anchor": "class-gindatasource", "kind": "class"},
#     {"id": "run-git", "name": "_run_git", "anchor": "function-run-git", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Version-control data source.

Two capabilities are needed from the hosting service:

- retrieval of a single raw file (the registration metadata) over HTTP, used
  at admission time without cloning anything;
- a full clone of the primary branch including large-file content kept out of
  line by git-annex, used by the archiver.

Subprocesses always run with an explicit ``cwd`` so that the process working
directory is never changed, even while several workers clone at once.
"""

from __future__ import annotations

import logging
import subprocess
import threading
import time
from pathlib import Path
from typing import Optional, Protocol, Sequence, runtime_checkable

import httpx

from .errors import DataSourceError
from .retry import build_retrying

__all__ = ["DataSource", "GinDataSource"]

LOGGER = logging.getLogger(__name__)


@runtime_checkable
class DataSource(Protocol):
    """Capability interface for repository hosting services."""

    def fetch_registration_file(self, uri: str) -> bytes:
        """Return the raw registration metadata file of ``uri``.

        Raises:
            DataSourceError: If the file cannot be retrieved.
        """
        ...

    def clone(
        self,
        uri: str,
        dest: Path,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Path:
        """Clone ``uri`` with all content into a new directory below ``dest``.

        Setting ``cancel`` stops the clone; the call still returns only once
        no child process is left running.

        Returns:
            Path of the working tree.

        Raises:
            DataSourceError: On transport, remote or timeout errors.
        """
        ...


_CANCEL_POLL_SECONDS = 0.5


def _run_git(
    args: Sequence[str],
    *,
    cwd: Path,
    timeout: Optional[float],
    cancel: Optional[threading.Event] = None,
) -> str:
    """Run git in ``cwd`` and return its standard output.

    The child is killed once ``timeout`` elapses or ``cancel`` is set; in both
    cases the call returns only after the process has exited.
    """
    command = ["git", *args]
    LOGGER.debug("Running %s in %s", " ".join(command), cwd)
    try:
        process = subprocess.Popen(
            command,
            cwd=str(cwd),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except OSError as exc:
        raise DataSourceError(f"Failed to launch {command[0]}: {exc}") from exc

    deadline = None if timeout is None else time.monotonic() + timeout
    while True:
        if cancel is not None and cancel.is_set():
            process.kill()
            process.communicate()
            raise DataSourceError(f"{' '.join(command)} cancelled")
        wait = _CANCEL_POLL_SECONDS
        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                process.kill()
                process.communicate()
                raise DataSourceError(f"{' '.join(command)} timed out after {timeout}s")
            wait = min(wait, remaining)
        try:
            stdout, stderr = process.communicate(timeout=wait)
            break
        except subprocess.TimeoutExpired:
            continue

    if process.returncode != 0:
        text = stderr.decode("utf-8", errors="ignore").strip()
        message = text or f"{' '.join(command)} failed with code {process.returncode}"
        raise DataSourceError(message)
    return stdout.decode("utf-8", errors="ignore")


class GinDataSource:
    """GIN-style hosting service (Gogs web API plus git and git-annex).

    Attributes:
        web_url: Base URL for raw file access.
        git_url: Base URL for git clones.
        branch: Branch that is registered.
        metadata_file: Name of the registration metadata file.
    """

    def __init__(
        self,
        web_url: str,
        git_url: str,
        *,
        branch: str = "master",
        metadata_file: str = "datacite.yml",
        client: Optional[httpx.Client] = None,
        timeout: float = 30.0,
        max_attempts: int = 3,
    ) -> None:
        self.web_url = web_url.rstrip("/")
        self.git_url = git_url.rstrip("/")
        self.branch = branch
        self.metadata_file = metadata_file
        self._client = client or httpx.Client(timeout=timeout)
        self._max_attempts = max_attempts

    def raw_file_url(self, uri: str) -> str:
        return f"{self.web_url}/{uri}/raw/{self.branch}/{self.metadata_file}"

    def clone_url(self, uri: str) -> str:
        return f"{self.git_url}/{uri.lower()}.git"

    def fetch_registration_file(self, uri: str) -> bytes:
        url = self.raw_file_url(uri)
        retrying = build_retrying(self._max_attempts)
        try:
            response = retrying(self._client.get, url)
        except httpx.HTTPError as exc:
            LOGGER.debug("Could not get %s: %s", url, exc)
            raise DataSourceError(f"could not get {self.metadata_file}: {exc}", url=url) from exc

        if response.status_code != httpx.codes.OK:
            raise DataSourceError(
                f"could not get {self.metadata_file}: {response.status_code}",
                url=url,
                status=response.status_code,
            )
        return response.content

    def clone(
        self,
        uri: str,
        dest: Path,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Path:
        dest = Path(dest)
        dest.mkdir(parents=True, exist_ok=True)
        name = uri.rstrip("/").rsplit("/", 1)[-1].lower() or "repository"
        worktree = dest / name

        LOGGER.info("Cloning %s into %s", uri, worktree)
        _run_git(
            ["clone", "--depth", "1", "--branch", self.branch, self.clone_url(uri), name],
            cwd=dest,
            timeout=timeout,
            cancel=cancel,
        )
        if (worktree / ".git" / "annex").exists() or self._has_annex_branch(worktree, timeout, cancel):
            LOGGER.info("Fetching annexed content for %s", uri)
            _run_git(["annex", "init"], cwd=worktree, timeout=timeout, cancel=cancel)
            _run_git(["annex", "get", "."], cwd=worktree, timeout=timeout, cancel=cancel)
        return worktree

    @staticmethod
    def _has_annex_branch(
        worktree: Path, timeout: Optional[float], cancel: Optional[threading.Event] = None
    ) -> bool:
        output = _run_git(
            ["ls-remote", "--heads", "origin", "git-annex"],
            cwd=worktree,
            timeout=timeout,
            cancel=cancel,
        )
        return bool(output.strip())

    def close(self) -> None:
        self._client.close()
