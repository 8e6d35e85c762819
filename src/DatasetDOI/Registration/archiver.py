"""Clone a repository and bundle its working tree into a single zip archive."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import threading
import zipfile
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from .datasource import DataSource
from .errors import ArchiveFailure, DataSourceError
from .models import ArchiveResult

__all__ = ["Archiver", "GitArchiver", "zip_tree"]

LOGGER = logging.getLogger(__name__)


@runtime_checkable
class Archiver(Protocol):
    def archive(
        self, uri: str, destination: Path, cancel: Optional[threading.Event] = None
    ) -> ArchiveResult:
        """Bundle ``uri`` into ``destination``; raise ArchiveFailure on error.

        Once ``cancel`` is set the call stops at the next opportunity and
        raises ArchiveFailure.
        """
        ...


def zip_tree(source: Path, target: Path, cancel: Optional[threading.Event] = None) -> int:
    """Write every file below ``source`` except ``.git`` into ``target``.

    Symlinks are followed so that annexed content ends up in the archive.
    Links that resolve outside ``source`` and dangling links (content that
    was never fetched) are skipped.

    Returns:
        Size of the written archive in bytes.

    Raises:
        ArchiveFailure: If ``cancel`` is set while the archive is written.
    """
    root_dir = Path(source).resolve()
    target.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(target, "w", compression=zipfile.ZIP_DEFLATED) as bundle:
        for root, dirs, files in os.walk(source):
            dirs[:] = sorted(d for d in dirs if d != ".git")
            for filename in sorted(files):
                if cancel is not None and cancel.is_set():
                    raise ArchiveFailure("cancelled")
                path = Path(root) / filename
                if not path.exists():
                    LOGGER.warning("Skipping dangling link %s", path)
                    continue
                if not path.resolve().is_relative_to(root_dir):
                    LOGGER.warning("Skipping %s: resolves outside the repository", path)
                    continue
                bundle.write(path, arcname=path.relative_to(source).as_posix())
    return target.stat().st_size


class GitArchiver:
    """Archiver backed by a :class:`DataSource` clone.

    The clone lives in a temporary directory below ``work_dir`` and is removed
    on every exit path; only the zip in ``destination`` remains.
    """

    def __init__(
        self,
        datasource: DataSource,
        work_dir: Optional[Path] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.datasource = datasource
        self.work_dir = Path(work_dir) if work_dir is not None else None
        self.timeout = timeout

    def archive(
        self, uri: str, destination: Path, cancel: Optional[threading.Event] = None
    ) -> ArchiveResult:
        destination = Path(destination)
        name = uri.rstrip("/").rsplit("/", 1)[-1] or "repository"
        target = destination / f"{name}.zip"

        if self.work_dir is not None:
            self.work_dir.mkdir(parents=True, exist_ok=True)
        scratch = Path(tempfile.mkdtemp(prefix="doi-clone-", dir=self.work_dir))
        try:
            worktree = self.datasource.clone(uri, scratch, timeout=self.timeout, cancel=cancel)
            size = zip_tree(worktree, target, cancel=cancel)
        except ArchiveFailure as exc:
            exc.repository = exc.repository or uri
            raise
        except DataSourceError as exc:
            raise ArchiveFailure(str(exc), repository=uri) from exc
        except (OSError, zipfile.BadZipFile) as exc:
            raise ArchiveFailure(f"could not write archive: {exc}", repository=uri) from exc
        finally:
            shutil.rmtree(scratch, ignore_errors=True)

        LOGGER.info("Archived %s to %s (%d bytes)", uri, target, size)
        return ArchiveResult(path=target, size=size)
