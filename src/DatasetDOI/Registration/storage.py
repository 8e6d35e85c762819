# === NAVMAP v1 ===
# {
#   "module": "DatasetDOI.Registration.storage",
#   "purpose": "Durable, idempotent storage of archives and registration records.",
#   "sections": [
#     {"id": "storage", "name": "Storage", "anchor": "class-storage", "kind": "class"},
#     {"id": "atomic-write", "name": "atomic_write", "anchor": "function-atomic-write", "kind": "function"},
#     {"id": "record-to-datacite", "name": "record_to_datacite", "anchor": "function-record-to-datacite", "kind": "function"},
#     {"id": "localstorage", "name": "LocalStorage", "anchor": "class-localstorage", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Storage collaborator for finished registrations.

``put`` is keyed by identifier and overwrites whatever an earlier attempt left
behind, so an operator can re-submit a failed job without cleaning up first.
Every file is written to a temporary name and moved into place with
``os.replace``; readers never observe a half-written archive or record.

Layout below the storage target::

    <target>/<identifier>/<archive name>.zip
    <target>/<identifier>/registration.json
    <target>/<identifier>/datacite.yml
"""

from __future__ import annotations

import logging
import os
import uuid
from contextlib import suppress
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, Protocol, runtime_checkable

import yaml

from .errors import StorageError
from .models import ArchiveResult, RegistrationRecord, StorageAck

__all__ = ["Storage", "LocalStorage", "atomic_write", "record_to_datacite"]

LOGGER = logging.getLogger(__name__)

_CHUNK_SIZE = 1024 * 1024


@runtime_checkable
class Storage(Protocol):
    def put(
        self, identifier: str, archive: ArchiveResult, record: RegistrationRecord
    ) -> StorageAck:
        """Persist ``archive`` and ``record`` under ``identifier``.

        Must be safe to call repeatedly with the same identifier.

        Raises:
            StorageError: If the registration could not be made durable.
        """
        ...


def atomic_write(path: Path, chunks: Iterable[bytes]) -> int:
    """Atomically write ``chunks`` to ``path`` and return the byte count."""

    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_name(f"{path.name}.part.{uuid.uuid4().hex}")
    written = 0
    try:
        with temp_path.open("wb") as handle:
            for chunk in chunks:
                if not chunk:
                    continue
                handle.write(chunk)
                written += len(chunk)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, path)
        return written
    finally:
        with suppress(FileNotFoundError):
            temp_path.unlink()


def _iter_file(path: Path) -> Iterator[bytes]:
    with path.open("rb") as handle:
        while True:
            chunk = handle.read(_CHUNK_SIZE)
            if not chunk:
                return
            yield chunk


def record_to_datacite(record: RegistrationRecord) -> Dict[str, Any]:
    """Render ``record`` in the key style of repository ``datacite.yml`` files."""

    data: Dict[str, Any] = {
        "identifier": record.doi,
        "title": record.title,
        "authors": [
            {
                key: value
                for key, value in (
                    ("firstname", author.first_name),
                    ("lastname", author.last_name),
                    ("affiliation", author.affiliation),
                    ("id", author.id),
                )
                if value
            }
            for author in record.authors
        ],
        "description": record.description,
        "keywords": list(record.keywords),
        "references": [
            {
                key: value
                for key, value in (
                    ("reftype", reference.ref_type),
                    ("citation", reference.text),
                    ("id", reference.id),
                )
                if value
            }
            for reference in record.references
        ],
        "funding": [
            f"{entry.funder}, {entry.award_number}" if entry.award_number else entry.funder
            for entry in record.funding
        ],
        "resourcetype": record.resource_type,
        "issued": record.issued_at.date().isoformat(),
    }
    if record.license is not None:
        data["license"] = {"name": record.license.name, "url": record.license.url}
    return data


class LocalStorage:
    """Filesystem-backed :class:`Storage`.

    Attributes:
        target: Root directory for registrations.
        store_url: Public base URL under which ``target`` is served.
    """

    def __init__(self, target: Path, store_url: str) -> None:
        self.target = Path(target)
        self.store_url = store_url if store_url.endswith("/") else f"{store_url}/"

    def location(self, identifier: str) -> Path:
        if not identifier or "/" in identifier or identifier in (".", ".."):
            raise StorageError(f"unsafe identifier {identifier!r}", identifier=identifier)
        return self.target / identifier

    def put(
        self, identifier: str, archive: ArchiveResult, record: RegistrationRecord
    ) -> StorageAck:
        directory = self.location(identifier)
        try:
            atomic_write(directory / archive.path.name, _iter_file(archive.path))
            atomic_write(
                directory / "registration.json",
                [record.model_dump_json(indent=2).encode("utf-8")],
            )
            rendered = yaml.safe_dump(
                record_to_datacite(record), sort_keys=False, allow_unicode=True
            )
            atomic_write(directory / "datacite.yml", [rendered.encode("utf-8")])
        except OSError as exc:
            raise StorageError(
                f"could not store {identifier}: {exc}", identifier=identifier
            ) from exc

        url = f"{self.store_url}{identifier}/"
        LOGGER.info("Stored %s at %s", identifier, directory)
        return StorageAck(identifier=identifier, url=url)
