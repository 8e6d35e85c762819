"""
Pydantic models for dataset registration metadata.

Two families of models live here:

- **Source metadata** (:class:`RegistrationInfo` and its parts) mirrors the
  ``datacite.yml`` file a repository carries. Keys are accepted in the
  capitalised form used by existing repositories (``Title``, ``FirstName``,
  ``RefType``) as well as snake_case.
- **Registration record** (:class:`RegistrationRecord`) is the canonical,
  immutable description of a published dataset that the emitter produces and
  the storage collaborator persists.

All record-side models are frozen; sequences are stored as tuples so that the
order of authors, keywords, references and funding entries is fixed once a
record exists.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

__all__ = [
    "Author",
    "License",
    "Reference",
    "FundingReference",
    "RegistrationInfo",
    "RegistrationRecord",
    "RegistrationRequest",
    "CallerIdentity",
    "ArchiveResult",
    "StorageAck",
    "DEFAULT_RESOURCE_TYPE",
]

DEFAULT_RESOURCE_TYPE = "Dataset"

_ORCID_PATTERN = re.compile(r"(\d+-\d+-\d+-\d+)")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_KEY_ALIASES: Dict[str, str] = {
    "firstname": "first_name",
    "lastname": "last_name",
    "reftype": "ref_type",
    "resourcetype": "resource_type",
    "awardnumber": "award_number",
}

# Reference ID source prefix -> URL prefix
_REFERENCE_URL_PREFIXES: Dict[str, str] = {
    "doi": "https://doi.org/",
    "arxiv": "https://arxiv.org/abs/",
    "pmid": "https://www.ncbi.nlm.nih.gov/pubmed/",
}


def _normalise_key(key: Any) -> Any:
    if not isinstance(key, str):
        return key
    snake = _CAMEL_BOUNDARY.sub("_", key.strip()).lower()
    return _KEY_ALIASES.get(snake, snake)


def _normalise_keys(data: Any) -> Any:
    """Lower-case and snake_case the keys of a raw mapping (one level)."""

    if isinstance(data, dict):
        return {_normalise_key(key): value for key, value in data.items()}
    return data


def _coerce_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


class _SourceModel(BaseModel):
    """Base for models parsed from repository metadata files."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="ignore", frozen=True)

    @model_validator(mode="before")
    @classmethod
    def _normalise(cls, data: Any) -> Any:
        return _normalise_keys(data)


# ============================================================================
# Source metadata parts
# ============================================================================


class Author(_SourceModel):
    """A dataset author as listed in the repository metadata."""

    first_name: str = ""
    last_name: str = ""
    affiliation: str = ""
    id: Optional[str] = None

    @field_validator("first_name", "last_name", "affiliation", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> str:
        return _coerce_text(v)

    @field_validator("id", mode="before")
    @classmethod
    def _optional_id(cls, v: Any) -> Optional[str]:
        text = _coerce_text(v)
        return text or None

    @property
    def is_valid(self) -> bool:
        return bool(self.first_name) and bool(self.last_name)

    @property
    def orcid(self) -> Optional[str]:
        """Return the ORCID number embedded in ``id``, if the ID names ORCID."""

        if not self.id or "orcid" not in self.id.lower():
            return None
        match = _ORCID_PATTERN.search(self.id)
        return match.group(1) if match else None

    @property
    def orcid_url(self) -> Optional[str]:
        orcid = self.orcid
        return f"https://orcid.org/{orcid}" if orcid else None

    def initials(self) -> str:
        return "".join(part[0] for part in self.first_name.split() if part)


class License(_SourceModel):
    """License name and URL."""

    name: str = ""
    url: str = ""

    @field_validator("name", "url", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> str:
        return _coerce_text(v)

    @property
    def is_valid(self) -> bool:
        return bool(self.name) and bool(self.url)


class Reference(_SourceModel):
    """A related publication.

    ``id`` has the form ``<source>:<identifier>`` (``doi:10.1234/x``,
    ``arxiv:1234.5678``, ``pmid:123``). ``name`` is the legacy spelling of
    ``citation`` and is still accepted.
    """

    ref_type: str = ""
    citation: str = ""
    name: str = ""
    id: str = ""

    @field_validator("ref_type", "citation", "name", "id", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> str:
        return _coerce_text(v)

    @property
    def is_valid(self) -> bool:
        return bool(self.citation or self.name) and bool(self.ref_type)

    @property
    def text(self) -> str:
        """Citation text, combining the legacy ``name`` field when both are set."""

        if self.name and self.citation:
            return f"{self.name} {self.citation}"
        return self.name or self.citation

    @property
    def source(self) -> str:
        source, sep, _ = self.id.partition(":")
        return source if sep else ""

    @property
    def source_id(self) -> str:
        source, sep, rest = self.id.partition(":")
        return rest if sep else source

    @property
    def url(self) -> str:
        """Resolvable URL for known ID sources; empty for unknown ones."""

        prefix = _REFERENCE_URL_PREFIXES.get(self.source.lower())
        if prefix is None:
            return ""
        return f"{prefix}{self.source_id}"


class FundingReference(BaseModel):
    """Funder and award number split from a ``"<Funder>, <Award>"`` string."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid", frozen=True)

    funder: str
    award_number: str = ""

    @classmethod
    def from_string(cls, value: str) -> "FundingReference":
        funder, sep, award = value.partition(",")
        if not sep:
            return cls(funder=value.strip())
        return cls(funder=funder.strip(), award_number=award.strip())


class RegistrationInfo(_SourceModel):
    """Registration metadata read from a repository's ``datacite.yml``."""

    title: str = ""
    authors: List[Author] = Field(default_factory=list)
    description: str = ""
    keywords: List[str] = Field(default_factory=list)
    references: List[Reference] = Field(default_factory=list)
    funding: List[str] = Field(default_factory=list)
    license: Optional[License] = None
    resource_type: str = ""

    @field_validator("title", "description", "resource_type", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> str:
        return _coerce_text(v)

    @field_validator("authors", "references", mode="before")
    @classmethod
    def _none_is_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("keywords", "funding", mode="before")
    @classmethod
    def _text_items(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            v = [v]
        if isinstance(v, list):
            return [_coerce_text(item) for item in v if _coerce_text(item)]
        return v


# ============================================================================
# Registration record
# ============================================================================


class RegistrationRecord(BaseModel):
    """Canonical metadata for a registered dataset. Immutable once built."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid", frozen=True)

    identifier: str
    doi: str
    title: str
    authors: Tuple[Author, ...] = ()
    description: str = ""
    keywords: Tuple[str, ...] = ()
    license: Optional[License] = None
    references: Tuple[Reference, ...] = ()
    funding: Tuple[FundingReference, ...] = ()
    resource_type: str = DEFAULT_RESOURCE_TYPE
    issued_at: datetime
    archive_size: int = Field(ge=0)
    missing: Tuple[str, ...] = ()

    @property
    def publishable(self) -> bool:
        return not self.missing

    @property
    def year(self) -> int:
        return self.issued_at.year

    @property
    def resolution_url(self) -> str:
        return f"https://doi.org/{self.doi}"

    def citation(self, publisher: str = "G-Node") -> str:
        """Return ``"Last FI, ... (Year) Title. Publisher. https://doi.org/<doi>"``."""

        names = []
        for author in self.authors:
            initials = author.initials()
            names.append(f"{author.last_name} {initials}".strip())
        return f"{', '.join(names)} ({self.year}) {self.title}. {publisher}. {self.resolution_url}"


# ============================================================================
# Request / collaborator value types
# ============================================================================


class RegistrationRequest(BaseModel):
    """Caller-supplied registration request."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    repository: str = Field(..., description="Repository path, e.g. 'owner/dataset'")
    username: str = Field(default="", description="Caller account name")
    token: str = Field(default="", description="Authentication token")

    @field_validator("repository", "username", "token", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> str:
        return _coerce_text(v)


class CallerIdentity(BaseModel):
    """Authenticated caller as reported by the identity provider."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="ignore", frozen=True)

    username: str
    email: str = ""
    full_name: str = ""


@dataclass(frozen=True)
class ArchiveResult:
    """A finished archive bundle and its size in bytes."""

    path: Path
    size: int


@dataclass(frozen=True)
class StorageAck:
    """Confirmation that a registration was durably stored."""

    identifier: str
    url: str
