"""
Pydantic v2 Configuration Models for the DOI registration service

Typed configuration for every collaborator the service wires together:
- Dispatcher sizing (workers, intake queue, archive timeout)
- Version-control data source (web and git addresses, HTTP timeouts)
- Caller authentication (identity provider address)
- Storage target and public store URL
- DOI minting (prefix, suffix length, resolver, legacy identifiers)
- Mail notifications
- Logging
- Top-level RegistrationConfig as single source of truth

All models use extra="forbid" for strict validation. Environment variables
and CLI overrides follow: file < env < CLI precedence.
"""

from __future__ import annotations

import hashlib
import json
from typing import ClassVar, Dict, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..identity import DEFAULT_DOI_PREFIX, LEGACY_IDENTIFIERS


class DispatcherConfig(BaseModel):
    """Worker pool and intake queue sizing."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    max_workers: int = Field(default=3, description="Number of concurrently running workers")
    max_queue_size: int = Field(default=100, description="Capacity of the intake queue")
    archive_timeout_seconds: float = Field(
        default=4 * 3600.0, description="Upper bound on a single clone-and-archive step"
    )
    poll_interval_seconds: float = Field(
        default=0.5, description="Dispatcher wake-up interval while idle"
    )

    @field_validator("max_workers", "max_queue_size")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Must be >= 1")
        return v

    @field_validator("archive_timeout_seconds", "poll_interval_seconds")
    @classmethod
    def validate_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Must be > 0")
        return v


class DataSourceConfig(BaseModel):
    """Where repository metadata and content are fetched from."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    web_url: str = Field(
        default="https://web.gin.g-node.org", description="Web address for raw file access"
    )
    git_url: str = Field(default="ssh://git@gin.g-node.org", description="Git clone address")
    branch: str = Field(default="master", description="Primary branch to register")
    metadata_file: str = Field(default="datacite.yml", description="Registration metadata file")
    request_timeout_seconds: float = Field(default=30.0, description="HTTP request timeout")
    max_attempts: int = Field(default=3, description="Attempts for transient HTTP failures")

    @field_validator("web_url", "git_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("request_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("request_timeout_seconds must be > 0")
        return v

    @field_validator("max_attempts")
    @classmethod
    def validate_max_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_attempts must be >= 1")
        return v


class AuthConfig(BaseModel):
    """Identity provider used to authenticate callers."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    oauth_server: str = Field(
        default="https://web.gin.g-node.org", description="Identity provider base URL"
    )
    request_timeout_seconds: float = Field(default=10.0, description="HTTP request timeout")

    @field_validator("oauth_server")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class StorageConfig(BaseModel):
    """Long-term storage location for archives and records."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    target: str = Field(default="data", description="Directory for long-term storage")
    store_url: str = Field(
        default="http://doid.gin.g-node.org/", description="Public base URL of the storage"
    )
    work_dir: str = Field(default="work", description="Scratch directory for clones")

    @field_validator("store_url")
    @classmethod
    def ensure_trailing_slash(cls, v: str) -> str:
        return v if v.endswith("/") else f"{v}/"


class DOIConfig(BaseModel):
    """DOI minting and resolution."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    prefix: str = Field(default=DEFAULT_DOI_PREFIX, description="DOI registrant prefix")
    suffix_length: int = Field(default=6, description="Identifier characters used as DOI suffix")
    resolver_url: str = Field(default="https://doi.org", description="Public DOI resolver")
    request_timeout_seconds: float = Field(default=10.0, description="Resolver request timeout")
    legacy_identifiers: Dict[str, str] = Field(
        default_factory=lambda: dict(LEGACY_IDENTIFIERS),
        description="Repository -> identifier overrides for pre-existing registrations",
    )

    @field_validator("suffix_length")
    @classmethod
    def validate_suffix_length(cls, v: int) -> int:
        if not 1 <= v <= 32:
            raise ValueError("suffix_length must be between 1 and 32")
        return v

    @field_validator("resolver_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class MailConfig(BaseModel):
    """Outcome notifications by mail."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    server: str = Field(default="localhost:25", description="SMTP relay host[:port]")
    sender: str = Field(default="no-reply@g-node.org", description="From address")
    master: str = Field(default="dev@g-node.org", description="Administrator address")
    send_mail: bool = Field(
        default=False, description="Really send mail (otherwise reports are only logged)"
    )
    timeout_seconds: float = Field(default=30.0, description="SMTP connection timeout")

    @field_validator("server")
    @classmethod
    def validate_server(cls, v: str) -> str:
        host, sep, port = v.strip().rpartition(":")
        if not sep:
            host, port = port, "25"
        if not host or ":" in host:
            raise ValueError(f"mail server must be host[:port], got {v!r}")
        if not port.isdigit() or not 1 <= int(port) <= 65535:
            raise ValueError(f"mail server port must be a number between 1 and 65535, got {port!r}")
        return v.strip()


class LoggingConfig(BaseModel):
    """Log level and format."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    json_output: bool = Field(default=False, description="Emit JSON lines instead of text")

    @field_validator("level", mode="before")
    @classmethod
    def upper_level(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v


class ServerConfig(BaseModel):
    """HTTP admission surface."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8083)

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not 0 < v < 65536:
            raise ValueError("port must be in 1..65535")
        return v


# ============================================================================
# Top-Level Configuration
# ============================================================================


class RegistrationConfig(BaseModel):
    """
    Single source of truth for the registration service configuration.

    Loaded from file (YAML/JSON), overlaid with environment variables,
    and finally overridden by CLI arguments. Precedence: file < env < CLI.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid", validate_assignment=True)

    dispatcher: DispatcherConfig = Field(default_factory=DispatcherConfig)
    datasource: DataSourceConfig = Field(default_factory=DataSourceConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    doi: DOIConfig = Field(default_factory=DOIConfig)
    mail: MailConfig = Field(default_factory=MailConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    def config_hash(self) -> str:
        """
        Compute deterministic SHA256 hash of config for reproducibility.

        Returns:
            Hex-encoded SHA256 hash of normalized config JSON.
        """
        normalized = json.dumps(self.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(normalized.encode()).hexdigest()
