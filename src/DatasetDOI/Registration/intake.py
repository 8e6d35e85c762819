# === NAVMAP v1 ===
# {
#   "module": "DatasetDOI.Registration.intake",
#   "purpose": "Admission control for registration requests",
#   "sections": [
#     {"id": "outcomes", "name": "Accepted/Rejected/AlreadyRegistered", "anchor": "#class-accepted", "kind": "dataclass"},
#     {"id": "intakehandler", "name": "IntakeHandler", "anchor": "#class-intakehandler", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Admission of registration requests.

``IntakeHandler.admit`` decides synchronously whether a request becomes a
background job. Checks short-circuit on the first failure:

1. the caller is authenticated;
2. the repository's metadata file can be fetched and parsed;
3. the metadata has no deficiencies;
4. the derived DOI is not already publicly resolvable;
5. the intake queue takes the job (no job of the same name in flight, free
   capacity).

Admission never waits for the pipeline; it returns as soon as the job is
queued.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Tuple, Union

from .auth import Authenticator
from .datasource import DataSource
from .errors import AdmissionError, DataSourceError, InvalidRepositoryError
from .identity import IdentityDeriver
from .logging_utils import log_event
from .models import RegistrationRequest
from .orchestrator.models import Job
from .orchestrator.queue import IntakeQueue
from .resolution import Resolver
from .validation import check_missing_values, collect_warnings, parse_registration_info

__all__ = ["Accepted", "Rejected", "AlreadyRegistered", "Outcome", "IntakeHandler"]

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Accepted:
    """The request was queued as job ``job_name``."""

    job_name: str
    doi: str = ""
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Rejected:
    """The request was refused; ``reasons`` tells the caller what to fix."""

    reasons: Tuple[str, ...]

    @property
    def reason(self) -> str:
        return "; ".join(self.reasons)


@dataclass(frozen=True)
class AlreadyRegistered:
    """The repository's DOI already resolves publicly."""

    identifier: str
    doi: str


Outcome = Union[Accepted, Rejected, AlreadyRegistered]


class IntakeHandler:
    """Validates requests and hands admitted jobs to the intake queue."""

    def __init__(
        self,
        authenticator: Authenticator,
        datasource: DataSource,
        identity: IdentityDeriver,
        resolver: Resolver,
        queue: IntakeQueue,
    ) -> None:
        self.authenticator = authenticator
        self.datasource = datasource
        self.identity = identity
        self.resolver = resolver
        self.queue = queue

    def admit(self, request: RegistrationRequest) -> Outcome:
        try:
            return self._admit(request)
        except AdmissionError as exc:
            log_event(
                LOGGER,
                f"Rejected registration of {request.repository}: {exc}",
                stage="admission",
                repository=request.repository,
                username=request.username,
            )
            return Rejected(exc.reasons)

    def _admit(self, request: RegistrationRequest) -> Outcome:
        caller = self.authenticator.authenticate(request.username, request.token)

        if not request.repository:
            raise InvalidRepositoryError(request.repository, "empty repository")
        try:
            raw = self.datasource.fetch_registration_file(request.repository)
        except DataSourceError as exc:
            raise InvalidRepositoryError(request.repository, str(exc)) from exc
        info = parse_registration_info(raw)

        missing = check_missing_values(info)
        if missing:
            raise AdmissionError(missing)

        identifier = self.identity.derive(request.repository)
        doi = self.identity.doi(identifier)
        if self.resolver.exists(doi):
            LOGGER.info("%s is already registered as %s", request.repository, doi)
            return AlreadyRegistered(identifier=identifier, doi=doi)

        warnings = tuple(collect_warnings(info))
        job = Job(
            name=identifier,
            repository=request.repository,
            info=info,
            requester=caller,
            warnings=warnings,
        )
        self.queue.enqueue(job)
        log_event(
            LOGGER,
            f"Accepted registration of {request.repository}",
            job=identifier,
            stage="queued",
            doi=doi,
            requester=caller.username,
        )
        return Accepted(job_name=identifier, doi=doi, warnings=warnings)
