"""Shared fixtures for the registration test-suite."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterator, Optional

import pytest

from DatasetDOI.Registration.config import RegistrationConfig
from DatasetDOI.Registration.identity import IdentityDeriver
from DatasetDOI.Registration.service import RegistrationService, build_service
from DatasetDOI.Registration.testing import (
    FakeArchiver,
    InMemoryDataSource,
    RecordingNotifier,
    RecordingStorage,
    StaticAuthenticator,
    StaticResolver,
)

COMPLETE_DATACITE = b"""\
title: Multi-electrode recordings of motor cortex during reach-to-grasp
authors:
  - firstname: Barbara
    lastname: Brochier
    affiliation: Institut de Neurosciences de la Timone
    id: "ORCID:0000-0002-1825-0097"
  - firstname: Alexa
    lastname: Riehle
    affiliation: Institut de Neurosciences de la Timone
  - firstname: Carl
    lastname: Zehl
    affiliation: Forschungszentrum Juelich
description: >-
  Two data sets of massively parallel recordings from the motor cortex of two
  macaque monkeys performing an instructed delayed reach-to-grasp task.
keywords:
  - Neuroscience
  - Electrophysiology
license:
  name: Creative Commons CC-BY 4.0
  url: https://creativecommons.org/licenses/by/4.0/
funding:
  - DFG, SPP 1665
references:
  - reftype: IsDescribedBy
    citation: Brochier et al. (2018) Massively parallel recordings in macaque motor cortex
    id: "doi:10.1038/sdata.2018.55"
resourcetype: Dataset
"""

REPOSITORY = "INT/reach_to_grasp"
TOKEN = "secret-token"
USERNAME = "INT"


@pytest.fixture
def complete_datacite() -> bytes:
    return COMPLETE_DATACITE


@pytest.fixture
def datasource() -> InMemoryDataSource:
    return InMemoryDataSource(files={REPOSITORY: COMPLETE_DATACITE})


@pytest.fixture
def authenticator() -> StaticAuthenticator:
    return StaticAuthenticator({TOKEN: USERNAME})


@pytest.fixture
def storage() -> RecordingStorage:
    return RecordingStorage()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def resolver() -> StaticResolver:
    return StaticResolver()


@pytest.fixture
def registration_config(tmp_path: Path) -> RegistrationConfig:
    return RegistrationConfig.model_validate(
        {
            "dispatcher": {"max_workers": 2, "max_queue_size": 10, "poll_interval_seconds": 0.05},
            "storage": {"target": str(tmp_path / "data"), "work_dir": str(tmp_path / "work")},
        }
    )


@pytest.fixture
def make_service(
    registration_config: RegistrationConfig,
    datasource: InMemoryDataSource,
    authenticator: StaticAuthenticator,
    storage: RecordingStorage,
    notifier: RecordingNotifier,
    resolver: StaticResolver,
) -> Iterator[Callable[..., RegistrationService]]:
    """Build a service over in-memory collaborators; stops it after the test."""

    built: list[RegistrationService] = []

    def _make(
        archiver: Optional[FakeArchiver] = None,
        identity: Optional[IdentityDeriver] = None,
        config: Optional[RegistrationConfig] = None,
    ) -> RegistrationService:
        service = build_service(
            config or registration_config,
            datasource=datasource,
            archiver=archiver or FakeArchiver(size=4096),
            storage=storage,
            resolver=resolver,
            authenticator=authenticator,
            notifier=notifier,
            identity=identity,
        )
        built.append(service)
        return service

    yield _make
    for service in built:
        service.stop(wait=True)
