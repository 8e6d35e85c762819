"""Wire configuration and collaborators into a running registration service.

Real collaborators are built from :class:`RegistrationConfig` unless a
replacement is passed in, which is how tests run the full pipeline against
in-memory doubles.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .archiver import Archiver, GitArchiver
from .auth import Authenticator, GinAuthenticator
from .config import RegistrationConfig
from .datasource import DataSource, GinDataSource
from .emitter import RegistrationMetadataEmitter
from .identity import IdentityDeriver
from .intake import IntakeHandler
from .notify import MailNotifier, NotificationSink
from .orchestrator.queue import IntakeQueue
from .orchestrator.scheduler import Dispatcher, DispatcherSettings
from .orchestrator.workers import Worker
from .resolution import DOIResolver, Resolver
from .storage import LocalStorage, Storage

__all__ = ["RegistrationService", "build_service"]

LOGGER = logging.getLogger(__name__)


@dataclass
class RegistrationService:
    """Everything needed to admit and process registrations."""

    config: RegistrationConfig
    identity: IdentityDeriver
    queue: IntakeQueue
    intake: IntakeHandler
    dispatcher: Dispatcher

    def start(self) -> None:
        self.dispatcher.start()

    def stop(self, wait: bool = True) -> None:
        self.dispatcher.stop(wait=wait)

    def stats(self) -> dict:
        return {"queue": self.queue.stats(), "workers": self.dispatcher.stats()}


def build_service(
    config: RegistrationConfig,
    *,
    datasource: Optional[DataSource] = None,
    archiver: Optional[Archiver] = None,
    storage: Optional[Storage] = None,
    resolver: Optional[Resolver] = None,
    authenticator: Optional[Authenticator] = None,
    notifier: Optional[NotificationSink] = None,
    identity: Optional[IdentityDeriver] = None,
) -> RegistrationService:
    """Build a :class:`RegistrationService`; the dispatcher is not started."""

    ds_cfg = config.datasource
    if datasource is None:
        datasource = GinDataSource(
            ds_cfg.web_url,
            ds_cfg.git_url,
            branch=ds_cfg.branch,
            metadata_file=ds_cfg.metadata_file,
            timeout=ds_cfg.request_timeout_seconds,
            max_attempts=ds_cfg.max_attempts,
        )
    work_dir = Path(config.storage.work_dir)
    if archiver is None:
        archiver = GitArchiver(
            datasource,
            work_dir=work_dir / "clones",
            timeout=config.dispatcher.archive_timeout_seconds,
        )
    if storage is None:
        storage = LocalStorage(Path(config.storage.target), config.storage.store_url)
    if resolver is None:
        resolver = DOIResolver(
            config.doi.resolver_url, timeout=config.doi.request_timeout_seconds
        )
    if authenticator is None:
        authenticator = GinAuthenticator(
            config.auth.oauth_server, timeout=config.auth.request_timeout_seconds
        )
    if notifier is None:
        mail = config.mail
        notifier = MailNotifier(
            mail.server,
            mail.sender,
            mail.master,
            send_mail=mail.send_mail,
            timeout=mail.timeout_seconds,
        )
    if identity is None:
        identity = IdentityDeriver(
            legacy=config.doi.legacy_identifiers,
            doi_prefix=config.doi.prefix,
            suffix_length=config.doi.suffix_length,
        )

    dispatch_cfg = config.dispatcher
    queue = IntakeQueue(max_size=dispatch_cfg.max_queue_size)
    emitter = RegistrationMetadataEmitter(identity)
    workers = [
        Worker(
            worker_id=f"worker-{idx}",
            archiver=archiver,
            emitter=emitter,
            storage=storage,
            notifier=notifier,
            work_dir=work_dir / "archives",
            archive_timeout=dispatch_cfg.archive_timeout_seconds,
        )
        for idx in range(dispatch_cfg.max_workers)
    ]
    dispatcher = Dispatcher(
        DispatcherSettings(
            max_workers=dispatch_cfg.max_workers,
            poll_interval_seconds=dispatch_cfg.poll_interval_seconds,
        ),
        queue,
        workers,
    )
    intake = IntakeHandler(authenticator, datasource, identity, resolver, queue)
    LOGGER.info(
        "Registration service built (workers=%d, queue=%d, config=%s)",
        dispatch_cfg.max_workers,
        dispatch_cfg.max_queue_size,
        config.config_hash()[:8],
    )
    return RegistrationService(
        config=config,
        identity=identity,
        queue=queue,
        intake=intake,
        dispatcher=dispatcher,
    )
