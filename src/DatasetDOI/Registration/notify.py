# === NAVMAP v1 ===
# {
#   "module": "DatasetDOI.Registration.notify",
#   "purpose": "Outcome reports and the sinks that deliver them.",
#   "sections": [
#     {"id": "report", "name": "Report", "anchor": "class-report", "kind": "class"},
#     {"id": "notificationsink", "name": "NotificationSink", "anchor": "class-notificationsink", "kind": "class"},
#     {"id": "lognotifier", "name": "LogNotifier", "anchor": "class-lognotifier", "kind": "class"},
#     {"id": "mailnotifier", "name": "MailNotifier", "anchor": "class-mailnotifier", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Outcome reports for operators and callers.

A report is produced once a job's terminal state is decided. Delivering it is
fire-and-forget from the pipeline's point of view: a sink raises
:class:`~DatasetDOI.Registration.errors.NotificationError` when delivery fails
and the worker only logs it.
"""

from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass, field
from email.message import EmailMessage
from typing import List, Optional, Protocol, Sequence, Tuple, runtime_checkable

from .errors import NotificationError

__all__ = ["Report", "NotificationSink", "LogNotifier", "MailNotifier"]

LOGGER = logging.getLogger(__name__)

SUCCESS = "succeeded"
FAILURE = "failed"


@dataclass(frozen=True)
class Report:
    """Terminal outcome of one registration job."""

    outcome: str
    job_name: str
    repository: str
    requester: str = ""
    requester_email: str = ""
    identifier: str = ""
    doi: str = ""
    resolution_url: str = ""
    storage_url: str = ""
    reason: str = ""
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def success(
        cls,
        *,
        job_name: str,
        repository: str,
        identifier: str,
        doi: str,
        resolution_url: str,
        storage_url: str = "",
        requester: str = "",
        requester_email: str = "",
        warnings: Sequence[str] = (),
    ) -> "Report":
        return cls(
            outcome=SUCCESS,
            job_name=job_name,
            repository=repository,
            requester=requester,
            requester_email=requester_email,
            identifier=identifier,
            doi=doi,
            resolution_url=resolution_url,
            storage_url=storage_url,
            warnings=tuple(warnings),
        )

    @classmethod
    def failure(
        cls,
        *,
        job_name: str,
        repository: str,
        reason: str,
        requester: str = "",
        requester_email: str = "",
    ) -> "Report":
        return cls(
            outcome=FAILURE,
            job_name=job_name,
            repository=repository,
            requester=requester,
            requester_email=requester_email,
            identifier=job_name,
            reason=reason,
        )

    @property
    def succeeded(self) -> bool:
        return self.outcome == SUCCESS

    @property
    def subject(self) -> str:
        if self.succeeded:
            return f"DOI registration request: {self.repository}"
        return f"DOI registration failed: {self.repository}"

    def body(self) -> str:
        lines: List[str] = []
        if self.succeeded:
            lines.append(f"A DOI registration for {self.repository} has been prepared.")
            lines.append("")
            lines.append(f"Identifier: {self.identifier}")
            lines.append(f"DOI: {self.doi}")
            lines.append(f"Resolution URL: {self.resolution_url}")
            if self.storage_url:
                lines.append(f"Landing page: {self.storage_url}")
        else:
            lines.append(f"The DOI registration job {self.job_name} for {self.repository} failed.")
            lines.append("")
            lines.append(f"Reason: {self.reason}")
        if self.requester:
            lines.append(f"Requested by: {self.requester}")
        if self.warnings:
            lines.append("")
            lines.append("Warnings:")
            lines.extend(f"- {warning}" for warning in self.warnings)
        return "\n".join(lines) + "\n"


@runtime_checkable
class NotificationSink(Protocol):
    def notify(self, report: Report) -> None:
        """Deliver ``report``; raise NotificationError on failure."""
        ...


class LogNotifier:
    """Sink that writes reports to the service log."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or LOGGER

    def notify(self, report: Report) -> None:
        level = logging.INFO if report.succeeded else logging.ERROR
        self.logger.log(level, "%s\n%s", report.subject, report.body())


class MailNotifier:
    """Sink handing reports to an SMTP relay.

    The administrator address receives every report; the requester is copied
    when their address is known. With ``send_mail`` disabled the rendered
    message is logged instead of sent.
    """

    def __init__(
        self,
        server: str = "localhost:25",
        sender: str = "no-reply@g-node.org",
        master: str = "dev@g-node.org",
        *,
        send_mail: bool = False,
        timeout: float = 30.0,
    ) -> None:
        host, _, port = server.partition(":")
        self.host = host or "localhost"
        self.port = int(port) if port else 25
        self.sender = sender
        self.master = master
        self.send_mail = send_mail
        self.timeout = timeout

    def build_message(self, report: Report) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = self.master
        if report.requester_email:
            message["Cc"] = report.requester_email
        message["Subject"] = report.subject
        message.set_content(report.body())
        return message

    def notify(self, report: Report) -> None:
        message = self.build_message(report)
        if not self.send_mail:
            LOGGER.info("Mail sending disabled; message follows\n%s", message.as_string())
            return
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise NotificationError(
                f"could not send report for {report.job_name} via {self.host}:{self.port}: {exc}"
            ) from exc
        LOGGER.info("Sent %s report for %s", report.outcome, report.job_name)
