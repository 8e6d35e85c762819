"""Structured logging helpers shared across registration components."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO

__all__ = ["JSONFormatter", "setup_logging", "log_event", "mask_sensitive_data", "ROOT_LOGGER"]

ROOT_LOGGER = "DatasetDOI"

_SENSITIVE_KEYS = ("token", "password", "authorization", "secret")


def mask_sensitive_data(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``payload`` with credential-like values redacted."""

    masked: Dict[str, Any] = {}
    for key, value in payload.items():
        if any(marker in key.lower() for marker in _SENSITIVE_KEYS):
            masked[key] = "***masked***" if value else value
        elif isinstance(value, dict):
            masked[key] = mask_sensitive_data(value)
        else:
            masked[key] = value
    return masked


class JSONFormatter(logging.Formatter):
    """Formatter emitting one masked JSON object per log record."""

    def format(self, record: logging.LogRecord) -> str:
        now = datetime.now(timezone.utc)
        payload: Dict[str, Any] = {
            "timestamp": now.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "job": getattr(record, "job", None),
            "stage": getattr(record, "stage", None),
        }
        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, dict):
            payload.update(extra_fields)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(mask_sensitive_data(payload), default=str)


def setup_logging(
    *,
    level: str = "INFO",
    json_output: bool = False,
    stream: Optional[TextIO] = None,
    propagate: bool = False,
) -> logging.Logger:
    """Configure the ``DatasetDOI`` logger hierarchy.

    Handlers installed by an earlier call are replaced, so calling this twice
    (for instance from tests and then from the CLI) never duplicates output.
    """

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        if getattr(handler, "_doi_managed", False):
            logger.removeHandler(handler)
            if isinstance(handler, logging.StreamHandler):
                if getattr(handler, "stream", None) in (sys.stdout, sys.stderr):
                    continue
            handler.close()

    handler = logging.StreamHandler(stream or sys.stderr)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    handler._doi_managed = True  # type: ignore[attr-defined]
    logger.addHandler(handler)

    logger.propagate = propagate
    return logger


def log_event(
    logger: logging.Logger,
    message: str,
    *,
    level: int = logging.INFO,
    job: Optional[str] = None,
    stage: Optional[str] = None,
    **fields: Any,
) -> None:
    """Log ``message`` with job/stage context and structured ``fields``."""

    logger.log(
        level,
        message,
        extra={"job": job, "stage": stage, "extra_fields": fields},
    )
