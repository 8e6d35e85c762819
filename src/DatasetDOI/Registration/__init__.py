"""Public API for the dataset DOI registration service.

Requests are admitted synchronously by :class:`IntakeHandler` and processed in
the background by a fixed pool of workers (archive, emit record, store,
notify). :func:`build_service` wires everything from a
:class:`RegistrationConfig`.
"""

from __future__ import annotations

import importlib
import sys
from typing import Any

__version__ = "0.1.0"

_ATTRIBUTE_EXPORTS: dict[str, tuple[str, str]] = {
    "RegistrationConfig": (".config", "RegistrationConfig"),
    "load_config": (".config", "load_config"),
    "IdentityDeriver": (".identity", "IdentityDeriver"),
    "RegistrationMetadataEmitter": (".emitter", "RegistrationMetadataEmitter"),
    "GitArchiver": (".archiver", "GitArchiver"),
    "IntakeHandler": (".intake", "IntakeHandler"),
    "Accepted": (".intake", "Accepted"),
    "Rejected": (".intake", "Rejected"),
    "AlreadyRegistered": (".intake", "AlreadyRegistered"),
    "RegistrationRecord": (".models", "RegistrationRecord"),
    "RegistrationInfo": (".models", "RegistrationInfo"),
    "RegistrationRequest": (".models", "RegistrationRequest"),
    "RegistrationService": (".service", "RegistrationService"),
    "build_service": (".service", "build_service"),
    "check_missing_values": (".validation", "check_missing_values"),
    "parse_registration_info": (".validation", "parse_registration_info"),
}

__all__ = sorted({*_ATTRIBUTE_EXPORTS, "__version__"})


def __getattr__(name: str) -> Any:  # pragma: no cover - exercised via tests
    if name in _ATTRIBUTE_EXPORTS:
        module_path, attr_name = _ATTRIBUTE_EXPORTS[name]
        module = importlib.import_module(f"{__name__}{module_path}")
        value = getattr(module, attr_name)
        setattr(sys.modules[__name__], name, value)
        return value
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


def __dir__() -> list[str]:  # pragma: no cover - tooling helper
    return sorted(set(globals()) | set(__all__))
