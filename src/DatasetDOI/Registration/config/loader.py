# === NAVMAP v1 ===
# {
#   "module": "DatasetDOI.Registration.config.loader",
#   "purpose": "Build a RegistrationConfig from a deployment file, DOI_ variables and command-line values.",
#   "sections": [
#     {"id": "read-file", "name": "_read_file", "anchor": "function-read-file", "kind": "function"},
#     {"id": "assign-nested", "name": "_assign_nested", "anchor": "function-assign-nested", "kind": "function"},
#     {"id": "coerce-env-value", "name": "_coerce_env_value", "anchor": "function-coerce-env-value", "kind": "function"},
#     {"id": "merge-env-overrides", "name": "_merge_env_overrides", "anchor": "function-merge-env-overrides", "kind": "function"},
#     {"id": "merge-cli-overrides", "name": "_merge_cli_overrides", "anchor": "function-merge-cli-overrides", "kind": "function"},
#     {"id": "load-config", "name": "load_config", "anchor": "function-load-config", "kind": "function"},
#     {"id": "export-config-schema", "name": "export_config_schema", "anchor": "function-export-config-schema", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Where the registration service reads its settings from.

A deployment usually ships one ``doi.yaml`` with the DataCite prefix, the
hosting service URLs and the storage target. Operators then adjust single
values without editing that file: ``DOI_``-prefixed environment variables are
laid over it, and whatever ``doi-registry serve`` receives on its command line
is laid over both. Sections are separated by a double underscore, so
``DOI_DISPATCHER__MAX_WORKERS=5`` sets ``dispatcher.max_workers`` and
``DOI_MAIL__SERVER=smtp.example.org:587`` sets ``mail.server``. A variable
whose value is JSON (``'{"INT/a": "f835..."}'`` for legacy identifiers) is
decoded before validation.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Callable

import yaml

from .models import RegistrationConfig

__all__ = ["load_config", "export_config_schema", "DEFAULT_ENV_PREFIX"]

_LOGGER = logging.getLogger(__name__)

DEFAULT_ENV_PREFIX = "DOI_"


def _parse_yaml(text: str) -> Any:
    return yaml.safe_load(text) or {}


_PARSERS: dict[str, tuple[Callable[[str], Any], type[Exception]]] = {
    ".yaml": (_parse_yaml, yaml.YAMLError),
    ".yml": (_parse_yaml, yaml.YAMLError),
    ".json": (json.loads, json.JSONDecodeError),
}


def _read_file(path: str) -> dict[str, Any]:
    """Return the settings mapping stored in the deployment file ``path``.

    Raises:
        ValueError: The file does not exist, cannot be read, has a suffix other
            than ``.yaml``/``.yml``/``.json``, or does not hold a mapping.
    """
    source = Path(path)
    if not source.exists():
        raise ValueError(f"Config file not found: {path}")
    parser = _PARSERS.get(source.suffix.lower())
    if parser is None:
        raise ValueError(f"Unsupported file format: {source.suffix}. Use .yaml or .json")

    try:
        text = source.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Cannot read config file {path}: {exc}") from exc

    parse, syntax_error = parser
    try:
        settings = parse(text)
    except syntax_error as exc:
        raise ValueError(f"Config file {path} is not valid {source.suffix[1:].upper()}: {exc}") from exc

    if not isinstance(settings, dict):
        raise ValueError(f"Config file {path} must contain a mapping at top level")
    return settings


def _assign_nested(settings: dict[str, Any], dotted_key: str, value: Any) -> None:
    """Set ``settings["mail"]["server"]`` for ``"mail.server"``, creating sections."""
    *sections, leaf = dotted_key.split(".")
    section = settings
    for name in sections:
        if not isinstance(section.get(name), dict):
            section[name] = {}
        section = section[name]
    section[leaf] = value


def _coerce_env_value(value: str) -> Any:
    # JSON covers numbers, lists and mappings; "True"/"FALSE" are accepted too.
    try:
        return json.loads(value)
    except ValueError:
        pass
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    return value


def _merge_env_overrides(
    settings: dict[str, Any], env_prefix: str = DEFAULT_ENV_PREFIX
) -> dict[str, Any]:
    """Apply every ``<prefix>SECTION__FIELD`` variable to ``settings``."""
    for name, raw in os.environ.items():
        if not name.startswith(env_prefix) or name == env_prefix:
            continue
        dotted_key = name[len(env_prefix) :].lower().replace("__", ".")
        _assign_nested(settings, dotted_key, _coerce_env_value(raw))
        _LOGGER.debug("Environment override: %s -> %s", name, dotted_key)
    return settings


def _merge_cli_overrides(
    settings: dict[str, Any], cli_overrides: Mapping[str, Any] | None
) -> dict[str, Any]:
    """Lay command-line values over ``settings``, section by section."""
    for key, value in (cli_overrides or {}).items():
        current = settings.get(key)
        if isinstance(value, Mapping) and isinstance(current, dict):
            settings[key] = _merge_cli_overrides(current, value)
        else:
            settings[key] = dict(value) if isinstance(value, Mapping) else value
        _LOGGER.debug("CLI override: %s = %r", key, value)
    return settings


def load_config(
    path: str | None = None,
    env_prefix: str = DEFAULT_ENV_PREFIX,
    cli_overrides: Mapping[str, Any] | None = None,
) -> RegistrationConfig:
    """Assemble and validate the service configuration.

    Built-in defaults apply first, then ``path`` (when given), then the
    environment, then ``cli_overrides``.

    Raises:
        ValueError: The file is unusable or the merged values do not validate
            (for example a mail server whose port is not a number).
    """
    settings: dict[str, Any] = {}
    if path:
        settings = _read_file(path)
        _LOGGER.info("Loaded config from %s", path)

    _merge_env_overrides(settings, env_prefix)
    _merge_cli_overrides(settings, cli_overrides)

    try:
        config = RegistrationConfig.model_validate(settings)
    except ValueError as exc:
        _LOGGER.error("Configuration validation failed: %s", exc)
        raise
    _LOGGER.debug("Configuration validated (hash %s)", config.config_hash()[:8])
    return config


def export_config_schema() -> dict[str, Any]:
    """JSON Schema of the configuration, as printed by ``show-config --schema``."""
    return RegistrationConfig.model_json_schema()
