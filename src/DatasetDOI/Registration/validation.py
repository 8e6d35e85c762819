# === NAVMAP v1 ===
# {
#   "module": "DatasetDOI.Registration.validation",
#   "purpose": "Parse datacite.yml and report missing or malformed registration fields",
#   "sections": [
#     {"id": "parse-registration-info", "name": "parse_registration_info", "anchor": "function-parse-registration-info", "kind": "function"},
#     {"id": "check-missing-values", "name": "check_missing_values", "anchor": "function-check-missing-values", "kind": "function"},
#     {"id": "collect-warnings", "name": "collect_warnings", "anchor": "function-collect-warnings", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Registration metadata parsing and completeness checks.

:func:`check_missing_values` is the admission gate: it runs every check and
returns the full list of deficiencies so a caller can fix their metadata in
one pass. An empty list means the metadata is publishable.

:func:`collect_warnings` reports issues that do not block registration but
that an administrator should look at before the DOI is finalised.
"""

from __future__ import annotations

import logging
from typing import List

import yaml
from pydantic import ValidationError

from .errors import MetadataParseError
from .models import RegistrationInfo

__all__ = [
    "MSG_NO_TITLE",
    "MSG_NO_AUTHORS",
    "MSG_INVALID_AUTHORS",
    "MSG_NO_DESCRIPTION",
    "MSG_NO_LICENSE",
    "MSG_INVALID_REFERENCE",
    "MIN_ABSTRACT_LENGTH",
    "parse_registration_info",
    "check_missing_values",
    "collect_warnings",
]

LOGGER = logging.getLogger(__name__)

MSG_NO_TITLE = "No title provided."
MSG_NO_AUTHORS = "No authors provided."
MSG_INVALID_AUTHORS = "Not all authors valid. Please provide at least a last name and a first name."
MSG_NO_DESCRIPTION = "No description provided."
MSG_NO_LICENSE = "No valid license provided. Please specify URL and name."
MSG_INVALID_REFERENCE = (
    "A specified Reference is not valid. Please provide the name and type of the reference."
)
MSG_BAD_ENCODING = (
    "There was an issue with the content of the DOI file (datacite.yml). "
    "This might mean that the encoding is wrong."
)

# Abstracts shorter than this are flagged for review.
MIN_ABSTRACT_LENGTH = 80


def parse_registration_info(raw: bytes | str) -> RegistrationInfo:
    """Parse the contents of a ``datacite.yml`` file.

    Args:
        raw: File contents as fetched from the repository.

    Returns:
        Parsed registration metadata (not yet checked for completeness).

    Raises:
        MetadataParseError: If the file is not valid UTF-8 YAML or does not
            describe a mapping of registration fields.
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            LOGGER.debug("Registration file is not valid UTF-8: %s", exc)
            raise MetadataParseError(MSG_BAD_ENCODING) from exc

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise MetadataParseError(f"error while reading DOI info: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise MetadataParseError(MSG_BAD_ENCODING)

    try:
        return RegistrationInfo.model_validate(data)
    except ValidationError as exc:
        details = ", ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise MetadataParseError(f"error while reading DOI info: {details}") from exc


def check_missing_values(info: RegistrationInfo) -> List[str]:
    """Return every deficiency that prevents ``info`` from being published."""

    missing: List[str] = []
    if not info.title:
        missing.append(MSG_NO_TITLE)
    if not info.authors:
        missing.append(MSG_NO_AUTHORS)
    else:
        for author in info.authors:
            if not author.is_valid:
                missing.append(MSG_INVALID_AUTHORS)
    if not info.description:
        missing.append(MSG_NO_DESCRIPTION)
    if info.license is None or not info.license.is_valid:
        missing.append(MSG_NO_LICENSE)
    for reference in info.references:
        if not reference.is_valid:
            missing.append(MSG_INVALID_REFERENCE)
    return missing


def collect_warnings(info: RegistrationInfo) -> List[str]:
    """Return non-blocking issues worth an administrator's attention."""

    warnings: List[str] = []
    for funding in info.funding:
        _, sep, award = funding.partition(",")
        if not sep or not award.strip():
            warnings.append(f"Couldn't find award number for funder {funding!r}")

    for idx, reference in enumerate(info.references):
        if reference.name:
            warnings.append(f"Reference {idx} uses old 'Name' field instead of 'Citation'")

    if len(info.description) < MIN_ABSTRACT_LENGTH:
        warnings.append(f"Abstract may be too short: {len(info.description)} characters")

    return warnings
