"""Deterministic identifiers for repositories.

The identifier of a repository is the key used for job names, storage
locations and the public DOI. It must never change for a given repository, so
it is derived purely from the repository URI:

    IdentityDeriver().derive("owner/dataset")  # md5 hex of the URI

Repositories registered before this scheme existed keep their historical
identifiers through an override table passed in at construction.
"""

from __future__ import annotations

import hashlib
from types import MappingProxyType
from typing import Mapping, Optional

__all__ = ["IdentityDeriver", "LEGACY_IDENTIFIERS", "DEFAULT_DOI_PREFIX"]

DEFAULT_DOI_PREFIX = "10.12751/g-node."

LEGACY_IDENTIFIERS: Mapping[str, str] = MappingProxyType(
    {
        "INT/multielectrode_grasp": "f83565d148510fede8a277f660e1a419",
        "ajkumaraswamy/HB-PAC_disinhibitory_network": "1090f803258557299d287c4d44a541b2",
        "steffi/Kleineidam_et_al_2017": "f53069de4c4921a3cfa8f17d55ef98bb",
        "Churan/Morris_et_al_Frontiers_2016": "97bc1456d3f4bca2d945357b3ec92029",
        "fabee/efish_locking": "6953bbf0087ba444b2d549b759de4a06",
    }
)


class IdentityDeriver:
    """Map repository URIs to stable identifiers and DOIs.

    Attributes:
        legacy: Read-only URI -> identifier overrides (exact match).
        doi_prefix: Registrant prefix prepended to the DOI suffix.
        suffix_length: Number of identifier characters used as DOI suffix.
    """

    def __init__(
        self,
        legacy: Optional[Mapping[str, str]] = None,
        doi_prefix: str = DEFAULT_DOI_PREFIX,
        suffix_length: int = 6,
    ) -> None:
        self.legacy: Mapping[str, str] = MappingProxyType(
            dict(LEGACY_IDENTIFIERS if legacy is None else legacy)
        )
        self.doi_prefix = doi_prefix
        self.suffix_length = suffix_length

    def derive(self, uri: str) -> str:
        """Return the identifier for ``uri``. Total and pure."""

        legacy = self.legacy.get(uri)
        if legacy is not None:
            return legacy
        return hashlib.md5(uri.encode("utf-8"), usedforsecurity=False).hexdigest()

    def doi(self, identifier: str) -> str:
        """Return the public DOI for ``identifier``."""

        return f"{self.doi_prefix}{identifier[: self.suffix_length]}"
