"""Public DOI resolution check used to detect already-registered datasets."""

from __future__ import annotations

import logging
from typing import Optional, Protocol, runtime_checkable

import httpx

__all__ = ["Resolver", "DOIResolver"]

LOGGER = logging.getLogger(__name__)


@runtime_checkable
class Resolver(Protocol):
    def exists(self, doi: str) -> bool:
        """Return True when ``doi`` is publicly resolvable."""
        ...


class DOIResolver:
    """Ask the public resolver whether a DOI is known.

    The resolver is eventually consistent: a DOI minted moments ago may not be
    indexed yet. Errors talking to the resolver are logged and reported as
    "not found" so that admission never fails because the resolver is down.
    """

    def __init__(
        self,
        resolver_url: str = "https://doi.org",
        *,
        client: Optional[httpx.Client] = None,
        timeout: float = 10.0,
    ) -> None:
        self.resolver_url = resolver_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)

    def exists(self, doi: str) -> bool:
        url = f"{self.resolver_url}/{doi}"
        try:
            response = self._client.head(url, follow_redirects=False)
        except httpx.HTTPError as exc:
            LOGGER.warning("Could not query resolver for %s: %s", doi, exc)
            return False
        found = response.is_success or response.is_redirect
        LOGGER.debug("Resolver answered %d for %s", response.status_code, doi)
        return found

    def close(self) -> None:
        self._client.close()
