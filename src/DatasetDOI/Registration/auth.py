"""Caller authentication against the repository hosting service."""

from __future__ import annotations

import logging
from typing import Optional, Protocol, runtime_checkable

import httpx
from pydantic import ValidationError

from .errors import AuthenticationError
from .models import CallerIdentity

__all__ = ["Authenticator", "GinAuthenticator"]

LOGGER = logging.getLogger(__name__)


@runtime_checkable
class Authenticator(Protocol):
    def authenticate(self, username: str, token: str) -> CallerIdentity:
        """Return the caller behind ``token``.

        Raises:
            AuthenticationError: If the token is missing, invalid or belongs
                to someone other than ``username``.
        """
        ...


class GinAuthenticator:
    """Token check against the hosting service's user endpoint."""

    def __init__(
        self,
        oauth_server: str,
        *,
        client: Optional[httpx.Client] = None,
        timeout: float = 10.0,
    ) -> None:
        self.oauth_server = oauth_server.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)

    def authenticate(self, username: str, token: str) -> CallerIdentity:
        if not token:
            raise AuthenticationError("no token supplied")

        url = f"{self.oauth_server}/api/v1/user"
        try:
            response = self._client.get(url, headers={"Authorization": f"token {token}"})
        except httpx.HTTPError as exc:
            LOGGER.warning("Identity provider unreachable: %s", exc)
            raise AuthenticationError(f"identity provider unreachable: {exc}") from exc

        if response.status_code != httpx.codes.OK:
            raise AuthenticationError(f"identity provider answered {response.status_code}")

        try:
            payload = response.json()
            identity = CallerIdentity(
                username=payload.get("login") or payload.get("username") or "",
                email=payload.get("email") or "",
                full_name=payload.get("full_name") or "",
            )
        except (ValueError, AttributeError, ValidationError) as exc:
            raise AuthenticationError(f"malformed identity response: {exc}") from exc

        if not identity.username or (username and identity.username != username):
            raise AuthenticationError(f"token does not belong to {username!r}")
        return identity

    def close(self) -> None:
        self._client.close()
