"""Client-credentials token management for the Battle.net API.

The token is cached process-wide (per manager) and refreshed proactively
once its expiry is within the refresh margin. Concurrent callers racing a
refresh may each perform an exchange; the last one wins the cache.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

import httpx

from guild_sync.sync.errors import AuthError
from guild_sync.sync.logger import logger


@dataclass(frozen=True)
class Token:
    """An access token and its absolute expiry (epoch seconds)."""

    access_token: str
    expires_at: float


class CredentialManager:
    """Obtains and caches a client-credentials access token."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        token_url: str,
        client_id: str,
        client_secret: str,
        refresh_margin: float = 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.http_client = http_client
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_margin = refresh_margin
        self._clock = clock
        self._token: Token | None = None

    @property
    def cached(self) -> Token | None:
        return self._token

    def needs_refresh(self) -> bool:
        """True when there is no token or it expires within the refresh margin."""
        if self._token is None:
            return True
        return self._token.expires_at <= self._clock() + self.refresh_margin

    async def ensure_token(self) -> Token:
        """Return a usable token, exchanging credentials if needed.

        Raises:
            AuthError: If the exchange fails. The cache is cleared first.
        """
        if not self.needs_refresh():
            return self._token  # type: ignore[return-value]

        issued_at = self._clock()
        try:
            response = await self.http_client.post(
                self.token_url,
                data={"grant_type": "client_credentials"},
                auth=(self.client_id, self.client_secret),
            )
        except httpx.HTTPError as e:
            self._token = None
            raise AuthError(f"Token request failed: {e}") from e

        if response.status_code != 200:
            self._token = None
            raise AuthError(
                f"Token request rejected with HTTP {response.status_code}: "
                f"{response.text}"
            )

        try:
            data = response.json()
            token = Token(
                access_token=data["access_token"],
                expires_at=issued_at + float(data["expires_in"]),
            )
        except (ValueError, KeyError, TypeError) as e:
            self._token = None
            raise AuthError(f"Malformed token response: {e}") from e

        self._token = token
        logger.debug(f"Obtained API token valid for {data['expires_in']}s")
        return token
