"""Battle.net API gateway with rate limiting and single-retry throttling.

This module provides an async HTTP client for the Battle.net profile API with:
- Client-credentials auth via CredentialManager
- Every request scheduled through the shared RateLimiter
- Exactly one retry after a 429, at the next whole-second boundary
- Character 404s resolved to None instead of raised
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

import httpx

from guild_sync.config.settings import BattleNetConfig, LimiterConfig
from guild_sync.sync.credentials import CredentialManager, Token
from guild_sync.sync.errors import NotFoundError, ThrottledError, UpstreamError
from guild_sync.sync.limiter import RateLimiter
from guild_sync.sync.logger import logger
from guild_sync.utils.time import delay_until_next_second

T = TypeVar("T")

EMPTY_PROFESSIONS: dict[str, list[Any]] = {"primaries": [], "secondaries": []}


@dataclass
class BattleNetClient:
    """Async Battle.net API gateway.

    Use as an async context manager; the HTTP client, credential manager and
    limiter are created on entry unless injected.
    """

    config: BattleNetConfig
    limiter_config: LimiterConfig = field(default_factory=LimiterConfig)
    limiter: RateLimiter | None = None
    credentials: CredentialManager | None = None
    refresh_margin: float = 60.0

    def __post_init__(self) -> None:
        self._client: httpx.AsyncClient | None = None
        if self.limiter is None:
            self.limiter = RateLimiter.from_config(self.limiter_config)
        self.retry_buffer = self.limiter_config.retry_buffer_ms / 1000.0

    async def __aenter__(self) -> "BattleNetClient":
        self._client = httpx.AsyncClient(timeout=self.config.timeout)
        if self.credentials is None:
            auth_base = self.config.regions[self.config.default_region].auth_base_url
            self.credentials = CredentialManager(
                http_client=self._client,
                token_url=f"{auth_base}/token",
                client_id=self.config.client_id,
                client_secret=self.config.client_secret,
                refresh_margin=self.refresh_margin,
            )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # -------------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------------

    def validate_region(self, region: str | None) -> str:
        """Return a configured region, falling back to the default region."""
        normalized = (region or "").lower()
        if normalized in self.config.regions:
            return normalized
        logger.warning(
            f"Invalid region {region!r}, falling back to {self.config.default_region}"
        )
        return self.config.default_region

    def _api_url(self, region: str, path: str) -> str:
        return f"{self.config.regions[region].api_base_url}{path}"

    def _params(self, region: str) -> dict[str, str]:
        return {"namespace": f"profile-{region}", "locale": self.config.locale}

    async def _get(
        self, url: str, token: Token, params: dict[str, str] | None = None
    ) -> Any:
        """Perform one GET and map the response status to a result or error."""
        if not self._client:
            raise RuntimeError("Client not initialized. Use async with.")

        try:
            response = await self._client.get(
                url,
                params=params,
                headers={"Authorization": f"Bearer {token.access_token}"},
            )
        except httpx.TimeoutException as e:
            raise UpstreamError(0, f"timeout: {e}") from e
        except httpx.TransportError as e:
            raise UpstreamError(0, str(e)) from e

        if response.status_code == 200:
            return response.json()
        if response.status_code == 404:
            raise NotFoundError(url)
        if response.status_code == 429:
            raise ThrottledError(response.text or "Too Many Requests")
        raise UpstreamError(response.status_code, response.text)

    async def _schedule_with_retry(
        self, job_id: str, fn: Callable[[], Awaitable[T]]
    ) -> T:
        """Schedule a job, retrying exactly once after a throttling response.

        The retry waits until the next whole-second boundary plus a small
        buffer. A second 429 surfaces as UpstreamError(429); any other error
        from either attempt propagates as raised.
        """
        assert self.limiter is not None
        try:
            return await self.limiter.schedule(job_id, fn)
        except ThrottledError:
            wait = delay_until_next_second(time.time(), self.retry_buffer)
            logger.rate_limit(job_id, wait)
            await asyncio.sleep(wait)

        try:
            return await self.limiter.schedule(f"{job_id}-retry", fn)
        except ThrottledError as e:
            raise UpstreamError(
                e.status_code, f"still throttled after retry: {e.message}"
            ) from e

    async def _fetch(self, job_id: str, region: str, path: str) -> Any:
        """Fetch a profile-namespace resource for a validated region."""
        assert self.credentials is not None
        token = await self.credentials.ensure_token()
        url = self._api_url(region, path)
        params = self._params(region)
        return await self._schedule_with_retry(
            job_id, lambda: self._get(url, token, params)
        )

    # -------------------------------------------------------------------------
    # Guild endpoints
    # -------------------------------------------------------------------------

    async def fetch_guild_metadata(
        self, region: str, realm_slug: str, guild_name_slug: str
    ) -> dict[str, Any]:
        """Fetch guild metadata. Raises UpstreamError (incl. 404) on failure."""
        region = self.validate_region(region)
        return await self._fetch(
            f"guild-{region}-{realm_slug}-{guild_name_slug}",
            region,
            f"/data/wow/guild/{realm_slug}/{guild_name_slug}",
        )

    async def fetch_guild_roster(
        self, region: str, realm_slug: str, guild_name_slug: str
    ) -> dict[str, Any]:
        """Fetch the guild roster. Raises UpstreamError (incl. 404) on failure."""
        region = self.validate_region(region)
        return await self._fetch(
            f"roster-{region}-{realm_slug}-{guild_name_slug}",
            region,
            f"/data/wow/guild/{realm_slug}/{guild_name_slug}/roster",
        )

    # -------------------------------------------------------------------------
    # Character endpoints
    # -------------------------------------------------------------------------

    async def fetch_enhanced_character(
        self, region: str, realm_slug: str, character_name: str
    ) -> dict[str, Any] | None:
        """Fetch a character profile merged with its sub-documents.

        Args:
            region: Region key (invalid values fall back to the default)
            realm_slug: Realm slug
            character_name: Lower-cased character name

        Returns:
            The profile plus "equipment", "itemLevel", "mythicKeystone"
            (None when absent) and "professions", or None when the
            character does not exist upstream.
        """
        region = self.validate_region(region)
        name = character_name.lower()
        job_id = f"char-{region}-{realm_slug}-{name}"
        base_path = f"/profile/wow/character/{realm_slug}/{name}"

        try:
            profile = await self._fetch(job_id, region, base_path)
        except NotFoundError:
            logger.debug(f"Character {name}-{realm_slug} ({region}) not found")
            return None

        equipment = await self._fetch(
            f"{job_id}-equipment", region, f"{base_path}/equipment"
        )

        try:
            mythic_keystone = await self._fetch(
                f"{job_id}-mythic", region, f"{base_path}/mythic-keystone-profile"
            )
        except NotFoundError:
            mythic_keystone = None

        try:
            professions = await self._fetch(
                f"{job_id}-professions", region, f"{base_path}/professions"
            )
        except NotFoundError:
            professions = {k: list(v) for k, v in EMPTY_PROFESSIONS.items()}

        return {
            **profile,
            "equipment": equipment,
            "itemLevel": profile.get("equipped_item_level"),
            "mythicKeystone": mythic_keystone,
            "professions": professions,
        }

    async def fetch_collections_index(
        self, region: str, realm_slug: str, character_name: str
    ) -> dict[str, Any]:
        """Fetch a character's collections index. Raises NotFoundError on 404."""
        region = self.validate_region(region)
        name = character_name.lower()
        return await self._fetch(
            f"char-{region}-{realm_slug}-{name}-collections",
            region,
            f"/profile/wow/character/{realm_slug}/{name}/collections",
        )

    async def fetch_href(self, href: str, job_id: str) -> Any:
        """Follow an API-provided link (its query already carries the namespace)."""
        assert self.credentials is not None
        token = await self.credentials.ensure_token()
        params = {"locale": self.config.locale}
        return await self._schedule_with_retry(
            job_id, lambda: self._get(href, token, params)
        )
