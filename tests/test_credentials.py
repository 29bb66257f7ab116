"""Unit tests for guild_sync.sync.credentials."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from guild_sync.sync.credentials import CredentialManager, Token
from guild_sync.sync.errors import AuthError


class FakeClock:
    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _token_response(status_code: int = 200, json_data: dict | None = None) -> MagicMock:
    resp = MagicMock(spec=httpx.Response)
    resp.status_code = status_code
    resp.text = "error"
    resp.json.return_value = (
        json_data if json_data is not None else {"access_token": "abc", "expires_in": 3600}
    )
    return resp


def _make_manager(clock: FakeClock) -> CredentialManager:
    http = AsyncMock(spec=httpx.AsyncClient)
    http.post.return_value = _token_response()
    return CredentialManager(
        http_client=http,
        token_url="https://eu.battle.net/oauth/token",
        client_id="id",
        client_secret="secret",
        clock=clock,
    )


# ---------------------------------------------------------------------------
# TestEnsureToken
# ---------------------------------------------------------------------------


class TestEnsureToken:
    """Tests for CredentialManager.ensure_token."""

    @pytest.mark.asyncio
    async def test_first_call_exchanges_credentials(self):
        clock = FakeClock()
        manager = _make_manager(clock)

        token = await manager.ensure_token()

        assert token == Token("abc", clock.now + 3600)
        manager.http_client.post.assert_awaited_once()
        kwargs = manager.http_client.post.call_args[1]
        assert kwargs["data"] == {"grant_type": "client_credentials"}
        assert kwargs["auth"] == ("id", "secret")

    @pytest.mark.asyncio
    async def test_cached_token_reused_when_more_than_60s_left(self):
        clock = FakeClock()
        manager = _make_manager(clock)
        await manager.ensure_token()

        clock.now += 3600 - 61
        await manager.ensure_token()

        assert manager.http_client.post.await_count == 1

    @pytest.mark.asyncio
    async def test_refresh_when_exactly_60s_left(self):
        clock = FakeClock()
        manager = _make_manager(clock)
        await manager.ensure_token()

        clock.now += 3600 - 60
        assert manager.needs_refresh() is True
        await manager.ensure_token()

        assert manager.http_client.post.await_count == 2

    @pytest.mark.asyncio
    async def test_rejected_exchange_clears_cache_and_raises(self):
        clock = FakeClock()
        manager = _make_manager(clock)
        await manager.ensure_token()
        clock.now += 3590
        manager.http_client.post.return_value = _token_response(401)

        with pytest.raises(AuthError):
            await manager.ensure_token()

        assert manager.cached is None

    @pytest.mark.asyncio
    async def test_transport_error_raises_auth_error(self):
        manager = _make_manager(FakeClock())
        manager.http_client.post.side_effect = httpx.ConnectError("refused")

        with pytest.raises(AuthError):
            await manager.ensure_token()

        assert manager.cached is None

    @pytest.mark.asyncio
    async def test_malformed_response_raises_auth_error(self):
        manager = _make_manager(FakeClock())
        manager.http_client.post.return_value = _token_response(json_data={"token": "x"})

        with pytest.raises(AuthError):
            await manager.ensure_token()

        assert manager.cached is None
