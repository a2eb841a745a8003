import json
from datetime import datetime, timedelta, timezone

import pytest
import httpx

from catalog_sync.connectors.state import GatewayState
from catalog_sync.connectors.token_manager import AUTH_ENDPOINT, REFRESH_ENDPOINT, TokenManager
from catalog_sync.exceptions import RateLimitError, SupplierAuthError

NOW = datetime(2025, 6, 4, 10, 0, tzinfo=timezone.utc)


def token_payload(access="access-1", refresh="refresh-1", access_days=15, refresh_days=180):
    return {
        "code": 200,
        "result": True,
        "message": "Success",
        "data": {
            "accessToken": access,
            "accessTokenExpiryDate": (NOW + timedelta(days=access_days)).isoformat(),
            "refreshToken": refresh,
            "refreshTokenExpiryDate": (NOW + timedelta(days=refresh_days)).isoformat(),
        },
    }


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


def build_manager(fake_clock, routes, **kwargs):
    """`routes` maps endpoint path -> list of responses returned in order."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        calls.append((path, json.loads(request.content or b"{}")))
        return routes[path].pop(0)

    wall = Clock(NOW)
    client = httpx.AsyncClient(base_url="https://supplier.test", transport=httpx.MockTransport(handler))
    state = GatewayState(min_interval=1.5, clock=fake_clock, sleep=fake_clock.sleep, now=wall)
    kwargs.setdefault("email", "ops@example.com")
    kwargs.setdefault("api_key", "secret-key")
    manager = TokenManager(state, client, **kwargs)
    return manager, calls, wall


class TestTokenManager:
    @pytest.mark.asyncio
    async def test_authenticates_once_then_uses_cache(self, fake_clock):
        manager, calls, _ = build_manager(fake_clock, {AUTH_ENDPOINT: [httpx.Response(200, json=token_payload())]})

        first = await manager.get_access_token()
        second = await manager.get_access_token()

        assert first == second == "access-1"
        assert calls == [(AUTH_ENDPOINT, {"email": "ops@example.com", "apiKey": "secret-key"})]
        assert manager.state.token.refresh_token == "refresh-1"

    @pytest.mark.asyncio
    async def test_refreshes_inside_buffer(self, fake_clock):
        manager, calls, wall = build_manager(fake_clock, {
            AUTH_ENDPOINT: [httpx.Response(200, json=token_payload())],
            REFRESH_ENDPOINT: [httpx.Response(200, json=token_payload(access="access-2", refresh="refresh-2"))],
        })
        await manager.get_access_token()

        # 5 minutes of validity left is inside the 10 minute buffer
        wall.now = manager.state.token.access_expires_at - timedelta(minutes=5)
        token = await manager.get_access_token()

        assert token == "access-2"
        assert calls[-1] == (REFRESH_ENDPOINT, {"refreshToken": "refresh-1"})

    @pytest.mark.asyncio
    async def test_force_skips_valid_cache(self, fake_clock):
        manager, calls, _ = build_manager(fake_clock, {
            AUTH_ENDPOINT: [httpx.Response(200, json=token_payload())],
            REFRESH_ENDPOINT: [httpx.Response(200, json=token_payload(access="access-2"))],
        })
        await manager.get_access_token()

        token = await manager.get_access_token(force=True)

        assert token == "access-2"
        assert [path for path, _ in calls] == [AUTH_ENDPOINT, REFRESH_ENDPOINT]

    @pytest.mark.asyncio
    async def test_failed_refresh_falls_back_to_authentication(self, fake_clock):
        manager, calls, wall = build_manager(fake_clock, {
            AUTH_ENDPOINT: [
                httpx.Response(200, json=token_payload()),
                httpx.Response(200, json=token_payload(access="access-3")),
            ],
            REFRESH_ENDPOINT: [httpx.Response(500, text="internal error")],
        })
        await manager.get_access_token()
        wall.now = manager.state.token.access_expires_at - timedelta(minutes=1)

        token = await manager.get_access_token()

        assert token == "access-3"
        assert [path for path, _ in calls] == [AUTH_ENDPOINT, REFRESH_ENDPOINT, AUTH_ENDPOINT]

    @pytest.mark.asyncio
    async def test_rate_limited_authentication_returns_stale_token(self, fake_clock):
        throttled = httpx.Response(429, json={"code": 1600200, "result": False, "message": "Too Many Requests"})
        manager, calls, wall = build_manager(fake_clock, {
            AUTH_ENDPOINT: [httpx.Response(200, json=token_payload(refresh_days=15)), throttled],
        })
        await manager.get_access_token()
        # Both tokens expired
        wall.now = NOW + timedelta(days=16)

        token = await manager.get_access_token()

        assert token == "access-1"

    @pytest.mark.asyncio
    async def test_rate_limited_authentication_without_cached_token_raises(self, fake_clock):
        throttled = httpx.Response(429, json={"code": 1600200, "result": False, "message": "Too Many Requests"})
        manager, _, _ = build_manager(fake_clock, {AUTH_ENDPOINT: [throttled]})

        with pytest.raises(RateLimitError):
            await manager.get_access_token()

    @pytest.mark.asyncio
    async def test_rejected_credentials_raise_auth_error(self, fake_clock):
        rejected = httpx.Response(200, json={"code": 1600001, "result": False, "message": "Invalid API key"})
        manager, _, _ = build_manager(fake_clock, {AUTH_ENDPOINT: [rejected]})

        with pytest.raises(SupplierAuthError):
            await manager.get_access_token()

    @pytest.mark.asyncio
    async def test_missing_credentials_raise_auth_error(self, fake_clock):
        manager, calls, _ = build_manager(fake_clock, {}, email=None, api_key=None)

        with pytest.raises(SupplierAuthError):
            await manager.get_access_token()
        assert calls == []

    @pytest.mark.asyncio
    async def test_preprovisioned_token_is_used_without_network(self, fake_clock):
        manager, calls, _ = build_manager(fake_clock, {}, access_token="preset-token")

        token = await manager.get_access_token()

        assert token == "preset-token"
        assert calls == []
        assert manager.state.token.access_expires_at == NOW + timedelta(hours=24)

    @pytest.mark.asyncio
    async def test_token_calls_go_through_throttle(self, fake_clock):
        manager, _, _ = build_manager(fake_clock, {AUTH_ENDPOINT: [httpx.Response(200, json=token_payload())]})
        manager.state.last_call_at = fake_clock()

        await manager.get_access_token()

        assert fake_clock.sleeps == [1.5]

    @pytest.mark.asyncio
    async def test_status_never_exposes_tokens(self, fake_clock):
        manager, _, _ = build_manager(fake_clock, {AUTH_ENDPOINT: [httpx.Response(200, json=token_payload())]})
        await manager.get_access_token()

        status = manager.status()

        assert status["has_access_token"] is True
        assert status["has_refresh_token"] is True
        assert status["access_seconds_remaining"] == 15 * 24 * 3600
        assert "access-1" not in str(status)
        assert "refresh-1" not in str(status)
