"""Access token lifecycle for the supplier API."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import httpx

from catalog_sync.config import settings
from catalog_sync.connectors.gateway import parse_response
from catalog_sync.connectors.state import GatewayState
from catalog_sync.exceptions import RateLimitError, SupplierAuthError, SupplierError

log = logging.getLogger(__name__)

AUTH_ENDPOINT = "/authentication/getAccessToken"
REFRESH_ENDPOINT = "/authentication/refreshAccessToken"

# Lifetimes the supplier documents, used when a response omits expiry dates
DEFAULT_ACCESS_TOKEN_DAYS = 15
DEFAULT_REFRESH_TOKEN_DAYS = 180


def _as_aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _parse_expiry(value: Any, default: datetime) -> datetime:
    """Parse a supplier expiry timestamp, falling back to `default`."""
    if not value:
        return default
    try:
        return _as_aware(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
    except ValueError:
        log.warning(f"Unparseable token expiry '{value}', assuming {default.isoformat()}")
        return default


class TokenManager:
    """
    Keeps a valid access token in the shared GatewayState.

    Order of preference: cached token, refresh-token exchange, full
    authentication with email + API key. When full authentication is rate
    limited the last known token is returned even if stale.
    """

    def __init__(
        self,
        state: GatewayState,
        client: httpx.AsyncClient,
        email: Optional[str] = None,
        api_key: Optional[str] = None,
        refresh_buffer: Optional[timedelta] = None,
        access_token: Optional[str] = None,
        access_token_expires_at: Optional[datetime] = None,
    ):
        self.state = state
        self.client = client
        self.email = email
        self.api_key = api_key
        self.refresh_buffer = refresh_buffer or timedelta(minutes=settings.token_refresh_buffer_minutes)

        if access_token and not state.token.access_token:
            expires_at = (
                _as_aware(access_token_expires_at)
                if access_token_expires_at
                else state.now() + timedelta(hours=settings.supplier_preprovisioned_token_hours)
            )
            state.token.access_token = access_token
            state.token.access_expires_at = expires_at
            log.info(f"Using pre-provisioned supplier access token (expires {expires_at.isoformat()})")

    def _is_valid(self, token: Optional[str], expires_at: Optional[datetime], now: datetime) -> bool:
        return bool(token) and expires_at is not None and expires_at - now > self.refresh_buffer

    async def get_access_token(self, force: bool = False) -> str:
        async with self.state.refresh_lock:
            token = self.state.token
            now = self.state.now()

            if not force and self._is_valid(token.access_token, token.access_expires_at, now):
                return token.access_token

            if self._is_valid(token.refresh_token, token.refresh_expires_at, now):
                try:
                    return await self._refresh(token.refresh_token)
                except (SupplierError, httpx.HTTPError, KeyError, TypeError) as e:
                    log.warning(f"Supplier token refresh failed, falling back to full authentication: {e}")

            try:
                return await self._authenticate()
            except RateLimitError:
                if token.access_token:
                    log.warning("Supplier authentication rate limited, continuing with cached (possibly stale) token")
                    return token.access_token
                raise

    async def _post(self, endpoint: str, body: Dict[str, Any]) -> Any:
        await self.state.throttle()
        response = await self.client.post(endpoint, json=body)
        return parse_response(response)

    async def _refresh(self, refresh_token: str) -> str:
        log.info("Refreshing supplier access token")
        data = await self._post(REFRESH_ENDPOINT, {"refreshToken": refresh_token})
        return self._store(data)

    async def _authenticate(self) -> str:
        if not self.email or not self.api_key:
            raise SupplierAuthError(None, message="Supplier email and API key are not configured")

        log.info("Authenticating against supplier API")
        try:
            data = await self._post(AUTH_ENDPOINT, {"email": self.email, "apiKey": self.api_key})
        except (RateLimitError, SupplierAuthError):
            raise
        except SupplierError as e:
            raise SupplierAuthError(e.status, e.body, message=f"Supplier authentication failed: {e}") from e
        return self._store(data)

    def _store(self, data: Dict[str, Any]) -> str:
        now = self.state.now()
        token = self.state.token
        token.access_token = data["accessToken"]
        token.access_expires_at = _parse_expiry(
            data.get("accessTokenExpiryDate"), now + timedelta(days=DEFAULT_ACCESS_TOKEN_DAYS)
        )
        if data.get("refreshToken"):
            token.refresh_token = data["refreshToken"]
            token.refresh_expires_at = _parse_expiry(
                data.get("refreshTokenExpiryDate"), now + timedelta(days=DEFAULT_REFRESH_TOKEN_DAYS)
            )
        token.last_refreshed_at = now
        log.info(f"Supplier access token valid until {token.access_expires_at.isoformat()}")
        return token.access_token

    def status(self) -> Dict[str, Any]:
        """Token state without the secrets."""
        token = self.state.token
        now = self.state.now()
        remaining = None
        if token.access_expires_at is not None:
            remaining = max(0, int((token.access_expires_at - now).total_seconds()))
        return {
            "has_access_token": bool(token.access_token),
            "access_expires_at": token.access_expires_at,
            "access_seconds_remaining": remaining,
            "has_refresh_token": bool(token.refresh_token),
            "refresh_expires_at": token.refresh_expires_at,
            "last_refreshed_at": token.last_refreshed_at,
        }
