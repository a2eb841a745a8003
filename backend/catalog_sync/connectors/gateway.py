"""Rate-limited request gateway for the supplier API."""

import logging
from typing import Any, Dict, Optional

import httpx

from catalog_sync.config import settings
from catalog_sync.connectors.state import GatewayState
from catalog_sync.exceptions import RateLimitError, SupplierAuthError, SupplierError

log = logging.getLogger(__name__)

RATE_LIMIT_CODE = 1600200
RATE_LIMIT_MARKERS = ("too many requests", "qps")
ACCESS_TOKEN_HEADER = "CJ-Access-Token"


def is_rate_limited(status: int, payload: Any) -> bool:
    """True for HTTP 429, the vendor throttling code, or a throttling message."""
    if status == 429:
        return True
    if not isinstance(payload, dict):
        return False
    if payload.get("code") == RATE_LIMIT_CODE:
        return True
    message = str(payload.get("message") or "").lower()
    return any(marker in message for marker in RATE_LIMIT_MARKERS)


def parse_response(response: httpx.Response) -> Any:
    """
    Unwrap the supplier envelope `{code, result, message, data}`.

    Returns `data` on success. Raises RateLimitError for throttling signals,
    SupplierAuthError for 401/403 and SupplierError for anything else.
    """
    status = response.status_code
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if is_rate_limited(status, payload):
        raise RateLimitError(status, payload, message=f"Supplier rate limit hit (status={status})")

    if status >= 400:
        log.error(f"Supplier API raw response body: {response.text}")
        body = payload if payload is not None else response.text
        if status in (401, 403):
            raise SupplierAuthError(status, body, message=f"Supplier rejected credentials (status={status})")
        raise SupplierError(status, body)

    if not isinstance(payload, dict):
        log.error(f"Supplier API returned non-JSON body: {response.text[:500]}")
        raise SupplierError(status, response.text, message="Supplier returned a non-JSON response")

    if not payload.get("result"):
        message = payload.get("message") or "Unknown supplier error"
        raise SupplierError(status, payload, message=f"Supplier API error {payload.get('code')}: {message}")

    return payload.get("data")


class SupplierGateway:
    """
    Single entry point for data calls to the supplier.

    Every attempt waits for the shared throttle, authenticates through the
    token manager and retries throttled responses with exponential backoff.
    A rejected token triggers one forced re-authentication before giving up.
    """

    def __init__(
        self,
        state: GatewayState,
        token_manager,
        client: httpx.AsyncClient,
        max_attempts: Optional[int] = None,
        retry_base_delay: Optional[float] = None,
    ):
        self.state = state
        self.token_manager = token_manager
        self.client = client
        self.max_attempts = settings.supplier_max_attempts if max_attempts is None else max_attempts
        self.retry_base_delay = settings.supplier_retry_base_delay if retry_base_delay is None else retry_base_delay

    async def call(
        self,
        method: str,
        endpoint: str,
        query: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
        use_cache: bool = False,
    ) -> Any:
        cache_key = None
        if use_cache:
            cache_key = self.state.cache_key(method, endpoint, query)
            cached = self.state.cache_get(cache_key)
            if cached is not None:
                log.debug(f"Cache hit for {cache_key}")
                return cached

        token = await self.token_manager.get_access_token()

        attempt = 0
        reauthenticated = False
        while True:
            attempt += 1
            await self.state.throttle()
            log.debug(f"Supplier API {method} {endpoint} (attempt {attempt}/{self.max_attempts})")
            response = await self.client.request(
                method,
                endpoint,
                params=query,
                json=body,
                headers={ACCESS_TOKEN_HEADER: token},
            )
            try:
                data = parse_response(response)
            except RateLimitError:
                if attempt >= self.max_attempts:
                    log.error(f"Supplier rate limit persisted after {attempt} attempts: {method} {endpoint}")
                    raise
                delay = self.retry_base_delay * (2 ** attempt)
                log.warning(f"Supplier rate limited {method} {endpoint}, retrying in {delay:.1f}s")
                await self.state.sleep(delay)
                continue
            except SupplierAuthError:
                if reauthenticated:
                    raise
                log.warning(f"Supplier rejected access token on {method} {endpoint}, re-authenticating once")
                token = await self.token_manager.get_access_token(force=True)
                reauthenticated = True
                continue

            if cache_key is not None:
                self.state.cache_set(cache_key, data)
            return data

    async def close(self) -> None:
        await self.client.aclose()
