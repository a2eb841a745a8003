"""
Process-wide state shared by every caller of the supplier API.

One GatewayState instance holds the token cache, the throttle clock and the
response cache. Everything that spends supplier quota goes through it.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from pydantic import BaseModel

from catalog_sync.config import settings

log = logging.getLogger(__name__)


class TokenState(BaseModel):
    """Access/refresh token pair. Never persisted."""
    access_token: Optional[str] = None
    access_expires_at: Optional[datetime] = None
    refresh_token: Optional[str] = None
    refresh_expires_at: Optional[datetime] = None
    last_refreshed_at: Optional[datetime] = None


class CacheEntry(BaseModel):
    value: Any
    timestamp: float


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GatewayState:
    """
    Shared throttle clock, token cache and response cache.

    `clock` is a monotonic seconds source used for throttling and cache TTLs,
    `sleep` is awaited for throttle/backoff delays and `now` returns the
    tz-aware wall clock used for token expiry. All three are injectable so
    tests never wait for real.
    """

    def __init__(
        self,
        min_interval: Optional[float] = None,
        cache_ttl: Optional[float] = None,
        cache_max_entries: Optional[int] = None,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.min_interval = settings.supplier_min_interval_seconds if min_interval is None else min_interval
        self.cache_ttl = settings.supplier_cache_ttl_seconds if cache_ttl is None else cache_ttl
        self.cache_max_entries = settings.supplier_cache_max_entries if cache_max_entries is None else cache_max_entries
        self.clock = clock or time.monotonic
        self.sleep = sleep or asyncio.sleep
        self.now = now or _utcnow

        self.token = TokenState()
        self.refresh_lock = asyncio.Lock()
        self.throttle_lock = asyncio.Lock()
        self.last_call_at: Optional[float] = None
        self._cache: Dict[str, CacheEntry] = {}

    async def throttle(self) -> None:
        """Wait out the remainder of the minimum interval, then claim the slot.

        Callers queue on `throttle_lock` so concurrent jobs sharing this state
        never start two calls inside one interval.
        """
        async with self.throttle_lock:
            if self.last_call_at is not None:
                remaining = self.min_interval - (self.clock() - self.last_call_at)
                if remaining > 0:
                    log.debug(f"Throttling supplier call for {remaining:.2f}s")
                    await self.sleep(remaining)
            self.last_call_at = self.clock()

    @staticmethod
    def cache_key(method: str, endpoint: str, params: Optional[Dict[str, Any]] = None) -> str:
        query = "&".join(f"{k}={v}" for k, v in sorted((params or {}).items()))
        return f"{method.upper()} {endpoint}?{query}"

    def cache_get(self, key: str) -> Optional[Any]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        if self.clock() - entry.timestamp > self.cache_ttl:
            del self._cache[key]
            return None
        return entry.value

    def cache_set(self, key: str, value: Any) -> None:
        if key in self._cache:
            del self._cache[key]
        elif len(self._cache) >= self.cache_max_entries:
            # dicts keep insertion order, so the first key is the oldest insert
            oldest = next(iter(self._cache))
            del self._cache[oldest]
        self._cache[key] = CacheEntry(value=value, timestamp=self.clock())

    def cache_clear(self) -> None:
        self._cache.clear()

    @property
    def cache_size(self) -> int:
        return len(self._cache)
