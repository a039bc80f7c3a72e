"""
Tenant access token cache.

One instance per process side: the proxy keeps one with a 300s safety
margin, the table client keeps its own with 60s. The fetcher performs the
actual credential exchange and returns ``(token, ttl_seconds)``.
"""
import asyncio
import json
import time
from typing import Awaitable, Callable, Dict, Optional, Tuple

import httpx

from bitable_ledger import config
from bitable_ledger.errors import ConfigurationError, MalformedUpstreamResponse, UpstreamAuthError
from bitable_ledger.utils.logger import get_logger

logger = get_logger(__name__)

TokenFetcher = Callable[[], Awaitable[Tuple[str, int]]]


class TokenCache:
    def __init__(
        self,
        fetcher: TokenFetcher,
        margin_seconds: int,
        clock: Callable[[], float] = time.time,
    ):
        self.fetcher = fetcher
        self.margin = margin_seconds
        self.clock = clock
        self._token: Optional[str] = None
        self._expires_at = 0.0
        self._lock = asyncio.Lock()

    def _valid(self) -> bool:
        return bool(self._token) and self.clock() < self._expires_at

    async def get(self) -> str:
        if self._valid():
            return self._token

        # waiters re-check after the lock so a miss costs one exchange
        async with self._lock:
            if self._valid():
                return self._token

            token, ttl = await self.fetcher()
            self._token = token
            self._expires_at = self.clock() + (ttl - self.margin)
            logger.info(f"Token refreshed, valid for {ttl - self.margin}s")
            return token

    def invalidate(self):
        self._token = None
        self._expires_at = 0.0


async def exchange_tenant_token(
    http: httpx.AsyncClient,
    url: str,
    app_id: Optional[str],
    app_secret: Optional[str],
) -> Tuple[str, int]:
    """POST app credentials to the token endpoint and unwrap the envelope."""
    if not app_id or not app_secret:
        raise ConfigurationError("FEISHU_APP_ID and FEISHU_APP_SECRET must be configured")

    response = await http.post(
        url,
        json={"app_id": app_id, "app_secret": app_secret},
        headers={"Content-Type": "application/json"},
    )
    data = parse_envelope(response.text)

    if data.get("code") != 0:
        raise UpstreamAuthError(data.get("msg") or "Failed to obtain access token")

    return data["tenant_access_token"], int(data.get("expire", 0))


def parse_envelope(text: str) -> Dict:
    """Decode a JSON envelope; non-JSON bodies are never passed off as data."""
    try:
        data = json.loads(text)
    except ValueError:
        raise MalformedUpstreamResponse(
            "Upstream returned a non-JSON response",
            raw=text[: config.RAW_EXCERPT_LIMIT],
        )
    if not isinstance(data, dict):
        raise MalformedUpstreamResponse(
            "Upstream returned an unexpected JSON payload",
            raw=text[: config.RAW_EXCERPT_LIMIT],
        )
    return data
