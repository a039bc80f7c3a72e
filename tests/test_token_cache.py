"""Tests for the tenant access token cache and credential exchange."""

import asyncio
import json

import httpx
import pytest

from bitable_ledger.errors import ConfigurationError, MalformedUpstreamResponse, UpstreamAuthError
from bitable_ledger.utils.token_cache import TokenCache, exchange_tenant_token, parse_envelope


class Clock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


def counting_fetcher(ttl=7200):
    calls = []

    async def fetch():
        calls.append(1)
        await asyncio.sleep(0)
        return f"t-{len(calls)}", ttl

    return fetch, calls


def test_cached_token_is_reused():
    """A valid token is served without another exchange."""
    fetch, calls = counting_fetcher()
    cache = TokenCache(fetch, 300, clock=Clock())

    async def run():
        return await cache.get(), await cache.get()

    assert asyncio.run(run()) == ("t-1", "t-1")
    assert len(calls) == 1


def test_expiry_applies_safety_margin():
    """Expiry is now + ttl - margin; the token is refetched from that instant."""
    clock = Clock(1000.0)
    fetch, calls = counting_fetcher(ttl=7200)
    cache = TokenCache(fetch, 300, clock=clock)

    asyncio.run(cache.get())

    clock.now = 1000.0 + 7200 - 300 - 1
    assert asyncio.run(cache.get()) == "t-1"

    clock.now = 1000.0 + 7200 - 300
    assert asyncio.run(cache.get()) == "t-2"
    assert len(calls) == 2


def test_concurrent_misses_share_one_exchange():
    fetch, calls = counting_fetcher()

    async def run():
        cache = TokenCache(fetch, 60, clock=Clock())
        return await asyncio.gather(*(cache.get() for _ in range(5)))

    assert asyncio.run(run()) == ["t-1"] * 5
    assert len(calls) == 1


def test_failed_exchange_is_not_cached():
    attempts = []

    async def flaky():
        attempts.append(1)
        if len(attempts) == 1:
            raise UpstreamAuthError("invalid app_secret")
        return "t-ok", 7200

    cache = TokenCache(flaky, 60, clock=Clock())

    with pytest.raises(UpstreamAuthError):
        asyncio.run(cache.get())
    assert asyncio.run(cache.get()) == "t-ok"
    assert len(attempts) == 2


def test_invalidate_forces_refetch():
    fetch, calls = counting_fetcher()
    cache = TokenCache(fetch, 60, clock=Clock())

    asyncio.run(cache.get())
    cache.invalidate()
    assert asyncio.run(cache.get()) == "t-2"
    assert len(calls) == 2


# =============================================================================
# exchange_tenant_token
# =============================================================================

def _token_http(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_exchange_requires_credentials():
    """Missing secrets fail before any network call."""
    seen = []
    http = _token_http(lambda request: seen.append(request) or httpx.Response(200, json={}))

    with pytest.raises(ConfigurationError):
        asyncio.run(exchange_tenant_token(http, "https://open.feishu.cn/token", None, "secret"))
    with pytest.raises(ConfigurationError):
        asyncio.run(exchange_tenant_token(http, "https://open.feishu.cn/token", "cli_a", ""))
    assert seen == []


def test_exchange_returns_token_and_ttl():
    def handler(request):
        assert request.method == "POST"
        assert json.loads(request.content) == {"app_id": "cli_a", "app_secret": "s"}
        return httpx.Response(200, json={"code": 0, "tenant_access_token": "t-abc", "expire": 7140})

    token, ttl = asyncio.run(exchange_tenant_token(_token_http(handler), "https://x/token", "cli_a", "s"))

    assert token == "t-abc"
    assert ttl == 7140


def test_exchange_nonzero_code_raises_auth_error():
    http = _token_http(lambda request: httpx.Response(200, json={"code": 10003, "msg": "invalid param"}))

    with pytest.raises(UpstreamAuthError, match="invalid param"):
        asyncio.run(exchange_tenant_token(http, "https://x/token", "cli_a", "s"))


def test_exchange_nonzero_code_without_message():
    http = _token_http(lambda request: httpx.Response(200, json={"code": 1}))

    with pytest.raises(UpstreamAuthError, match="Failed to obtain access token"):
        asyncio.run(exchange_tenant_token(http, "https://x/token", "cli_a", "s"))


def test_parse_envelope_rejects_non_json():
    body = "<html>" + "x" * 500

    with pytest.raises(MalformedUpstreamResponse) as exc_info:
        parse_envelope(body)

    assert exc_info.value.raw == body[:200]


def test_parse_envelope_rejects_non_object():
    with pytest.raises(MalformedUpstreamResponse):
        parse_envelope("[1, 2]")
