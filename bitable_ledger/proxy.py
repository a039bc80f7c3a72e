"""
Credential proxy for the Feishu Open API.

Browsers cannot call open.feishu.cn directly (CORS), and the app
credentials must never leave the server. The proxy strips the route
prefix, resolves the upstream URL, attaches a tenant access token unless
the caller brought its own, and relays status + JSON back untouched.
"""
import json
from typing import Any, Callable, Dict, Optional, Tuple
from urllib.parse import parse_qs

import httpx

from bitable_ledger import config
from bitable_ledger.errors import ConfigurationError, MalformedUpstreamResponse, UpstreamAuthError
from bitable_ledger.utils.logger import get_logger, log_error, log_request
from bitable_ledger.utils.token_cache import TokenCache, exchange_tenant_token

logger = get_logger(__name__)

ProxyResult = Tuple[int, Optional[Dict[str, Any]]]


def error_envelope(msg: str, **extra) -> Dict[str, Any]:
    return {"code": -1, "msg": msg, **extra}


def extract_upstream_path(raw_path: str, prefix: str = config.ROUTE_PREFIX) -> str:
    """
    Strip the routing prefix from an incoming request target.

    "/api/feishu/open-apis/x?y=1" -> "/open-apis/x?y=1". When nothing is
    left, the ``path`` query parameter is used instead. Returns "" when no
    upstream path can be determined or the result is not an absolute path.
    """
    path, _, query = raw_path.partition("?")
    if path == prefix or path.startswith(prefix + "/"):
        path = path[len(prefix):]

    if not path:
        path = parse_qs(query, keep_blank_values=True).get("path", [""])[0]
        return path if path.startswith("/") else ""

    return f"{path}?{query}" if query else path


def _header(headers: Optional[Dict[str, str]], name: str) -> Optional[str]:
    for key, value in (headers or {}).items():
        if key.lower() == name:
            return value
    return None


class CredentialProxy:
    def __init__(
        self,
        http: httpx.AsyncClient,
        token_cache: Optional[TokenCache] = None,
        origin: str = config.UPSTREAM_ORIGIN,
        prefix: str = config.ROUTE_PREFIX,
        sheet_token: Callable[[], Optional[str]] = config.sheet_token,
    ):
        self.http = http
        self.origin = origin.rstrip("/")
        self.prefix = prefix
        self.sheet_token = sheet_token
        self.token_cache = token_cache or TokenCache(self._fetch_token, config.PROXY_TOKEN_MARGIN)

    async def _fetch_token(self) -> Tuple[str, int]:
        app_id, app_secret = config.feishu_credentials()
        return await exchange_tenant_token(
            self.http, self.origin + config.TOKEN_PATH, app_id, app_secret
        )

    def build_url(self, upstream_path: str) -> Tuple[str, Optional[str]]:
        """Returns (upstream url, secret to redact from logs)."""
        secret = self.sheet_token()
        if config.SHEET_TOKEN_PLACEHOLDER in upstream_path:
            if not secret:
                raise ConfigurationError("FEISHU_SHEET_TOKEN must be configured")
            upstream_path = upstream_path.replace(config.SHEET_TOKEN_PLACEHOLDER, secret)
        return self.origin + upstream_path, secret

    async def _auth_header(self, upstream_path: str, headers: Optional[Dict[str, str]]) -> Optional[str]:
        supplied = _header(headers, "authorization")
        if supplied:
            return supplied
        if upstream_path.startswith(config.AUTH_PATH_PREFIX):
            return None
        token = await self.token_cache.get()
        return f"Bearer {token}"

    async def handle(
        self,
        method: str,
        path: str,
        headers: Optional[Dict[str, str]] = None,
        body: Any = None,
    ) -> ProxyResult:
        method = method.upper()
        if method == "OPTIONS":
            return 200, None

        upstream_path = extract_upstream_path(path, self.prefix)
        if not upstream_path.startswith("/"):
            return 400, error_envelope("Missing request path")

        try:
            url, secret = self.build_url(upstream_path)
            if httpx.URL(url).host != httpx.URL(self.origin).host:
                logger.warning(f"Rejected upstream path outside {self.origin}")
                return 400, error_envelope("Invalid request path")
            log_request(logger, method, url, secret)

            out_headers = {"Content-Type": "application/json"}
            authorization = await self._auth_header(upstream_path, headers)
            if authorization:
                out_headers["Authorization"] = authorization

            content = None
            if method != "GET" and body is not None:
                content = json.dumps(body, ensure_ascii=False).encode("utf-8")

            response = await self.http.request(method, url, headers=out_headers, content=content)
        except ConfigurationError as exc:
            logger.error(f"Proxy configuration error: {exc}")
            return 500, error_envelope(f"Configuration error: {exc}")
        except UpstreamAuthError as exc:
            logger.error(f"Proxy token exchange failed: {exc}")
            return 401, error_envelope(f"Failed to obtain access token: {exc}")
        except MalformedUpstreamResponse as exc:
            logger.error(f"Token endpoint returned non-JSON: {exc.raw!r}")
            return 500, error_envelope(str(exc), error="UPSTREAM_NOT_JSON", raw=exc.raw)
        except Exception as exc:  # noqa: BLE001
            log_error(logger, "Proxy request failed", exc)
            return 500, error_envelope(f"Proxy request failed: {exc}")

        return self._relay(response)

    def _relay(self, response: httpx.Response) -> ProxyResult:
        text = response.text
        try:
            data = json.loads(text)
        except ValueError:
            data = None

        # every relayed body is a JSON object; None is reserved for preflight
        if not isinstance(data, dict):
            excerpt = text[: config.RAW_EXCERPT_LIMIT]
            logger.warning(f"Upstream {response.status_code} returned non-JSON: {excerpt!r}")
            return 500, error_envelope(
                "Upstream returned a non-JSON response",
                error="UPSTREAM_NOT_JSON",
                raw=excerpt,
            )
        return response.status_code, data
