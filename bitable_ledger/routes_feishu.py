import json
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response

from bitable_ledger import config
from bitable_ledger.proxy import CredentialProxy, error_envelope
from bitable_ledger.utils.logger import get_logger, log_error

router = APIRouter(tags=["feishu"])
logger = get_logger(__name__)

PROXY_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]

CONFIG_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

_proxy: Optional[CredentialProxy] = None


def get_proxy() -> CredentialProxy:
    """Process-wide proxy; holds the server-side token cache."""
    global _proxy
    if _proxy is None:
        _proxy = CredentialProxy(httpx.AsyncClient(timeout=config.http_timeout()))
    return _proxy


async def close_proxy():
    global _proxy
    if _proxy is not None:
        await _proxy.http.aclose()
        _proxy = None


@router.api_route(config.ROUTE_PREFIX, methods=PROXY_METHODS)
@router.api_route(config.ROUTE_PREFIX + "/{path:path}", methods=PROXY_METHODS)
async def feishu_proxy(request: Request, proxy: CredentialProxy = Depends(get_proxy)):
    raw_path = request.url.path
    if request.url.query:
        raw_path = f"{raw_path}?{request.url.query}"

    body = None
    raw_body = await request.body()
    if raw_body and request.method != "GET":
        try:
            body = json.loads(raw_body)
        except ValueError:
            return JSONResponse(
                error_envelope("Request body must be JSON"),
                status_code=400,
                headers=config.CORS_HEADERS,
            )

    status, payload = await proxy.handle(request.method, raw_path, dict(request.headers), body)
    if payload is None:
        return Response(status_code=status, headers=config.CORS_HEADERS)
    return JSONResponse(payload, status_code=status, headers=config.CORS_HEADERS)


@router.api_route("/api/feishu-config", methods=PROXY_METHODS)
async def feishu_config(request: Request):
    """Report whether the server secrets are set, never their values."""
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=CONFIG_CORS_HEADERS)

    if request.method != "GET":
        return JSONResponse(
            error_envelope("Method not allowed"),
            status_code=405,
            headers=CONFIG_CORS_HEADERS,
        )

    try:
        configured = config.is_configured()
    except Exception as exc:  # noqa: BLE001
        log_error(logger, "Failed to check configuration", exc)
        return JSONResponse(
            error_envelope("Failed to check configuration"),
            status_code=500,
            headers=CONFIG_CORS_HEADERS,
        )

    return JSONResponse(
        {"code": 0, "data": {"configured": configured}},
        headers=CONFIG_CORS_HEADERS,
    )
