import os
from typing import Dict, Optional, Tuple

# Ops + environment
ENVIRONMENT = os.environ.get("ENVIRONMENT", "local")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
PORT = int(os.environ.get("PORT", "8080"))
VERSION = "1.0.0"

# Client side
PROXY_URL = os.environ.get("FEISHU_PROXY_URL", "http://127.0.0.1:8080")
LEDGER_CONFIG_PATH = os.environ.get(
    "FEISHU_LEDGER_CONFIG",
    os.path.join(os.path.expanduser("~"), ".bitable_ledger", "feishuConfig.json"),
)

# Upstream
UPSTREAM_ORIGIN = "https://open.feishu.cn"
ROUTE_PREFIX = "/api/feishu"
SHEET_TOKEN_PLACEHOLDER = "__SHEET_TOKEN__"
TOKEN_PATH = "/open-apis/auth/v3/tenant_access_token/internal"
AUTH_PATH_PREFIX = "/open-apis/auth/"
BITABLE_APPS_PATH = "/open-apis/bitable/v1/apps"

# Token safety margins (seconds)
PROXY_TOKEN_MARGIN = 300
CLIENT_TOKEN_MARGIN = 60

# Permissive CORS header set attached to every proxy response
CORS_HEADERS: Dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

RAW_EXCERPT_LIMIT = 200

# Logical tables -> display names in the Bitable app
TABLE_PURCHASE = "purchase"
TABLE_FORMULA = "formula"
TABLE_SALES = "sales"
TABLE_NAMES: Dict[str, str] = {
    TABLE_PURCHASE: "原料采购",
    TABLE_FORMULA: "产品配方",
    TABLE_SALES: "商品销售",
}
DEFAULT_VIEW_NAME = "网格视图"


def feishu_credentials() -> Tuple[Optional[str], Optional[str]]:
    """Read app id/secret from env at call time (env may change under tests)."""
    return (
        os.environ.get("FEISHU_APP_ID") or None,
        os.environ.get("FEISHU_APP_SECRET") or None,
    )


def sheet_token() -> Optional[str]:
    return os.environ.get("FEISHU_SHEET_TOKEN") or None


def is_configured() -> bool:
    """True when all three server secrets are present."""
    app_id, app_secret = feishu_credentials()
    return bool(app_id and app_secret and sheet_token())


def http_timeout() -> Optional[float]:
    """Outbound timeout in seconds; 0 disables it."""
    raw = os.environ.get("FEISHU_HTTP_TIMEOUT", "30")
    try:
        value = float(raw)
    except ValueError:
        return 30.0
    return value if value > 0 else None
