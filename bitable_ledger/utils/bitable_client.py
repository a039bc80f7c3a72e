import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

from bitable_ledger import config
from bitable_ledger.errors import (
    ConfigurationError,
    FeishuAPIError,
    GenericProxyFailure,
    LedgerError,
    UpstreamAuthError,
    UpstreamNotFoundOrForbidden,
)
from bitable_ledger.models.app_config import AppConfig
from bitable_ledger.models.ledger_state import Record
from bitable_ledger.table_schema import TABLE_FIELDS
from bitable_ledger.utils.field_map import FieldMaps, build_field_map
from bitable_ledger.utils.logger import get_logger
from bitable_ledger.utils.token_cache import TokenCache, exchange_tenant_token, parse_envelope

logger = get_logger(__name__)

# Feishu error codes seen during setup
CODE_INVALID_CREDENTIALS = "99991663"
CODE_NOT_FOUND = "99991400"
CODE_NO_PERMISSION = "99991668"


def _mentions(exc: Exception, *needles: str) -> bool:
    text = str(exc)
    code = str(getattr(exc, "code", "") or "")
    return any(n in text or n == code for n in needles)


class BitableClient:
    """
    Async CRUD over the three ledger tables, talking to the credential proxy.

    Tables are addressed by logical name ("purchase", "formula", "sales");
    a raw table id is accepted too and is written without translation when
    it does not belong to a known table.
    """

    def __init__(
        self,
        app_config: AppConfig,
        http: httpx.AsyncClient,
        proxy_url: Optional[str] = None,
        field_maps: Optional[FieldMaps] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = app_config
        self.http = http
        self.base_url = (proxy_url or config.PROXY_URL).rstrip("/") + config.ROUTE_PREFIX
        self.field_maps = field_maps or FieldMaps()
        self.token_cache = TokenCache(self._fetch_token, config.CLIENT_TOKEN_MARGIN, clock=clock)

    async def _fetch_token(self) -> Tuple[str, int]:
        try:
            return await exchange_tenant_token(
                self.http,
                self.base_url + config.TOKEN_PATH,
                self.config.app_id,
                self.config.app_secret,
            )
        except httpx.HTTPError as e:
            raise GenericProxyFailure(f"Token request failed: {e}") from e

    async def get_access_token(self) -> str:
        return await self.token_cache.get()

    def _app_path(self, *parts: str) -> str:
        # without a local sheet token the proxy substitutes its own
        sheet = self.config.sheet_token or config.SHEET_TOKEN_PLACEHOLDER
        return "/".join([config.BITABLE_APPS_PATH, sheet, *parts])

    def _resolve(self, table: str) -> Tuple[Optional[str], str]:
        if table in config.TABLE_NAMES:
            table_id = self.config.table_id(table)
            if not table_id:
                raise ConfigurationError(f"Table '{table}' has not been set up yet")
            return table, table_id
        return self.config.table_for_id(table), table

    async def request(self, path: str, method: str = "GET", body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Send one authorised call through the proxy; non-zero codes raise."""
        token = await self.get_access_token()
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

        try:
            response = await self.http.request(method, self.base_url + path, headers=headers, json=body)
        except httpx.HTTPError as e:
            raise GenericProxyFailure(f"{method} {path} failed: {e}") from e

        data = parse_envelope(response.text)
        if data.get("code") != 0:
            raise FeishuAPIError(data.get("msg") or "API request failed", data.get("code"))
        return data

    # ------------------------------------------------------------------ tables

    async def list_tables(self) -> List[Dict[str, Any]]:
        result = await self.request(self._app_path("tables"))
        return (result.get("data") or {}).get("items") or []

    async def create_table(self, name: str, fields: List[Dict[str, Any]]) -> Dict[str, Any]:
        result = await self.request(
            self._app_path("tables"),
            "POST",
            {"table": {"name": name, "default_view_name": config.DEFAULT_VIEW_NAME, "fields": fields}},
        )
        data = result.get("data") or {}
        return data.get("table") or data

    async def fetch_field_map(self, table: str) -> Dict[str, str]:
        logical, table_id = self._resolve(table)
        result = await self.request(self._app_path("tables", table_id, "fields"))
        items = (result.get("data") or {}).get("items")
        if items is None:
            return self.field_maps.get(logical or table_id)
        mapping = build_field_map(items)
        self.field_maps.set(logical or table_id, mapping)
        return mapping

    async def load_field_maps(self):
        for table in config.TABLE_NAMES:
            await self.fetch_field_map(table)

    async def setup_tables(self) -> Dict[str, str]:
        """
        Verify credentials, then find or create the three ledger tables.

        Known Feishu failures are remapped to messages a user can act on.
        Returns {logical table: table_id} and stores the ids on the config.
        """
        if not self.config.is_complete():
            raise ConfigurationError("Configuration incomplete: check App ID, App Secret and Sheet Token")

        try:
            await self.get_access_token()
        except ConfigurationError:
            raise
        except LedgerError as e:
            if _mentions(e, CODE_INVALID_CREDENTIALS, "invalid"):
                raise UpstreamAuthError("App ID or App Secret is incorrect, check the configuration") from e
            raise UpstreamAuthError(f"Failed to obtain access token: {e}") from e

        try:
            tables = await self.list_tables()
        except FeishuAPIError as e:
            if _mentions(e, CODE_NOT_FOUND, "not found"):
                raise UpstreamNotFoundOrForbidden("Sheet Token is incorrect or the Bitable is not accessible") from e
            if _mentions(e, CODE_NO_PERMISSION, "permission"):
                raise UpstreamNotFoundOrForbidden("No permission to access the Bitable, check the app permissions") from e
            raise FeishuAPIError(f"Failed to list tables: {e}", e.code) from e

        by_name = {t.get("name"): t for t in tables}
        table_ids: Dict[str, str] = {}
        for table, display_name in config.TABLE_NAMES.items():
            found = by_name.get(display_name)
            if not found:
                logger.info(f"Creating table {display_name}")
                found = await self.create_table(display_name, TABLE_FIELDS[table]())
            table_ids[table] = found["table_id"]
            self.config.set_table_id(table, found["table_id"])

        return table_ids

    # ----------------------------------------------------------------- records

    async def list_records(self, table: str) -> List[Record]:
        _, table_id = self._resolve(table)
        result = await self.request(self._app_path("tables", table_id, "records"))
        items = (result.get("data") or {}).get("items")
        if not items:
            return []
        return [Record.from_api(item) for item in items]

    async def create_record(self, table: str, fields: Dict[str, Any]) -> Record:
        logical, table_id = self._resolve(table)
        result = await self.request(
            self._app_path("tables", table_id, "records"),
            "POST",
            {"fields": self.field_maps.translate(logical or table_id, fields)},
        )
        return Record.from_api((result.get("data") or {}).get("record") or {})

    async def update_record(self, table: str, record_id: str, fields: Dict[str, Any]) -> Record:
        logical, table_id = self._resolve(table)
        result = await self.request(
            self._app_path("tables", table_id, "records", record_id),
            "PUT",
            {"fields": self.field_maps.translate(logical or table_id, fields)},
        )
        return Record.from_api((result.get("data") or {}).get("record") or {})

    async def delete_record(self, table: str, record_id: str):
        _, table_id = self._resolve(table)
        await self.request(self._app_path("tables", table_id, "records", record_id), "DELETE")
