"""Shared fixtures: an in-memory Feishu Bitable served through httpx.MockTransport."""

import itertools
import json

import httpx
import pytest

from bitable_ledger import config
from bitable_ledger.models.app_config import AppConfig
from bitable_ledger.table_schema import TABLE_FIELDS
from bitable_ledger.utils.bitable_client import BitableClient

APP_ID = "cli_test"
APP_SECRET = "s3cret"
SHEET_TOKEN = "bascnXYZ"
PROXY_URL = "http://proxy.test"


def _ok(data=None):
    body = {"code": 0, "msg": "success"}
    if data is not None:
        body["data"] = data
    return httpx.Response(200, json=body)


class FakeFeishu:
    """
    Just enough of the Feishu Open API for the ledger: token exchange,
    tables, fields and records. Records are stored by field name; writes
    may use field ids or names, like the real service.
    """

    def __init__(self, app_token: str = SHEET_TOKEN, expire: int = 7200):
        self.app_token = app_token
        self.expire = expire
        self.token_calls = 0
        self.requests = []
        self.writes = []
        self.overrides = {}
        self.tables = {}
        self._ids = itertools.count(1)

    # -- setup helpers -------------------------------------------------------

    def add_table(self, name, field_names=()):
        table_id = f"tbl{next(self._ids)}"
        self.tables[table_id] = {
            "name": name,
            "fields": {n: f"fld{next(self._ids)}" for n in field_names},
            "records": {},
        }
        return table_id

    def add_record(self, table_id, fields):
        record_id = f"rec{next(self._ids)}"
        self.tables[table_id]["records"][record_id] = dict(fields)
        return record_id

    def fail(self, needle, status=200, body=None, text=None):
        """Answer any request whose path contains ``needle`` with a canned response."""
        self.overrides[needle] = (status, body, text)

    # -- transport -----------------------------------------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.startswith(config.ROUTE_PREFIX):
            path = path[len(config.ROUTE_PREFIX):]
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, path, dict(request.headers), body))

        for needle, (status, payload, text) in self.overrides.items():
            if needle in path:
                if text is not None:
                    return httpx.Response(status, text=text)
                return httpx.Response(status, json=payload)

        if path == config.TOKEN_PATH:
            return self._token(body or {})

        if not request.headers.get("authorization", "").startswith("Bearer "):
            return httpx.Response(400, json={"code": 99991661, "msg": "Missing access token"})

        prefix = f"{config.BITABLE_APPS_PATH}/{self.app_token}/tables"
        if not path.startswith(prefix):
            return httpx.Response(404, json={"code": 99991400, "msg": "app not found"})

        parts = [p for p in path[len(prefix):].split("/") if p]
        return self._route(request.method, parts, body or {})

    def _token(self, body):
        if body.get("app_id") != APP_ID or body.get("app_secret") != APP_SECRET:
            return httpx.Response(200, json={"code": 99991663, "msg": "invalid app_secret"})
        self.token_calls += 1
        return httpx.Response(200, json={
            "code": 0,
            "msg": "ok",
            "tenant_access_token": f"t-{self.token_calls}",
            "expire": self.expire,
        })

    def _route(self, method, parts, body):
        if not parts:
            if method == "GET":
                items = [{"table_id": tid, "name": t["name"]} for tid, t in self.tables.items()]
                return _ok({"items": items, "has_more": False})
            table = body["table"]
            table_id = self.add_table(table["name"], [f["field_name"] for f in table.get("fields", [])])
            return _ok({"table_id": table_id, "default_view_id": "vew1"})

        table_id = parts[0]
        table = self.tables.get(table_id)
        if table is None:
            return httpx.Response(404, json={"code": 1254004, "msg": "WrongTableId"})

        if parts[1:] == ["fields"]:
            items = [{"field_name": n, "field_id": fid, "type": 1} for n, fid in table["fields"].items()]
            return _ok({"items": items})

        if parts[1:] == ["records"] and method == "GET":
            items = [{"record_id": rid, "fields": f} for rid, f in table["records"].items()]
            return _ok({"items": items, "total": len(items)})

        if parts[1:] == ["records"] and method == "POST":
            fields = self._by_name(table_id, body.get("fields", {}))
            if fields is None:
                return _ok_error("FieldNameNotFound")
            record_id = self.add_record(table_id, fields)
            return _ok({"record": {"record_id": record_id, "fields": fields}})

        record_id = parts[2]
        if record_id not in table["records"]:
            return httpx.Response(200, json={"code": 1254043, "msg": "RecordIdNotFound"})

        if method == "PUT":
            fields = self._by_name(table_id, body.get("fields", {}))
            if fields is None:
                return _ok_error("FieldNameNotFound")
            table["records"][record_id].update(fields)
            return _ok({"record": {"record_id": record_id, "fields": table["records"][record_id]}})

        del table["records"][record_id]
        return _ok({"deleted": True, "record_id": record_id})

    def _by_name(self, table_id, fields):
        table = self.tables[table_id]
        by_id = {fid: n for n, fid in table["fields"].items()}
        self.writes.append((table_id, sorted(fields)))
        result = {}
        for key, value in fields.items():
            name = by_id.get(key, key)
            if name not in table["fields"]:
                return None
            result[name] = value
        return result


def _ok_error(msg):
    return httpx.Response(200, json={"code": 1254045, "msg": msg})


@pytest.fixture
def fake_feishu():
    return FakeFeishu()


@pytest.fixture
def mock_http(fake_feishu):
    return httpx.AsyncClient(transport=httpx.MockTransport(fake_feishu.handler))


@pytest.fixture
def feishu_env(monkeypatch):
    monkeypatch.setenv("FEISHU_APP_ID", APP_ID)
    monkeypatch.setenv("FEISHU_APP_SECRET", APP_SECRET)
    monkeypatch.setenv("FEISHU_SHEET_TOKEN", SHEET_TOKEN)


@pytest.fixture
def app_config():
    return AppConfig(appId=APP_ID, appSecret=APP_SECRET, sheetToken=SHEET_TOKEN)


@pytest.fixture
def ledger_tables(fake_feishu):
    """The three ledger tables with their full field sets, as setup creates them."""
    return {
        table: fake_feishu.add_table(name, [f["field_name"] for f in TABLE_FIELDS[table]()])
        for table, name in config.TABLE_NAMES.items()
    }


@pytest.fixture
def make_client(mock_http, app_config):
    def _make(**overrides):
        cfg = app_config.model_copy(update=overrides)
        return BitableClient(cfg, mock_http, proxy_url=PROXY_URL)
    return _make
