"""Tests for local configuration persistence."""

import json

from bitable_ledger.models.app_config import AppConfig
from bitable_ledger.utils.config_store import ConfigStore


def test_missing_file_gives_defaults(tmp_path):
    cfg = ConfigStore(str(tmp_path / "nope.json")).load()

    assert cfg == AppConfig()
    assert cfg.is_complete() is False


def test_save_then_load(tmp_path):
    store = ConfigStore(str(tmp_path / "nested" / "feishuConfig.json"))
    cfg = AppConfig(appId="cli_a", appSecret="s", sheetToken="bascn", salesTableId="tbl3")

    store.save(cfg)

    assert store.load() == cfg
    with open(store.path, encoding="utf-8") as f:
        raw = json.load(f)
    assert raw["salesTableId"] == "tbl3"
    assert "sales_table_id" not in raw


def test_partial_file_merges_over_defaults(tmp_path):
    path = tmp_path / "feishuConfig.json"
    path.write_text(json.dumps({"appId": "cli_a", "extra": 1}), encoding="utf-8")

    cfg = ConfigStore(str(path)).load()

    assert cfg.app_id == "cli_a"
    assert cfg.app_secret == ""


def test_corrupt_file_falls_back_to_defaults(tmp_path):
    path = tmp_path / "feishuConfig.json"
    path.write_text("{not json", encoding="utf-8")

    assert ConfigStore(str(path)).load() == AppConfig()


def test_table_id_lookup():
    cfg = AppConfig(purchase_table_id="tbl1")

    assert cfg.table_id("purchase") == "tbl1"
    assert cfg.table_for_id("tbl1") == "purchase"
    assert cfg.table_for_id("tblX") is None
    assert cfg.table_for_id("") is None
