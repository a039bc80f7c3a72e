"""
Application layer: owns the ledger state, runs reloads and user actions.

Every public action is a boundary: failures become notifications and the
``loading`` flag is always cleared, so a caller never sees an exception
from here and the UI never stays stuck.
"""
import asyncio
import datetime
from typing import Any, Dict, List, Optional

import httpx

from bitable_ledger import accounting, config
from bitable_ledger.models.app_config import AppConfig
from bitable_ledger.models.ledger_state import LedgerState
from bitable_ledger.utils.bitable_client import BitableClient
from bitable_ledger.utils.config_store import ConfigStore
from bitable_ledger.utils.logger import get_logger, log_error
from bitable_ledger.utils.notifier import Notifier

logger = get_logger(__name__)

TABLES = (config.TABLE_PURCHASE, config.TABLE_FORMULA, config.TABLE_SALES)


class LedgerApp:
    def __init__(
        self,
        client: BitableClient,
        store: Optional[ConfigStore] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.client = client
        self.store = store or ConfigStore()
        self.notifier = notifier or Notifier()
        self.state = LedgerState()

    @classmethod
    def from_store(
        cls,
        store: ConfigStore,
        http: httpx.AsyncClient,
        proxy_url: Optional[str] = None,
        notifier: Optional[Notifier] = None,
    ) -> "LedgerApp":
        client = BitableClient(store.load(), http, proxy_url=proxy_url)
        return cls(client, store, notifier)

    @property
    def config(self) -> AppConfig:
        return self.client.config

    # ------------------------------------------------------------ configuration

    def save_config(self, app_id: str, app_secret: str, sheet_token: str) -> bool:
        app_id, app_secret, sheet_token = (v.strip() for v in (app_id, app_secret, sheet_token))
        if not app_id or not app_secret or not sheet_token:
            self.notifier.error("Please fill in App ID, App Secret and Sheet Token")
            return False

        self.config.app_id = app_id
        self.config.app_secret = app_secret
        self.config.sheet_token = sheet_token
        self.client.token_cache.invalidate()
        self.client.field_maps.clear()
        self.store.save(self.config)
        self.notifier.success("Configuration saved")
        return True

    async def start(self) -> bool:
        """Initialise when configured, otherwise ask for configuration."""
        if self.config.is_complete():
            return await self.init()
        self.notifier.error("Feishu is not configured yet")
        return False

    async def init(self) -> bool:
        self.state.loading = True
        try:
            await self.client.setup_tables()
            self.store.save(self.config)
            await self.client.load_field_maps()
            await self._load()
            self.notifier.success("Initialisation succeeded")
            return True
        except Exception as e:  # noqa: BLE001
            log_error(logger, "Table initialisation failed", e)
            self._fail(f"Initialisation failed: {e}")
            return False
        finally:
            self.state.loading = False

    # ------------------------------------------------------------------ loading

    async def _load(self):
        results = await asyncio.gather(
            *(self.client.list_records(table) for table in TABLES),
            return_exceptions=True,
        )
        failures = [r for r in results if isinstance(r, BaseException)]
        if failures:
            raise failures[0]

        purchases, formulas, sales = results
        self.state.purchases = purchases or []
        self.state.formulas = formulas or []
        self.state.sales = sales or []
        self.state.material_prices = accounting.material_prices(self.state.purchases)
        self.state.last_error = None

    async def reload(self) -> bool:
        self.state.loading = True
        try:
            await self._load()
            return True
        except Exception as e:  # noqa: BLE001
            self._fail(f"Failed to load data: {e}")
            return False
        finally:
            self.state.loading = False

    async def refresh(self) -> bool:
        if not self.config.purchase_table_id:
            self.notifier.error("Please configure the Feishu API first")
            return False
        if await self.reload():
            self.notifier.success("Data refreshed")
            return True
        return False

    async def load_field_maps(self) -> bool:
        """Fetch field ids so writes address fields by id."""
        try:
            await self.client.load_field_maps()
            return True
        except Exception as e:  # noqa: BLE001
            self._fail(f"Failed to load field definitions: {e}")
            return False

    # ------------------------------------------------------------------ actions

    async def save(self, table: str, fields: Dict[str, Any], record_id: Optional[str] = None) -> bool:
        self.state.loading = True
        try:
            if record_id:
                await self.client.update_record(table, record_id, fields)
            else:
                await self.client.create_record(table, fields)
            await self._load()
            self.notifier.success("Saved")
            return True
        except Exception as e:  # noqa: BLE001
            self._fail(f"Save failed: {e}")
            return False
        finally:
            self.state.loading = False

    async def delete(self, table: str, record_id: str) -> bool:
        self.state.loading = True
        try:
            await self.client.delete_record(table, record_id)
            await self._load()
            self.notifier.success("Deleted")
            return True
        except Exception as e:  # noqa: BLE001
            self._fail(f"Delete failed: {e}")
            return False
        finally:
            self.state.loading = False

    async def save_purchase(
        self,
        name: str,
        quantity: float,
        total_price: float,
        date: datetime.date,
        spec: str = "",
        unit: str = "",
        supplier: str = "",
        record_id: Optional[str] = None,
    ) -> bool:
        try:
            fields = accounting.build_purchase_fields(name, quantity, total_price, date, spec, unit, supplier)
        except ValueError as e:
            self.notifier.error(str(e))
            return False
        return await self.save(config.TABLE_PURCHASE, fields, record_id)

    async def save_formula(
        self,
        product: str,
        quantity: float,
        materials: List[accounting.Material],
        package_cost: float = 0.0,
        utility_cost: float = 0.0,
        record_id: Optional[str] = None,
    ) -> bool:
        priced = accounting.price_materials(materials, self.state.material_prices)
        try:
            fields = accounting.build_formula_fields(product, quantity, priced, package_cost, utility_cost)
        except ValueError as e:
            self.notifier.error(str(e))
            return False
        return await self.save(config.TABLE_FORMULA, fields, record_id)

    async def save_sale(
        self,
        date: datetime.date,
        product: str,
        quantity: float,
        total_amount: float,
        record_id: Optional[str] = None,
    ) -> bool:
        unit_cost = accounting.unit_cost_for(self.state.formulas, product) or 0.0
        try:
            fields = accounting.build_sales_fields(date, product, quantity, total_amount, unit_cost)
        except ValueError as e:
            self.notifier.error(str(e))
            return False
        return await self.save(config.TABLE_SALES, fields, record_id)

    def products(self) -> List[str]:
        """Product choices for a sale, taken from the formulas."""
        return accounting.product_options(self.state.formulas)

    def stats(
        self,
        range_name: str = "month",
        now: Optional[datetime.datetime] = None,
        start_date: Optional[datetime.date] = None,
        end_date: Optional[datetime.date] = None,
    ) -> accounting.ProfitStats:
        start, end = accounting.stats_window(range_name, now, start_date, end_date)
        return accounting.compute_stats(self.state.sales, start, end)

    def _fail(self, message: str):
        self.state.last_error = message
        self.notifier.error(message)
