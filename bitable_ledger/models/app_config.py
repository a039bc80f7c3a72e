from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from bitable_ledger import config


class AppConfig(BaseModel):
    """User-entered Feishu settings plus the table ids found during setup.

    Persisted with the camelCase keys the web front-end stores under
    ``feishuConfig``, so both sides can share one file.
    """

    model_config = ConfigDict(populate_by_name=True)

    app_id: str = Field(default="", alias="appId")
    app_secret: str = Field(default="", alias="appSecret")
    sheet_token: str = Field(default="", alias="sheetToken")
    purchase_table_id: str = Field(default="", alias="purchaseTableId")
    formula_table_id: str = Field(default="", alias="formulaTableId")
    sales_table_id: str = Field(default="", alias="salesTableId")

    def is_complete(self) -> bool:
        return bool(self.app_id and self.app_secret and self.sheet_token)

    def table_id(self, table: str) -> str:
        return getattr(self, f"{table}_table_id")

    def set_table_id(self, table: str, table_id: str):
        setattr(self, f"{table}_table_id", table_id)

    def table_for_id(self, table_id: str) -> Optional[str]:
        for table in config.TABLE_NAMES:
            if table_id and self.table_id(table) == table_id:
                return table
        return None
