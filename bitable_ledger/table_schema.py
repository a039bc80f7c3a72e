"""
Field definitions for the three ledger tables.

Field names are the application's stable keys; Feishu assigns field ids
when the table is created. Types: 1 text, 2 number, 5 date (epoch millis).
"""
from typing import Any, Dict, List

from bitable_ledger import config

TEXT = 1
NUMBER = 2
DATE = 5

MONEY_FORMAT = {"formatter": {"pattern": "0.00"}}

# Purchase (原料采购)
P_MATERIAL = "原料名称"
P_SPEC = "规格"
P_QUANTITY = "采购数量"
P_UNIT = "单位"
P_TOTAL_PRICE = "采购总价"
P_UNIT_PRICE = "采购单价"
P_DATE = "采购日期"
P_SUPPLIER = "供应商"

# Formula (产品配方)
F_PRODUCT = "产品名称"
F_QUANTITY = "制作数量"
F_MATERIALS = "原料组成"
F_PACKAGE_COST = "包装成本"
F_UTILITY_COST = "水电成本"
F_UNIT_COST = "单位成本"

# Sales (商品销售)
S_DATE = "销售日期"
S_PRODUCT = "产品名称"
S_QUANTITY = "销售数量"
S_TOTAL_AMOUNT = "销售总金额"
S_UNIT_PRICE = "销售单价"
S_UNIT_COST = "单位成本"
S_TOTAL_COST = "成本总额"
S_PROFIT = "利润"


def _field(name: str, field_type: int, description: str, money: bool = False) -> Dict[str, Any]:
    field: Dict[str, Any] = {"field_name": name, "type": field_type, "description": description}
    if money:
        field["property"] = MONEY_FORMAT
    return field


def purchase_fields() -> List[Dict[str, Any]]:
    return [
        _field(P_MATERIAL, TEXT, "文本"),
        _field(P_SPEC, TEXT, "文本"),
        _field(P_QUANTITY, NUMBER, "数字"),
        _field(P_UNIT, TEXT, "文本"),
        _field(P_TOTAL_PRICE, NUMBER, "数字", money=True),
        _field(P_UNIT_PRICE, NUMBER, "数字", money=True),
        _field(P_DATE, DATE, "日期"),
        _field(P_SUPPLIER, TEXT, "文本"),
    ]


def formula_fields() -> List[Dict[str, Any]]:
    return [
        _field(F_PRODUCT, TEXT, "文本"),
        _field(F_QUANTITY, NUMBER, "数字"),
        _field(F_MATERIALS, TEXT, "JSON文本"),
        _field(F_PACKAGE_COST, NUMBER, "数字", money=True),
        _field(F_UTILITY_COST, NUMBER, "数字", money=True),
        _field(F_UNIT_COST, NUMBER, "数字", money=True),
    ]


def sales_fields() -> List[Dict[str, Any]]:
    return [
        _field(S_DATE, DATE, "日期"),
        _field(S_PRODUCT, TEXT, "文本"),
        _field(S_QUANTITY, NUMBER, "数字"),
        _field(S_TOTAL_AMOUNT, NUMBER, "数字", money=True),
        _field(S_UNIT_PRICE, NUMBER, "数字", money=True),
        _field(S_UNIT_COST, NUMBER, "数字", money=True),
        _field(S_TOTAL_COST, NUMBER, "数字", money=True),
        _field(S_PROFIT, NUMBER, "数字", money=True),
    ]


TABLE_FIELDS = {
    config.TABLE_PURCHASE: purchase_fields,
    config.TABLE_FORMULA: formula_fields,
    config.TABLE_SALES: sales_fields,
}
