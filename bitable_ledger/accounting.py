"""
Ledger arithmetic: purchase unit prices, formula costs, sale profit and
profit statistics. Pure functions over records; no I/O.
"""
import datetime
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from bitable_ledger import table_schema as ts
from bitable_ledger.models.ledger_state import MaterialPrice, Record

UNKNOWN_PRODUCT = "未知产品"

STATS_RANGES = ("today", "week", "month", "custom")


def to_number(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def date_to_millis(value: datetime.date) -> int:
    """Calendar date -> epoch millis at UTC midnight (how Bitable date cells store it)."""
    dt = datetime.datetime(value.year, value.month, value.day, tzinfo=datetime.timezone.utc)
    return int(dt.timestamp() * 1000)


def millis_to_date_string(millis: Any) -> str:
    if not millis:
        return ""
    dt = datetime.datetime.fromtimestamp(to_number(millis) / 1000, tz=datetime.timezone.utc)
    return dt.strftime("%Y-%m-%d")


# =============================================================================
# Purchases
# =============================================================================

def purchase_unit_price(total_price: float, quantity: float) -> float:
    if quantity <= 0:
        return 0.0
    return round(total_price / quantity, 2)


def build_purchase_fields(
    name: str,
    quantity: float,
    total_price: float,
    date: datetime.date,
    spec: str = "",
    unit: str = "",
    supplier: str = "",
) -> Dict[str, Any]:
    name = (name or "").strip()
    if not name or not quantity or not total_price or not date:
        raise ValueError("Material name, quantity, total price and date are required")

    return {
        ts.P_MATERIAL: name,
        ts.P_SPEC: (spec or "").strip(),
        ts.P_QUANTITY: quantity,
        ts.P_UNIT: (unit or "").strip(),
        ts.P_TOTAL_PRICE: total_price,
        ts.P_UNIT_PRICE: purchase_unit_price(total_price, quantity),
        ts.P_DATE: date_to_millis(date),
        ts.P_SUPPLIER: (supplier or "").strip(),
    }


def material_prices(purchases: List[Record]) -> Dict[str, MaterialPrice]:
    """Latest purchase of each material wins."""
    prices: Dict[str, MaterialPrice] = {}
    for record in purchases:
        name = record.fields.get(ts.P_MATERIAL)
        if name:
            prices[name] = MaterialPrice(
                price=to_number(record.fields.get(ts.P_UNIT_PRICE)),
                unit=record.fields.get(ts.P_UNIT) or "",
            )
    return prices


# =============================================================================
# Formulas
# =============================================================================

@dataclass
class Material:
    name: str
    amount: float
    unit: str = ""
    price: float = 0.0


@dataclass
class FormulaCost:
    material_cost: float
    package_cost: float
    utility_cost: float
    total_cost: float
    unit_cost: float


def parse_materials(value: Any) -> List[Material]:
    """The materials cell holds a JSON array of {name, amount, unit, price}."""
    if not value:
        return []
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return []
    if not isinstance(value, list):
        return []
    return [
        Material(
            name=item.get("name", ""),
            amount=to_number(item.get("amount")),
            unit=item.get("unit", ""),
            price=to_number(item.get("price")),
        )
        for item in value
        if isinstance(item, dict)
    ]


def price_materials(materials: List[Material], prices: Dict[str, MaterialPrice]) -> List[Material]:
    """Fill price (and missing unit) from the purchase price cache."""
    priced = []
    for m in materials:
        known = prices.get(m.name)
        if known:
            m = Material(name=m.name, amount=m.amount, unit=m.unit or known.unit, price=known.price)
        priced.append(m)
    return priced


def formula_cost(
    materials: List[Material],
    package_cost: float = 0.0,
    utility_cost: float = 0.0,
    quantity: float = 1.0,
) -> FormulaCost:
    material_cost = sum(m.price * m.amount for m in materials)
    total = material_cost + package_cost + utility_cost
    quantity = quantity or 1
    unit_cost = round(total / quantity, 2) if quantity > 0 else 0.0
    return FormulaCost(material_cost, package_cost, utility_cost, total, unit_cost)


def build_formula_fields(
    product: str,
    quantity: float,
    materials: List[Material],
    package_cost: float = 0.0,
    utility_cost: float = 0.0,
) -> Dict[str, Any]:
    product = (product or "").strip()
    if not product or not quantity:
        raise ValueError("Product name and yield quantity are required")

    kept = [m for m in materials if m.name and m.amount > 0]
    cost = formula_cost(kept, package_cost, utility_cost, quantity)
    return {
        ts.F_PRODUCT: product,
        ts.F_QUANTITY: quantity,
        ts.F_MATERIALS: json.dumps(
            [{"name": m.name, "amount": m.amount, "unit": m.unit, "price": m.price} for m in kept],
            ensure_ascii=False,
        ),
        ts.F_PACKAGE_COST: package_cost,
        ts.F_UTILITY_COST: utility_cost,
        ts.F_UNIT_COST: cost.unit_cost,
    }


def product_options(formulas: List[Record]) -> List[str]:
    seen: List[str] = []
    for record in formulas:
        name = record.fields.get(ts.F_PRODUCT)
        if name and name not in seen:
            seen.append(name)
    return seen


def unit_cost_for(formulas: List[Record], product: str) -> Optional[float]:
    for record in formulas:
        if record.fields.get(ts.F_PRODUCT) == product:
            return to_number(record.fields.get(ts.F_UNIT_COST))
    return None


# =============================================================================
# Sales
# =============================================================================

@dataclass
class SaleFigures:
    unit_price: float
    total_cost: float
    profit: float


def sale_figures(quantity: float, total_amount: float, unit_cost: float) -> SaleFigures:
    unit_price = round(total_amount / quantity, 2) if quantity > 0 else 0.0
    total_cost = round(unit_cost * quantity, 2)
    return SaleFigures(unit_price, total_cost, round(total_amount - total_cost, 2))


def build_sales_fields(
    date: datetime.date,
    product: str,
    quantity: float,
    total_amount: float,
    unit_cost: float = 0.0,
) -> Dict[str, Any]:
    product = (product or "").strip()
    if not date or not product or not quantity or not total_amount:
        raise ValueError("Sale date, product, quantity and total amount are required")

    figures = sale_figures(quantity, total_amount, unit_cost)
    return {
        ts.S_DATE: date_to_millis(date),
        ts.S_PRODUCT: product,
        ts.S_QUANTITY: quantity,
        ts.S_TOTAL_AMOUNT: total_amount,
        ts.S_UNIT_PRICE: figures.unit_price,
        ts.S_UNIT_COST: unit_cost,
        ts.S_TOTAL_COST: figures.total_cost,
        ts.S_PROFIT: figures.profit,
    }


def sales_newest_first(sales: List[Record]) -> List[Record]:
    return sorted(sales, key=lambda r: to_number(r.fields.get(ts.S_DATE)), reverse=True)


# =============================================================================
# Profit statistics
# =============================================================================

@dataclass
class ProductStats:
    quantity: float = 0.0
    sales: float = 0.0
    cost: float = 0.0
    profit: float = 0.0

    @property
    def profit_rate(self) -> float:
        return round(self.profit / self.sales * 100, 2) if self.sales > 0 else 0.0


@dataclass
class ProfitStats:
    start: datetime.datetime
    end: datetime.datetime
    total_sales: float = 0.0
    total_cost: float = 0.0
    total_profit: float = 0.0
    products: Dict[str, ProductStats] = field(default_factory=dict)

    @property
    def profit_rate(self) -> float:
        return round(self.total_profit / self.total_sales * 100, 2) if self.total_sales > 0 else 0.0


def stats_window(
    range_name: str,
    now: Optional[datetime.datetime] = None,
    start_date: Optional[datetime.date] = None,
    end_date: Optional[datetime.date] = None,
) -> Tuple[datetime.datetime, datetime.datetime]:
    """
    Window for a stats range. today/week/month are local time and weeks
    start on Sunday. A custom range is in UTC, the calendar stored by
    ``date_to_millis``, and includes its whole end day.
    """
    now = now or datetime.datetime.now()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)

    if range_name == "today":
        return midnight, now
    if range_name == "week":
        days_since_sunday = (now.weekday() + 1) % 7
        return midnight - datetime.timedelta(days=days_since_sunday), now
    if range_name == "month":
        return midnight.replace(day=1), now
    if range_name == "custom":
        if not start_date or not end_date:
            raise ValueError("Custom range needs both a start and an end date")
        utc = datetime.timezone.utc
        start = datetime.datetime.combine(start_date, datetime.time.min, tzinfo=utc)
        end = datetime.datetime.combine(end_date, datetime.time(23, 59, 59, 999000), tzinfo=utc)
        return start, end

    raise ValueError(f"Unknown stats range: {range_name}")


def compute_stats(
    sales: List[Record],
    start: datetime.datetime,
    end: datetime.datetime,
) -> ProfitStats:
    start_ms = start.timestamp() * 1000
    end_ms = end.timestamp() * 1000
    stats = ProfitStats(start=start, end=end)

    for record in sales:
        sold_at = record.fields.get(ts.S_DATE)
        if not sold_at or not (start_ms <= to_number(sold_at) <= end_ms):
            continue

        amount = to_number(record.fields.get(ts.S_TOTAL_AMOUNT))
        cost = to_number(record.fields.get(ts.S_TOTAL_COST))
        profit = to_number(record.fields.get(ts.S_PROFIT))
        name = record.fields.get(ts.S_PRODUCT) or UNKNOWN_PRODUCT

        stats.total_sales += amount
        stats.total_cost += cost
        stats.total_profit += profit

        product = stats.products.setdefault(name, ProductStats())
        product.quantity += to_number(record.fields.get(ts.S_QUANTITY))
        product.sales += amount
        product.cost += cost
        product.profit += profit

    return stats
