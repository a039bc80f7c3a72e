"""
Plain-text views of the ledger state, used by the CLI.
"""
from typing import List, Sequence

from bitable_ledger import accounting
from bitable_ledger import table_schema as ts
from bitable_ledger.models.ledger_state import LedgerState


def _money(value) -> str:
    return f"{accounting.to_number(value):.2f}"


def _table(headers: Sequence[str], rows: List[Sequence[str]]) -> str:
    if not rows:
        return "(no records)"
    widths = [len(h) for h in headers]
    for row in rows:
        widths = [max(w, len(str(c))) for w, c in zip(widths, row)]
    lines = ["  ".join(str(c).ljust(w) for c, w in zip(headers, widths))]
    lines.append("  ".join("-" * w for w in widths))
    for row in rows:
        lines.append("  ".join(str(c).ljust(w) for c, w in zip(row, widths)))
    return "\n".join(lines)


def render_purchases(state: LedgerState) -> str:
    rows = [
        [
            r.fields.get(ts.P_MATERIAL) or "",
            r.fields.get(ts.P_SPEC) or "-",
            r.fields.get(ts.P_QUANTITY) or 0,
            r.fields.get(ts.P_UNIT) or "-",
            _money(r.fields.get(ts.P_UNIT_PRICE)),
            _money(r.fields.get(ts.P_TOTAL_PRICE)),
            accounting.millis_to_date_string(r.fields.get(ts.P_DATE)) or "-",
            r.fields.get(ts.P_SUPPLIER) or "-",
            r.id,
        ]
        for r in state.purchases
    ]
    return _table(
        [ts.P_MATERIAL, ts.P_SPEC, ts.P_QUANTITY, ts.P_UNIT, ts.P_UNIT_PRICE, ts.P_TOTAL_PRICE, ts.P_DATE, ts.P_SUPPLIER, "id"],
        rows,
    )


def render_formulas(state: LedgerState) -> str:
    rows = []
    for r in state.formulas:
        materials = accounting.parse_materials(r.fields.get(ts.F_MATERIALS))
        other = accounting.to_number(r.fields.get(ts.F_PACKAGE_COST)) + accounting.to_number(r.fields.get(ts.F_UTILITY_COST))
        rows.append([
            r.fields.get(ts.F_PRODUCT) or "",
            r.fields.get(ts.F_QUANTITY) or 0,
            ", ".join(f"{m.name} {m.amount}{m.unit}" for m in materials) or "-",
            _money(other),
            _money(r.fields.get(ts.F_UNIT_COST)),
            r.id,
        ])
    return _table([ts.F_PRODUCT, ts.F_QUANTITY, ts.F_MATERIALS, "其他成本", ts.F_UNIT_COST, "id"], rows)


def render_sales(state: LedgerState) -> str:
    rows = [
        [
            accounting.millis_to_date_string(r.fields.get(ts.S_DATE)) or "-",
            r.fields.get(ts.S_PRODUCT) or "",
            r.fields.get(ts.S_QUANTITY) or 0,
            _money(r.fields.get(ts.S_UNIT_PRICE)),
            _money(r.fields.get(ts.S_TOTAL_AMOUNT)),
            _money(r.fields.get(ts.S_TOTAL_COST)),
            _money(r.fields.get(ts.S_PROFIT)),
            r.id,
        ]
        for r in accounting.sales_newest_first(state.sales)
    ]
    return _table(
        [ts.S_DATE, ts.S_PRODUCT, ts.S_QUANTITY, ts.S_UNIT_PRICE, ts.S_TOTAL_AMOUNT, ts.S_TOTAL_COST, ts.S_PROFIT, "id"],
        rows,
    )


def render_stats(stats: accounting.ProfitStats) -> str:
    summary = (
        f"{stats.start:%Y-%m-%d} .. {stats.end:%Y-%m-%d}\n"
        f"sales {stats.total_sales:.2f}  cost {stats.total_cost:.2f}  "
        f"profit {stats.total_profit:.2f}  rate {stats.profit_rate:.2f}%"
    )
    rows = [
        [name, f"{p.quantity:g}", f"{p.sales:.2f}", f"{p.cost:.2f}", f"{p.profit:.2f}", f"{p.profit_rate:.2f}%"]
        for name, p in stats.products.items()
    ]
    return summary + "\n\n" + _table(["product", "quantity", "sales", "cost", "profit", "rate"], rows)


VIEWS = {
    "purchase": render_purchases,
    "formula": render_formulas,
    "sales": render_sales,
}
