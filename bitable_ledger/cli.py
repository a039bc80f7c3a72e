"""
bitable-ledger command line.

    bitable-ledger serve [--host 0.0.0.0] [--port 8080]
    bitable-ledger configure --app-id ... --app-secret ... --sheet-token ...
    bitable-ledger init
    bitable-ledger list {purchase,formula,sales}
    bitable-ledger stats [--range month] [--start YYYY-MM-DD --end YYYY-MM-DD]
    bitable-ledger add-purchase --name 面粉 --quantity 10 --total 55 [--date ...] [--id rec...]
    bitable-ledger add-formula --product 曲奇 --quantity 10 --material 面粉:2 [--id rec...]
    bitable-ledger add-sale --product 曲奇 --quantity 4 --total 40 [--date ...] [--id rec...]
    bitable-ledger delete {purchase,formula,sales} RECORD_ID
"""
import argparse
import asyncio
import datetime
import sys
from typing import List, Optional

import httpx

from bitable_ledger import accounting, config, render
from bitable_ledger.ledger_app import LedgerApp
from bitable_ledger.utils.config_store import ConfigStore
from bitable_ledger.utils.notifier import ERROR, Notifier

WRITE_COMMANDS = ("add-purchase", "add-formula", "add-sale", "delete")


def _print_notice(kind: str, message: str):
    stream = sys.stderr if kind == ERROR else sys.stdout
    print(f"[{kind.upper()}] {message}", file=stream)


def _date(value: str) -> datetime.date:
    try:
        return datetime.date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Not a YYYY-MM-DD date: {value}")


def _material(value: str) -> accounting.Material:
    """NAME:AMOUNT, e.g. 面粉:2.5"""
    name, sep, amount = value.rpartition(":")
    try:
        parsed = float(amount)
    except ValueError:
        parsed = None
    if not sep or not name.strip() or parsed is None:
        raise argparse.ArgumentTypeError(f"Not a NAME:AMOUNT material: {value}")
    return accounting.Material(name=name.strip(), amount=parsed)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bitable-ledger", description="Feishu Bitable ledger")
    parser.add_argument("--config", dest="config_path", default=None, help="Path to the saved configuration JSON")
    parser.add_argument("--proxy-url", default=None, help="Credential proxy origin (default FEISHU_PROXY_URL)")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the credential proxy")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=config.PORT)

    configure = sub.add_parser("configure", help="Save Feishu credentials locally")
    configure.add_argument("--app-id", required=True)
    configure.add_argument("--app-secret", required=True)
    configure.add_argument("--sheet-token", required=True)

    sub.add_parser("init", help="Find or create the ledger tables")

    list_cmd = sub.add_parser("list", help="Print one table")
    list_cmd.add_argument("table", choices=sorted(render.VIEWS))

    stats = sub.add_parser("stats", help="Profit statistics")
    stats.add_argument("--range", dest="range_name", choices=accounting.STATS_RANGES, default="month")
    stats.add_argument("--start", type=_date, default=None)
    stats.add_argument("--end", type=_date, default=None)

    purchase = sub.add_parser("add-purchase", help="Record a material purchase (or update one with --id)")
    purchase.add_argument("--name", required=True)
    purchase.add_argument("--quantity", type=float, required=True)
    purchase.add_argument("--total", type=float, required=True, help="Total price paid")
    purchase.add_argument("--date", type=_date, default=None, help="Purchase date (default today)")
    purchase.add_argument("--spec", default="")
    purchase.add_argument("--unit", default="")
    purchase.add_argument("--supplier", default="")
    purchase.add_argument("--id", dest="record_id", default=None)

    formula = sub.add_parser("add-formula", help="Record a product formula (or update one with --id)")
    formula.add_argument("--product", required=True)
    formula.add_argument("--quantity", type=float, required=True, help="Units produced by the formula")
    formula.add_argument("--material", dest="materials", type=_material, action="append", default=[],
                         help="NAME:AMOUNT, repeatable; priced from the latest purchase")
    formula.add_argument("--package-cost", type=float, default=0.0)
    formula.add_argument("--utility-cost", type=float, default=0.0)
    formula.add_argument("--id", dest="record_id", default=None)

    sale = sub.add_parser("add-sale", help="Record a sale (or update one with --id)")
    sale.add_argument("--product", required=True)
    sale.add_argument("--quantity", type=float, required=True)
    sale.add_argument("--total", type=float, required=True, help="Total amount received")
    sale.add_argument("--date", type=_date, default=None, help="Sale date (default today)")
    sale.add_argument("--id", dest="record_id", default=None)

    delete = sub.add_parser("delete", help="Delete one record")
    delete.add_argument("table", choices=sorted(render.VIEWS))
    delete.add_argument("record_id")

    return parser


async def _write(app: LedgerApp, args: argparse.Namespace) -> bool:
    if args.command == "add-purchase":
        return await app.save_purchase(
            args.name,
            args.quantity,
            args.total,
            args.date or datetime.date.today(),
            spec=args.spec,
            unit=args.unit,
            supplier=args.supplier,
            record_id=args.record_id,
        )
    if args.command == "add-formula":
        return await app.save_formula(
            args.product,
            args.quantity,
            args.materials,
            package_cost=args.package_cost,
            utility_cost=args.utility_cost,
            record_id=args.record_id,
        )
    if args.command == "add-sale":
        return await app.save_sale(
            args.date or datetime.date.today(),
            args.product,
            args.quantity,
            args.total,
            record_id=args.record_id,
        )
    return await app.delete(args.table, args.record_id)


async def _run(args: argparse.Namespace, store: ConfigStore) -> int:
    notifier = Notifier(sink=_print_notice)
    async with httpx.AsyncClient(timeout=config.http_timeout()) as http:
        app = LedgerApp.from_store(store, http, proxy_url=args.proxy_url, notifier=notifier)

        if args.command == "configure":
            return 0 if app.save_config(args.app_id, args.app_secret, args.sheet_token) else 1

        if args.command == "init":
            return 0 if await app.start() else 1

        if not await app.refresh():
            return 1

        if args.command in WRITE_COMMANDS:
            # prices and unit costs come from the loaded state; writes go by field id
            if not await app.load_field_maps():
                return 1
            return 0 if await _write(app, args) else 1

        if args.command == "list":
            print(render.VIEWS[args.table](app.state))
            return 0

        try:
            stats = app.stats(args.range_name, start_date=args.start, end_date=args.end)
        except ValueError as e:
            notifier.error(str(e))
            return 1
        print(render.render_stats(stats))
        return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    store = ConfigStore(args.config_path)

    if args.command == "serve":
        import uvicorn
        uvicorn.run("app_entry:app", host=args.host, port=args.port, log_level=config.LOG_LEVEL.lower())
        return 0

    return asyncio.run(_run(args, store))


if __name__ == "__main__":
    sys.exit(main())
