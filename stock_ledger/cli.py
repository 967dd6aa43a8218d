"""
Operator command line for the stock ledger.

Usage:
    stock-ledger init-db
    stock-ledger levels --warehouse <uuid> [--product <uuid>] [--include-zero]
    stock-ledger movements --warehouse <uuid> [--type RECEIPT] [--limit 20]
    stock-ledger reconcile [--warehouse <uuid>]
    stock-ledger low-stock --warehouse <uuid>
    stock-ledger document --id <uuid>

Settings come from --config / STOCK_LEDGER_CONFIG and the environment;
--database-url overrides both.
"""

import argparse
import sys
from dataclasses import replace
from uuid import UUID

from stock_ledger.config import load_settings
from stock_ledger.db.engine import create_tables
from stock_ledger.domain.dtos import MovementFilter
from stock_ledger.domain.values import MovementType
from stock_ledger.exceptions import StockLedgerError
from stock_ledger.ledger import StockLedger, build_ledger


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="stock-ledger", description="Stock ledger operations")
    p.add_argument("--config", help="YAML settings file")
    p.add_argument("--database-url", help="Override the configured database URL")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create all ledger tables")

    levels = sub.add_parser("levels", help="List stock levels in a warehouse")
    levels.add_argument("--warehouse", type=UUID, required=True)
    levels.add_argument("--product", type=UUID)
    levels.add_argument("--location", type=UUID)
    levels.add_argument("--include-zero", action="store_true", help="Show empty levels too")

    movements = sub.add_parser("movements", help="Show movement history, newest first")
    movements.add_argument("--warehouse", type=UUID)
    movements.add_argument("--product", type=UUID)
    movements.add_argument("--location", type=UUID)
    movements.add_argument("--type", choices=[t.value for t in MovementType])
    movements.add_argument("--reference")
    movements.add_argument("--limit", type=int)
    movements.add_argument("--offset", type=int, default=0)

    reconcile = sub.add_parser("reconcile", help="Compare levels against movement sums")
    reconcile.add_argument("--warehouse", type=UUID)

    low = sub.add_parser("low-stock", help="Products at or below their reorder level")
    low.add_argument("--warehouse", type=UUID, required=True)

    document = sub.add_parser("document", help="Show a document, its lines and history")
    document.add_argument("--id", type=UUID, required=True, dest="document_id")

    return p.parse_args(argv)


def _levels(ledger: StockLedger, args: argparse.Namespace) -> int:
    levels = ledger.query_stock_levels(
        args.warehouse,
        product_id=args.product,
        location_id=args.location,
        include_zero=args.include_zero,
    )
    if not levels:
        print("  (no stock)")
        return 0
    for level in levels:
        print(f"  {level.product_sku:<20} {level.location_code:<12} {level.quantity:>10}")
    print(f"  {len(levels)} level(s)")
    return 0


def _movements(ledger: StockLedger, args: argparse.Namespace) -> int:
    page = ledger.query_movements(
        MovementFilter(
            warehouse_id=args.warehouse,
            product_id=args.product,
            location_id=args.location,
            movement_type=MovementType(args.type) if args.type else None,
            reference=args.reference,
            limit=args.limit,
            offset=args.offset,
        )
    )
    for m in page.movements:
        print(
            f"  {m.occurred_at:%Y-%m-%d %H:%M:%S}  {m.movement_type.value:<12} "
            f"{m.quantity_delta:>+8}  {m.reference or '-'}"
        )
    print(f"  showing {len(page.movements)} of {page.total}")
    return 0


def _reconcile(ledger: StockLedger, args: argparse.Namespace) -> int:
    mismatches = ledger.reconcile(args.warehouse)
    if not mismatches:
        print("  Ledger reconciled: every level matches its movements.")
        return 0
    for m in mismatches:
        print(
            f"  MISMATCH product={m.product_id} location={m.location_id} "
            f"level={m.level_quantity} movements={m.movement_total}",
            file=sys.stderr,
        )
    return 2


def _low_stock(ledger: StockLedger, args: argparse.Namespace) -> int:
    alerts = ledger.low_stock_alerts(args.warehouse)
    if not alerts:
        print("  No products at or below reorder level.")
        return 0
    for alert in alerts:
        print(f"  {alert.sku:<20} on hand {alert.total_quantity:>8}  reorder at {alert.reorder_level}")
    return 0


def _document(ledger: StockLedger, args: argparse.Namespace) -> int:
    doc = ledger.get_document(args.document_id)
    print(f"  {doc.reference_number}  {doc.document_type.value}  {doc.status.value}")
    for line in doc.lines:
        fulfilled = "-" if line.quantity_fulfilled is None else line.quantity_fulfilled
        print(
            f"    #{line.line_number} product={line.product_id} "
            f"ordered={line.quantity_ordered} fulfilled={fulfilled}"
        )
    for t in ledger.document_history(doc.id):
        print(f"    {t.occurred_at:%Y-%m-%d %H:%M:%S}  {t.from_status.value} -> {t.to_status.value}")
    return 0


_COMMANDS = {
    "levels": _levels,
    "movements": _movements,
    "reconcile": _reconcile,
    "low-stock": _low_stock,
    "document": _document,
}


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = load_settings(args.config)
    if args.database_url:
        settings = replace(settings, database_url=args.database_url)

    ledger = build_ledger(settings)

    if args.command == "init-db":
        create_tables()
        print("  Tables created.")
        return 0

    try:
        return _COMMANDS[args.command](ledger, args)
    except StockLedgerError as exc:
        print(f"  ERROR [{exc.code}]: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
