# Overview: Flask CLI command groups for bootstrap, inspection, and stock maintenance.

# backend/scanstock/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Create any missing tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Catalog:
# - python -m flask products list [--keyword milk] [--all]
# - python -m flask products create --barcode 6901234567890 --name "Milk 1L" --price 3.50 [--stock 12] [--expiry 2026-12-31]
#
# Inventory:
# - python -m flask inventory adjust 6901234567890 --mode add --quantity 5 --reason restock --scope both --operator admin
#   Manual adjustment by barcode (add --by-id to pass a numeric product id).
# - python -m flask inventory audit
#   Report products violating 0 <= available_stock <= stock. Exits 1 if any.
#
# Outbound:
# - python -m flask outbound stats

import click
from flask.cli import with_appcontext

from .errors import StockError
from .extensions import db
from .models import Product
from .services import outbound_service, products_service
from .services.inventory_service import adjust
from .services.stock_ledger_service import find_invariant_violations
from .validation import PRODUCT_POLICY, enforce_rules_product, validate_payload


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create all tables that do not exist yet."""
    click.echo("START Initializing scanstock schema...")
    db.create_all()
    click.echo("PASS Schema ready.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


@click.group('products')
def products_group():
    """Catalog inspection and bootstrap."""


@products_group.command('list')
@click.option('--keyword', default=None, help='Substring of name or barcode')
@click.option('--all', 'show_all', is_flag=True, help='Include inactive products')
@with_appcontext
def list_products_cli(keyword, show_all):
    result = products_service.list_products(keyword=keyword, include_inactive=show_all)

    if not result["items"]:
        click.echo("No products found.")
        return

    click.echo(f"{'ID':<6} {'BARCODE':<20} {'NAME':<30} {'PRICE':>10} {'STOCK':>7} {'AVAIL':>7} {'ACTIVE':<6}")
    click.echo("-" * 92)
    for p in result["items"]:
        click.echo(
            f"{p['id']:<6} {p['barcode']:<20} {p['name'][:30]:<30} {p['price']:>10} "
            f"{p['stock']:>7} {p['available_stock']:>7} {'yes' if p['is_active'] else 'no':<6}"
        )
    click.echo(f"\n{result['count']} product(s)")


@products_group.command('create')
@click.option('--barcode', required=True)
@click.option('--name', required=True)
@click.option('--price', required=True)
@click.option('--stock', type=int, default=0, show_default=True, help='Opening stock (booked as a restock)')
@click.option('--expiry', default=None, help='Expiry date YYYY-MM-DD')
@click.option('--operator', default='cli', show_default=True)
@with_appcontext
def create_product_cli(barcode, name, price, stock, expiry, operator):
    payload = {"barcode": barcode, "name": name, "price": price, "stock": stock}
    if expiry:
        payload["expiry_date"] = expiry

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        product = products_service.create_product(patch=patch, operator_id=operator)
    except StockError as e:
        raise click.ClickException(f"{e.kind}: {e.message}")

    click.echo(f"PASS Created product {product.barcode} (ID: {product.id}) stock={product.stock}")


@click.group('inventory')
def inventory_group():
    """Stock adjustments and invariant checks."""


@inventory_group.command('adjust')
@click.argument('product')
@click.option('--mode', type=click.Choice(['add', 'subtract', 'set']), required=True)
@click.option('--quantity', type=int, required=True)
@click.option('--reason', default='adjustment', show_default=True)
@click.option('--scope', type=click.Choice(['available_only', 'both', 'total_only']), default='available_only',
              show_default=True)
@click.option('--operator', default='cli', show_default=True)
@click.option('--note', default=None)
@click.option('--by-id', is_flag=True, help='Treat PRODUCT as a numeric product id instead of a barcode')
@with_appcontext
def adjust_cli(product, mode, quantity, reason, scope, operator, note, by_id):
    """Adjust stock for PRODUCT (barcode, or id with --by-id)."""
    if by_id and not product.isdigit():
        raise click.BadParameter('PRODUCT must be numeric with --by-id')
    product_ref = int(product) if by_id else product

    try:
        result = adjust(product_ref, mode, quantity, reason, operator, scope=scope, note=note)
    except StockError as e:
        raise click.ClickException(f"{e.kind}: {e.message}")

    s = result.snapshot
    click.echo(
        f"PASS {result.product.barcode}: stock {s.stock_before} -> {s.stock_after}, "
        f"available {s.available_before} -> {s.available_after} (log {result.log.id})"
    )


@inventory_group.command('audit')
@with_appcontext
def audit_cli():
    """Report products whose counters break 0 <= available_stock <= stock."""
    violations = find_invariant_violations()
    if not violations:
        click.echo("PASS All products satisfy 0 <= available_stock <= stock.")
        return

    for v in violations:
        click.echo(
            f"FAIL product {v['product_id']} ({v['barcode']}): "
            f"stock={v['stock']} available_stock={v['available_stock']}"
        )
    raise SystemExit(1)


@click.group('outbound')
def outbound_group():
    """Outbound scan statistics."""


@outbound_group.command('stats')
@with_appcontext
def outbound_stats_cli():
    stats = outbound_service.outbound_statistics()
    for key, value in stats.items():
        click.echo(f"{key:<24} {value}")

    popular = outbound_service.popular_outbound(5)
    if popular:
        click.echo("\nMost scanned:")
        for row in popular:
            click.echo(f"  {row['barcode']:<20} {row['event_count']:>5} events  {row['product_name'] or '(unknown)'}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(products_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(outbound_group)
