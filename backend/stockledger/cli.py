# Overview: Flask CLI command groups for bootstrap and ledger inspection.

# backend/stockledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP (PowerShell: $env:FLASK_APP="stockledger:create_app").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Ledger inspection:
# - python -m flask ledger check [--store-id 1]
#   Compare stock against the movement ledger; exits 1 on any discrepancy.
#
# Stock inspection:
# - python -m flask stock show --store-id 1 [--low-stock]
#   Print current stock levels for a store.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import consistency_service, stock_service
from .services.catalog_service import get_store


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables (idempotent)."""
    db.create_all()
    click.echo("OK  Database tables created")


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

    click.echo("OK  Database reset complete")


@click.group('ledger')
def ledger_group():
    """Movement ledger inspection commands."""


@ledger_group.command('check')
@click.option('--store-id', type=int, help='Only check one store')
@with_appcontext
def ledger_check(store_id):
    """
    Verify that every stock quantity equals its signed ledger total.

    Example:
        flask ledger check
        flask ledger check --store-id 1
    """
    discrepancies = consistency_service.find_discrepancies(store_id)
    if not discrepancies:
        click.echo("OK  Stock matches the movement ledger")
        return

    click.echo("\n" + "=" * 72)
    click.echo(f"{'Product':<10} {'Store':<8} {'Stock':>10} {'Ledger':>10} {'Difference':>12}")
    click.echo("=" * 72)
    for d in discrepancies:
        click.echo(
            f"{d.product_id:<10} {d.store_id:<8} {d.stock_quantity:>10} "
            f"{d.ledger_total:>10} {d.difference:>12}"
        )
    click.echo("=" * 72)
    click.echo(f"FAIL  {len(discrepancies)} discrepancies found")
    raise click.exceptions.Exit(1)


@click.group('stock')
def stock_group():
    """Stock level inspection commands."""


@stock_group.command('show')
@click.option('--store-id', type=int, required=True, help='Store ID')
@click.option('--low-stock', is_flag=True, help='Only rows at or under min_stock_level')
@with_appcontext
def stock_show(store_id, low_stock):
    """
    Show current stock levels for a store.

    Example:
        flask stock show --store-id 1
        flask stock show --store-id 1 --low-stock
    """
    store = get_store(store_id)
    if store is None:
        click.echo(f"ERROR  Store {store_id} not found")
        raise click.exceptions.Exit(1)

    rows = stock_service.list_stock(store_id=store_id, low_stock=low_stock)
    if not rows:
        click.echo("No stock found.")
        return

    click.echo(f"\nStore: {store.name}")
    click.echo("=" * 72)
    click.echo(f"{'SKU':<16} {'Product':<30} {'Qty':>8} {'Min':>8}")
    click.echo("=" * 72)
    for row in rows:
        product = row.product
        click.echo(
            f"{product.sku:<16} {product.name[:30]:<30} {row.quantity:>8} {product.min_stock_level:>8}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(ledger_group)
    app.cli.add_command(stock_group)
