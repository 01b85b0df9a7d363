# Overview: Flask CLI command group for database bootstrap, demo seeding and stock inspection.

# backend/poscore/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to poscore (PowerShell: $env:FLASK_APP="poscore").
# - Use: python -m flask pos <command> [options]
#
# - python -m flask pos init-db
#   Create all tables (use `flask db upgrade` for migrated deployments).
# - python -m flask pos seed [--reset]
#   Load the demo catalog and default CASH/BANK accounts (idempotent by SKU/name).
# - python -m flask pos stock 12345678
#   Show stock and the latest movements for one SKU.
# - python -m flask pos accounts
#   List cash/bank accounts with balances.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Item
from .services import catalog_service, ledger_service


DEMO_ITEMS = [
    # sku, name, category, cost_price_cents, selling_price_cents, stock_qty
    ("123456789", "Laptop", "Electronics", 5_000_000, 6_500_000, 10),
    ("MSE-002", "Wireless Mouse", "Electronics", 50_000, 99_900, 50),
    ("KEY-003", "Keyboard", "Electronics", 80_000, 149_900, 30),
    ("12345678", "USB Cable", "Accessories", 6_000, 10_000, 100),
    ("4006381333931", "Highlighter Pen", "Stationery", 2_500, 4_900, 200),
]

DEFAULT_ACCOUNTS = [
    ("Cash Drawer", ledger_service.ACCOUNT_TYPE_CASH),
    ("Main Bank", ledger_service.ACCOUNT_TYPE_BANK),
]


@click.group('pos')
def pos_group():
    """POS bootstrap and inspection commands."""


@pos_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables for the configured database."""
    db.create_all()
    click.echo("PASS Tables created")


@pos_group.command('seed')
@click.option('--reset', is_flag=True, help='Drop and recreate all tables first (deletes all data)')
@with_appcontext
def seed(reset):
    """Load demo items and default cash/bank accounts."""
    if reset:
        db.drop_all()
    db.create_all()

    click.echo("START Seeding catalog...")
    created = 0
    for sku, name, category, cost, price, stock in DEMO_ITEMS:
        if db.session.query(Item).filter_by(sku=sku).first():
            click.echo(f"WARN  Item '{sku}' already exists, skipping...")
            continue
        db.session.add(Item(
            sku=sku,
            name=name,
            category=category,
            cost_price_cents=cost,
            selling_price_cents=price,
            stock_qty=stock,
        ))
        created += 1
    click.echo(f"PASS Created {created} items")

    existing = {a.name for a in ledger_service.list_accounts(include_inactive=True)}
    for name, account_type in DEFAULT_ACCOUNTS:
        if name in existing:
            click.echo(f"WARN  Account '{name}' already exists, skipping...")
            continue
        ledger_service.create_account(name, account_type)
        click.echo(f"PASS Created {account_type} account: {name}")

    db.session.commit()
    click.echo("DONE Seed complete")


@pos_group.command('stock')
@click.argument('sku')
@click.option('--limit', default=10, show_default=True, help='Movements to show')
@with_appcontext
def show_stock(sku, limit):
    """Show stock and recent movements for a SKU."""
    item = catalog_service.get_item(sku)
    if item is None:
        raise click.ClickException(f"No active item with SKU {sku!r}")

    click.echo(f"{item.sku}  {item.name}  stock={item.stock_qty}  price={item.selling_price_cents}c")
    for movement in catalog_service.get_stock_movements(item.id, limit=limit):
        click.echo(
            f"  {movement.created_at}  {movement.movement_type:<6}  "
            f"{movement.quantity_delta:+d}  -> {movement.stock_after}  {movement.note or ''}"
        )


@pos_group.command('accounts')
@with_appcontext
def show_accounts():
    """List cash/bank accounts."""
    for account in ledger_service.list_accounts(include_inactive=True):
        status = "active" if account.is_active else "inactive"
        click.echo(f"{account.id:>3}  {account.name:<20} {account.account_type:<5} {account.balance_cents:>12}c  {status}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(pos_group)
