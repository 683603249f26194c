# Overview: Flask CLI command groups for schema bootstrap, demo data, and stock ledger audits.

# backend/clubdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Use: python -m flask --app clubdesk <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask --app clubdesk system init-db
#   Create all tables that do not exist yet (idempotent).
# - python -m flask --app clubdesk system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask --app clubdesk system seed-demo
#   Insert a small demo venue: staff, a client, tables, categories and items.
#
# Stock ledger audits:
# - python -m flask --app clubdesk inventory verify
#   Check current_stock == initial_stock + SUM(movements) for every tracked item.
#   Exits non-zero when a discrepancy is found.
# - python -m flask --app clubdesk inventory low-stock
#   List tracked items at or below their low-stock threshold.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Client, StaffMember, GameTable, PricelistCategory, PricelistItem
from .services import catalog_service, stock_ledger_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables. Existing data is kept."""
    db.create_all()
    click.echo("PASS Database schema ready")


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

    click.echo("PASS Database reset complete")


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """
    Insert demo venue data if the catalog is empty.

    Creates:
    - Staff: one manager, one bartender
    - Client: one regular
    - Tables: two billiard tables with hourly rates
    - Items: a stock-tracked beer, a stock-tracked snack and an untracked hookah service
    """
    if db.session.query(PricelistItem).first() is not None:
        click.echo("SKIP Catalog already has items; nothing seeded")
        return

    staff = [
        StaffMember(full_name="Demo Manager", position="manager"),
        StaffMember(full_name="Demo Bartender", position="bartender"),
    ]
    client = Client(full_name="Demo Regular", phone_number="+10000000000")
    tables = [
        GameTable(name="Billiard 1", capacity=4, hourly_rate_cents=1500),
        GameTable(name="Billiard 2", capacity=6, hourly_rate_cents=2000),
    ]
    bar = PricelistCategory(name="Bar")
    kitchen = PricelistCategory(name="Kitchen")
    hookah = PricelistCategory(name="Hookah")
    db.session.add_all([*staff, client, *tables, bar, kitchen, hookah])
    db.session.commit()

    items = [
        catalog_service.create_item(
            category_id=bar.id, name="Draft Beer", item_type="BAR", price_cents=500,
            tracks_stock=True, current_stock=48, low_stock_threshold=10,
        ),
        catalog_service.create_item(
            category_id=kitchen.id, name="Nachos", item_type="SNACK", price_cents=800,
            tracks_stock=True, current_stock=20, low_stock_threshold=5,
        ),
        catalog_service.create_item(
            category_id=hookah.id, name="Classic Hookah", item_type="HOOKAH", price_cents=2000,
        ),
    ]

    click.echo(f"PASS Seeded {len(staff)} staff, 1 client, {len(tables)} tables, {len(items)} items")


@click.group('inventory')
def inventory_group():
    """Stock ledger inspection commands."""


@inventory_group.command('verify')
@with_appcontext
def verify_inventory():
    """Audit stored stock against initial stock plus the movement trail."""
    problems = stock_ledger_service.stock_discrepancies()
    if not problems:
        click.echo("PASS Stock ledger consistent")
        return

    for p in problems:
        click.echo(
            f"FAIL Item {p['item_id']} ({p['name']}): "
            f"current_stock={p['current_stock']} expected={p['expected_stock']}"
        )
    raise click.ClickException(f"{len(problems)} item(s) with stock discrepancies")


@inventory_group.command('low-stock')
@with_appcontext
def low_stock():
    """List tracked items at or below their low-stock threshold."""
    items = stock_ledger_service.low_stock_items()
    if not items:
        click.echo("No items below threshold")
        return

    for item in items:
        click.echo(
            f"LOW  {item.id:>4}  {item.name:<30} stock={item.current_stock} threshold={item.low_stock_threshold}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)
