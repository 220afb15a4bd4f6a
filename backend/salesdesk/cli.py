# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/salesdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed
#   Load a few demo customers and products into an empty database.
#
# Inventory inspection/repair:
# - python -m flask inventory low-stock
#   List products at or below their minimum stock level.
# - python -m flask inventory adjust 3 25 --type purchase --note "Supplier delivery" --actor-id 1
#   Post a stock adjustment (same rules as POST /api/inventory/adjust).

import click
from flask.cli import with_appcontext

from .errors import SalesDeskError
from .extensions import db
from .models import Customer, Product
from .services import inventory_service
from .services.inventory_service import USER_ADJUSTMENT_TYPES
from .validation import ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database schema is up to date.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system seed' to load demo data.")


DEMO_CUSTOMERS = [
    {"name": "Ana Costa", "email": "ana@example.com", "city": "Lisbon"},
    {"name": "Bruno Lima", "email": "bruno@example.com", "city": "Porto"},
]

DEMO_PRODUCTS = [
    {"sku": "TSHIRT-BLK-M", "name": "T-shirt black M", "price_cents": 1999, "cost_price_cents": 800,
     "stock_quantity": 50, "min_stock_level": 10, "category": "Apparel"},
    {"sku": "MUG-WHT", "name": "Mug white", "price_cents": 899, "cost_price_cents": 300,
     "stock_quantity": 30, "min_stock_level": 5, "category": "Home"},
    {"sku": "CAP-RED", "name": "Cap red", "price_cents": 1499, "cost_price_cents": 600,
     "stock_quantity": 4, "min_stock_level": 5, "category": "Apparel"},
]


@system_group.command('seed')
@with_appcontext
def seed():
    """Load demo customers and products. Skips when products already exist."""
    if db.session.query(Product.id).first() is not None:
        click.echo("WARN  Products already exist, skipping seed.")
        return

    for row in DEMO_CUSTOMERS:
        db.session.add(Customer(**row))
    for row in DEMO_PRODUCTS:
        db.session.add(Product(is_active=True, **row))
    db.session.commit()

    click.echo(f"PASS Seeded {len(DEMO_CUSTOMERS)} customers and {len(DEMO_PRODUCTS)} products")


# =============================================================================
# INVENTORY COMMANDS
# =============================================================================

@click.group('inventory')
def inventory_group():
    """Inventory inspection and adjustment commands."""


@inventory_group.command('low-stock')
@with_appcontext
def low_stock():
    """List products at or below their minimum stock level."""
    products = inventory_service.get_low_stock_products()

    if not products:
        click.echo("No low-stock products.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'ID':<5} {'SKU':<20} {'Name':<25} {'Stock':<8} {'Min'}")
    click.echo("="*70)

    for p in products:
        click.echo(f"{p.id:<5} {p.sku:<20} {p.name[:25]:<25} {p.stock_quantity:<8} {p.min_stock_level}")

    click.echo("="*70 + "\n")


@inventory_group.command('adjust')
@click.argument('product_id', type=int)
@click.argument('delta', type=int)
@click.option('--type', 'transaction_type', type=click.Choice(USER_ADJUSTMENT_TYPES), default='adjustment',
              help='Transaction type')
@click.option('--note', default=None, help='Free-text note stored on the transaction')
@click.option('--actor-id', type=int, required=True, help='User id recorded as created_by')
@with_appcontext
def adjust(product_id, delta, transaction_type, note, actor_id):
    """Add (positive DELTA) or remove (negative DELTA) stock."""
    try:
        tx = inventory_service.adjust_inventory(
            product_id=product_id,
            quantity_delta=delta,
            transaction_type=transaction_type,
            actor_id=actor_id,
            note=note,
        )
    except (ValidationError, SalesDeskError) as e:
        raise click.ClickException(str(e))

    summary = inventory_service.get_inventory_summary(product_id)
    click.echo(
        f"PASS Transaction {tx.id}: product {product_id} {delta:+d} ({transaction_type}), "
        f"stock now {summary['stock_quantity']}"
    )
    if summary["is_low_stock"]:
        click.echo(f"WARN  Product {product_id} is at or below its minimum level ({summary['min_stock_level']})")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)
