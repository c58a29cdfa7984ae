# Overview: Flask CLI command groups for schema bootstrap, inventory corrections and integrity checks.

# backend/fulfillment/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Schema:
# - python -m flask system init-db
#   Create any missing tables (use `flask db upgrade` for migrated deployments).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Inventory:
# - python -m flask inventory adjust --reason "Cycle count" [--type Damage] -- 12 -3
#   Signed stock correction through the ledger ("--" lets DELTA be negative).
# - python -m flask inventory low-stock [--category-id 2] [--exclude-out-of-stock]
#   Products at or below their reorder level.
#
# Integrity:
# - python -m flask integrity check [--fix]
#   Run integrity checks; exit code 1 while Critical issues remain.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models.inventory import TX_ADJUSTMENT
from .services import integrity_service, inventory_service
from .services.errors import FulfillmentError
from .services.inventory_service import ADJUST_TYPES


@click.group('system')
def system_group():
    """Schema bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet. Existing data is kept."""
    db.create_all()
    click.echo("PASS Database schema ready.")


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


@click.group('inventory')
def inventory_group():
    """Stock corrections and low-stock reporting."""


@inventory_group.command('adjust')
@click.argument('product_id', type=int)
@click.argument('delta', type=int)
@click.option('--reason', required=True, help='Why the count changed')
@click.option('--type', 'transaction_type', type=click.Choice(ADJUST_TYPES), default=TX_ADJUSTMENT,
              show_default=True, help='Ledger transaction type')
@click.option('--actor', default='cli', show_default=True, help='Recorded on the ledger row')
@with_appcontext
def adjust_cli(product_id, delta, reason, transaction_type, actor):
    """Apply a signed stock correction to PRODUCT_ID."""
    try:
        tx = inventory_service.adjust_inventory(
            product_id=product_id,
            delta=delta,
            reason=reason,
            transaction_type=transaction_type,
            actor=actor,
        )
    except FulfillmentError as e:
        raise click.ClickException(f"{e.code}: {e}")

    click.echo(
        f"PASS Product {product_id}: {tx.previous_stock} -> {tx.new_stock} "
        f"({transaction_type} {delta:+d}, ledger #{tx.id})"
    )


@inventory_group.command('low-stock')
@click.option('--category-id', type=int, help='Only this category')
@click.option('--exclude-out-of-stock', is_flag=True, help='Hide products with zero stock')
@with_appcontext
def low_stock_cli(category_id, exclude_out_of_stock):
    """List products at or below their reorder level."""
    rows = inventory_service.list_low_stock_products(
        category_id=category_id,
        include_out_of_stock=not exclude_out_of_stock,
    )
    if not rows:
        click.echo("PASS No low-stock products.")
        return

    click.echo(f"{'ID':<6} {'SKU':<16} {'Stock':>6} {'Reorder':>8} {'Suggest':>8}  Status")
    click.echo("-" * 64)
    for row in rows:
        click.echo(
            f"{row['product_id']:<6} {row['sku']:<16} {row['stock_quantity']:>6} "
            f"{row['reorder_level']:>8} {row['suggested_order_quantity']:>8}  {row['stock_status']}"
        )
    click.echo(f"\n{len(rows)} product(s)")


@click.group('integrity')
def integrity_group():
    """Data-integrity checks."""


@integrity_group.command('check')
@click.option('--fix', is_flag=True, help='Repair what can be repaired')
@click.option('--actor', default=integrity_service.DEFAULT_ACTOR, show_default=True)
@with_appcontext
def integrity_check_cli(fix, actor):
    """Run every integrity check and print the findings."""
    report = integrity_service.check_integrity(fix=fix, actor=actor)

    if report.is_clean:
        click.echo("PASS No integrity issues found.")
        return

    for issue in report.issues:
        fixed = " [fixed]" if issue.fix_applied else ""
        click.echo(f"{issue.severity:<9} {issue.entity:<22} {issue.count:>5}  {issue.description}{fixed}")

    remaining = report.critical_remaining
    if remaining:
        click.echo(f"\nFAIL {len(remaining)} critical issue(s) remain.")
        raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(integrity_group)
