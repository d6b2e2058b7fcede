# Overview: Flask CLI command groups for bootstrap, inspection, and stock processing.

# backend/truckcheck/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system init-db
#   Create all tables (no-op for tables that already exist).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Inventory store:
# - python -m flask inventory add-item --name "Copper Pipe 1/2in" --sku CP-12 --quantity 40
#   Register an item with an opening quantity.
# - python -m flask inventory show
#   List items with quantity on hand.
#
# Aliases:
# - python -m flask aliases add --canonical "Copper Pipe 1/2in" --alias "1/2 copper" --alias "cu pipe half"
#   Create a mapping, or add aliases to an existing one.
#
# Checkouts:
# - python -m flask checkouts list --status completed --limit 20
#   List recent checkouts.
# - python -m flask checkouts tally 12
#   Re-fetch invoices for checkout 12 and print the discrepancies.
# - python -m flask checkouts process-stock 12
#   Apply checkout 12's tally to inventory (once).

import click
from flask.cli import with_appcontext

from .errors import TallyError
from .extensions import db
from .models import ItemNameMapping
from .services import alias_service, checkout_service, inventory_service, stock_processor
from .services.alias_service import normalize_name


@click.group('system')
def system_group():
    """Database bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables."""
    db.create_all()
    click.echo("PASS Tables created.")


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
    """Inventory store commands."""


@inventory_group.command('add-item')
@click.option('--name', required=True, help='Item name (resolved through aliases)')
@click.option('--sku', help='SKU')
@click.option('--quantity', type=int, default=0, show_default=True, help='Opening quantity on hand')
@with_appcontext
def add_item_cli(name, sku, quantity):
    try:
        item = inventory_service.register_item(name, sku=sku, opening_quantity=quantity)
    except TallyError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created item {item.id}: {item.name} ({item.canonical_name}), on hand {quantity}")


@inventory_group.command('show')
@click.option('--all', 'include_inactive', is_flag=True, help='Include inactive items')
@with_appcontext
def show_inventory_cli(include_inactive):
    items = inventory_service.list_items(include_inactive=include_inactive)
    if not items:
        click.echo("No inventory items found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<35} {'SKU':<15} {'On hand':>10}")
    click.echo("="*80)
    for item in items:
        click.echo(f"{item['id']:<5} {item['name'][:35]:<35} {(item['sku'] or '-'):<15} {item['quantity_on_hand']:>10}")
    click.echo("="*80 + "\n")


@click.group('aliases')
def aliases_group():
    """Item alias commands."""


@aliases_group.command('add')
@click.option('--canonical', required=True, help='Canonical item name')
@click.option('--alias', 'aliases', multiple=True, help='Alias (repeatable)')
@with_appcontext
def add_aliases_cli(canonical, aliases):
    """Create a mapping, or extend an existing one with more aliases."""
    try:
        mapping = db.session.query(ItemNameMapping).filter_by(normalized_name=normalize_name(canonical)).first()
        if mapping is None:
            mapping = alias_service.create_mapping(canonical, aliases=list(aliases))
            click.echo(f"PASS Created mapping {mapping.id}: {mapping.canonical_name}")
        else:
            for alias in aliases:
                mapping = alias_service.add_alias(mapping.id, alias)
            click.echo(f"PASS Updated mapping {mapping.id}: {mapping.canonical_name}")
    except TallyError as e:
        raise click.ClickException(e.message)

    names = ", ".join(a.name for a in mapping.aliases) or "none"
    click.echo(f"     aliases: {names}")


@click.group('checkouts')
def checkouts_group():
    """Truck checkout inspection and processing."""


@checkouts_group.command('list')
@click.option('--status', type=click.Choice(checkout_service.CHECKOUT_STATUSES), help='Filter by status')
@click.option('--limit', type=int, default=20, show_default=True)
@with_appcontext
def list_checkouts_cli(status, limit):
    result = checkout_service.list_checkouts(status=status, limit=limit)
    checkouts = result["checkouts"]
    if not checkouts:
        click.echo("No checkouts found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<6} {'Employee':<25} {'Truck':<10} {'Status':<12} {'Date':<20} {'Units':>6} {'Invoices'}")
    click.echo("="*100)
    for c in checkouts:
        invoices = ", ".join(c.invoice_numbers or []) or "-"
        click.echo(
            f"{c.id:<6} {c.employee_name[:25]:<25} {(c.truck_number or '-'):<10} {c.status:<12} "
            f"{str(c.checkout_date)[:19]:<20} {c.total_quantity_taken:>6} {invoices}"
        )
    click.echo("="*100 + "\n")


@checkouts_group.command('tally')
@click.argument('checkout_id', type=int)
@with_appcontext
def tally_checkout_cli(checkout_id):
    """Re-fetch invoices and replace the stored tally."""
    try:
        _, result = checkout_service.retally(checkout_id, actor="cli")
    except TallyError as e:
        raise click.ClickException(e.message)

    summary = result.summary()
    click.echo(
        f"Invoices fetched: {summary['fetched_invoices']}/{summary['total_invoices']}"
        + ("  (PARTIAL)" if summary["partial"] else "")
    )
    for number, status in result.invoice_statuses.items():
        if status != "fetched":
            click.echo(f"  WARN {number}: {status}")

    click.echo(f"{'Item':<35} {'Taken':>7} {'Sold':>7} {'Diff':>7}  Status")
    for row in result.discrepancies:
        click.echo(
            f"{row.canonical_name[:35]:<35} {row.quantity_taken:>7} {row.quantity_sold:>7} "
            f"{row.difference:>+7}  {row.status}"
        )


@checkouts_group.command('process-stock')
@click.argument('checkout_id', type=int)
@with_appcontext
def process_stock_cli(checkout_id):
    """Apply a completed checkout's tally to inventory."""
    try:
        report = stock_processor.process_stock(checkout_id, actor="cli")
    except TallyError as e:
        raise click.ClickException(e.message)

    for name, qty in report.added_back.items():
        click.echo(f"PASS {name}: added back {qty}")
    for name, qty in report.tracked_used.items():
        click.echo(f"USED {name}: {qty} tracked as used")
    for err in report.errors:
        click.echo(f"FAIL {err.canonical_name}: {err.reason}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(aliases_group)
    app.cli.add_command(checkouts_group)
