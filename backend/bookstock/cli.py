# Overview: Flask CLI command groups for bootstrap, reference data and alert maintenance.

# backend/bookstock/cli.py
# Commands Legend (run from the backend directory):
# Setup:
# - pip install -e ".[test]" from the repository root.
# - Export FLASK_APP=wsgi.py (DATABASE_URL picks the database, SQLite by default).
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Reference data:
# - python -m flask books add --title "Dune" --isbn 9780441013593
#   Register a book identity so the ledger can reference it.
# - python -m flask locations add --kind WAREHOUSE --code WH-01 --name "Central"
#   Create a warehouse or store.
#
# Alerts:
# - python -m flask alerts refresh
#   Recompute low-stock alerts for every ledger row (retries failed refreshes).
# - python -m flask alerts list --status OPEN --limit 20
#   Print alerts.

import click
from flask.cli import with_appcontext

from .errors import InventoryError
from .extensions import db
from .models.registry import LOCATION_KINDS
from .services import alert_service, catalog_service, location_service

CLI_ACTOR = "cli"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database schema ready.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: wipe the ledger, transfers, alerts and procurement history.

    Drops every table and recreates an empty schema.
    """
    if not yes:
        click.confirm("WARN Every stock row, transfer and purchase order will be lost. Continue?", abort=True)

    table_count = len(db.metadata.sorted_tables)
    click.echo(f"DELETE  Dropping {table_count} tables...")
    db.drop_all()

    click.echo("BUILD  Recreating empty schema...")
    db.create_all()

    click.echo("PASS Database reset complete.")


@click.group('books')
def books_group():
    """Book identity registry."""


@books_group.command('add')
@click.option('--title', required=True, help='Book title')
@click.option('--isbn', default=None, help='ISBN (unique when given)')
@with_appcontext
def add_book(title, isbn):
    try:
        book = catalog_service.create_book(title=title, isbn=isbn)
    except InventoryError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created book: {book.title} (ID: {book.id})")


@click.group('locations')
def locations_group():
    """Warehouse and store registry."""


@locations_group.command('add')
@click.option('--kind', type=click.Choice(LOCATION_KINDS, case_sensitive=False), required=True)
@click.option('--code', required=True, help='Location code (immutable)')
@click.option('--name', required=True, help='Display name')
@click.option('--city', default=None)
@click.option('--region', default=None)
@with_appcontext
def add_location(kind, code, name, city, region):
    details = {k: v for k, v in {"city": city, "region": region}.items() if v}
    try:
        location = location_service.create_location(
            kind=kind.upper(), code=code, name=name, actor_id=CLI_ACTOR, **details
        )
    except InventoryError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created {location.kind.lower()}: {location.name} (ID: {location.id}, Code: {location.code})")


@click.group('alerts')
def alerts_group():
    """Low-stock alert maintenance."""


@alerts_group.command('refresh')
@with_appcontext
def refresh_alerts_cli():
    """Re-evaluate every ledger row and open/resolve alerts to match."""
    result = alert_service.recompute_all_alerts()
    click.echo(
        f"PASS Checked {result['checked']} rows: "
        f"{result['opened']} opened, {result['resolved']} resolved, {len(result['failed'])} failed"
    )
    if result["failed"]:
        raise click.ClickException("Some alerts could not be refreshed; see the log")


@alerts_group.command('list')
@click.option('--status', default='OPEN', show_default=True, help='OPEN, RESOLVED or ALL')
@click.option('--limit', type=int, default=None, help='Max rows')
@with_appcontext
def list_alerts_cli(status, limit):
    try:
        alerts = alert_service.list_alerts(status=status, limit=limit)
    except InventoryError as e:
        raise click.ClickException(str(e))

    if not alerts:
        click.echo("No alerts found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<6} {'Status':<10} {'Location':<20} {'Book':<8} {'Qty':<6} {'Threshold':<10} {'Opened'}")
    click.echo("="*80)
    for alert in alerts:
        location = f"{alert.location.kind[0]}:{alert.location.code}" if alert.location else "-"
        click.echo(
            f"{alert.id:<6} {alert.status:<10} {location:<20} {alert.book_id:<8} "
            f"{alert.quantity:<6} {alert.threshold:<10} {alert.created_at:%Y-%m-%d %H:%M}"
        )
    click.echo("="*80 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(books_group)
    app.cli.add_command(locations_group)
    app.cli.add_command(alerts_group)
