# Overview: Flask CLI command groups for database bootstrap and ledger inspection.

# backend/wardrobe/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create every table that does not exist yet (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Ledger inspection:
# - python -m flask ledger verify
#   Compare each item's cached status with its newest history entry and check
#   quantities; exits non-zero when anything drifted.
# - python -m flask ledger history 42
#   Print the status history of item 42, oldest first.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Item
from .services.status_history import StatusHistoryRecorder


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables (existing tables are left alone)."""
    click.echo("BUILD  Creating tables...")
    db.create_all()
    click.echo("PASS Database ready.")


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


@click.group('ledger')
def ledger_group():
    """Ledger consistency and audit commands."""


@ledger_group.command('verify')
@with_appcontext
def verify_ledger():
    """Report items whose cached status or quantity disagrees with the ledger."""
    recorder = StatusHistoryRecorder(db.session)
    problems = []

    for item in db.session.query(Item).order_by(Item.id).all():
        expected = recorder.current_status(item.id)
        if item.status != expected:
            problems.append(f"item {item.id}: cached status '{item.status}' but history says '{expected}'")
        if item.quantity is None or item.quantity < 0:
            problems.append(f"item {item.id}: invalid quantity {item.quantity}")

    if problems:
        for problem in problems:
            click.echo(f"FAIL {problem}")
        raise SystemExit(1)

    click.echo("PASS Ledger consistent.")


@ledger_group.command('history')
@click.argument('item_id', type=int)
@with_appcontext
def item_history(item_id):
    """Print an item's status history, oldest first."""
    item = db.session.get(Item, item_id)
    if item is None:
        click.echo(f"FAIL Item {item_id} not found")
        raise SystemExit(1)

    click.echo(f"{item.id} {item.name} (quantity={item.quantity}, status={item.status})")
    for entry in StatusHistoryRecorder(db.session).history(item_id):
        source = f"{entry.transaction_kind or '-'}#{entry.transaction_id or '-'}"
        click.echo(
            f"  {entry.occurred_at.isoformat()}  {entry.prior_status or '(new)'} -> {entry.new_status}  {source}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(ledger_group)
