# Overview: Flask CLI command groups for branch bootstrap, ledger reconciliation and maintenance.

# backend/laundry/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Branch bootstrap/inspection:
# - python -m flask branches create --code DT --name "Downtown" --address "12 Main St" --tax-bps 850
#   Create a branch (code is the order-number prefix and the public delivery key).
# - python -m flask branches list
#   List branches with tax rate, active flag and order count.
#
# Ledger:
# - python -m flask ledger reconcile
#   Report customers whose balance_due differs from pay-later orders minus payments.
# - python -m flask ledger reconcile --fix
#   Same, then correct the drift with an atomic balance adjustment.
#
# System:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Branch, Order
from .services import reconciliation_service


# =============================================================================
# SYSTEM COMMANDS
# =============================================================================

@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


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

    click.echo("PASS Database reset complete. Run 'python -m flask branches create' to add a branch.")


# =============================================================================
# BRANCH COMMANDS
# =============================================================================

@click.group('branches')
def branches_group():
    """Branch (store location) management commands."""


@branches_group.command('create')
@click.option('--code', required=True, help='Short code (unique, order-number prefix)')
@click.option('--name', required=True, help='Branch name')
@click.option('--address', default=None, help='Street address (delivery pickup point)')
@click.option('--lat', type=float, default=None, help='Latitude')
@click.option('--lng', type=float, default=None, help='Longitude')
@click.option('--tax-bps', type=int, default=0, show_default=True, help='Tax rate in basis points (850 = 8.5%)')
@with_appcontext
def create_branch_cli(code, name, address, lat, lng, tax_bps):
    """Create a new branch."""
    code = code.strip().upper()
    existing = db.session.query(Branch).filter_by(code=code).first()
    if existing:
        click.echo(f"FAIL Branch with code '{code}' already exists")
        return

    if tax_bps < 0:
        click.echo("FAIL --tax-bps must be >= 0")
        return

    branch = Branch(code=code, name=name, address=address, lat=lat, lng=lng, tax_rate_bps=tax_bps, is_active=True)
    db.session.add(branch)
    db.session.commit()

    click.echo(f"PASS Created branch: {branch.name} (ID: {branch.id}, Code: {branch.code})")


@branches_group.command('list')
@with_appcontext
def list_branches_cli():
    """List all branches."""
    branches = db.session.query(Branch).order_by(Branch.id).all()

    if not branches:
        click.echo("No branches found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Code':<10} {'Name':<30} {'Tax bps':<9} {'Active':<8} {'Orders'}")
    click.echo("="*80)

    for branch in branches:
        order_count = db.session.query(Order).filter_by(branch_id=branch.id).count()
        active_str = "Yes" if branch.is_active else "No"

        click.echo(f"{branch.id:<5} {branch.code:<10} {branch.name:<30} {branch.tax_rate_bps:<9} {active_str:<8} {order_count}")

    click.echo("="*80 + "\n")


# =============================================================================
# LEDGER COMMANDS
# =============================================================================

@click.group('ledger')
def ledger_group():
    """Customer balance ledger commands."""


@ledger_group.command('reconcile')
@click.option('--fix', is_flag=True, help='Correct drift after reporting it')
@with_appcontext
def reconcile_cli(fix):
    """
    Check balance_due = sum(pay-later orders) - sum(payments) for every customer.

    Pay-later orders whose balance effect was never applied are applied
    first; this is always safe to re-run.
    """
    result = reconciliation_service.reconcile(fix=fix)

    if result["applied_orders"]:
        click.echo(f"PASS Applied missing pay-later balance on {result['applied_orders']} orders")

    if not result["drift"]:
        click.echo("PASS All customer balances match their orders and payments.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'Customer':<10} {'Recorded':<15} {'Expected':<15} {'Delta'}")
    click.echo("="*80)
    for item in result["drift"]:
        click.echo(f"{item['customer_id']:<10} {item['recorded']:<15} {item['expected']:<15} {item['delta']}")
    click.echo("="*80 + "\n")

    if fix:
        click.echo(f"PASS Corrected {result['fixed']} customer balances")
    else:
        click.echo(f"WARN {len(result['drift'])} customer balances drifted. Re-run with --fix to correct.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(branches_group)
    app.cli.add_command(ledger_group)
