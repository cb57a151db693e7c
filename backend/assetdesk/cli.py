# Overview: Flask CLI command groups for bootstrap, accounts, and inventory maintenance.

# backend/assetdesk/cli.py
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
# Account inspection/bootstrap:
# - python -m flask accounts list [--role hr]
#   List accounts with role, company and seat usage.
# - python -m flask accounts create-hr --name "Ada" --email ada@acme.io --password "Secret1" --company "Acme" --package standard
#   Create an HR account (prompts if options are omitted).
#
# Inventory maintenance:
# - python -m flask inventory audit
#   Report assets breaking 0 <= available <= total and HR seat-count drift.
# - python -m flask inventory audit --fix
#   Same, then recount current_employees from the affiliation rows.

import click
from flask.cli import with_appcontext

from .errors import AssetDeskError
from .extensions import db
from .models import User
from .models.accounts import ROLE_EMPLOYEE, ROLE_HR
from .services import account_service
from .services.account_service import PACKAGES, DEFAULT_PACKAGE
from .services.affiliation_service import recount_seats
from .services.inventory_service import audit_inventory


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create all tables that do not exist yet. Safe to run repeatedly."""
    click.echo("START Initializing AssetDesk schema...")
    db.create_all()
    click.echo("DONE Schema ready. Register an HR account with 'flask accounts create-hr'.")


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


@click.group('accounts')
def accounts_group():
    """Account inspection and bootstrap commands."""


@accounts_group.command('list')
@click.option('--role', type=click.Choice([ROLE_EMPLOYEE, ROLE_HR]), help='Filter by role')
@with_appcontext
def list_accounts(role):
    """List accounts with their role and seat usage."""
    query = db.session.query(User)
    if role:
        query = query.filter_by(role=role)

    users = query.order_by(User.id).all()

    if not users:
        click.echo("No accounts found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Role':<9} {'Email':<32} {'Name':<20} {'Company':<20} {'Seats'}")
    click.echo("="*100)

    for user in users:
        company = user.company_name or "-"
        seats = f"{user.current_employees}/{user.package_limit}" if user.is_hr else "-"
        click.echo(f"{user.id:<5} {user.role:<9} {user.email:<32} {user.name:<20} {company:<20} {seats}")

    click.echo("="*100 + "\n")


@accounts_group.command('create-hr')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Login email')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--company', 'company_name', prompt=True, help='Company name')
@click.option('--package', type=click.Choice(list(PACKAGES)), default=DEFAULT_PACKAGE, show_default=True)
@with_appcontext
def create_hr(name, email, password, company_name, package):
    """Create an HR account and its company."""
    try:
        hr = account_service.register_hr(
            name=name,
            email=email,
            password=password,
            company_name=company_name,
            package=package,
        )
    except AssetDeskError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)

    click.echo(f"PASS Created HR account: {hr.email} for '{hr.company_name}' ({hr.subscription}, {hr.package_limit} seats)")


@click.group('inventory')
def inventory_group():
    """Inventory invariant audits."""


@inventory_group.command('audit')
@click.option('--fix', is_flag=True, help='Recount HR seat usage from affiliation rows')
@with_appcontext
def audit(fix):
    """
    Check quantity invariants and seat counters.

    Asset counter violations are only reported: they need a human to decide
    which side (total or available) is wrong.
    """
    problems = 0

    broken = audit_inventory()
    for asset in broken:
        problems += 1
        click.echo(
            f"FAIL Asset {asset.id} '{asset.product_name}': "
            f"available={asset.available_quantity} total={asset.product_quantity}"
        )

    drift = recount_seats(fix=fix)
    for hr, stored, actual in drift:
        problems += 1
        action = "fixed" if fix else "run with --fix to repair"
        click.echo(f"WARN {hr.email}: current_employees={stored}, affiliations={actual} ({action})")

    if problems == 0:
        click.echo("PASS No invariant violations found.")
    else:
        click.echo(f"DONE {len(broken)} asset problem(s), {len(drift)} seat counter problem(s).")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(accounts_group)
    app.cli.add_command(inventory_group)
