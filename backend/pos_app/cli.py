# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/pos_app/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and the default admin and cashier users.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with role and active status.
# - python -m flask users create --username alice --password "Password123!" --role cashier
#   Create a user (prompts if options are omitted).
#
# Inventory:
# - python -m flask inventory reconcile [--product-id 3]
#   Compare stock counters with ledger replay; exits 1 when anything is out of sync.

import click
from flask.cli import with_appcontext

from .errors import POSError
from .extensions import db
from .models import User
from .services import inventory_service
from .services.auth_service import create_user, PasswordValidationError


DEFAULT_USERS = [
    ("admin", "admin"),
    ("cashier", "cashier"),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the POS database and default users.

    Creates:
    - All tables (if missing)
    - Users: admin (admin role), cashier (cashier role)
    - All passwords default to: "Password123!"

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing POS system...")
    db.create_all()
    click.echo("PASS Tables ready")

    # Default password meets requirements:
    # - Minimum 8 characters
    # - Uppercase, lowercase, digit, special char
    default_password = "Password123!"

    click.echo("\nUSERS Creating default users...")
    for username, role in DEFAULT_USERS:
        existing = db.session.query(User).filter_by(username=username).first()
        if existing:
            click.echo(f"WARN  User '{username}' already exists, skipping...")
            continue
        try:
            create_user(username, default_password, role)
            click.echo(f"PASS Created user: {username} with role '{role}'")
        except PasswordValidationError as e:
            click.echo(f"FAIL Password validation failed for '{username}': {str(e)}")

    click.echo("\n" + "=" * 60)
    click.echo("DONE POS System Initialized Successfully!")
    click.echo("=" * 60)
    click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
    click.echo("   admin   / Password123!")
    click.echo("   cashier / Password123!")
    click.echo("")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(['admin', 'cashier']), prompt=True, help='Role')
@with_appcontext
def create_user_cli(username, password, role):
    """Create a new user."""
    try:
        user = create_user(username, password, role)
    except POSError as e:
        raise click.ClickException(e.message)

    click.echo(f"PASS Created user: {user.username} (ID: {user.id}) with role '{user.role}'")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their role."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 60)
    click.echo(f"{'ID':<5} {'Username':<24} {'Role':<10} {'Active'}")
    click.echo("=" * 60)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<24} {user.role:<10} {active_str}")
    click.echo("")


@click.group('inventory')
def inventory_group():
    """Inventory ledger commands."""


@inventory_group.command('reconcile')
@click.option('--product-id', type=int, help='Only check one product')
@with_appcontext
def reconcile_cli(product_id):
    """Compare each product's stock counter with its ledger replay."""
    rows = inventory_service.reconcile(product_id)

    out_of_sync = 0
    click.echo(f"{'ID':<6} {'Product':<32} {'Stock':>8} {'Ledger':>8}  Status")
    for row in rows:
        status = "OK" if row["in_sync"] else "MISMATCH"
        if not row["in_sync"]:
            out_of_sync += 1
        click.echo(f"{row['product_id']:<6} {row['name'][:32]:<32} {row['stock_quantity']:>8} {row['ledger_total']:>8}  {status}")

    if out_of_sync:
        click.echo(f"\nFAIL {out_of_sync} product(s) out of sync")
        raise SystemExit(1)
    click.echo(f"\nPASS {len(rows)} product(s) in sync")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(inventory_group)
