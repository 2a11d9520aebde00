# Overview: Flask CLI command groups for bootstrap, data import, and maintenance.

# backend/gestao/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Database:
# - python -m flask db-tools init
#   Create all tables that do not exist yet (use `flask db upgrade` for migrations).
# - python -m flask db-tools reset --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users create --email dona@loja.com --full-name "Dona Maria" --password "segredo1"
#   Create an account (prompts if options are omitted).
# - python -m flask users list
#   List accounts with active status and last login.
#
# Catalog:
# - python -m flask catalog import-products produtos.csv --email dona@loja.com [--dry-run]
#   Create products from CSV; category names become the owner's categories.
#
# Maintenance:
# - python -m flask sessions cleanup
#   Delete expired and long-revoked session tokens.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .services import auth_service
from .services import session_service
from .services.import_service import import_products, ImportError as CatalogImportError
from .validation import ValidationError, ConflictError


@click.group('db-tools')
def db_tools_group():
    """Schema bootstrap commands."""


@db_tools_group.command('init')
@with_appcontext
def init_db():
    """Create missing tables (idempotent)."""
    db.create_all()
    click.echo("PASS Database tables ready")


@db_tools_group.command('reset')
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


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address (login)')
@click.option('--full-name', prompt=True, help='Owner name')
@click.option('--business-name', default=None, help='Business name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_user_cli(email, full_name, business_name, password):
    """
    Create a new account.

    Password must have at least 6 characters, a letter and a digit.
    """
    try:
        user = auth_service.register_user(
            email=email,
            password=password,
            full_name=full_name,
            business_name=business_name,
        )
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(f"FAIL {e}")

    click.echo(f"PASS Created user: {user.full_name} ({user.email}) id={user.id}")
    click.echo("SECURITY Password securely hashed with bcrypt")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all accounts."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Email':<35} {'Name':<30} {'Active':<8}")
    click.echo("="*90)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.email:<35} {user.full_name:<30} {active_str:<8}")

    click.echo("="*90 + "\n")


@click.group('catalog')
def catalog_group():
    """Catalog data commands."""


@catalog_group.command('import-products')
@click.argument('csv_file', type=click.File('r', encoding='utf-8-sig'))
@click.option('--email', required=True, help='Owner account email')
@click.option('--dry-run', is_flag=True, help='Validate and report without saving')
@with_appcontext
def import_products_cli(csv_file, email, dry_run):
    """
    Import products from CSV.

    Columns: name, description, category, cost_price, sale_price,
    stock_quantity, min_stock_quantity. Only name is required.
    """
    owner = db.session.query(User).filter(User.email == email.strip().lower()).first()
    if not owner:
        raise click.ClickException(f"FAIL No user with email {email}")

    try:
        report = import_products(csv_file, user_id=owner.id, dry_run=dry_run)
    except CatalogImportError as e:
        raise click.ClickException(f"FAIL {e}")

    prefix = "DRY RUN " if dry_run else ""
    click.echo(f"{prefix}PASS {report.created} products imported")
    for name in report.categories_created:
        click.echo(f"  + category {name}")
    for error in report.errors:
        click.echo(f"  WARN row {error['row']}: {error['error']}")


@click.group('sessions')
def sessions_group():
    """Session token maintenance."""


@sessions_group.command('cleanup')
@with_appcontext
def cleanup_sessions():
    """Delete expired and long-revoked sessions."""
    deleted = session_service.cleanup_expired_sessions()
    click.echo(f"PASS Deleted {deleted} sessions")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(db_tools_group)
    app.cli.add_command(users_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(sessions_group)
