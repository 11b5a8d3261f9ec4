# Overview: Flask CLI command groups for bootstrap and administration.

# backend/app/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "app:create_app" (PowerShell: $env:FLASK_APP="app:create_app").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init
#   Create all tables and the default administrator (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
#   List all users with role and active status.
# - python -m flask users create --username anna --name "Anna" --role Seller --password "secret123"
#   Create a user (prompts if options are omitted).
#
# Debts:
# - python -m flask debts open --person "Тимофей" --amount 50000
#   Open a debt for a person (amount in minor units).
# - python -m flask debts list
#   Show every debt with its remaining balance.

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import DomainError
from .models import Debt, User
from .permissions import Actor, Role
from .services import debt_service
from .services.auth_service import create_user


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-password', default='Password123!', help='Password for the default admin')
@with_appcontext
def init_system(admin_password):
    """
    Create all tables and a default administrator account.

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing system...")

    db.create_all()
    click.echo("PASS Tables created")

    existing = db.session.query(User).filter_by(username="admin").first()
    if existing:
        click.echo("WARN  User 'admin' already exists, skipping...")
    else:
        try:
            create_user("admin", "Administrator", Role.ADMINISTRATOR.value, admin_password)
            click.echo("PASS Created user: admin with role 'Administrator'")
        except DomainError as e:
            click.echo(f"FAIL Failed to create user 'admin': {e.message}")

    click.echo("DONE System initialized")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        return
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    users = db.session.query(User).order_by(User.username).all()
    if not users:
        click.echo("No users found")
        return
    for user in users:
        state = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:>4}  {user.username:<20} {user.role:<14} {state}")


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--name', prompt=True, help='Display name')
@click.option('--role', type=click.Choice([r.value for r in Role]), prompt=True, help='Role')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_user_cli(username, name, role, password):
    """Create a new user. Password must be at least 8 characters."""
    try:
        user = create_user(username, name, role, password)
        click.echo(f"PASS Created user: {user.username} with role '{user.role}'")
    except DomainError as e:
        click.echo(f"FAIL Failed to create user: {e.message}")


@click.group('debts')
def debts_group():
    """Debt ledger commands."""


@debts_group.command('open')
@click.option('--person', 'person_name', prompt=True, help='Person who owes')
@click.option('--amount', type=int, prompt=True, help='Base amount in minor units')
@with_appcontext
def open_debt_cli(person_name, amount):
    actor = Actor(role=Role.ADMINISTRATOR, username="cli")
    try:
        debt = debt_service.open_debt(person_name, amount, actor=actor)
        click.echo(f"PASS Opened debt for {debt.person_name}: {debt.current_amount_cents}")
    except DomainError as e:
        click.echo(f"FAIL {e.message}")


@debts_group.command('list')
@with_appcontext
def list_debts_cli():
    debts = db.session.query(Debt).order_by(Debt.person_name).all()
    if not debts:
        click.echo("No debts found")
        return
    for debt in debts:
        click.echo(f"{debt.person_name:<30} {debt.current_amount_cents:>12} / {debt.base_amount_cents}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(debts_group)
