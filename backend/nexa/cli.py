# Overview: Flask CLI command groups for bootstrap and user management.

# backend/nexa/cli.py
# Commands Legend (run from the backend directory, FLASK_APP=wsgi.py):
#
# - flask system init [--password "Password123!"]
#   Idempotent bootstrap: creates tables, default company row and one user per role.
# - flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# - flask users list
#   List all users with roles and active status.
# - flask users create --username ana --email ana@nexa.local --password "Password123!" --role cashier
#   Create a user (prompts if options are omitted).
# - flask users grant-role ana manager
#   Add a role to an existing user.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import CompanySettings, User
from .permissions import ROLES
from .services.auth_service import (
    PasswordValidationError,
    assign_role,
    create_user,
    get_user_roles,
)

DEFAULT_USERS = (
    ("admin", "admin@nexa.local", "Administrador", "admin"),
    ("manager", "manager@nexa.local", "Gerente", "manager"),
    ("cashier", "cashier@nexa.local", "Caixa", "cashier"),
    ("seller", "seller@nexa.local", "Vendedor", "seller"),
)


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--password', default='Password123!', help='Password for the default users')
@click.option('--company', 'company_name', default='Minha Loja', help='Company legal name')
@with_appcontext
def init_system(password, company_name):
    """
    Create tables, the company settings row and one default user per role.

    Safe to run repeatedly. SECURITY: change the default passwords in production!
    """
    click.echo("START Initializing NexaERP...")
    db.create_all()

    if not db.session.query(CompanySettings).first():
        db.session.add(CompanySettings(company_name=company_name))
        db.session.commit()
        click.echo(f"PASS Created company settings: {company_name}")

    for username, email, full_name, role in DEFAULT_USERS:
        user = db.session.query(User).filter_by(username=username).first()
        if user:
            assign_role(user.id, role)
            click.echo(f"PASS User exists: {username} ({role})")
            continue
        create_user(username, email, password, full_name=full_name, roles=[role])
        click.echo(f"PASS Created user: {username} ({role})")

    click.echo("DONE System initialized.")


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

    click.echo("PASS Database reset complete. Run 'flask system init' to initialize.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--full-name', default='', help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(ROLES), prompt=True, help='Role')
@with_appcontext
def create_user_cli(username, email, full_name, password, role):
    """
    Create a new user.

    Password must have 8+ characters with uppercase, lowercase, digit and
    special character.
    """
    try:
        create_user(username, email, password, full_name=full_name, roles=[role])
    except PasswordValidationError as e:
        raise click.ClickException(f"Password validation failed: {e}")
    except ValueError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created user: {username} ({email}) with role '{role}'")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 90)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<30} {'Active':<8} {'Roles'}")
    click.echo("=" * 90)

    for user in users:
        roles_str = ", ".join(get_user_roles(user.id)) or "none"
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<30} {active_str:<8} {roles_str}")

    click.echo("=" * 90 + "\n")


@users_group.command('grant-role')
@click.argument('username')
@click.argument('role', type=click.Choice(ROLES))
@with_appcontext
def grant_role_cli(username, role):
    """Add a role to an existing user."""
    user = db.session.query(User).filter_by(username=username).first()
    if not user:
        raise click.ClickException(f"User '{username}' not found")
    assign_role(user.id, role)
    click.echo(f"PASS {username} now has roles: {', '.join(get_user_roles(user.id))}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
