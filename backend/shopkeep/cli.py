# Overview: Flask CLI command groups for bootstrap and user management.

# backend/shopkeep/cli.py
# Commands Legend (run from the backend directory):
# - flask --app wsgi system init-db
#   Create all tables (idempotent).
# - flask --app wsgi system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - flask --app wsgi users create --username admin --email admin@shopkeep.local --password "Password123!" --role admin
#   Create a user (prompts if options are omitted).
# - flask --app wsgi users list
#   List all users with roles and active status.
# - flask --app wsgi users set-role alice admin
#   Change a user's role.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Role, User
from .services.auth_service import create_user, set_role
from .validation import ConflictError, ValidationError

ROLE_CHOICES = [r.value for r in Role]


@click.group('system')
def system_group():
    """Database bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate every table."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        raise SystemExit(1)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True)
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', type=click.Choice(ROLE_CHOICES), default=Role.USER.value, show_default=True)
@with_appcontext
def create_user_command(username, email, password, role):
    """Create a user with the given role."""
    try:
        user = create_user(username=username, email=email, password=password, role=role)
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS Created user: {user.username} ({user.email}) with role '{role}'")


@users_group.command('list')
@with_appcontext
def list_users():
    """List users with role and active status."""
    users = db.session.query(User).order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found")
        return
    for user in users:
        status = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:>4}  {user.username:<24} {user.email:<32} {Role.parse(user.role).value:<6} {status}")


@users_group.command('set-role')
@click.argument('username')
@click.argument('role', type=click.Choice(ROLE_CHOICES))
@with_appcontext
def set_role_command(username, role):
    """Change a user's role."""
    user = db.session.query(User).filter_by(username=username).first()
    if not user:
        click.echo(f"FAIL User '{username}' not found")
        raise SystemExit(1)
    set_role(user.id, role)
    click.echo(f"PASS {username} is now '{role}'")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
