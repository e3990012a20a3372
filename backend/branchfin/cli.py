# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/branchfin/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP=branchfin, DATABASE_URL and SECRET_KEY.
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--admin-email admin@branchfin.local --admin-password "Password123!"]
#   Create tables (idempotent) and optionally an admin profile.
#
# Profile inspection/bootstrap:
# - python -m flask users list [--role manager]
#   List profiles with role and staff branch.
# - python -m flask users create --email x@y.z --password "Password123!" --role manager
#   Create a profile (prompts if options are omitted).
# - python -m flask users set-role x@y.z branch_staff
#   Change a profile's role (clears assignments the new role does not use).
#
# Branch inspection:
# - python -m flask branches list [--all]
#   List branches (use --all to include archived).
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --retention-days 30
#   Delete expired or revoked sessions older than the retention window.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Profile
from .permissions import ROLES, ADMIN
from .services import assignment_service, branch_service, session_service
from .services.auth_service import create_profile, PasswordValidationError
from .validation import ServiceError


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--admin-email', default=None, help='Create an admin profile with this email')
@click.option('--admin-password', default=None, help='Password for the admin profile')
@with_appcontext
def init_system(admin_email, admin_password):
    """
    Create all tables and, optionally, a first admin.

    Safe to re-run: existing tables and profiles are left alone.
    """
    click.echo("START Initializing branch financials database...")
    db.create_all()
    click.echo("PASS Tables created")

    if not admin_email:
        return

    existing = db.session.query(Profile).filter_by(email=admin_email.strip().lower()).first()
    if existing:
        click.echo(f"PASS Using existing profile: {existing.email} (role: {existing.role})")
        return

    if not admin_password:
        admin_password = click.prompt('Admin password', hide_input=True, confirmation_prompt=True)

    try:
        profile = create_profile(email=admin_email, password=admin_password, role=ADMIN)
        click.echo(f"PASS Created admin: {profile.email} (ID: {profile.id})")
        click.echo("SECURITY Password securely hashed with bcrypt")
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
    except ServiceError as e:
        click.echo(f"FAIL Failed to create admin: {str(e)}")


@click.group('users')
def users_group():
    """Profile management commands."""


@users_group.command('list')
@click.option('--role', type=click.Choice(ROLES), default=None, help='Filter by role')
@with_appcontext
def list_users(role):
    """List all profiles with their roles."""
    query = db.session.query(Profile)
    if role:
        query = query.filter_by(role=role)
    profiles = query.order_by(Profile.email.asc()).all()

    if not profiles:
        click.echo("No profiles found.")
        return

    click.echo("\n" + "=" * 90)
    click.echo(f"{'ID':<5} {'Email':<35} {'Role':<14} {'Branch':<8} {'Active'}")
    click.echo("=" * 90)
    for profile in profiles:
        branch = profile.staff_branch_id if profile.staff_branch_id is not None else "-"
        active = "Yes" if profile.is_active else "No"
        click.echo(f"{profile.id:<5} {profile.email:<35} {profile.role:<14} {branch!s:<8} {active}")


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(ROLES), default='user', show_default=True, help='Role')
@click.option('--first-name', default=None)
@click.option('--last-name', default=None)
@with_appcontext
def create_user_cli(email, password, role, first_name, last_name):
    """
    Create a new profile.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        profile = create_profile(
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
            role=role,
        )
        click.echo(f"PASS Created profile: {profile.email} with role '{profile.role}'")
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
    except ServiceError as e:
        click.echo(f"FAIL Failed to create profile: {str(e)}")


@users_group.command('set-role')
@click.argument('email')
@click.argument('role', type=click.Choice(ROLES))
@with_appcontext
def set_role_cli(email, role):
    """Change the role of the profile with EMAIL."""
    profile = db.session.query(Profile).filter_by(email=email.strip().lower()).first()
    if not profile:
        click.echo(f"FAIL Profile '{email}' not found")
        return

    try:
        profile = assignment_service.change_role(None, profile.id, role)
        click.echo(f"PASS {profile.email} is now '{profile.role}'")
    except ServiceError as e:
        click.echo(f"FAIL Failed to change role: {str(e)}")


@click.group('branches')
def branches_group():
    """Branch inspection commands."""


@branches_group.command('list')
@click.option('--all', 'include_archived', is_flag=True, help='Include archived branches')
@with_appcontext
def list_branches_cli(include_archived):
    """List branches."""
    branches = branch_service.list_branches(include_archived=include_archived)
    if not branches:
        click.echo("No branches found.")
        return

    click.echo(f"{'ID':<5} {'Name':<40} {'Archived'}")
    for branch in branches:
        click.echo(f"{branch.id:<5} {branch.name:<40} {'Yes' if branch.archived else 'No'}")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--retention-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(retention_days):
    """
    Delete expired or revoked sessions.

    Default retention: 30 days.
    """
    deleted = session_service.cleanup_expired_sessions(retention_days=retention_days)
    click.echo(f"Deleted {deleted} sessions older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(branches_group)
    app.cli.add_command(maintenance_group)
