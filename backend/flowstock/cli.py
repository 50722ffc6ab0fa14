# Overview: Flask CLI command groups for bootstrap, user management and maintenance.

# backend/flowstock/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--admin-username admin] [--admin-password "..."]
#   Create all tables and the first ADMIN user (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --username op1 --password "..." --role OPERATOR
#
# Maintenance:
# - python -m flask maintenance cleanup-audit-logs [--retention-days 90]
# - python -m flask maintenance cleanup-idempotency-keys
# - python -m flask maintenance cleanup-auth-tokens [--login-retention-days 90]

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import FlowStockError
from .extensions import db
from .models import Role, User
from .services import (
    audit_service,
    auth_service,
    idempotency_service,
    login_throttle_service,
    password_reset_service,
    session_service,
)


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-username', default='admin', help='Username of the first ADMIN')
@click.option('--admin-password', default='Password123!', help='Password of the first ADMIN')
@with_appcontext
def init_system(admin_username, admin_password):
    """
    Create tables and the first ADMIN user.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing FlowStock...")
    db.create_all()
    click.echo("PASS Tables created")

    if db.session.query(User).filter_by(role=Role.ADMIN.value).first():
        click.echo("PASS Admin user already exists")
        return

    try:
        user = auth_service.create_user(
            username=admin_username,
            password=admin_password,
            role=Role.ADMIN.value,
        )
    except FlowStockError as e:
        click.echo(f"FAIL Could not create admin user: {e}")
        raise SystemExit(1)
    click.echo(f"PASS Created admin user: {user.username}")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm dropping every table')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        raise SystemExit(1)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    users = db.session.query(User).order_by(User.username.asc()).all()
    if not users:
        click.echo("No users found")
        return
    for user in users:
        status = "active" if user.is_active else "inactive"
        mfa = "mfa" if user.mfa_enabled else "-"
        click.echo(f"{user.id:>4}  {user.username:<24} {user.role:<9} {status:<8} {mfa}")


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', default=None, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice([r.value for r in Role], case_sensitive=False), prompt=True, help='Role')
@with_appcontext
def create_user_cli(username, email, password, role):
    """
    Create a user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter, one lowercase letter, one digit
      and one special character
    """
    try:
        user = auth_service.create_user(username=username, password=password, role=role, email=email)
    except FlowStockError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS Created user {user.username} ({user.role})")


@click.group('maintenance')
def maintenance_group():
    """Retention and cleanup jobs (schedule these with cron)."""


@maintenance_group.command('cleanup-audit-logs')
@click.option('--retention-days', type=int, default=None, help='Defaults to AUDIT_LOG_RETENTION_DAYS')
@with_appcontext
def cleanup_audit_logs(retention_days):
    if retention_days is None:
        retention_days = current_app.config.get("AUDIT_LOG_RETENTION_DAYS", 90)
    result = audit_service.cleanup(retention_days, trigger="SCHEDULED")
    click.echo(
        f"PASS Deleted {result['deleted_count']} audit entries older than {result['cutoff']} "
        f"(retention {result['retention_days']} days)"
    )


@maintenance_group.command('cleanup-idempotency-keys')
@with_appcontext
def cleanup_idempotency_keys():
    deleted = idempotency_service.cleanup_expired()
    click.echo(f"PASS Deleted {deleted} expired idempotency keys")


@maintenance_group.command('cleanup-auth-tokens')
@click.option('--login-retention-days', type=int, default=90, help='Keep login history this long')
@with_appcontext
def cleanup_auth_tokens(login_retention_days):
    sessions = session_service.cleanup_expired_sessions()
    resets = password_reset_service.cleanup_expired_tokens()
    logins = login_throttle_service.cleanup_login_events(retention_days=login_retention_days)
    click.echo(f"PASS Deleted {sessions} sessions, {resets} reset tokens, {logins} login events")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(maintenance_group)
