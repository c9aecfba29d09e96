# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/retail_pos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Apply migrations first: python -m flask db upgrade
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--business "Demo Shop"]
#   Idempotent bootstrap: creates a demo tenant, an admin and a sales person.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Tenant management:
# - python -m flask tenants list
# - python -m flask tenants create --name "Corner Shop" --email owner@shop.test --full-name "Owner" --password "Password123!"
#   Create a tenant together with its first admin user.
#
# User inspection/bootstrap:
# - python -m flask users list [--tenant-id 1]
# - python -m flask users create --tenant-id 1 --email clerk@shop.test --full-name "Clerk" --password "Password123!" --role sales_person
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --older-than-days 30
#   Delete expired or revoked session tokens.
# - python -m flask maintenance cleanup-security-events --retention-days 90
#   Delete security events older than the retention window.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Tenant, User
from .models.auth import ROLE_SALES_PERSON, VALID_ROLES
from .services.auth_service import AuthError, PasswordValidationError, bootstrap_tenant, create_user
from .services import maintenance_service
from .services import session_service


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--business', 'business_name', default='Demo Shop', help='Business (tenant) name')
@click.option('--password', default='Password123!', help='Password for the demo users')
@with_appcontext
def init_system(business_name, password):
    """
    Initialize a demo tenant with default users.

    Creates (if missing):
    - Tenant: business_name, with the default expense categories
    - Users: admin@retailpos.local (admin), sales@retailpos.local (sales_person)
    """
    click.echo("START Initializing retail POS...")

    admin = db.session.query(User).filter_by(email="admin@retailpos.local").first()
    if admin:
        tenant = admin.tenant
        click.echo(f"PASS Using existing tenant: {tenant.name} (ID: {tenant.id})")
    else:
        try:
            tenant, admin = bootstrap_tenant(
                business_name=business_name,
                email="admin@retailpos.local",
                full_name="Administrator",
                password=password,
            )
        except (AuthError, PasswordValidationError) as e:
            click.echo(f"FAIL Could not create tenant: {e}")
            raise SystemExit(1)
        click.echo(f"PASS Created tenant: {tenant.name} (ID: {tenant.id})")
        click.echo(f"PASS Created user: {admin.email} with role 'admin'")

    if db.session.query(User).filter_by(email="sales@retailpos.local").first():
        click.echo("WARN  User 'sales@retailpos.local' already exists, skipping...")
    else:
        try:
            create_user(
                tenant_id=tenant.id,
                email="sales@retailpos.local",
                full_name="Sales Person",
                password=password,
                role=ROLE_SALES_PERSON,
            )
            click.echo("PASS Created user: sales@retailpos.local with role 'sales_person'")
        except (AuthError, PasswordValidationError) as e:
            click.echo(f"FAIL Failed to create sales user: {e}")

    click.echo("\n" + "=" * 60)
    click.echo("DONE Retail POS initialized")
    click.echo("=" * 60)
    click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
    click.echo(f"   admin -> admin@retailpos.local / {password}")
    click.echo(f"   sales -> sales@retailpos.local / {password}")
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


@click.group('tenants')
def tenants_group():
    """Tenant (business) management."""


@tenants_group.command('list')
@with_appcontext
def list_tenants():
    tenants = db.session.query(Tenant).order_by(Tenant.id).all()
    if not tenants:
        click.echo("No tenants found.")
        return

    click.echo("\n" + "=" * 72)
    click.echo(f"{'ID':<5} {'Name':<32} {'Currency':<9} {'Active':<8} {'Users'}")
    click.echo("=" * 72)
    for tenant in tenants:
        user_count = db.session.query(User).filter_by(tenant_id=tenant.id).count()
        active_str = "Yes" if tenant.is_active else "No"
        click.echo(f"{tenant.id:<5} {tenant.name:<32} {tenant.currency:<9} {active_str:<8} {user_count}")
    click.echo("=" * 72 + "\n")


@tenants_group.command('create')
@click.option('--name', required=True, help='Business name')
@click.option('--email', required=True, help='Admin email')
@click.option('--full-name', required=True, help='Admin full name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--currency', default=None, help='Currency code (defaults to DEFAULT_CURRENCY)')
@with_appcontext
def create_tenant_cli(name, email, full_name, password, currency):
    try:
        tenant, user = bootstrap_tenant(
            business_name=name,
            email=email,
            full_name=full_name,
            password=password,
            currency=currency,
        )
    except (AuthError, PasswordValidationError) as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS Created tenant: {tenant.name} (ID: {tenant.id}) with admin {user.email}")


@click.group('users')
def users_group():
    """User inspection and creation."""


@users_group.command('list')
@click.option('--tenant-id', type=int, default=None, help='Only users of this tenant')
@with_appcontext
def list_users(tenant_id):
    query = db.session.query(User)
    if tenant_id is not None:
        query = query.filter_by(tenant_id=tenant_id)
    users = query.order_by(User.tenant_id, User.id).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 88)
    click.echo(f"{'ID':<5} {'Tenant':<7} {'Email':<36} {'Role':<14} {'Active'}")
    click.echo("=" * 88)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.tenant_id:<7} {user.email:<36} {user.role:<14} {active_str}")
    click.echo("=" * 88 + "\n")


@users_group.command('create')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@click.option('--email', prompt=True)
@click.option('--full-name', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', type=click.Choice(VALID_ROLES), default=ROLE_SALES_PERSON, show_default=True)
@with_appcontext
def create_user_cli(tenant_id, email, full_name, password, role):
    try:
        user = create_user(tenant_id=tenant_id, email=email, full_name=full_name, password=password, role=role)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e}")
        raise SystemExit(1)
    except AuthError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS Created user: {user.email} (ID: {user.id}) with role '{user.role}'")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--older-than-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(older_than_days):
    deleted = session_service.cleanup_expired_sessions(older_than_days=older_than_days)
    click.echo(f"Deleted {deleted} expired or revoked sessions.")


@maintenance_group.command('cleanup-security-events')
@click.option('--retention-days', type=int, default=90, show_default=True)
@with_appcontext
def cleanup_security_events_cli(retention_days):
    """
    Cleanup old security events.

    Default retention: 90 days.
    """
    deleted = maintenance_service.cleanup_security_events(retention_days=retention_days)
    click.echo(f"Deleted {deleted} security events older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(tenants_group)
    app.cli.add_command(users_group)
    app.cli.add_command(maintenance_group)
