# Overview: Flask CLI command groups for bootstrap, tenant management, and maintenance.

# backend/bms/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system create-db
#   Create all tables that do not exist yet (use `flask db upgrade` once migrations exist).
# - python -m flask system init [--company "Acme Ltd"] [--email "office@acme.test"]
#   Idempotent bootstrap: default company, platform super_admin and one user per company role.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Company management (MULTI-TENANT):
# - python -m flask companies list
# - python -m flask companies create --name "Acme Ltd" --email "office@acme.test"
#
# Users:
# - python -m flask users list [--company-id 1]
# - python -m flask users create --company-id 1 --name "Jane" --email jane@acme.test --password "Password123!" --role accountant
#   (omit --company-id with --role super_admin for a platform user)
#
# Permissions:
# - python -m flask perms list [--role accountant]
# - python -m flask perms check jane@acme.test record_payment [--company-id 1]
#
# Invoices:
# - python -m flask invoices reconcile-overdue [--company-id 1]
#   Re-derive status of unsettled invoices (e.g. from a nightly cron job).
#
# Maintenance:
# - python -m flask maintenance fix-number-indexes
#   Replace legacy single-column unique indexes on document numbers with per-company ones.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Company, User
from .permissions import Role, ROLE_PERMISSIONS, can, parse_permission, parse_role
from .services.auth_service import create_user, PasswordValidationError
from .services import company_service
from .services import invoice_service
from .services import maintenance_service
from .validation import ValidationError


DEFAULT_PASSWORD = "Password123!"


# =============================================================================
# SYSTEM
# =============================================================================

@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('create-db')
@with_appcontext
def create_db():
    """Create missing tables from the model metadata."""
    db.create_all()
    click.echo("PASS Tables created")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate every table."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        return
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@system_group.command('init')
@click.option('--company', 'company_name', default='Default Company', help='Company name')
@click.option('--email', 'company_email', default='office@bms.local', help='Company email')
@with_appcontext
def init_system(company_name, company_email):
    """
    Initialize a fresh installation.

    Creates (when missing):
    - Default company
    - Platform super_admin: superadmin@bms.local
    - One user per company role: companyadmin@, admin@, accountant@, staff@bms.local
    - All passwords default to: "Password123!"

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing BMS...")

    company = db.session.query(Company).filter_by(email=company_email.lower()).first()
    if not company:
        company = company_service.create_company({"name": company_name, "email": company_email})
        click.echo(f"PASS Created company: {company.name} (ID: {company.id})")
    else:
        click.echo(f"PASS Using existing company: {company.name} (ID: {company.id})")

    default_users = [
        ("Super Admin", "superadmin@bms.local", Role.SUPER_ADMIN, None),
        ("Company Admin", "companyadmin@bms.local", Role.COMPANY_ADMIN, company.id),
        ("Admin", "admin@bms.local", Role.ADMIN, company.id),
        ("Accountant", "accountant@bms.local", Role.ACCOUNTANT, company.id),
        ("Staff", "staff@bms.local", Role.STAFF, company.id),
    ]

    for name, email, role, company_id in default_users:
        existing = db.session.query(User).filter(
            User.email == email,
            User.company_id.is_(None) if company_id is None else User.company_id == company_id,
        ).first()
        if existing:
            click.echo(f"SKIP User already exists: {email}")
            continue
        try:
            create_user(name=name, email=email, password=DEFAULT_PASSWORD, role=role.value, company_id=company_id)
            click.echo(f"PASS Created user: {email} with role '{role.value}'")
        except (PasswordValidationError, ValueError) as e:
            db.session.rollback()
            click.echo(f"FAIL Failed to create user '{email}': {e}")

    click.echo("\n" + "="*60)
    click.echo("DONE BMS Initialized Successfully!")
    click.echo("="*60)
    click.echo(f"\nCompany: {company.name} (ID: {company.id})")
    click.echo(f"Default password for all users: {DEFAULT_PASSWORD} (CHANGE IN PRODUCTION!)")
    click.echo("")


# =============================================================================
# COMPANY MANAGEMENT COMMANDS (MULTI-TENANT)
# =============================================================================

@click.group('companies')
def companies_group():
    """Company (tenant) management commands."""


@companies_group.command('list')
@with_appcontext
def list_companies():
    """List all companies."""
    companies = company_service.list_companies()

    if not companies:
        click.echo("No companies found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Email':<28} {'Active':<8} {'Users'}")
    click.echo("="*80)

    for company in companies:
        user_count = db.session.query(User).filter_by(company_id=company.id).count()
        active_str = "Yes" if company.is_active else "No"
        click.echo(f"{company.id:<5} {company.name:<30} {company.email:<28} {active_str:<8} {user_count}")

    click.echo("="*80 + "\n")


@companies_group.command('create')
@click.option('--name', required=True, help='Company name')
@click.option('--email', required=True, help='Company email (unique)')
@click.option('--invoice-prefix', default=None, help='Invoice number prefix (default INV)')
@click.option('--receipt-prefix', default=None, help='Sales receipt number prefix (default REC)')
@with_appcontext
def create_company_cli(name, email, invoice_prefix, receipt_prefix):
    """Create a new company (tenant)."""
    payload = {"name": name, "email": email}
    if invoice_prefix:
        payload["invoice_prefix"] = invoice_prefix
    if receipt_prefix:
        payload["receipt_prefix"] = receipt_prefix
    try:
        company = company_service.create_company(payload)
    except ValidationError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created company: {company.name} (ID: {company.id})")


# =============================================================================
# USER COMMANDS
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@click.option('--company-id', type=int, default=None, help='Only users of this company')
@with_appcontext
def list_users(company_id):
    """List users with roles and active status."""
    query = db.session.query(User)
    if company_id is not None:
        query = query.filter_by(company_id=company_id)
    users = query.order_by(User.company_id, User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo(f"{'ID':<5} {'Company':<8} {'Email':<32} {'Role':<15} {'Active'}")
    for user in users:
        click.echo(
            f"{user.id:<5} {user.company_id if user.company_id is not None else '-':<8} "
            f"{user.email:<32} {user.role:<15} {'Yes' if user.is_active else 'No'}"
        )


@users_group.command('create')
@click.option('--company-id', type=int, default=None, help='Company ID (omit for super_admin)')
@click.option('--name', prompt=True)
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', type=click.Choice([r.value for r in Role]), default=Role.STAFF.value, show_default=True)
@with_appcontext
def create_user_cli(company_id, name, email, password, role):
    """Create a user (prompts if options are omitted)."""
    try:
        user = create_user(name=name, email=email, password=password, role=role, company_id=company_id)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e}")
        return
    except ValueError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created user: {user.email} (ID: {user.id}) with role '{user.role}'")


# =============================================================================
# PERMISSION COMMANDS
# =============================================================================

@click.group('perms')
def perms_group():
    """Permission inspection commands."""


@perms_group.command('list')
@click.option('--role', default=None, help='Only permissions of this role')
def list_perms(role):
    """Print the static role -> permission table."""
    roles = list(Role)
    if role:
        parsed = parse_role(role)
        if parsed is None:
            click.echo(f"FAIL Unknown role: {role}")
            return
        roles = [parsed]

    for r in roles:
        codes = sorted(p.value for p in ROLE_PERMISSIONS[r])
        click.echo(f"{r.value} ({len(codes)}):")
        for code in codes:
            click.echo(f"  - {code}")


@perms_group.command('check')
@click.argument('email')
@click.argument('permission')
@click.option('--company-id', type=int, default=None)
@with_appcontext
def check_perm(email, permission, company_id):
    """Check whether a user has a permission."""
    if parse_permission(permission) is None:
        click.echo(f"FAIL Unknown permission: {permission}")
        return
    query = db.session.query(User).filter_by(email=email.strip().lower())
    if company_id is not None:
        query = query.filter_by(company_id=company_id)
    user = query.first()
    if not user:
        click.echo(f"FAIL User not found: {email}")
        return
    verdict = "YES" if can(user, permission) else "NO"
    click.echo(f"{verdict} {user.email} ({user.role}) -> {permission}")


# =============================================================================
# INVOICE COMMANDS
# =============================================================================

@click.group('invoices')
def invoices_group():
    """Invoice maintenance commands."""


@invoices_group.command('reconcile-overdue')
@click.option('--company-id', type=int, default=None, help='Only this company')
@with_appcontext
def reconcile_overdue_cli(company_id):
    """Re-run status derivation for unsettled invoices and save changes."""
    changed = invoice_service.reconcile_overdue_invoices(company_id=company_id)
    click.echo(f"Reconciled invoices: {changed} status change(s).")


# =============================================================================
# MAINTENANCE COMMANDS
# =============================================================================

@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('fix-number-indexes')
@with_appcontext
def fix_number_indexes_cli():
    """
    Make document numbers unique per company instead of globally.

    Drops single-column unique indexes on invoice_number and
    sales_receipt_number and creates the (company_id, number) index.
    """
    db.session.remove()
    for repair in maintenance_service.ensure_tenant_number_indexes():
        if not repair.changed and not repair.unfixable:
            click.echo(f"OK   {repair.table}: nothing to do")
            continue
        for name in repair.dropped:
            click.echo(f"DROP {repair.table}: {name}")
        if repair.created:
            click.echo(f"ADD  {repair.table}: {repair.created}")
        for name in repair.unfixable:
            click.echo(f"FAIL {repair.table}: {name} needs a table rebuild migration")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(companies_group)  # Multi-tenant company management
    app.cli.add_command(users_group)
    app.cli.add_command(perms_group)
    app.cli.add_command(invoices_group)
    app.cli.add_command(maintenance_group)
