# Overview: Flask CLI command groups for bootstrap, inspection, and demo data.

# backend/ledgerpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to ledgerpos (PowerShell: $env:FLASK_APP="ledgerpos").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (use `flask db upgrade` for migrated databases).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Tenant management:
# - python -m flask tenants list
#   List all tenants with store and user counts.
# - python -m flask tenants create --name "Acme Corp" --code "ACME" --store "Main Store" --email owner@acme.test
#   Create a tenant, optionally with a first store and operator.
#
# Demo data:
# - python -m flask demo seed [--store-id 1] [--force]
#   Seed catalogue, initial stock and sample sales (requires DEMO_SEED_ENABLED or --force).
#
# Inventory inspection:
# - python -m flask inventory on-hand --store-id 1
#   Print on-hand for every product of the store.
# - python -m flask inventory low-stock --store-id 1
#   Print products at or below their reorder level.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Store, Tenant, User
from .services import demo_service, inventory_service
from .services.concurrency import run_in_transaction
from .validation import ServiceError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database schema is in place.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, including the stock ledger!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


@click.group('tenants')
def tenants_group():
    """Tenant management commands."""


@tenants_group.command('list')
@with_appcontext
def list_tenants():
    """List all tenants."""
    tenants = db.session.query(Tenant).order_by(Tenant.id.asc()).all()

    if not tenants:
        click.echo("No tenants found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<15} {'Active':<8} {'Stores':<8} {'Users'}")
    click.echo("="*80)

    for tenant in tenants:
        store_count = db.session.query(Store).filter_by(tenant_id=tenant.id).count()
        user_count = db.session.query(User).filter_by(tenant_id=tenant.id).count()
        active_str = "Yes" if tenant.is_active else "No"

        click.echo(f"{tenant.id:<5} {tenant.name:<30} {tenant.code or '-':<15} {active_str:<8} {store_count:<8} {user_count}")

    click.echo("="*80 + "\n")


@tenants_group.command('create')
@click.option('--name', required=True, help='Tenant name')
@click.option('--code', default=None, help='Unique short code')
@click.option('--store', 'store_name', default=None, help='Create a first store with this name')
@click.option('--email', default=None, help='Create an operator user for the first store')
@with_appcontext
def create_tenant(name, code, store_name, email):
    """Create a tenant, optionally with its first store and operator."""
    if code and db.session.query(Tenant).filter_by(code=code).first():
        raise click.ClickException(f"Tenant code '{code}' already exists")
    if email and not store_name:
        raise click.ClickException("--email requires --store")
    if email and db.session.query(User).filter_by(email=email).first():
        raise click.ClickException(f"User '{email}' already exists")

    def _op():
        tenant = Tenant(name=name, code=code, is_active=True)
        db.session.add(tenant)
        db.session.flush()

        store = user = None
        if store_name:
            store = Store(tenant_id=tenant.id, name=store_name)
            db.session.add(store)
            db.session.flush()
        if email:
            user = User(tenant_id=tenant.id, store_id=store.id, email=email, name=email.split("@")[0])
            db.session.add(user)
            db.session.flush()
        return tenant, store, user

    try:
        tenant, store, user = run_in_transaction(_op)
    except ServiceError as e:
        raise click.ClickException(e.message)

    click.echo(f"PASS Created tenant: {tenant.name} (ID: {tenant.id}, Code: {tenant.code or '-'})")
    if store:
        click.echo(f"PASS Created store: {store.name} (ID: {store.id})")
    if user:
        click.echo(f"PASS Created user: {user.email} (ID: {user.id})")


@click.group('demo')
def demo_group():
    """Demo data commands."""


@demo_group.command('seed')
@click.option('--store-id', type=int, default=None, help='Seed an existing store (default: the demo store)')
@click.option('--force', is_flag=True, help='Seed even when DEMO_SEED_ENABLED is off')
@with_appcontext
def seed_demo(store_id, force):
    """Seed demo catalogue, initial stock and sample sales."""
    if not force and not current_app.config.get("DEMO_SEED_ENABLED"):
        raise click.ClickException("Demo seeding is disabled (set DEMO_SEED_ENABLED=true or pass --force)")

    if store_id is None:
        store, user = demo_service.ensure_demo_store()
    else:
        store = db.session.get(Store, store_id)
        if not store:
            raise click.ClickException(f"Store {store_id} not found")
        user = db.session.query(User).filter_by(tenant_id=store.tenant_id, is_active=True).order_by(User.id.asc()).first()
        if not user:
            raise click.ClickException(f"Store {store_id} has no active user to record sales")

    try:
        result = demo_service.seed_store(store.id, user.id)
    except ServiceError as e:
        raise click.ClickException(e.message)

    click.echo(f"PASS Seeded store {store.name} (ID: {store.id})")
    for key, value in result.to_dict().items():
        click.echo(f"  {key}: {value}")


@click.group('inventory')
def inventory_group():
    """Inventory inspection commands."""


def _print_levels(levels):
    click.echo(f"{'ID':<6} {'SKU':<18} {'Name':<30} {'On hand':>8} {'Reorder':>8}")
    click.echo("-"*74)
    for level in levels:
        flag = " LOW" if level["low_stock"] else ""
        click.echo(
            f"{level['id']:<6} {level['sku'] or '-':<18} {level['name'][:30]:<30} "
            f"{level['on_hand']:>8} {level['reorder_level']:>8}{flag}"
        )


@inventory_group.command('on-hand')
@click.option('--store-id', type=int, required=True, help='Store ID')
@with_appcontext
def on_hand(store_id):
    """Print on-hand for every product of a store."""
    levels = inventory_service.list_stock_levels(store_id)
    if not levels:
        click.echo("No products found.")
        return
    _print_levels(levels)


@inventory_group.command('low-stock')
@click.option('--store-id', type=int, required=True, help='Store ID')
@with_appcontext
def low_stock(store_id):
    """Print products at or below their reorder level."""
    levels = inventory_service.list_low_stock(store_id)
    if not levels:
        click.echo("No low-stock products.")
        return
    _print_levels(levels)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(tenants_group)
    app.cli.add_command(demo_group)
    app.cli.add_command(inventory_group)
