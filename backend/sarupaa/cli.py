# Overview: Flask CLI command groups for bootstrap and audit/repair maintenance.

# backend/sarupaa/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--store "Main Store"] [--admin-password "..."]
#   Idempotent bootstrap: store, admin user, chart of accounts, expense categories, units.
# - python -m flask system create-user --username u --email e --role MANAGER
#   Create a user (prompts for the password).
#
# Audits (read-only unless --fix is given):
# - python -m flask audit negative-stock
#   Products whose inventory sum is below zero, with per-type breakdown.
# - python -m flask audit stock-check "Basmati" "Sugar"
#   Inventory-only stock beside the legacy double-counted figure.
# - python -m flask audit supplier-totals
#   Sum of purchase dues vs sum of supplier balances.
# - python -m flask audit set-supplier-balance "Acme Traders=125000"
#   Overwrite named supplier balances (cents) with hand-computed values.
# - python -m flask audit reconcile-suppliers [--fix]
# - python -m flask audit reconcile-customers [--fix]
#   Recompute balances from ledger rows; --fix writes the ledger figure.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import ExpenseCategory, Store, Unit, User
from .models.auth import ROLE_ADMINISTRATOR, ROLES
from .services import accounting_service, audit_service
from .services.auth_service import create_user
from .validation import ValidationError


DEFAULT_EXPENSE_CATEGORIES = ("Rent", "Utilities", "Salaries", "Transport", "Maintenance", "Miscellaneous")
DEFAULT_UNITS = (("Piece", "pcs"), ("Kilogram", "kg"), ("Gram", "g"), ("Litre", "ltr"), ("Dozen", "dz"), ("Pack", "pack"))


def _money(cents: int) -> str:
    return f"{cents / 100:,.2f}"


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--store', 'store_name', default='Main Store', help='Store name')
@click.option('--store-code', default='MAIN', help='Store code')
@click.option('--admin-password', default='Password123!', help='Password for the admin user')
@with_appcontext
def init_system(store_name, store_code, admin_password):
    """
    Initialize an empty database.

    Creates (each only if missing):
    - Default store
    - admin user (ADMINISTRATOR)
    - Chart of accounts
    - Expense categories and units

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing Sarupaa...")

    store = db.session.query(Store).filter_by(code=store_code).first()
    if not store:
        store = Store(name=store_name, code=store_code)
        db.session.add(store)
        db.session.commit()
        click.echo(f"PASS Created store: {store.name} (ID: {store.id})")
    else:
        click.echo(f"PASS Using existing store: {store.name} (ID: {store.id})")

    if db.session.query(User).filter_by(username="admin").first():
        click.echo("WARN  User 'admin' already exists, skipping...")
    else:
        try:
            create_user("admin", "admin@sarupaa.local", admin_password, role=ROLE_ADMINISTRATOR, store_id=store.id)
            click.echo("PASS Created user: admin (ADMINISTRATOR)")
        except ValidationError as e:
            click.echo(f"FAIL Failed to create admin: {e}")

    created = accounting_service.seed_chart_of_accounts()
    click.echo(f"PASS Chart of accounts: {created} accounts created")

    for name in DEFAULT_EXPENSE_CATEGORIES:
        if not db.session.query(ExpenseCategory).filter_by(name=name).first():
            db.session.add(ExpenseCategory(name=name))
    for name, short_name in DEFAULT_UNITS:
        if not db.session.query(Unit).filter_by(name=name).first():
            db.session.add(Unit(name=name, short_name=short_name))
    db.session.commit()
    click.echo("PASS Expense categories and units ready")

    click.echo("\nDONE Sarupaa initialized")


@system_group.command('create-user')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(ROLES), prompt=True, help='Role')
@click.option('--store-id', type=int, default=None, help='Home store')
@with_appcontext
def create_user_cli(username, email, password, role, store_id):
    """Create a user (password must be at least 8 characters)."""
    try:
        user = create_user(username, email, password, role=role, store_id=store_id)
    except ValidationError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created user: {user.username} ({user.role})")


# =============================================================================
# AUDIT / REPAIR COMMANDS
# =============================================================================

@click.group('audit')
def audit_group():
    """Data-quality audits and balance repair."""


@audit_group.command('negative-stock')
@with_appcontext
def negative_stock_cli():
    """List products with negative stock and where it came from."""
    report = audit_service.negative_stock_report()
    if not report:
        click.echo("PASS No products with negative stock")
        return

    click.echo(f"FAIL {len(report)} product(s) with negative stock\n")
    click.echo(f"{'ID':<6} {'Product':<40} {'Stock':>8} {'Open':>7} {'Purch':>7} {'Sold':>7} {'SRet':>7}")
    click.echo("=" * 88)
    for row in report:
        b = row["breakdown"]
        click.echo(
            f"{row['product_id']:<6} {row['name'][:40]:<40} {row['stock']:>8} "
            f"{b['opening']:>7} {b['purchase']:>7} {b['sale']:>7} {b['sale_return']:>7}"
        )


@audit_group.command('non-positive-stock')
@with_appcontext
def non_positive_stock_cli():
    """List products with zero or negative stock."""
    rows = audit_service.non_positive_stock()
    for product, stock in rows:
        click.echo(f"{product.id:<6} {product.name[:50]:<50} {stock:>8}")
    click.echo(f"\n{len(rows)} product(s) at or below zero")


@audit_group.command('stock-check')
@click.argument('names', nargs=-1, required=True)
@with_appcontext
def stock_check_cli(names):
    """Compare inventory-only stock with the legacy figure for NAMES."""
    for check in audit_service.stock_cross_check(names):
        if not check.found:
            click.echo(f"WARN  '{check.query}': product not found")
            continue
        marker = "PASS" if check.stock == check.legacy_stock else "DIFF"
        click.echo(
            f"{marker} {check.name}: stock={check.stock} legacy={check.legacy_stock} "
            f"(double-counted by {check.legacy_stock - check.stock})"
        )


def _print_totals(totals: dict) -> None:
    click.echo(f"Purchase dues:     {_money(totals['purchase_due_cents'])}")
    click.echo(f"Supplier balances: {_money(totals['supplier_balance_cents'])}")
    if totals["match"]:
        click.echo("PASS Totals match")
    else:
        click.echo(f"FAIL Difference: {_money(totals['difference_cents'])}")


@audit_group.command('supplier-totals')
@with_appcontext
def supplier_totals_cli():
    """Compare total purchase dues with total supplier balances."""
    _print_totals(audit_service.supplier_balance_totals())


@audit_group.command('set-supplier-balance')
@click.argument('assignments', nargs=-1, required=True)
@with_appcontext
def set_supplier_balance_cli(assignments):
    """Overwrite supplier balances: NAME=CENTS ..."""
    balances = {}
    for assignment in assignments:
        name, sep, value = assignment.rpartition("=")
        if not sep or not name.strip():
            raise click.BadParameter(f"expected NAME=CENTS, got {assignment!r}")
        try:
            balances[name.strip()] = int(value)
        except ValueError:
            raise click.BadParameter(f"balance for {name.strip()!r} must be integer cents")

    result = audit_service.override_supplier_balances(balances)
    for row in result["updated"]:
        click.echo(f"PASS {row['name']}: {_money(row['old_cents'])} -> {_money(row['new_cents'])}")
    for name in result["missing"]:
        click.echo(f"WARN  Supplier '{name}' not found")
    click.echo("")
    _print_totals(result["totals"])


def _print_reconciliation(results, fix: bool, label: str) -> None:
    if not results:
        click.echo(f"PASS All {label} balances match their ledgers")
        return
    for r in results:
        click.echo(
            f"{'FIXED' if fix else 'DIFF'} {r.name} (ID {r.party_id}): stored {_money(r.stored_cents)}, "
            f"ledger {_money(r.ledger_cents)}"
        )
    if not fix:
        click.echo(f"\n{len(results)} mismatch(es). Re-run with --fix to repair.")


@audit_group.command('reconcile-suppliers')
@click.option('--fix', is_flag=True, help='Overwrite stored balances with the ledger sum')
@with_appcontext
def reconcile_suppliers_cli(fix):
    """Recompute supplier balances from ledger rows."""
    _print_reconciliation(audit_service.reconcile_all_suppliers(apply=fix), fix, "supplier")


@audit_group.command('reconcile-customers')
@click.option('--fix', is_flag=True, help='Overwrite stored balances with the ledger sum')
@with_appcontext
def reconcile_customers_cli(fix):
    """Recompute customer balances from ledger rows."""
    _print_reconciliation(audit_service.reconcile_all_customers(apply=fix), fix, "customer")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(audit_group)
