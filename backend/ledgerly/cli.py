# Overview: Flask CLI command groups for bootstrap, stock intake, and reconciliation.

# backend/ledgerly/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to ledgerly (PowerShell: $env:FLASK_APP="ledgerly").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (use "flask db upgrade" for real deployments).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Company management:
# - python -m flask companies list
# - python -m flask companies create --name "Acme Ltd" [--invoice-prefix INV] [--no-separators]
# - python -m flask companies sequences --company-id 1
#   Show the last issued invoice/estimate/refund numbers.
#
# Stock intake:
# - python -m flask lots receive --company-id 1 --product-id 3 --quantity 10 --unit-cost-cents 450 [--reference PO-12]
# - python -m flask lots list --company-id 1 --product-id 3
#
# Invoices:
# - python -m flask invoices refresh-overdue --company-id 1
#   Persist "overdue" on past-due invoices (same write-back the list endpoint does).
#
# Reconciliation (read only):
# - python -m flask audit stock --company-id 1
#   Products whose on-hand quantity differs from the sum of their lots.
# - python -m flask audit balances --company-id 1
#   Customers whose running balance differs from invoices minus payments.

import click
from flask.cli import with_appcontext

from .errors import LedgerError
from .extensions import db
from .models import Company
from .services import balance_service, inventory_service, invoice_service, lot_service
from .services.document_service import DOCUMENT_TAGS, current_number


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables."""
    db.create_all()
    click.echo("PASS Tables created.")


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

    click.echo("PASS Database reset complete.")


@click.group('companies')
def companies_group():
    """Company (tenant) management."""


@companies_group.command('list')
@with_appcontext
def list_companies_cli():
    companies = db.session.query(Company).order_by(Company.id).all()
    if not companies:
        click.echo("No companies found.")
        return
    for company in companies:
        status = "active" if company.is_active else "inactive"
        click.echo(f"{company.id:>4}  {company.name}  [{company.invoice_prefix}/{company.estimate_prefix}/{company.refund_prefix}]  {status}")


@companies_group.command('create')
@click.option('--name', required=True, help='Company name')
@click.option('--invoice-prefix', default='INV', show_default=True)
@click.option('--estimate-prefix', default='EST', show_default=True)
@click.option('--refund-prefix', default='REF', show_default=True)
@click.option('--no-separators', is_flag=True, help='Issue numbers without "-" separators')
@with_appcontext
def create_company_cli(name, invoice_prefix, estimate_prefix, refund_prefix, no_separators):
    """Create a new company."""
    company = Company(
        name=name,
        invoice_prefix=invoice_prefix,
        estimate_prefix=estimate_prefix,
        refund_prefix=refund_prefix,
        use_separators=not no_separators,
    )
    db.session.add(company)
    db.session.commit()
    click.echo(f"PASS Created company: {company.name} (ID: {company.id})")


@companies_group.command('sequences')
@click.option('--company-id', type=int, required=True)
@with_appcontext
def show_sequences_cli(company_id):
    """Show the last issued number per document type."""
    if db.session.get(Company, company_id) is None:
        click.echo(f"FAIL Company ID {company_id} not found")
        return
    for document_type in sorted(DOCUMENT_TAGS):
        click.echo(f"{document_type:<10} {current_number(company_id, document_type)}")


@click.group('lots')
def lots_group():
    """Purchase lot intake and inspection."""


@lots_group.command('receive')
@click.option('--company-id', type=int, required=True)
@click.option('--product-id', type=int, required=True)
@click.option('--quantity', type=int, required=True)
@click.option('--unit-cost-cents', type=int, default=0, show_default=True)
@click.option('--reference', default=None)
@with_appcontext
def receive_lot_cli(company_id, product_id, quantity, unit_cost_cents, reference):
    """Receive a purchase lot into stock."""
    try:
        lot = lot_service.receive_lot(
            company_id=company_id,
            product_id=product_id,
            quantity=quantity,
            unit_cost_cents=unit_cost_cents,
            reference=reference,
        )
    except LedgerError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)
    click.echo(f"PASS Received lot {lot.id}: {lot.quantity_received} units of product {lot.product_id}")


@lots_group.command('list')
@click.option('--company-id', type=int, required=True)
@click.option('--product-id', type=int, required=True)
@with_appcontext
def list_lots_cli(company_id, product_id):
    try:
        lots = lot_service.list_lots(product_id, company_id)
    except LedgerError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)
    for lot in lots:
        click.echo(
            f"{lot.id:>6}  received={lot.quantity_received:<6} remaining={lot.remaining_qty:<6} "
            f"{lot.stock_status:<13} {lot.reference or ''}"
        )


@click.group('invoices')
def invoices_group():
    """Invoice maintenance."""


@invoices_group.command('refresh-overdue')
@click.option('--company-id', type=int, required=True)
@with_appcontext
def refresh_overdue_cli(company_id):
    flipped = invoice_service.refresh_overdue(company_id)
    click.echo(f"PASS Marked {flipped} invoice(s) overdue")


@click.group('audit')
def audit_group():
    """Read-only reconciliation reports."""


@audit_group.command('stock')
@click.option('--company-id', type=int, required=True)
@with_appcontext
def audit_stock_cli(company_id):
    drift = inventory_service.find_stock_drift(company_id)
    if not drift:
        click.echo("PASS On-hand quantities match lot totals")
        return
    for row in drift:
        click.echo(
            f"FAIL product {row['product_id']} ({row['sku']}): on_hand={row['quantity_on_hand']} "
            f"lots={row['lot_remaining']} drift={row['drift']:+d}"
        )
    raise SystemExit(1)


@audit_group.command('balances')
@click.option('--company-id', type=int, required=True)
@with_appcontext
def audit_balances_cli(company_id):
    drift = balance_service.find_balance_drift(company_id)
    if not drift:
        click.echo("PASS Customer balances match their documents")
        return
    for row in drift:
        click.echo(
            f"FAIL customer {row['customer_id']}: balance={row['current_balance_cents']} "
            f"expected={row['expected_balance_cents']} drift={row['drift']:+d}"
        )
    raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(companies_group)
    app.cli.add_command(lots_group)
    app.cli.add_command(invoices_group)
    app.cli.add_command(audit_group)
