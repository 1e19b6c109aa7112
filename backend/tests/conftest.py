"""
Pytest fixtures for Ledgerly backend tests.

Provides test database setup, a company with one customer and one stocked
product, a lot intake factory, and ledger consistency checks.
"""

from datetime import date, datetime, timedelta

import pytest

from ledgerly import create_app
from ledgerly.extensions import db
from ledgerly.models import Company, Customer, Invoice, Product
from ledgerly.services import balance_service, edit_lock_service, inventory_service, lot_service
from ledgerly.services.lifecycle import InvoiceStatus


AS_OF = date(2026, 3, 1)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        edit_lock_service.init_app(app)

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def company(db_session):
    company = Company(name="Acme Ltd", invoice_prefix="INV", estimate_prefix="EST", refund_prefix="REF")
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def other_company(db_session):
    company = Company(name="Beta Inc")
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def customer(db_session, company):
    customer = Customer(company_id=company.id, name="Dana Client", email="dana@example.com")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def second_customer(db_session, company):
    customer = Customer(company_id=company.id, name="Sam Buyer", email="sam@example.com")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def product(db_session, company):
    """Widget sold at 11.00 tax inclusive with 10% tax (10.00 net + 1.00 tax)."""
    product = Product(
        company_id=company.id,
        sku="WID-1",
        name="Widget",
        unit_price_cents=1100,
        tax_rate_bps=1000,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def gadget(db_session, company):
    product = Product(
        company_id=company.id,
        sku="GAD-1",
        name="Gadget",
        unit_price_cents=500,
        tax_rate_bps=0,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def receive(db_session):
    """Factory: receive a lot, one day after the previous one so FIFO order is explicit."""
    counter = {"n": 0}

    def _receive(product, quantity, unit_cost_cents=400):
        counter["n"] += 1
        return lot_service.receive_lot(
            company_id=product.company_id,
            product_id=product.id,
            quantity=quantity,
            unit_cost_cents=unit_cost_cents,
            reference=f"PO-{counter['n']}",
            received_at=datetime(2026, 1, 1) + timedelta(days=counter["n"]),
        )

    return _receive


@pytest.fixture(scope='function')
def lots(product, receive):
    """Three lots of five units each, oldest first."""
    return [receive(product, 5) for _ in range(3)]


@pytest.fixture(scope='function')
def invoice_payload(company, customer, product):
    def _payload(quantity=7, **extra):
        payload = {
            "company_id": company.id,
            "customer_id": customer.id,
            "invoice_date": AS_OF.isoformat(),
            "items": [{"product_id": product.id, "quantity": quantity}],
        }
        payload.update(extra)
        return payload

    return _payload


@pytest.fixture(scope='function')
def check_ledgers(db_session):
    """
    Assert the cross-ledger invariants for a company:
    - on-hand equals the sum of lot remainders for every product
    - every customer balance equals live totals minus payments
    - live invoice lines are fully allocated, other lines hold nothing
    - balance_due matches the invoice's status
    """
    def _check(company_id):
        db_session.expire_all()
        assert inventory_service.find_stock_drift(company_id) == []
        assert balance_service.find_balance_drift(company_id) == []

        for invoice in db_session.query(Invoice).filter_by(company_id=company_id):
            status = InvoiceStatus(invoice.status)
            for item in invoice.items:
                if status.is_live:
                    assert item.allocated_qty == item.quantity
                else:
                    assert item.allocation == []
            if status.is_live:
                assert invoice.balance_due_cents == invoice.total_cents - invoice.paid_cents
            else:
                assert invoice.balance_due_cents == 0

    return _check
