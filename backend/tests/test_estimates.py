# Overview: Pytest coverage for estimates and their conversion into invoices.

from datetime import date

import pytest

from ledgerly.errors import InsufficientStockError, InvalidTransitionError, NotFoundError
from ledgerly.models import ESTIMATE_DECLINED, Customer, Estimate, Invoice, PurchaseLot
from ledgerly.services import estimate_service, invoice_service
from ledgerly.services.document_service import DOC_INVOICE, current_number


AS_OF = date(2026, 3, 1)


@pytest.fixture
def estimate_payload(company, customer, product):
    def _payload(quantity=7, **extra):
        payload = {
            "company_id": company.id,
            "customer_id": customer.id,
            "estimate_date": "2026-02-20",
            "expiry_date": "2026-03-20",
            "items": [{"product_id": product.id, "quantity": quantity}],
        }
        payload.update(extra)
        return payload

    return _payload


def _fresh(db_session, model, ident):
    db_session.expire_all()
    return db_session.get(model, ident)


class TestEstimates:
    def test_create_estimate_touches_no_ledger(self, db_session, company, customer, lots, estimate_payload, check_ledgers):
        estimate = estimate_service.create_estimate(estimate_payload(7, shipping_cents=300), as_of=AS_OF)

        assert estimate.estimate_number == "EST-26-EST-00001"
        assert estimate.status == "pending"
        assert estimate.expiry_date == date(2026, 3, 20)
        assert estimate.subtotal_cents == 7000
        assert estimate.tax_cents == 700
        assert estimate.total_cents == 8000
        assert [lot.remaining_qty for lot in db_session.query(PurchaseLot).order_by(PurchaseLot.id)] == [5, 5, 5]
        assert _fresh(db_session, Customer, customer.id).current_balance_cents == 0
        check_ledgers(company.id)

    def test_estimate_may_exceed_stock(self, db_session, lots, estimate_payload):
        estimate = estimate_service.create_estimate(estimate_payload(40), as_of=AS_OF)
        assert estimate.total_cents == 44000

    def test_get_estimate_is_company_scoped(self, db_session, company, other_company, lots, estimate_payload):
        estimate = estimate_service.create_estimate(estimate_payload(1), as_of=AS_OF)
        assert estimate_service.get_estimate(estimate.id, company.id).id == estimate.id
        with pytest.raises(NotFoundError):
            estimate_service.get_estimate(estimate.id, other_company.id)

    def test_convert_creates_live_invoice(self, db_session, company, customer, lots, estimate_payload, check_ledgers):
        estimate = estimate_service.create_estimate(estimate_payload(7), as_of=AS_OF)

        invoice = estimate_service.convert_estimate_to_invoice(
            estimate.id, {"company_id": company.id, "due_date": "2026-03-31"}, as_of=AS_OF
        )

        assert invoice.invoice_number == "INV-26-INV-00001"
        assert invoice.status == "opened"
        assert invoice.total_cents == 7700
        assert invoice.due_date == date(2026, 3, 31)
        assert invoice.items[0].allocated_qty == 7

        stored = _fresh(db_session, Estimate, estimate.id)
        assert stored.status == "converted"
        assert stored.invoice_id == invoice.id
        assert _fresh(db_session, Customer, customer.id).current_balance_cents == 7700
        check_ledgers(company.id)

    def test_convert_to_proforma(self, db_session, company, customer, lots, estimate_payload, check_ledgers):
        estimate = estimate_service.create_estimate(estimate_payload(3), as_of=AS_OF)
        invoice = estimate_service.convert_estimate_to_invoice(
            estimate.id, {"company_id": company.id, "status": "proforma"}, as_of=AS_OF
        )
        assert invoice.status == "proforma"
        assert _fresh(db_session, Customer, customer.id).current_balance_cents == 0
        check_ledgers(company.id)

    def test_convert_twice_refused(self, db_session, company, lots, estimate_payload):
        estimate = estimate_service.create_estimate(estimate_payload(1), as_of=AS_OF)
        estimate_service.convert_estimate_to_invoice(estimate.id, {"company_id": company.id}, as_of=AS_OF)
        with pytest.raises(InvalidTransitionError):
            estimate_service.convert_estimate_to_invoice(estimate.id, {"company_id": company.id}, as_of=AS_OF)

    def test_declined_estimate_cannot_be_converted(self, db_session, company, lots, estimate_payload):
        estimate = estimate_service.create_estimate(estimate_payload(1), as_of=AS_OF)
        db_session.get(Estimate, estimate.id).status = ESTIMATE_DECLINED
        db_session.commit()
        with pytest.raises(InvalidTransitionError):
            estimate_service.convert_estimate_to_invoice(estimate.id, {"company_id": company.id}, as_of=AS_OF)

    def test_failed_conversion_keeps_estimate_pending(self, db_session, company, lots, estimate_payload, check_ledgers):
        estimate = estimate_service.create_estimate(estimate_payload(40), as_of=AS_OF)

        with pytest.raises(InsufficientStockError):
            estimate_service.convert_estimate_to_invoice(estimate.id, {"company_id": company.id}, as_of=AS_OF)

        stored = _fresh(db_session, Estimate, estimate.id)
        assert stored.status == "pending"
        assert stored.invoice_id is None
        assert db_session.query(Invoice).count() == 0
        assert current_number(company.id, DOC_INVOICE) == 0
        check_ledgers(company.id)

    def test_deleting_the_invoice_reopens_the_estimate(self, db_session, company, lots, estimate_payload, check_ledgers):
        estimate = estimate_service.create_estimate(estimate_payload(2), as_of=AS_OF)
        invoice = estimate_service.convert_estimate_to_invoice(estimate.id, {"company_id": company.id}, as_of=AS_OF)
        invoice_id = invoice.id

        invoice_service.cancel_invoice(invoice_id, company.id)
        invoice_service.delete_invoice(invoice_id, company.id)

        stored = _fresh(db_session, Estimate, estimate.id)
        assert stored.status == "pending"
        assert stored.invoice_id is None
        check_ledgers(company.id)

        again = estimate_service.convert_estimate_to_invoice(estimate.id, {"company_id": company.id}, as_of=AS_OF)
        assert again.invoice_number == "INV-26-INV-00002"
