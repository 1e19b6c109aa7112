# Overview: Service-layer operations for estimates; numbering, pricing and conversion to invoices.

from __future__ import annotations

import logging
from datetime import date

from ..errors import InvalidTransitionError, NotFoundError
from ..extensions import db
from ..models import (
    ESTIMATE_CONVERTED,
    ESTIMATE_DECLINED,
    Customer,
    Estimate,
    EstimateItem,
    Invoice,
    Product,
)
from ledgerly.time_utils import today
from ledgerly.validation import InvoiceRequest, LineRequest, optional_date, parse_estimate_create, require_int
from .balance_service import get_customer_locked
from .concurrency import lock_for_update, run_in_transaction
from .document_service import DOC_ESTIMATE, issue_document_number
from .invoice_service import create_invoice_locked
from .lifecycle import InvoiceStatus, parse_status
from .pricing import DISCOUNT_FIXED, document_totals, price_line

logger = logging.getLogger(__name__)


def create_estimate(payload: dict, *, as_of: date | None = None) -> Estimate:
    """Price and number a new estimate. Estimates never touch stock or balances."""
    request = parse_estimate_create(payload)
    as_of = as_of or today()

    def _op() -> Estimate:
        header = request.header
        estimate_date = header.get("estimate_date") or as_of
        issued = issue_document_number(request.company_id, DOC_ESTIMATE, estimate_date)

        customer = db.session.query(Customer).filter_by(
            id=request.customer_id, company_id=request.company_id
        ).first()
        if customer is None:
            raise NotFoundError("Customer not found", details={"customer_id": request.customer_id})

        estimate = Estimate(
            company_id=request.company_id,
            customer_id=customer.id,
            estimate_number=issued.formatted,
            sequence_number=issued.sequence,
            estimate_date=estimate_date,
            expiry_date=header.get("expiry_date"),
            head_note=header.get("head_note"),
            memo=header.get("memo"),
            billing_address=header.get("billing_address"),
            shipping_address=header.get("shipping_address"),
            discount_type=header.get("discount_type", DISCOUNT_FIXED),
            discount_value=header.get("discount_value", 0),
            shipping_cents=header.get("shipping_cents", 0),
        )
        for line in request.items:
            product = db.session.query(Product).filter_by(
                id=line.product_id, company_id=request.company_id
            ).first()
            if product is None:
                raise NotFoundError("Product not found", details={"product_id": line.product_id})
            unit_price = line.unit_price_cents if line.unit_price_cents is not None else product.unit_price_cents
            tax_rate = line.tax_rate_bps if line.tax_rate_bps is not None else product.tax_rate_bps
            pricing = price_line(line.quantity, unit_price, tax_rate)
            estimate.items.append(EstimateItem(
                product_id=product.id,
                description=line.description or product.description,
                quantity=line.quantity,
                unit_price_cents=unit_price,
                actual_unit_price_cents=pricing.actual_unit_price_cents,
                tax_rate_bps=tax_rate,
                tax_cents=pricing.tax_cents,
                total_price_cents=pricing.total_price_cents,
            ))

        totals = document_totals(
            ((item.total_price_cents, item.tax_cents) for item in estimate.items),
            discount_type=estimate.discount_type,
            discount_value=estimate.discount_value,
            shipping_cents=estimate.shipping_cents,
        )
        estimate.subtotal_cents = totals.subtotal_cents
        estimate.tax_cents = totals.tax_cents
        estimate.discount_cents = totals.discount_cents
        estimate.total_cents = totals.total_cents

        db.session.add(estimate)
        db.session.flush()
        logger.info("Estimate %s created: total=%s", estimate.estimate_number, estimate.total_cents)
        return estimate

    return run_in_transaction(_op, operation="Create estimate")


def get_estimate(estimate_id: int, company_id: int) -> Estimate:
    estimate = db.session.query(Estimate).filter_by(id=estimate_id, company_id=company_id).first()
    if estimate is None:
        raise NotFoundError("Estimate not found", details={"estimate_id": estimate_id})
    return estimate


def convert_estimate_to_invoice(estimate_id: int, payload: dict | None = None, *, as_of: date | None = None) -> Invoice:
    """
    Turn an active estimate into an invoice.

    The invoice goes through the regular create path: it gets the next
    invoice number, allocates stock (unless requested as proforma) and
    raises the customer's balance. The estimate is marked converted and
    linked to the new invoice in the same transaction.
    """
    data = payload or {}
    company_id = require_int(data, "company_id", minimum=1)
    status = parse_status(data["status"]) if data.get("status") else InvoiceStatus.OPENED
    invoice_date = optional_date(data, "invoice_date")
    due_date = optional_date(data, "due_date")
    as_of = as_of or today()

    def _op() -> Invoice:
        customer_id = (
            db.session.query(Estimate.customer_id)
            .filter_by(id=estimate_id, company_id=company_id)
            .scalar()
        )
        if customer_id is None:
            raise NotFoundError("Estimate not found", details={"estimate_id": estimate_id})
        get_customer_locked(customer_id)
        estimate = lock_for_update(
            db.session.query(Estimate).filter_by(id=estimate_id, company_id=company_id)
        ).first()
        if not estimate.is_active:
            raise InvalidTransitionError("Estimate is not active", details={"estimate_id": estimate_id})
        if estimate.status == ESTIMATE_CONVERTED or estimate.invoice_id is not None:
            raise InvalidTransitionError(
                "Estimate has already been converted",
                details={"estimate_id": estimate_id, "invoice_id": estimate.invoice_id},
            )
        if estimate.status == ESTIMATE_DECLINED:
            raise InvalidTransitionError("A declined estimate cannot be invoiced", details={"estimate_id": estimate_id})

        request = InvoiceRequest(
            company_id=company_id,
            customer_id=estimate.customer_id,
            status=status,
            items=[
                LineRequest(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_price_cents=item.unit_price_cents,
                    tax_rate_bps=item.tax_rate_bps,
                    description=item.description,
                )
                for item in estimate.items
            ],
            header={
                "invoice_date": invoice_date or as_of,
                "due_date": due_date,
                "head_note": estimate.head_note,
                "memo": estimate.memo,
                "billing_address": estimate.billing_address,
                "shipping_address": estimate.shipping_address,
                "discount_type": estimate.discount_type,
                "discount_value": estimate.discount_value,
                "shipping_cents": estimate.shipping_cents,
            },
        )
        invoice = create_invoice_locked(request, as_of=as_of)

        estimate.status = ESTIMATE_CONVERTED
        estimate.invoice_id = invoice.id
        db.session.flush()
        logger.info("Estimate %s converted to invoice %s", estimate.estimate_number, invoice.invoice_number)
        return invoice

    return run_in_transaction(_op, operation="Convert estimate")
