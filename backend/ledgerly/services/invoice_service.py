# Overview: Service-layer operations for invoices; encapsulates business logic and database work.

"""
Invoice Lifecycle Engine

================================================================================
PURPOSE: Create / edit / cancel / delete / pay / refund invoices while keeping
         three ledgers consistent inside ONE transaction per operation
================================================================================

LEDGERS:
    purchase_lots.remaining_qty     (lot_service)
    products.quantity_on_hand       (inventory_service, paired with every lot write)
    customers.current_balance_cents (balance_service)

FLOW OF EVERY MUTATION:
    1. lock the invoice (and counters / products as they are touched)
    2. ask lifecycle.py for a Transition (next status, stock mode, receivable flags)
    3. apply the stock mode to the lines
    4. recompute header totals from the lines
    5. settle status + balance_due, apply Transition.balance_delta exactly once
    6. commit; any error rolls everything back (run_in_transaction)

INVARIANTS (asserted by the test suite):
    - sum(line.allocation.used_qty) == line.quantity for live invoices
    - balance_due == total - paid for live invoices, 0 otherwise
    - proforma invoices never hold allocations and never move the balance
"""

from __future__ import annotations

import logging
from datetime import date

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import (
    ESTIMATE_PENDING,
    Estimate,
    Invoice,
    InvoiceAttachment,
    InvoiceItem,
    Payment,
    Product,
    Refund,
    RefundItem,
)
from ledgerly.time_utils import today, utcnow
from ledgerly.validation import (
    InvoiceRequest,
    LineRequest,
    MAX_PRICE_CENTS,
    optional_date,
    optional_int,
    optional_str,
    parse_invoice_create,
    parse_invoice_update,
    parse_payment,
    parse_refund,
    require_int,
)
from . import balance_service, lot_service
from .inventory_service import lock_products
from .concurrency import lock_for_update, run_in_transaction, run_with_retry
from .document_service import DOC_INVOICE, DOC_REFUND, issue_document_number
from .lifecycle import (
    InvoiceStatus,
    StockMode,
    Transition,
    parse_status,
    plan_cancel,
    plan_create,
    plan_delete,
    plan_payment,
    plan_refund,
    plan_update,
    settle_status,
)
from .pricing import DISCOUNT_FIXED, document_totals, price_line, split_gross

logger = logging.getLogger(__name__)


REFUND_PAYMENT_METHOD = "Refund"


# =============================================================================
# Helpers
# =============================================================================

def _get_invoice_locked(invoice_id: int, company_id: int) -> Invoice:
    """Lock the invoice's customer, then the invoice itself."""
    customer_id = (
        db.session.query(Invoice.customer_id)
        .filter_by(id=invoice_id, company_id=company_id)
        .scalar()
    )
    if customer_id is None:
        raise NotFoundError("Invoice not found", details={"invoice_id": invoice_id})
    # customer_id is immutable on an invoice
    balance_service.get_customer_locked(customer_id)
    invoice = lock_for_update(
        db.session.query(Invoice).filter_by(id=invoice_id, company_id=company_id)
    ).first()
    if invoice is None:
        raise NotFoundError("Invoice not found", details={"invoice_id": invoice_id})
    return invoice


def _get_product(product_id: int, company_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id, company_id=company_id).first()
    if product is None:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    return product


def _price_item(item: InvoiceItem, *, quantity: int, unit_price_cents: int, tax_rate_bps: int) -> None:
    pricing = price_line(quantity, unit_price_cents, tax_rate_bps)
    item.quantity = quantity
    item.unit_price_cents = unit_price_cents
    item.tax_rate_bps = tax_rate_bps
    item.actual_unit_price_cents = pricing.actual_unit_price_cents
    item.tax_cents = pricing.tax_cents
    item.total_price_cents = pricing.total_price_cents


def _new_item(product: Product, line: LineRequest) -> InvoiceItem:
    item = InvoiceItem(
        product_id=product.id,
        product_name=product.name,
        description=line.description or product.description,
        cost_price_cents=product.cost_price_cents,
        stock_detail=[],
    )
    _price_item(
        item,
        quantity=line.quantity,
        unit_price_cents=line.unit_price_cents if line.unit_price_cents is not None else product.unit_price_cents,
        tax_rate_bps=line.tax_rate_bps if line.tax_rate_bps is not None else product.tax_rate_bps,
    )
    return item


def _apply_header(invoice: Invoice, header: dict) -> None:
    for key, value in header.items():
        if key in ("estimate_date", "expiry_date"):
            continue
        if key == "invoice_date" and value is None:
            continue
        setattr(invoice, key, value)
    if invoice.due_date is not None and invoice.invoice_date is not None and invoice.due_date < invoice.invoice_date:
        raise ValidationError("due_date cannot be before invoice_date")


def _recompute_totals(invoice: Invoice) -> None:
    totals = document_totals(
        ((item.total_price_cents, item.tax_cents) for item in invoice.items),
        discount_type=invoice.discount_type,
        discount_value=invoice.discount_value,
        shipping_cents=invoice.shipping_cents,
    )
    invoice.subtotal_cents = totals.subtotal_cents
    invoice.tax_cents = totals.tax_cents
    invoice.discount_cents = totals.discount_cents
    invoice.shipping_cents = totals.shipping_cents
    invoice.total_cents = totals.total_cents


def _settle(invoice: Invoice, transition: Transition, *, old_total: int, old_paid: int, as_of: date) -> int:
    """Derive status and balance_due, then apply the customer delta. Returns the delta."""
    status = settle_status(
        transition.target,
        total_cents=invoice.total_cents,
        paid_cents=invoice.paid_cents,
        due_date=invoice.due_date,
        today=as_of,
    )
    invoice.status = status.value
    invoice.balance_due_cents = invoice.total_cents - invoice.paid_cents if status.is_live else 0

    delta = transition.balance_delta(
        old_total=old_total,
        new_total=invoice.total_cents,
        old_paid=old_paid,
        new_paid=invoice.paid_cents,
    )
    balance_service.apply_delta(invoice.customer_id, delta)
    return delta


def _drop_item(invoice: Invoice, item: InvoiceItem, mode: StockMode) -> None:
    if mode is StockMode.ADJUST:
        lot_service.reverse(item.product_id, item.allocation)
    invoice.items.remove(item)


def _settle_items(invoice: Invoice, lines: list[LineRequest], mode: StockMode) -> None:
    """
    Bring the invoice's lines to `lines`.

    Removals and shrinking lines are processed before growing and new
    lines, so units released by the edit can fund the rest of it.
    """
    existing = {item.id: item for item in invoice.items}
    seen: set[int] = set()
    for line in lines:
        if line.id is None:
            continue
        item = existing.get(line.id)
        if item is None:
            raise NotFoundError("Invoice item not found on this invoice", details={"invoice_item_id": line.id})
        if line.id in seen:
            raise ValidationError("Invoice item listed twice", details={"invoice_item_id": line.id})
        if line.product_id != item.product_id:
            raise ValidationError(
                "An existing line's product cannot be changed; remove it and add a new line",
                details={"invoice_item_id": line.id},
            )
        seen.add(line.id)

    if not any(line.quantity > 0 for line in lines):
        raise ValidationError("An invoice needs at least one line")

    for item_id, item in existing.items():
        if item_id not in seen:
            _drop_item(invoice, item, mode)

    edits = [line for line in lines if line.id is not None]
    edits.sort(key=lambda line: line.quantity - existing[line.id].quantity)
    for line in edits:
        item = existing[line.id]
        if line.quantity == 0:
            _drop_item(invoice, item, mode)
            continue
        if mode is StockMode.ADJUST:
            item.allocation = lot_service.adjust(item.product_id, item.quantity, line.quantity, item.allocation)
        elif mode is StockMode.ALLOCATE:
            item.allocation = lot_service.allocate(item.product_id, line.quantity)
        _price_item(
            item,
            quantity=line.quantity,
            unit_price_cents=line.unit_price_cents if line.unit_price_cents is not None else item.unit_price_cents,
            tax_rate_bps=line.tax_rate_bps if line.tax_rate_bps is not None else item.tax_rate_bps,
        )
        if line.description is not None:
            item.description = line.description

    for line in lines:
        if line.id is not None:
            continue
        product = _get_product(line.product_id, invoice.company_id)
        item = _new_item(product, line)
        if mode in (StockMode.ADJUST, StockMode.ALLOCATE):
            item.allocation = lot_service.allocate(product.id, item.quantity)
        invoice.items.append(item)


# =============================================================================
# Create / update / cancel / delete
# =============================================================================

def create_invoice_locked(request: InvoiceRequest, *, as_of: date | None = None) -> Invoice:
    """
    Create inside an already-open transaction (used by estimate conversion).
    """
    as_of = as_of or today()
    transition = plan_create(request.status or InvoiceStatus.OPENED)

    invoice_date = request.header.get("invoice_date") or as_of
    customer = balance_service.get_customer_locked(request.customer_id, request.company_id)
    issued = issue_document_number(request.company_id, DOC_INVOICE, invoice_date)
    if transition.stock_mode is StockMode.ALLOCATE:
        lock_products(line.product_id for line in request.items)

    invoice = Invoice(
        company_id=request.company_id,
        customer_id=customer.id,
        invoice_number=issued.formatted,
        sequence_number=issued.sequence,
        status=transition.target.value,
        invoice_date=invoice_date,
        discount_type=DISCOUNT_FIXED,
        discount_value=0,
        shipping_cents=0,
        paid_cents=0,
    )
    _apply_header(invoice, request.header)

    for line in request.items:
        product = _get_product(line.product_id, request.company_id)
        item = _new_item(product, line)
        if transition.stock_mode is StockMode.ALLOCATE:
            item.allocation = lot_service.allocate(product.id, item.quantity)
        invoice.items.append(item)

    db.session.add(invoice)
    _recompute_totals(invoice)
    delta = _settle(invoice, transition, old_total=0, old_paid=0, as_of=as_of)
    db.session.flush()

    logger.info(
        "Invoice %s created: status=%s total=%s balance_delta=%+d",
        invoice.invoice_number, invoice.status, invoice.total_cents, delta,
    )
    return invoice


def create_invoice(payload: dict, *, as_of: date | None = None) -> Invoice:
    request = parse_invoice_create(payload)
    return run_in_transaction(lambda: create_invoice_locked(request, as_of=as_of), operation="Create invoice")


def update_invoice(invoice_id: int, payload: dict, *, as_of: date | None = None) -> Invoice:
    """
    Edit an invoice's header and lines, optionally changing status.

    status omitted keeps the track (proforma stays proforma, live stays live).
    status "opened" on a proforma allocates stock for the first time.
    status "cancelled" behaves exactly like cancel_invoice.
    """
    request = parse_invoice_update(payload)
    as_of = as_of or today()

    def _op() -> Invoice:
        invoice = _get_invoice_locked(invoice_id, request.company_id)
        if request.customer_id is not None and request.customer_id != invoice.customer_id:
            raise ValidationError(
                "An invoice's customer cannot be changed",
                details={"customer_id": invoice.customer_id},
            )

        source = parse_status(invoice.status)
        target = request.status
        if target is None:
            target = InvoiceStatus.PROFORMA if source is InvoiceStatus.PROFORMA else InvoiceStatus.OPENED
        if target is InvoiceStatus.CANCELLED:
            return _cancel_locked(invoice)

        transition = plan_update(source, target)
        old_total, old_paid = invoice.total_cents, invoice.paid_cents

        _apply_header(invoice, request.header)
        if transition.stock_mode in (StockMode.ADJUST, StockMode.ALLOCATE):
            lock_products(
                [item.product_id for item in invoice.items] + [line.product_id for line in request.items]
            )
        _settle_items(invoice, request.items, transition.stock_mode)
        _recompute_totals(invoice)
        if transition.receivable_after and invoice.total_cents < invoice.paid_cents:
            raise ValidationError(
                "Invoice total cannot drop below the amount already paid",
                details={"total_cents": invoice.total_cents, "paid_cents": invoice.paid_cents},
            )

        delta = _settle(invoice, transition, old_total=old_total, old_paid=old_paid, as_of=as_of)
        db.session.flush()
        logger.info(
            "Invoice %s updated: %s -> %s total %s -> %s balance_delta=%+d",
            invoice.invoice_number, source.value, invoice.status, old_total, invoice.total_cents, delta,
        )
        return invoice

    return run_in_transaction(_op, operation="Update invoice")


def _cancel_locked(invoice: Invoice) -> Invoice:
    transition = plan_cancel(parse_status(invoice.status))
    old_total, old_paid = invoice.total_cents, invoice.paid_cents

    if transition.stock_mode is StockMode.REVERSE:
        lock_products(item.product_id for item in invoice.items)
        for item in invoice.items:
            lot_service.reverse(item.product_id, item.allocation)
            item.allocation = []

    if transition.clears_payments:
        for payment in list(invoice.payments):
            invoice.payments.remove(payment)

    invoice.paid_cents = 0
    delta = transition.balance_delta(old_total=old_total, new_total=old_total, old_paid=old_paid, new_paid=0)
    balance_service.apply_delta(invoice.customer_id, delta)

    invoice.status = InvoiceStatus.CANCELLED.value
    invoice.balance_due_cents = 0
    invoice.cancelled_at = utcnow()
    db.session.flush()

    logger.info("Invoice %s cancelled: balance_delta=%+d", invoice.invoice_number, delta)
    return invoice


def cancel_invoice(invoice_id: int, company_id: int) -> Invoice:
    """
    Return all stock, drop the invoice's payments and remove its receivable.
    A proforma invoice only changes status.
    """
    def _op() -> Invoice:
        return _cancel_locked(_get_invoice_locked(invoice_id, company_id))

    return run_in_transaction(_op, operation="Cancel invoice")


def delete_invoice(invoice_id: int, company_id: int) -> None:
    """
    Hard delete a cancelled or proforma invoice with its lines, attachments,
    payments and refunds. A linked estimate goes back to pending.

    Live invoices are refused: deleting one would strand its allocated stock
    and its receivable. Cancel first.
    """
    def _op() -> None:
        invoice = _get_invoice_locked(invoice_id, company_id)
        transition = plan_delete(parse_status(invoice.status))

        (
            db.session.query(Estimate)
            .filter_by(invoice_id=invoice.id)
            .update({"invoice_id": None, "status": ESTIMATE_PENDING}, synchronize_session="fetch")
        )

        # Payments on a proforma invoice were credited to the customer; deleting them takes the credit back.
        delta = transition.balance_delta(
            old_total=invoice.total_cents,
            new_total=0,
            old_paid=invoice.paid_cents,
            new_paid=0,
        )
        balance_service.apply_delta(invoice.customer_id, delta)

        number = invoice.invoice_number
        db.session.delete(invoice)
        db.session.flush()
        logger.info("Invoice %s deleted: balance_delta=%+d", number, delta)

    run_in_transaction(_op, operation="Delete invoice")


# =============================================================================
# Payments
# =============================================================================

def record_payment(payload: dict, *, as_of: date | None = None) -> list[Payment]:
    """
    Apply one customer payment across one or more of their invoices.

    Each invoice's paid amount moves by its share, its status is settled
    (proforma keeps its status), and the customer balance drops by the
    share.
    """
    request = parse_payment(payload)
    as_of = as_of or today()
    payment_date = request.payment_date or as_of

    def _op() -> list[Payment]:
        customer = balance_service.get_customer_locked(request.customer_id, request.company_id)
        invoice_ids = sorted(a.invoice_id for a in request.allocations)
        invoices = {
            invoice.id: invoice
            for invoice in lock_for_update(
                db.session.query(Invoice)
                .filter(Invoice.id.in_(invoice_ids), Invoice.company_id == request.company_id)
                .order_by(Invoice.id)
            ).all()
        }

        payments = []
        for allocation in request.allocations:
            invoice = invoices.get(allocation.invoice_id)
            if invoice is None:
                raise NotFoundError("Invoice not found", details={"invoice_id": allocation.invoice_id})
            if invoice.customer_id != customer.id:
                raise ValidationError(
                    "Invoice belongs to a different customer",
                    details={"invoice_id": invoice.id},
                )

            transition = plan_payment(parse_status(invoice.status))
            if transition.receivable_after and allocation.amount_cents > invoice.balance_due_cents:
                raise ValidationError(
                    "Payment exceeds the invoice's balance due",
                    details={
                        "invoice_id": invoice.id,
                        "amount_cents": allocation.amount_cents,
                        "balance_due_cents": invoice.balance_due_cents,
                    },
                )

            old_total, old_paid = invoice.total_cents, invoice.paid_cents
            payment = Payment(
                company_id=request.company_id,
                customer_id=customer.id,
                amount_cents=allocation.amount_cents,
                payment_date=payment_date,
                payment_method=request.payment_method,
                deposit_to=request.deposit_to,
                reference=request.reference,
                notes=request.notes,
            )
            invoice.payments.append(payment)
            invoice.paid_cents += allocation.amount_cents
            _settle(invoice, transition, old_total=old_total, old_paid=old_paid, as_of=as_of)
            payments.append(payment)

        db.session.flush()
        logger.info(
            "Payment of %s recorded for customer %s across %s invoice(s)",
            request.amount_cents, customer.id, len(payments),
        )
        return payments

    return run_in_transaction(_op, operation="Record payment")


def update_payment(payment_id: int, payload: dict, *, as_of: date | None = None) -> Payment:
    """
    Edit an existing payment. An amount change moves the invoice's paid
    amount, status and balance due, and the customer balance, by the
    difference. Refund payments are immutable.
    """
    data = payload if isinstance(payload, dict) else {}
    company_id = require_int(data, "company_id", minimum=1)
    new_amount = optional_int(data, "amount_cents", minimum=1, maximum=MAX_PRICE_CENTS)
    as_of = as_of or today()

    def _op() -> Payment:
        invoice_id = (
            db.session.query(Payment.invoice_id)
            .filter_by(id=payment_id, company_id=company_id)
            .scalar()
        )
        if invoice_id is None:
            raise NotFoundError("Payment not found", details={"payment_id": payment_id})
        invoice = _get_invoice_locked(invoice_id, company_id)
        payment = lock_for_update(
            db.session.query(Payment).filter_by(id=payment_id, company_id=company_id)
        ).first()
        if payment.refund_id is not None or payment.amount_cents < 0:
            raise ValidationError("Refund payments cannot be edited", details={"payment_id": payment_id})

        transition = plan_payment(parse_status(invoice.status))

        if new_amount is not None and new_amount != payment.amount_cents:
            diff = new_amount - payment.amount_cents
            if transition.receivable_after and diff > invoice.balance_due_cents:
                raise ValidationError(
                    "Payment exceeds the invoice's balance due",
                    details={"payment_id": payment_id, "balance_due_cents": invoice.balance_due_cents},
                )
            # paid_cents is the net of every payment, refunds included.
            if invoice.paid_cents + diff < 0:
                raise ValidationError(
                    "Payment cannot drop below the amount already refunded",
                    details={
                        "payment_id": payment_id,
                        "paid_cents": invoice.paid_cents,
                        "minimum_amount_cents": payment.amount_cents - invoice.paid_cents,
                    },
                )
            old_total, old_paid = invoice.total_cents, invoice.paid_cents
            payment.amount_cents = new_amount
            invoice.paid_cents += diff
            delta = _settle(invoice, transition, old_total=old_total, old_paid=old_paid, as_of=as_of)
            logger.info("Payment %s changed by %+d: balance_delta=%+d", payment.id, diff, delta)

        if "payment_date" in data:
            payment.payment_date = optional_date(data, "payment_date") or payment.payment_date
        for key, max_length in (("payment_method", 32), ("deposit_to", 64), ("reference", 64)):
            if key in data:
                value = optional_str(data, key, max_length=max_length)
                if key == "payment_method" and not value:
                    raise ValidationError("payment_method cannot be blank")
                setattr(payment, key, value)
        if "notes" in data:
            payment.notes = optional_str(data, "notes")

        db.session.flush()
        return payment

    return run_in_transaction(_op, operation="Update payment")


# =============================================================================
# Refunds
# =============================================================================

def process_refund(invoice_id: int, payload: dict, *, as_of: date | None = None) -> Refund:
    """
    Take back part of a paid or partially paid invoice.

    Per returned line:
        gross = quantity * (custom or original unit price)
        net/tax split with the line's original tax rate
        stock returns to the most recently drawn lots first
        the line shrinks, or is deleted when nothing is left
    Then the invoice totals are recomputed, a negative Payment of the refund
    total is recorded, and the customer balance moves by
    (new_total - old_total) + refund_total.
    """
    request = parse_refund(payload)
    as_of = as_of or today()
    refund_date = request.refund_date or as_of

    def _op() -> Refund:
        invoice = _get_invoice_locked(invoice_id, request.company_id)
        transition = plan_refund(parse_status(invoice.status), invoice.paid_cents)

        items = {item.id: item for item in invoice.items}
        priced = []
        refund_total = 0
        for line in request.lines:
            item = items.get(line.invoice_item_id)
            if item is None:
                raise NotFoundError(
                    "Invoice item not found on this invoice",
                    details={"invoice_item_id": line.invoice_item_id},
                )
            if line.quantity > item.quantity:
                raise ValidationError(
                    "Cannot refund more units than the line holds",
                    details={"invoice_item_id": item.id, "quantity": item.quantity, "requested": line.quantity},
                )
            unit_price = line.unit_price_cents if line.unit_price_cents is not None else item.unit_price_cents
            gross = unit_price * line.quantity
            priced.append((item, line.quantity, unit_price, gross))
            refund_total += gross

        if refund_total > invoice.paid_cents:
            raise ValidationError(
                "Refund exceeds the amount paid on the invoice",
                details={"refund_cents": refund_total, "paid_cents": invoice.paid_cents},
            )

        issued = issue_document_number(request.company_id, DOC_REFUND, refund_date)
        lock_products(item.product_id for item, _, _, _ in priced)
        old_total, old_paid = invoice.total_cents, invoice.paid_cents

        refund = Refund(
            company_id=invoice.company_id,
            invoice_id=invoice.id,
            customer_id=invoice.customer_id,
            refund_number=issued.formatted,
            sequence_number=issued.sequence,
            refund_date=refund_date,
            reason=request.reason,
        )
        subtotal = tax = 0
        for item, quantity, unit_price, gross in priced:
            net, line_tax = split_gross(gross, item.tax_rate_bps)
            kept, released = lot_service.unwind(item.product_id, item.allocation, quantity)
            refund.items.append(RefundItem(
                invoice_item_id=item.id,
                product_id=item.product_id,
                product_name=item.product_name,
                quantity=quantity,
                unit_price_cents=unit_price,
                tax_rate_bps=item.tax_rate_bps,
                subtotal_cents=net,
                tax_cents=line_tax,
                total_cents=gross,
                restocked=[draw.to_dict() for draw in released],
            ))
            subtotal += net
            tax += line_tax

            remaining = item.quantity - quantity
            if remaining == 0:
                invoice.items.remove(item)
            else:
                item.allocation = kept
                _price_item(
                    item,
                    quantity=remaining,
                    unit_price_cents=item.unit_price_cents,
                    tax_rate_bps=item.tax_rate_bps,
                )

        refund.subtotal_cents = subtotal
        refund.tax_cents = tax
        refund.total_cents = refund_total
        db.session.add(refund)
        db.session.flush()

        invoice.payments.append(Payment(
            company_id=invoice.company_id,
            customer_id=invoice.customer_id,
            refund_id=refund.id,
            amount_cents=-refund_total,
            payment_date=refund_date,
            payment_method=request.payment_method or REFUND_PAYMENT_METHOD,
            notes=request.reason,
        ))
        invoice.paid_cents -= refund_total

        _recompute_totals(invoice)
        delta = _settle(invoice, transition, old_total=old_total, old_paid=old_paid, as_of=as_of)
        db.session.flush()

        logger.info(
            "Refund %s on invoice %s: refund=%s total %s -> %s balance_delta=%+d",
            refund.refund_number, invoice.invoice_number, refund_total, old_total, invoice.total_cents, delta,
        )
        return refund

    return run_in_transaction(_op, operation="Process refund")


# =============================================================================
# Reads
# =============================================================================

def refresh_overdue(company_id: int, *, as_of: date | None = None) -> int:
    """
    Persist "overdue" for opened/partially_paid invoices past due with money
    owed. Idempotent, so it is safe to retry. Returns the number flipped.
    """
    as_of = as_of or today()

    def _op() -> int:
        invoices = (
            db.session.query(Invoice)
            .filter(
                Invoice.company_id == company_id,
                Invoice.status.in_([InvoiceStatus.OPENED.value, InvoiceStatus.PARTIALLY_PAID.value]),
                Invoice.due_date.isnot(None),
                Invoice.due_date < as_of,
                Invoice.balance_due_cents > 0,
            )
            .all()
        )
        for invoice in invoices:
            invoice.status = InvoiceStatus.OVERDUE.value
        db.session.commit()
        return len(invoices)

    flipped = run_with_retry(_op)
    if flipped:
        logger.info("Marked %s invoice(s) overdue for company %s", flipped, company_id)
    return flipped


def list_invoices(
    company_id: int,
    *,
    status: str | None = None,
    customer_id: int | None = None,
    as_of: date | None = None,
) -> list[Invoice]:
    refresh_overdue(company_id, as_of=as_of)
    query = db.session.query(Invoice).filter(Invoice.company_id == company_id)
    if status:
        query = query.filter(Invoice.status == parse_status(status).value)
    if customer_id:
        query = query.filter(Invoice.customer_id == customer_id)
    return query.order_by(Invoice.id.desc()).all()


def get_invoice(invoice_id: int, company_id: int) -> Invoice:
    invoice = db.session.query(Invoice).filter_by(id=invoice_id, company_id=company_id).first()
    if invoice is None:
        raise NotFoundError("Invoice not found", details={"invoice_id": invoice_id})
    return invoice


def list_invoice_payments(invoice_id: int, company_id: int) -> list[Payment]:
    get_invoice(invoice_id, company_id)
    return (
        db.session.query(Payment)
        .filter_by(invoice_id=invoice_id)
        .order_by(Payment.payment_date.asc(), Payment.id.asc())
        .all()
    )


def list_invoice_refunds(invoice_id: int, company_id: int) -> list[Refund]:
    get_invoice(invoice_id, company_id)
    return (
        db.session.query(Refund)
        .filter_by(invoice_id=invoice_id)
        .order_by(Refund.id.desc())
        .all()
    )


def add_attachment(invoice_id: int, company_id: int, *, file_name: str, file_path: str) -> InvoiceAttachment:
    if not file_name or not file_path:
        raise ValidationError("file_name and file_path are required")

    def _op() -> InvoiceAttachment:
        invoice = _get_invoice_locked(invoice_id, company_id)
        attachment = InvoiceAttachment(file_name=file_name, file_path=file_path)
        invoice.attachments.append(attachment)
        db.session.flush()
        return attachment

    return run_in_transaction(_op, operation="Add attachment")
