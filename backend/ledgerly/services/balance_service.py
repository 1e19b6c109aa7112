# Overview: Customer running balance; signed deltas plus credit eligibility checks.

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta

from sqlalchemy import func

from ..errors import NotFoundError
from ..extensions import db
from ..models import Customer, Invoice, Payment
from ledgerly.time_utils import today as utc_today
from .concurrency import lock_for_update
from .lifecycle import LIVE_STATUSES, InvoiceStatus

logger = logging.getLogger(__name__)


def get_customer_locked(customer_id: int, company_id: int | None = None) -> Customer:
    query = db.session.query(Customer).filter_by(id=customer_id)
    if company_id is not None:
        query = query.filter_by(company_id=company_id)
    customer = lock_for_update(query).first()
    if customer is None:
        raise NotFoundError("Customer not found", details={"customer_id": customer_id})
    return customer


def apply_delta(customer_id: int, amount_cents: int) -> Customer:
    """
    Add a signed amount to the customer's running balance.
    Runs inside the caller's transaction; zero deltas are skipped.
    """
    customer = get_customer_locked(customer_id)
    if amount_cents:
        customer.current_balance_cents += amount_cents
        logger.debug("Customer %s balance %+d -> %s", customer_id, amount_cents, customer.current_balance_cents)
    return customer


@dataclass
class Eligibility:
    eligible: bool
    reasons: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"eligible": self.eligible, "reasons": list(self.reasons)}


def check_customer_eligibility(
    customer_id: int,
    company_id: int,
    invoice_total_cents: int,
    *,
    overdue_block_days: int = 60,
    today: date | None = None,
) -> Eligibility:
    """
    Can this customer take another invoice on credit?

    Blocks when any live invoice is `overdue_block_days` or more past due
    with money owed, or when the new invoice would push the balance past a
    non-zero credit limit.
    """
    customer = db.session.query(Customer).filter_by(id=customer_id, company_id=company_id).first()
    if customer is None:
        raise NotFoundError("Customer not found", details={"customer_id": customer_id})

    as_of = today or utc_today()
    cutoff = as_of - timedelta(days=overdue_block_days)
    result = Eligibility(eligible=True)

    long_overdue = (
        db.session.query(Invoice)
        .filter(
            Invoice.customer_id == customer_id,
            Invoice.status.in_([s.value for s in LIVE_STATUSES if s is not InvoiceStatus.PAID]),
            Invoice.balance_due_cents > 0,
            Invoice.due_date.isnot(None),
            Invoice.due_date <= cutoff,
        )
        .order_by(Invoice.due_date.asc())
        .first()
    )
    if long_overdue is not None:
        result.eligible = False
        result.reasons.append(
            f"Invoice {long_overdue.invoice_number} is overdue by more than {overdue_block_days} days"
        )

    projected = customer.current_balance_cents + invoice_total_cents
    if customer.credit_limit_cents > 0 and projected > customer.credit_limit_cents:
        result.eligible = False
        result.reasons.append(
            f"Credit limit exceeded: limit {customer.credit_limit_cents}, projected balance {projected}"
        )

    return result


def expected_customer_balance(customer_id: int) -> int:
    """
    Recompute the receivable from documents: live invoice totals minus all
    payments. Reconciliation/debug only, never used on the write path.
    """
    receivable = (
        db.session.query(func.coalesce(func.sum(Invoice.total_cents), 0))
        .filter(
            Invoice.customer_id == customer_id,
            Invoice.status.in_([s.value for s in LIVE_STATUSES]),
        )
        .scalar()
    )
    paid = (
        db.session.query(func.coalesce(func.sum(Payment.amount_cents), 0))
        .filter(Payment.customer_id == customer_id)
        .scalar()
    )
    return int(receivable or 0) - int(paid or 0)


def find_balance_drift(company_id: int) -> list[dict]:
    drift = []
    for customer in db.session.query(Customer).filter_by(company_id=company_id).order_by(Customer.id):
        expected = expected_customer_balance(customer.id)
        if expected != customer.current_balance_cents:
            drift.append({
                "customer_id": customer.id,
                "current_balance_cents": customer.current_balance_cents,
                "expected_balance_cents": expected,
                "drift": customer.current_balance_cents - expected,
            })
    return drift
