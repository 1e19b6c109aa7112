# Overview: Invoice state machine; pure transition planning with no database access.

"""
Invoice Lifecycle

================================================================================
PURPOSE: Decide, for each invoice operation, the next status and the effects
         the engine must apply (stock movement, customer balance delta)
================================================================================

STATES:
    proforma        parallel track; never allocates stock, never a receivable
    opened          live receivable, nothing paid
    partially_paid  live receivable, something paid
    paid            live, paid_cents >= total_cents
    overdue         opened/partially_paid past due_date with balance left
    cancelled       terminal; stock returned, receivable removed

BALANCE RULE:
    One invoice contributes   (total if the status is live else 0) - paid
    to its customer's balance. Every transition applies exactly
    (contribution after) - (contribution before). That single rule gives:
        create opened          +total
        payment                -amount
        edit live invoice      +(new_total - old_total)
        proforma -> opened     +total
        cancel live            -balance_due
        refund                 (new_total - old_total) + refund
    and makes "proforma never touches the balance" hold by construction:
    a proforma invoice never counts as a receivable.

Nothing in this module touches the database. The invoice engine asks for a
Transition, applies its stock mode, then applies its balance delta.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum

from ..errors import InvalidTransitionError, ValidationError


class InvoiceStatus(str, Enum):
    PROFORMA = "proforma"
    OPENED = "opened"
    OVERDUE = "overdue"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    CANCELLED = "cancelled"

    @property
    def is_live(self) -> bool:
        return self in LIVE_STATUSES


LIVE_STATUSES = frozenset({
    InvoiceStatus.OPENED,
    InvoiceStatus.OVERDUE,
    InvoiceStatus.PARTIALLY_PAID,
    InvoiceStatus.PAID,
})

# Statuses a caller may ask for directly; the payment statuses are derived.
REQUESTABLE_STATUSES = frozenset({InvoiceStatus.OPENED, InvoiceStatus.PROFORMA, InvoiceStatus.CANCELLED})

REFUNDABLE_STATUSES = frozenset({InvoiceStatus.PAID, InvoiceStatus.PARTIALLY_PAID, InvoiceStatus.OVERDUE})


class StockMode(str, Enum):
    NONE = "none"          # no stock movement
    ALLOCATE = "allocate"  # first allocation for every line
    ADJUST = "adjust"      # per-line deltas against the existing allocation
    REVERSE = "reverse"    # release every line's whole allocation
    UNWIND = "unwind"      # release returned quantities, most recent draws first


@dataclass(frozen=True)
class Transition:
    source: InvoiceStatus | None
    target: InvoiceStatus
    stock_mode: StockMode
    receivable_before: bool
    receivable_after: bool
    clears_payments: bool = False

    def balance_delta(self, *, old_total: int, new_total: int, old_paid: int, new_paid: int) -> int:
        before = (old_total if self.receivable_before else 0) - old_paid
        after = (new_total if self.receivable_after else 0) - new_paid
        return after - before


def parse_status(value: str | None, *, field: str = "status") -> InvoiceStatus:
    try:
        return InvoiceStatus(value)
    except ValueError:
        raise ValidationError(
            f"Invalid {field} '{value}'. Must be one of: {', '.join(s.value for s in InvoiceStatus)}"
        ) from None


def plan_create(target: InvoiceStatus) -> Transition:
    if target not in (InvoiceStatus.OPENED, InvoiceStatus.PROFORMA):
        raise InvalidTransitionError(
            f"Invoices can only be created as opened or proforma, not {target.value}",
            details={"status": target.value},
        )
    if target is InvoiceStatus.PROFORMA:
        return Transition(None, target, StockMode.NONE, False, False)
    return Transition(None, target, StockMode.ALLOCATE, False, True)


def plan_cancel(source: InvoiceStatus) -> Transition:
    if source is InvoiceStatus.CANCELLED:
        raise InvalidTransitionError("Invoice is already cancelled", details={"status": source.value})
    if source is InvoiceStatus.PROFORMA:
        return Transition(source, InvoiceStatus.CANCELLED, StockMode.NONE, False, False, clears_payments=True)
    return Transition(source, InvoiceStatus.CANCELLED, StockMode.REVERSE, True, False, clears_payments=True)


def plan_update(source: InvoiceStatus, target: InvoiceStatus) -> Transition:
    """
    Edit transitions:

        proforma -> proforma   items change, no stock, no balance
        proforma -> opened     first allocation, receivable appears
        live     -> opened     per-line deltas, receivable moves by total change
        any      -> cancelled  same as plan_cancel
        live     -> proforma   rejected (stock and receivable already exist)
        cancelled -> *         rejected (terminal)
    """
    if source is InvoiceStatus.CANCELLED:
        raise InvalidTransitionError("Cancelled invoices cannot be edited", details={"status": source.value})
    if target is InvoiceStatus.CANCELLED:
        return plan_cancel(source)
    if target not in REQUESTABLE_STATUSES:
        raise InvalidTransitionError(
            f"Status {target.value} is derived from payments and cannot be set directly",
            details={"status": target.value},
        )

    if source is InvoiceStatus.PROFORMA:
        if target is InvoiceStatus.PROFORMA:
            return Transition(source, target, StockMode.NONE, False, False)
        return Transition(source, target, StockMode.ALLOCATE, False, True)

    if target is InvoiceStatus.PROFORMA:
        raise InvalidTransitionError(
            "A live invoice cannot be turned back into a proforma",
            details={"status": source.value, "target": target.value},
        )
    return Transition(source, InvoiceStatus.OPENED, StockMode.ADJUST, True, True)


def plan_payment(source: InvoiceStatus) -> Transition:
    if source is InvoiceStatus.CANCELLED:
        raise InvalidTransitionError("Cannot record a payment on a cancelled invoice", details={"status": source.value})
    live = source.is_live
    return Transition(source, source, StockMode.NONE, live, live)


def plan_refund(source: InvoiceStatus, paid_cents: int) -> Transition:
    if source not in REFUNDABLE_STATUSES or paid_cents <= 0:
        raise InvalidTransitionError(
            "Only paid or partially paid invoices can be refunded",
            details={"status": source.value, "paid_cents": paid_cents},
        )
    return Transition(source, source, StockMode.UNWIND, True, True)


def plan_delete(source: InvoiceStatus) -> Transition:
    if source.is_live:
        raise InvalidTransitionError(
            "Cancel the invoice before deleting it",
            details={"status": source.value},
        )
    return Transition(source, source, StockMode.NONE, False, False, clears_payments=True)


def settle_status(
    current: InvoiceStatus,
    *,
    total_cents: int,
    paid_cents: int,
    due_date: date | None,
    today: date,
) -> InvoiceStatus:
    """Status of a live invoice derived from what has been paid and the due date."""
    if current in (InvoiceStatus.PROFORMA, InvoiceStatus.CANCELLED):
        return current
    if paid_cents >= total_cents:
        return InvoiceStatus.PAID
    status = InvoiceStatus.PARTIALLY_PAID if paid_cents > 0 else InvoiceStatus.OPENED
    if due_date is not None and due_date < today:
        return InvoiceStatus.OVERDUE
    return status


def effective_status(
    current: InvoiceStatus,
    *,
    balance_due_cents: int,
    due_date: date | None,
    today: date,
) -> InvoiceStatus:
    """Read-time view: opened/partially_paid past due with money owed reads as overdue."""
    if (
        current in (InvoiceStatus.OPENED, InvoiceStatus.PARTIALLY_PAID)
        and due_date is not None
        and due_date < today
        and balance_due_cents > 0
    ):
        return InvoiceStatus.OVERDUE
    return current
