# Overview: Pytest coverage for the invoice state machine and money math (no database).

from datetime import date

import pytest

from ledgerly.errors import InvalidTransitionError, ValidationError
from ledgerly.services.lifecycle import (
    InvoiceStatus,
    StockMode,
    effective_status,
    parse_status,
    plan_cancel,
    plan_create,
    plan_delete,
    plan_payment,
    plan_refund,
    plan_update,
    settle_status,
)
from ledgerly.services.pricing import (
    DISCOUNT_FIXED,
    DISCOUNT_PERCENTAGE,
    discount_amount,
    div_round_half_up,
    document_totals,
    price_line,
    split_gross,
)


S = InvoiceStatus
TODAY = date(2026, 3, 15)


class TestTransitions:
    def test_create_opened_allocates_and_adds_receivable(self):
        t = plan_create(S.OPENED)
        assert t.stock_mode is StockMode.ALLOCATE
        assert t.balance_delta(old_total=0, new_total=7700, old_paid=0, new_paid=0) == 7700

    def test_create_proforma_touches_nothing(self):
        t = plan_create(S.PROFORMA)
        assert t.stock_mode is StockMode.NONE
        assert t.balance_delta(old_total=0, new_total=7700, old_paid=0, new_paid=0) == 0

    @pytest.mark.parametrize("status", [S.PAID, S.PARTIALLY_PAID, S.OVERDUE, S.CANCELLED])
    def test_create_rejects_derived_statuses(self, status):
        with pytest.raises(InvalidTransitionError):
            plan_create(status)

    def test_cancel_live_removes_outstanding_balance(self):
        t = plan_cancel(S.PARTIALLY_PAID)
        assert t.stock_mode is StockMode.REVERSE
        assert t.clears_payments
        assert t.balance_delta(old_total=7700, new_total=7700, old_paid=3000, new_paid=0) == -4700

    def test_cancel_proforma_takes_back_payment_credit(self):
        t = plan_cancel(S.PROFORMA)
        assert t.stock_mode is StockMode.NONE
        assert t.balance_delta(old_total=7700, new_total=7700, old_paid=1000, new_paid=0) == 1000

    def test_cancel_twice(self):
        with pytest.raises(InvalidTransitionError):
            plan_cancel(S.CANCELLED)

    def test_update_live_moves_by_total_change(self):
        t = plan_update(S.PARTIALLY_PAID, S.OPENED)
        assert t.stock_mode is StockMode.ADJUST
        assert t.balance_delta(old_total=7700, new_total=4400, old_paid=1000, new_paid=1000) == -3300

    def test_update_proforma_to_opened_allocates(self):
        t = plan_update(S.PROFORMA, S.OPENED)
        assert t.stock_mode is StockMode.ALLOCATE
        assert t.balance_delta(old_total=4400, new_total=4400, old_paid=0, new_paid=0) == 4400

    def test_update_proforma_stays_proforma(self):
        t = plan_update(S.PROFORMA, S.PROFORMA)
        assert t.stock_mode is StockMode.NONE
        assert t.balance_delta(old_total=4400, new_total=9900, old_paid=0, new_paid=0) == 0

    def test_update_to_cancelled_is_a_cancel(self):
        assert plan_update(S.OPENED, S.CANCELLED) == plan_cancel(S.OPENED)

    def test_live_cannot_return_to_proforma(self):
        with pytest.raises(InvalidTransitionError):
            plan_update(S.OPENED, S.PROFORMA)

    def test_cancelled_is_terminal(self):
        with pytest.raises(InvalidTransitionError):
            plan_update(S.CANCELLED, S.OPENED)

    def test_derived_status_cannot_be_requested(self):
        with pytest.raises(InvalidTransitionError):
            plan_update(S.OPENED, S.PAID)

    def test_payment_on_live_invoice(self):
        t = plan_payment(S.OVERDUE)
        assert t.target is S.OVERDUE
        assert t.balance_delta(old_total=7700, new_total=7700, old_paid=0, new_paid=500) == -500

    def test_payment_on_proforma_is_a_credit(self):
        t = plan_payment(S.PROFORMA)
        assert t.balance_delta(old_total=7700, new_total=7700, old_paid=0, new_paid=500) == -500

    def test_payment_on_cancelled(self):
        with pytest.raises(InvalidTransitionError):
            plan_payment(S.CANCELLED)

    def test_refund_needs_money_paid(self):
        assert plan_refund(S.PAID, 7700).stock_mode is StockMode.UNWIND
        assert plan_refund(S.OVERDUE, 100).stock_mode is StockMode.UNWIND
        with pytest.raises(InvalidTransitionError):
            plan_refund(S.OPENED, 0)
        with pytest.raises(InvalidTransitionError):
            plan_refund(S.OVERDUE, 0)
        with pytest.raises(InvalidTransitionError):
            plan_refund(S.PROFORMA, 500)

    def test_refund_balance_effect(self):
        # 2 of 7 units refunded on a fully paid invoice: total and paid both drop by 2200
        t = plan_refund(S.PAID, 7700)
        assert t.balance_delta(old_total=7700, new_total=5500, old_paid=7700, new_paid=5500) == 0

    @pytest.mark.parametrize("status", [S.OPENED, S.PAID, S.OVERDUE, S.PARTIALLY_PAID])
    def test_delete_live_refused(self, status):
        with pytest.raises(InvalidTransitionError):
            plan_delete(status)

    def test_delete_cancelled(self):
        t = plan_delete(S.CANCELLED)
        assert t.balance_delta(old_total=7700, new_total=0, old_paid=0, new_paid=0) == 0

    def test_parse_status(self):
        assert parse_status("partially_paid") is S.PARTIALLY_PAID
        with pytest.raises(ValidationError):
            parse_status("draft")

    def test_live_statuses(self):
        assert {s for s in S if s.is_live} == {S.OPENED, S.OVERDUE, S.PARTIALLY_PAID, S.PAID}


class TestSettleStatus:
    @pytest.mark.parametrize("paid, due, expected", [
        (0, None, S.OPENED),
        (0, date(2026, 3, 20), S.OPENED),
        (3000, date(2026, 3, 20), S.PARTIALLY_PAID),
        (7700, date(2026, 3, 1), S.PAID),
        (0, date(2026, 3, 14), S.OVERDUE),
        (3000, date(2026, 3, 14), S.OVERDUE),
    ])
    def test_live_invoice(self, paid, due, expected):
        assert settle_status(S.OPENED, total_cents=7700, paid_cents=paid, due_date=due, today=TODAY) is expected

    def test_due_today_is_not_overdue(self):
        assert settle_status(S.OPENED, total_cents=7700, paid_cents=0, due_date=TODAY, today=TODAY) is S.OPENED

    @pytest.mark.parametrize("status", [S.PROFORMA, S.CANCELLED])
    def test_non_live_keeps_status(self, status):
        assert settle_status(status, total_cents=7700, paid_cents=7700, due_date=None, today=TODAY) is status

    def test_effective_status(self):
        past = date(2026, 3, 1)
        assert effective_status(S.OPENED, balance_due_cents=100, due_date=past, today=TODAY) is S.OVERDUE
        assert effective_status(S.PARTIALLY_PAID, balance_due_cents=100, due_date=past, today=TODAY) is S.OVERDUE
        assert effective_status(S.OPENED, balance_due_cents=0, due_date=past, today=TODAY) is S.OPENED
        assert effective_status(S.PAID, balance_due_cents=0, due_date=past, today=TODAY) is S.PAID
        assert effective_status(S.PROFORMA, balance_due_cents=0, due_date=past, today=TODAY) is S.PROFORMA
        assert effective_status(S.OPENED, balance_due_cents=100, due_date=None, today=TODAY) is S.OPENED


class TestPricing:
    def test_half_up_rounding(self):
        assert div_round_half_up(5, 2) == 3
        assert div_round_half_up(4, 2) == 2
        assert div_round_half_up(-5, 2) == -3
        assert div_round_half_up(1, 3) == 0

    def test_tax_inclusive_line(self):
        line = price_line(7, 1100, 1000)
        assert line.actual_unit_price_cents == 1000
        assert line.tax_cents == 700
        assert line.total_price_cents == 7700
        assert line.net_cents == 7000

    def test_untaxed_line(self):
        line = price_line(3, 499, 0)
        assert (line.actual_unit_price_cents, line.tax_cents, line.total_price_cents) == (499, 0, 1497)

    def test_split_gross(self):
        assert split_gross(2200, 1000) == (2000, 200)
        assert split_gross(999, 0) == (999, 0)

    def test_document_totals_fixed_discount_and_shipping(self):
        totals = document_totals([(7700, 700), (1000, 0)], discount_type=DISCOUNT_FIXED, discount_value=200, shipping_cents=500)
        assert totals.subtotal_cents == 8000
        assert totals.tax_cents == 700
        assert totals.discount_cents == 200
        assert totals.total_cents == 8700 - 200 + 500

    def test_document_totals_percentage_discount(self):
        totals = document_totals([(7700, 700)], discount_type=DISCOUNT_PERCENTAGE, discount_value=1000)
        assert totals.discount_cents == 770
        assert totals.total_cents == 6930

    def test_fixed_discount_capped_at_gross(self):
        assert discount_amount(DISCOUNT_FIXED, 9000, 7700) == 7700

    def test_bad_discounts(self):
        with pytest.raises(ValidationError):
            discount_amount(DISCOUNT_PERCENTAGE, 10001, 7700)
        with pytest.raises(ValidationError):
            discount_amount("bogus", 1, 7700)
        with pytest.raises(ValidationError):
            discount_amount(DISCOUNT_FIXED, -1, 7700)
