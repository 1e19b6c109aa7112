# Overview: Pytest coverage for FIFO lot allocation, reversal and adjustment.

"""
Lot Ledger Tests

Every test starts from three lots of five units (L1, L2, L3, oldest first)
and checks both sides of the pairing: lot remainders and the product's
on-hand aggregate.
"""

import pytest

from ledgerly.errors import InsufficientStockError, InternalError, NotFoundError, ValidationError
from ledgerly.models import LOT_IN_STOCK, LOT_OUT_OF_STOCK, LotDraw, Product, PurchaseLot
from ledgerly.services import inventory_service, lot_service
from ledgerly.services.concurrency import run_in_transaction


def _tx(func):
    return run_in_transaction(func, operation="Lot test")


def _remaining(db_session, lots):
    db_session.expire_all()
    return [db_session.get(PurchaseLot, lot.id).remaining_qty for lot in lots]


def _on_hand(db_session, product):
    db_session.expire_all()
    return db_session.get(Product, product.id).quantity_on_hand


class TestAllocate:
    def test_fifo_draws_oldest_lots_first(self, db_session, product, lots):
        l1, l2, _ = lots
        draws = _tx(lambda: lot_service.allocate(product.id, 7))

        assert draws == [LotDraw(l1.id, 5), LotDraw(l2.id, 2)]
        assert _remaining(db_session, lots) == [0, 3, 5]
        assert db_session.get(PurchaseLot, l1.id).stock_status == LOT_OUT_OF_STOCK
        assert db_session.get(PurchaseLot, l2.id).stock_status == LOT_IN_STOCK
        assert _on_hand(db_session, product) == 8

    def test_exhausted_lots_are_skipped(self, db_session, product, lots):
        l1, l2, l3 = lots
        _tx(lambda: lot_service.allocate(product.id, 5))
        draws = _tx(lambda: lot_service.allocate(product.id, 6))

        assert draws == [LotDraw(l2.id, 5), LotDraw(l3.id, 1)]
        assert _on_hand(db_session, product) == 4

    def test_shortfall_leaves_every_lot_untouched(self, db_session, product, lots):
        with pytest.raises(InsufficientStockError) as exc:
            _tx(lambda: lot_service.allocate(product.id, 16))

        assert exc.value.details == {
            "product_id": product.id,
            "product_name": "Widget",
            "requested": 16,
            "available": 15,
            "shortfall": 1,
        }
        assert _remaining(db_session, lots) == [5, 5, 5]
        assert _on_hand(db_session, product) == 15

    def test_product_without_lots(self, db_session, gadget):
        with pytest.raises(InsufficientStockError) as exc:
            _tx(lambda: lot_service.allocate(gadget.id, 1))
        assert exc.value.details["available"] == 0

    def test_non_positive_quantity_rejected(self, db_session, product, lots):
        with pytest.raises(ValidationError):
            _tx(lambda: lot_service.allocate(product.id, 0))


class TestReverse:
    def test_reverse_restores_each_draw_exactly(self, db_session, product, lots):
        draws = _tx(lambda: lot_service.allocate(product.id, 12))
        restored = _tx(lambda: lot_service.reverse(product.id, draws))

        assert restored == 12
        assert _remaining(db_session, lots) == [5, 5, 5]
        assert all(db_session.get(PurchaseLot, lot.id).stock_status == LOT_IN_STOCK for lot in lots)
        assert _on_hand(db_session, product) == 15

    def test_reverse_of_nothing_is_a_no_op(self, db_session, product, lots):
        assert _tx(lambda: lot_service.reverse(product.id, [])) == 0
        assert _on_hand(db_session, product) == 15

    def test_reversing_twice_cannot_overfill_a_lot(self, db_session, product, lots):
        draws = _tx(lambda: lot_service.allocate(product.id, 3))
        _tx(lambda: lot_service.reverse(product.id, draws))

        with pytest.raises(InternalError):
            _tx(lambda: lot_service.reverse(product.id, draws))
        assert _remaining(db_session, lots) == [5, 5, 5]

    def test_foreign_lot_rejected(self, db_session, product, gadget, lots, receive):
        gadget_lot = receive(gadget, 4)
        with pytest.raises(InternalError):
            _tx(lambda: lot_service.reverse(product.id, [LotDraw(gadget_lot.id, 1)]))


class TestUnwind:
    def test_split_lifo_releases_latest_draws_first(self):
        kept, released = lot_service.split_lifo([LotDraw(1, 5), LotDraw(2, 2)], 3)
        assert kept == [LotDraw(1, 4)]
        assert released == [LotDraw(2, 2), LotDraw(1, 1)]

    def test_split_lifo_whole_record(self):
        kept, released = lot_service.split_lifo([LotDraw(1, 5), LotDraw(2, 2)], 7)
        assert kept == []
        assert released == [LotDraw(2, 2), LotDraw(1, 5)]

    def test_split_lifo_cannot_release_more_than_held(self):
        with pytest.raises(InternalError):
            lot_service.split_lifo([LotDraw(1, 2)], 3)

    def test_adjust_shrink_unwinds_most_recent_draws(self, db_session, product, lots):
        l1, _, _ = lots
        draws = _tx(lambda: lot_service.allocate(product.id, 7))
        kept = _tx(lambda: lot_service.adjust(product.id, 7, 4, draws))

        assert kept == [LotDraw(l1.id, 4)]
        assert _remaining(db_session, lots) == [1, 5, 5]
        assert _on_hand(db_session, product) == 11

    def test_adjust_grow_appends_new_draws(self, db_session, product, lots):
        l1, l2, l3 = lots
        draws = _tx(lambda: lot_service.allocate(product.id, 7))
        grown = _tx(lambda: lot_service.adjust(product.id, 7, 12, draws))

        assert grown == [LotDraw(l1.id, 5), LotDraw(l2.id, 2), LotDraw(l2.id, 3), LotDraw(l3.id, 2)]
        assert sum(d.used_qty for d in grown) == 12
        assert _remaining(db_session, lots) == [0, 0, 3]

    def test_adjust_same_quantity_moves_nothing(self, db_session, product, lots):
        draws = _tx(lambda: lot_service.allocate(product.id, 7))
        assert _tx(lambda: lot_service.adjust(product.id, 7, 7, draws)) == draws
        assert _on_hand(db_session, product) == 8


class TestReceive:
    def test_receive_sets_stock_and_cost(self, db_session, product, receive):
        lot = receive(product, 10, unit_cost_cents=450)

        db_session.expire_all()
        assert lot.remaining_qty == 10
        assert lot.stock_status == LOT_IN_STOCK
        stored = db_session.get(Product, product.id)
        assert stored.quantity_on_hand == 10
        assert stored.cost_price_cents == 450
        assert inventory_service.lot_remaining_total(product.id) == 10

    @pytest.mark.parametrize("quantity", [0, -3, 2.5])
    def test_receive_rejects_bad_quantity(self, db_session, product, company, quantity):
        with pytest.raises(ValidationError):
            lot_service.receive_lot(company_id=company.id, product_id=product.id, quantity=quantity)

    def test_receive_unknown_product(self, db_session, company):
        with pytest.raises(NotFoundError):
            lot_service.receive_lot(company_id=company.id, product_id=9999, quantity=1)

    def test_receive_other_company_product(self, db_session, product, other_company):
        with pytest.raises(NotFoundError):
            lot_service.receive_lot(company_id=other_company.id, product_id=product.id, quantity=1)

    def test_list_lots_in_fifo_order(self, db_session, product, company, lots):
        listed = lot_service.list_lots(product.id, company.id)
        assert [lot.id for lot in listed] == [lot.id for lot in lots]

    def test_stock_drift_report(self, db_session, product, company, lots):
        assert inventory_service.find_stock_drift(company.id) == []

        db_session.get(Product, product.id).quantity_on_hand = 20
        db_session.commit()

        drift = inventory_service.find_stock_drift(company.id)
        assert drift == [{
            "product_id": product.id,
            "sku": "WID-1",
            "quantity_on_hand": 20,
            "lot_remaining": 15,
            "drift": 5,
        }]
