# Overview: FIFO lot ledger; allocation, reversal and delta adjustment of purchase lots.

"""
Lot Ledger

================================================================================
PURPOSE: Track physical stock per product as purchase lots consumed FIFO
================================================================================

ALLOCATE:  walk in-stock lots oldest first, draw until the quantity is met.
           Availability is checked on the locked lot set BEFORE any lot is
           mutated, so a shortfall leaves nothing half-drawn.
REVERSE:   add every recorded draw back to its own lot, exactly.
ADJUST:    diff > 0 -> allocate diff and append the draws
           diff < 0 -> release |diff| from the most recent draws first
                       (LIFO unwind of a FIFO allocation)

PAIRING: every lot write here is paired with an aggregate write in
inventory_service in the same transaction. Nothing else moves either side.

All functions except receive_lot run inside the caller's transaction.
"""

from __future__ import annotations

import logging
from datetime import datetime

from ..errors import InsufficientStockError, InternalError, NotFoundError, ValidationError
from ..extensions import db
from ..models import LOT_IN_STOCK, LOT_OUT_OF_STOCK, LotDraw, Product, PurchaseLot
from ledgerly.time_utils import utcnow
from .concurrency import lock_for_update, run_in_transaction
from .inventory_service import decrease_on_hand, get_product_locked, increase_on_hand

logger = logging.getLogger(__name__)


def _in_stock_lots(product_id: int) -> list[PurchaseLot]:
    query = (
        db.session.query(PurchaseLot)
        .filter(
            PurchaseLot.product_id == product_id,
            PurchaseLot.stock_status == LOT_IN_STOCK,
        )
        .order_by(PurchaseLot.received_at.asc(), PurchaseLot.id.asc())
    )
    return lock_for_update(query).all()


def allocate(product_id: int, quantity: int) -> list[LotDraw]:
    """
    Draw `quantity` units FIFO and return the allocation record.

    Raises:
        InsufficientStockError: in-stock lots hold less than `quantity`
    """
    if quantity <= 0:
        raise ValidationError("Allocation quantity must be positive", details={"product_id": product_id})

    # Product row lock serializes concurrent allocations for the same product.
    product = get_product_locked(product_id)
    lots = _in_stock_lots(product_id)

    available = sum(lot.remaining_qty for lot in lots)
    if available < quantity:
        logger.warning(
            "Insufficient stock for product %s: requested=%s available=%s",
            product_id, quantity, available,
        )
        raise InsufficientStockError(
            product_id=product_id,
            product_name=product.name,
            requested=quantity,
            available=available,
        )

    draws: list[LotDraw] = []
    outstanding = quantity
    for lot in lots:
        if outstanding == 0:
            break
        take = min(lot.remaining_qty, outstanding)
        if take <= 0:
            continue
        lot.remaining_qty -= take
        if lot.remaining_qty == 0:
            lot.stock_status = LOT_OUT_OF_STOCK
        draws.append(LotDraw(lot_id=lot.id, used_qty=take))
        outstanding -= take

    decrease_on_hand(product_id, quantity)
    db.session.flush()
    return draws


def reverse(product_id: int, draws: list[LotDraw]) -> int:
    """
    Return every draw to its originating lot. Returns the quantity restored.
    """
    if not draws:
        return 0

    # Product before lots, the same order allocate() takes them.
    get_product_locked(product_id)
    lot_ids = {draw.lot_id for draw in draws}
    lots = {
        lot.id: lot
        for lot in lock_for_update(
            db.session.query(PurchaseLot).filter(PurchaseLot.id.in_(lot_ids))
        ).all()
    }

    restored = 0
    for draw in draws:
        lot = lots.get(draw.lot_id)
        if lot is None or lot.product_id != product_id:
            raise InternalError(
                "Allocation record references an unknown lot",
                details={"product_id": product_id, "lot_id": draw.lot_id},
            )
        if draw.used_qty <= 0:
            raise InternalError("Allocation record holds a non-positive draw", details={"lot_id": draw.lot_id})
        if lot.remaining_qty + draw.used_qty > lot.quantity_received:
            raise InternalError(
                "Reversal would exceed the lot's received quantity",
                details={"lot_id": lot.id, "remaining_qty": lot.remaining_qty, "used_qty": draw.used_qty},
            )
        lot.remaining_qty += draw.used_qty
        lot.stock_status = LOT_IN_STOCK
        restored += draw.used_qty

    increase_on_hand(product_id, restored)
    db.session.flush()
    return restored


def split_lifo(draws: list[LotDraw], quantity: int) -> tuple[list[LotDraw], list[LotDraw]]:
    """
    Split an allocation record into (kept, released), releasing `quantity`
    units from the end of the record. Pure; touches no rows.
    """
    if quantity < 0:
        raise ValueError("quantity must be non-negative")
    held = sum(draw.used_qty for draw in draws)
    if quantity > held:
        raise InternalError(
            "Cannot release more units than the allocation holds",
            details={"held": held, "requested": quantity},
        )

    kept = list(draws)
    released: list[LotDraw] = []
    outstanding = quantity
    while outstanding > 0:
        last = kept.pop()
        if last.used_qty <= outstanding:
            released.append(last)
            outstanding -= last.used_qty
        else:
            released.append(LotDraw(lot_id=last.lot_id, used_qty=outstanding))
            kept.append(LotDraw(lot_id=last.lot_id, used_qty=last.used_qty - outstanding))
            outstanding = 0
    return kept, released


def unwind(product_id: int, draws: list[LotDraw], quantity: int) -> tuple[list[LotDraw], list[LotDraw]]:
    """Release `quantity` units most-recent-draw first; returns (kept, released)."""
    kept, released = split_lifo(draws, quantity)
    reverse(product_id, released)
    return kept, released


def adjust(product_id: int, old_qty: int, new_qty: int, draws: list[LotDraw]) -> list[LotDraw]:
    """Move an existing allocation from old_qty to new_qty and return the new record."""
    if new_qty < 0:
        raise ValidationError("Quantity cannot be negative", details={"product_id": product_id})
    diff = new_qty - old_qty
    if diff > 0:
        return list(draws) + allocate(product_id, diff)
    if diff < 0:
        kept, _ = unwind(product_id, draws, -diff)
        return kept
    return list(draws)


def receive_lot(
    *,
    company_id: int,
    product_id: int,
    quantity: int,
    unit_cost_cents: int = 0,
    reference: str | None = None,
    received_at: datetime | None = None,
) -> PurchaseLot:
    """
    Put a new purchase lot into stock (purchase order closed / bill received).
    """
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
        raise ValidationError("quantity must be a positive integer")
    if not isinstance(unit_cost_cents, int) or isinstance(unit_cost_cents, bool) or unit_cost_cents < 0:
        raise ValidationError("unit_cost_cents must be a non-negative integer")

    def _op() -> PurchaseLot:
        product = get_product_locked(product_id, company_id)
        lot = PurchaseLot(
            company_id=company_id,
            product_id=product.id,
            reference=reference,
            quantity_received=quantity,
            remaining_qty=quantity,
            stock_status=LOT_IN_STOCK,
            unit_cost_cents=unit_cost_cents,
            received_at=received_at or utcnow(),
        )
        db.session.add(lot)
        increase_on_hand(product.id, quantity)
        product.cost_price_cents = unit_cost_cents
        db.session.flush()
        logger.info("Received lot %s for product %s: qty=%s", lot.id, product.id, quantity)
        return lot

    return run_in_transaction(_op, operation="Receive lot")


def list_lots(product_id: int, company_id: int) -> list[PurchaseLot]:
    exists = db.session.query(Product.id).filter_by(id=product_id, company_id=company_id).first()
    if exists is None:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    return (
        db.session.query(PurchaseLot)
        .filter_by(product_id=product_id)
        .order_by(PurchaseLot.received_at.asc(), PurchaseLot.id.asc())
        .all()
    )
