# Overview: Product on-hand aggregate; moved only in lockstep with the lot ledger.

"""
Product Stock Aggregate

INVARIANT (checked by tests after every operation):
    product.quantity_on_hand == SUM(purchase_lots.remaining_qty) for the product

The aggregate is maintained incrementally, never recomputed on the write
path. increase_on_hand / decrease_on_hand are called ONLY by lot_service,
in the same transaction as the matching lot write.
"""

from __future__ import annotations

import logging

from sqlalchemy import func

from ..errors import InternalError, NotFoundError
from ..extensions import db
from ..models import Product, PurchaseLot
from .concurrency import lock_for_update

logger = logging.getLogger(__name__)


def get_product_locked(product_id: int, company_id: int | None = None) -> Product:
    query = db.session.query(Product).filter_by(id=product_id)
    if company_id is not None:
        query = query.filter_by(company_id=company_id)
    product = lock_for_update(query).first()
    if product is None:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    return product


def lock_products(product_ids) -> None:
    """Lock several product rows in id order before any of their lots."""
    ids = sorted(set(product_ids))
    if ids:
        lock_for_update(db.session.query(Product).filter(Product.id.in_(ids)).order_by(Product.id)).all()


def increase_on_hand(product_id: int, quantity: int) -> Product:
    if quantity < 0:
        raise InternalError("Stock increase must be non-negative", details={"product_id": product_id})
    product = get_product_locked(product_id)
    product.quantity_on_hand += quantity
    return product


def decrease_on_hand(product_id: int, quantity: int) -> Product:
    if quantity < 0:
        raise InternalError("Stock decrease must be non-negative", details={"product_id": product_id})
    product = get_product_locked(product_id)
    if product.quantity_on_hand < quantity:
        # The lot ledger already proved availability, so this means drift.
        logger.error(
            "On-hand drift for product %s: on_hand=%s, decrease=%s",
            product_id, product.quantity_on_hand, quantity,
        )
        raise InternalError("Product stock aggregate is out of sync with its lots", details={"product_id": product_id})
    product.quantity_on_hand -= quantity
    return product


def lot_remaining_total(product_id: int) -> int:
    value = (
        db.session.query(func.coalesce(func.sum(PurchaseLot.remaining_qty), 0))
        .filter(PurchaseLot.product_id == product_id)
        .scalar()
    )
    return int(value or 0)


def find_stock_drift(company_id: int) -> list[dict]:
    """
    Reconciliation report: products whose aggregate differs from their lot sum.
    Debug/audit only.
    """
    lot_sums = (
        db.session.query(
            PurchaseLot.product_id,
            func.coalesce(func.sum(PurchaseLot.remaining_qty), 0).label("remaining"),
        )
        .filter(PurchaseLot.company_id == company_id)
        .group_by(PurchaseLot.product_id)
        .subquery()
    )
    rows = (
        db.session.query(Product, func.coalesce(lot_sums.c.remaining, 0))
        .outerjoin(lot_sums, lot_sums.c.product_id == Product.id)
        .filter(Product.company_id == company_id)
        .order_by(Product.id)
        .all()
    )
    return [
        {
            "product_id": product.id,
            "sku": product.sku,
            "quantity_on_hand": product.quantity_on_hand,
            "lot_remaining": int(remaining),
            "drift": product.quantity_on_hand - int(remaining),
        }
        for product, remaining in rows
        if product.quantity_on_hand != int(remaining)
    ]
