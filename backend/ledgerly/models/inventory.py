from __future__ import annotations

from ..extensions import db
from ledgerly.time_utils import to_utc_z, utcnow


LOT_IN_STOCK = "in_stock"
LOT_OUT_OF_STOCK = "out_of_stock"


class Product(db.Model):
    """
    Product catalog entry.

    quantity_on_hand is a denormalized aggregate: it must always equal the
    sum of remaining_qty over the product's lots. Only the lot ledger
    (services/lot_service.py) moves it, always in the same transaction as
    the lot write.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("company_id", "sku", name="uq_products_company_sku"),
        db.Index("ix_products_company_name", "company_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # Authoritative storage in cents; unit price is tax inclusive
    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)
    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)

    quantity_on_hand = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    company = db.relationship("Company", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} on_hand={self.quantity_on_hand}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "unit_price_cents": self.unit_price_cents,
            "cost_price_cents": self.cost_price_cents,
            "tax_rate_bps": self.tax_rate_bps,
            "quantity_on_hand": self.quantity_on_hand,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class PurchaseLot(db.Model):
    """
    One receipt of physical stock for a product.

    FIFO: lots are consumed oldest received_at first (id breaks ties).
    INVARIANT: remaining_qty == 0 <=> stock_status == out_of_stock,
               0 <= remaining_qty <= quantity_received.
    Mutated by allocation (decrement) and reversal (increment) only.
    """
    __tablename__ = "purchase_lots"
    __table_args__ = (
        db.CheckConstraint("remaining_qty >= 0", name="ck_purchase_lots_remaining_nonneg"),
        db.CheckConstraint("remaining_qty <= quantity_received", name="ck_purchase_lots_remaining_le_received"),
        db.Index("ix_purchase_lots_product_status_received", "product_id", "stock_status", "received_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # Purchase order / supplier bill reference, free text
    reference = db.Column(db.String(64), nullable=True)

    quantity_received = db.Column(db.Integer, nullable=False)
    remaining_qty = db.Column(db.Integer, nullable=False)
    stock_status = db.Column(db.String(16), nullable=False, default=LOT_IN_STOCK)
    unit_cost_cents = db.Column(db.Integer, nullable=False, default=0)

    received_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    product = db.relationship("Product", backref=db.backref("lots", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<PurchaseLot id={self.id} product_id={self.product_id} remaining={self.remaining_qty}/{self.quantity_received}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "product_id": self.product_id,
            "reference": self.reference,
            "quantity_received": self.quantity_received,
            "remaining_qty": self.remaining_qty,
            "stock_status": self.stock_status,
            "unit_cost_cents": self.unit_cost_cents,
            "received_at": to_utc_z(self.received_at),
        }
