from __future__ import annotations

from ..extensions import db
from ledgerly.time_utils import to_iso_date, to_utc_z


ESTIMATE_PENDING = "pending"
ESTIMATE_ACCEPTED = "accepted"
ESTIMATE_DECLINED = "declined"
ESTIMATE_CONVERTED = "converted"


class Estimate(db.Model):
    """
    Quotation sent to a customer before invoicing.

    Estimates never touch stock or balances. Conversion creates a real
    invoice through the invoice lifecycle and links it back via invoice_id;
    deleting that invoice returns the estimate to "pending".
    """
    __tablename__ = "estimates"
    __table_args__ = (
        db.UniqueConstraint("company_id", "estimate_number", name="uq_estimates_company_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True, index=True)

    estimate_number = db.Column(db.String(64), nullable=False)
    sequence_number = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    estimate_date = db.Column(db.Date, nullable=False)
    expiry_date = db.Column(db.Date, nullable=True)
    head_note = db.Column(db.Text, nullable=True)
    memo = db.Column(db.Text, nullable=True)
    billing_address = db.Column(db.Text, nullable=True)
    shipping_address = db.Column(db.Text, nullable=True)

    discount_type = db.Column(db.String(16), nullable=False, default="fixed")
    discount_value = db.Column(db.Integer, nullable=False, default=0)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    shipping_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    items = db.relationship("EstimateItem", cascade="all, delete-orphan", order_by="EstimateItem.id")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "customer_id": self.customer_id,
            "invoice_id": self.invoice_id,
            "estimate_number": self.estimate_number,
            "sequence_number": self.sequence_number,
            "status": self.status,
            "is_active": self.is_active,
            "estimate_date": to_iso_date(self.estimate_date),
            "expiry_date": to_iso_date(self.expiry_date),
            "head_note": self.head_note,
            "memo": self.memo,
            "discount_type": self.discount_type,
            "discount_value": self.discount_value,
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "discount_cents": self.discount_cents,
            "shipping_cents": self.shipping_cents,
            "total_cents": self.total_cents,
            "created_at": to_utc_z(self.created_at),
            "items": [item.to_dict() for item in self.items],
        }


class EstimateItem(db.Model):
    __tablename__ = "estimate_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    estimate_id = db.Column(db.Integer, db.ForeignKey("estimates.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    description = db.Column(db.Text, nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    actual_unit_price_cents = db.Column(db.Integer, nullable=False)
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_price_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "estimate_id": self.estimate_id,
            "product_id": self.product_id,
            "description": self.description,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "actual_unit_price_cents": self.actual_unit_price_cents,
            "tax_rate_bps": self.tax_rate_bps,
            "tax_cents": self.tax_cents,
            "total_price_cents": self.total_price_cents,
        }
