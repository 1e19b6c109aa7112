from __future__ import annotations

from ..extensions import db
from ledgerly.time_utils import to_iso_date, to_utc_z


class Refund(db.Model):
    """
    Refund document issued against a paid or partially paid invoice.

    Numbered from the company's REFUND sequence. The cash effect is the
    negative Payment linked through Payment.refund_id; the stock effect is
    recorded per line in RefundItem.restocked.
    """
    __tablename__ = "refunds"
    __table_args__ = (
        db.UniqueConstraint("company_id", "refund_number", name="uq_refunds_company_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    refund_number = db.Column(db.String(64), nullable=False)
    sequence_number = db.Column(db.Integer, nullable=False)
    refund_date = db.Column(db.Date, nullable=False)
    reason = db.Column(db.Text, nullable=True)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    invoice = db.relationship("Invoice", backref=db.backref("refunds", lazy=True, cascade="all, delete-orphan"))
    items = db.relationship("RefundItem", cascade="all, delete-orphan", order_by="RefundItem.id")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "invoice_id": self.invoice_id,
            "customer_id": self.customer_id,
            "refund_number": self.refund_number,
            "sequence_number": self.sequence_number,
            "refund_date": to_iso_date(self.refund_date),
            "reason": self.reason,
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "created_at": to_utc_z(self.created_at),
            "items": [item.to_dict() for item in self.items],
        }


class RefundItem(db.Model):
    """
    Returned quantity of one invoice line.

    invoice_item_id is a plain reference: the invoice line is deleted when
    its whole quantity has been returned.
    """
    __tablename__ = "refund_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    refund_id = db.Column(db.Integer, db.ForeignKey("refunds.id"), nullable=False, index=True)
    invoice_item_id = db.Column(db.Integer, nullable=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    subtotal_cents = db.Column(db.Integer, nullable=False)
    tax_cents = db.Column(db.Integer, nullable=False)
    total_cents = db.Column(db.Integer, nullable=False)

    # Lots the returned units went back to, most recent draw first
    restocked = db.Column(db.JSON, nullable=False, default=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "refund_id": self.refund_id,
            "invoice_item_id": self.invoice_item_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "tax_rate_bps": self.tax_rate_bps,
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "restocked": list(self.restocked or []),
        }
