from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ledgerly.time_utils import to_iso_date, to_utc_z


@dataclass(frozen=True)
class LotDraw:
    """One (lot, quantity) pair of an invoice item's allocation record."""
    lot_id: int
    used_qty: int

    def to_dict(self) -> dict:
        return {"lot_id": self.lot_id, "used_qty": self.used_qty}

    @classmethod
    def from_dict(cls, data: dict) -> "LotDraw":
        return cls(lot_id=int(data["lot_id"]), used_qty=int(data["used_qty"]))


class Invoice(db.Model):
    """
    Customer invoice header.

    LIFECYCLE (see services/lifecycle.py):
        proforma                          parallel track, never touches stock or balance
        opened -> partially_paid -> paid  driven by payments
        overdue                           read-time view of opened/partially_paid, written back lazily
        cancelled                         terminal

    INVARIANTS:
    - balance_due_cents == total_cents - paid_cents for every live status
    - balance_due_cents == 0 for proforma and cancelled
    - paid_cents == sum of the invoice's payments (refunds are negative payments)
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("company_id", "invoice_number", name="uq_invoices_company_number"),
        db.Index("ix_invoices_company_status_due", "company_id", "status", "due_date"),
        db.Index("ix_invoices_customer_status", "customer_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    # Human-readable document number (e.g., "INV-26-INV-00042")
    invoice_number = db.Column(db.String(64), nullable=False)
    sequence_number = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="opened", index=True)

    invoice_date = db.Column(db.Date, nullable=False)
    due_date = db.Column(db.Date, nullable=True)

    head_note = db.Column(db.Text, nullable=True)
    memo = db.Column(db.Text, nullable=True)
    terms = db.Column(db.String(64), nullable=True)
    billing_address = db.Column(db.Text, nullable=True)
    shipping_address = db.Column(db.Text, nullable=True)

    # discount_value is cents for "fixed" and basis points for "percentage"
    discount_type = db.Column(db.String(16), nullable=False, default="fixed")
    discount_value = db.Column(db.Integer, nullable=False, default=0)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    shipping_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)
    paid_cents = db.Column(db.Integer, nullable=False, default=0)
    balance_due_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("invoices", lazy=True))
    items = db.relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.id",
    )
    attachments = db.relationship("InvoiceAttachment", cascade="all, delete-orphan", lazy=True)
    payments = db.relationship(
        "Payment",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="Payment.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Invoice id={self.id} number={self.invoice_number!r} status={self.status}>"

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "company_id": self.company_id,
            "customer_id": self.customer_id,
            "invoice_number": self.invoice_number,
            "sequence_number": self.sequence_number,
            "status": self.status,
            "invoice_date": to_iso_date(self.invoice_date),
            "due_date": to_iso_date(self.due_date),
            "head_note": self.head_note,
            "memo": self.memo,
            "terms": self.terms,
            "billing_address": self.billing_address,
            "shipping_address": self.shipping_address,
            "discount_type": self.discount_type,
            "discount_value": self.discount_value,
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "discount_cents": self.discount_cents,
            "shipping_cents": self.shipping_cents,
            "total_cents": self.total_cents,
            "paid_cents": self.paid_cents,
            "balance_due_cents": self.balance_due_cents,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
            data["attachments"] = [a.to_dict() for a in self.attachments]
        return data


class InvoiceItem(db.Model):
    """
    Invoice line.

    stock_detail holds the allocation record: an ordered JSON list of
    {"lot_id", "used_qty"} pairs, oldest draw first. For live invoices the
    used quantities sum to `quantity`; proforma and cancelled lines hold [].
    Always assign a new list (no in-place mutation) so the change is flushed.
    """
    __tablename__ = "invoice_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_invoice_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # Snapshots at time of sale
    product_name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)  # tax inclusive
    actual_unit_price_cents = db.Column(db.Integer, nullable=False)  # tax exclusive
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_price_cents = db.Column(db.Integer, nullable=False)

    stock_detail = db.Column(db.JSON, nullable=False, default=list)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    invoice = db.relationship("Invoice", back_populates="items")
    product = db.relationship("Product")

    @property
    def allocation(self) -> list[LotDraw]:
        return [LotDraw.from_dict(entry) for entry in (self.stock_detail or [])]

    @allocation.setter
    def allocation(self, draws: list[LotDraw]) -> None:
        self.stock_detail = [draw.to_dict() for draw in draws]

    @property
    def allocated_qty(self) -> int:
        return sum(draw.used_qty for draw in self.allocation)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "description": self.description,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "actual_unit_price_cents": self.actual_unit_price_cents,
            "tax_rate_bps": self.tax_rate_bps,
            "tax_cents": self.tax_cents,
            "total_price_cents": self.total_price_cents,
            "cost_price_cents": self.cost_price_cents,
            "stock_detail": list(self.stock_detail or []),
        }


class InvoiceAttachment(db.Model):
    """Attachment metadata only; the file itself lives in external storage."""
    __tablename__ = "invoice_attachments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    file_name = db.Column(db.String(255), nullable=False)
    file_path = db.Column(db.String(512), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "file_name": self.file_name,
            "file_path": self.file_path,
            "created_at": to_utc_z(self.created_at),
        }


class Payment(db.Model):
    """
    Money received against an invoice.

    amount_cents is signed: refunds are stored as negative payments with
    payment_method="Refund" and refund_id set.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_customer_date", "customer_id", "payment_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    refund_id = db.Column(db.Integer, db.ForeignKey("refunds.id"), nullable=True, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    payment_date = db.Column(db.Date, nullable=False)
    payment_method = db.Column(db.String(32), nullable=False)
    deposit_to = db.Column(db.String(64), nullable=True)
    reference = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    invoice = db.relationship("Invoice", back_populates="payments")
    refund = db.relationship("Refund", foreign_keys=[refund_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "invoice_id": self.invoice_id,
            "customer_id": self.customer_id,
            "refund_id": self.refund_id,
            "amount_cents": self.amount_cents,
            "payment_date": to_iso_date(self.payment_date),
            "payment_method": self.payment_method,
            "deposit_to": self.deposit_to,
            "reference": self.reference,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
