from __future__ import annotations

from ..extensions import db
from ledgerly.time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer master data plus the running receivable balance.

    current_balance_cents is maintained incrementally by the invoicing core
    (issue, payment, cancel, refund). It is never recomputed on the write path.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("company_id", "email", name="uq_customers_company_email"),
        db.Index("ix_customers_company_active", "company_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)

    # 0 means "no limit"
    credit_limit_cents = db.Column(db.Integer, nullable=False, default=0)
    current_balance_cents = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    company = db.relationship("Company", backref=db.backref("customers", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "credit_limit_cents": self.credit_limit_cents,
            "current_balance_cents": self.current_balance_cents,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
