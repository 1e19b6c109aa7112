from __future__ import annotations

from ..extensions import db
from ledgerly.time_utils import to_utc_z


class Company(db.Model):
    """
    Tenant root. Every document, customer and product belongs to one company.

    NUMBERING SETTINGS:
    - invoice_prefix / estimate_prefix / refund_prefix lead the issued number
    - use_separators toggles the "-" between number segments
      ("INV-26-INV-00001" vs "INV26INV00001")
    The counters themselves live in DocumentSequence so each document type
    serializes on its own row.
    """
    __tablename__ = "companies"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    invoice_prefix = db.Column(db.String(16), nullable=False, default="INV")
    estimate_prefix = db.Column(db.String(16), nullable=False, default="EST")
    refund_prefix = db.Column(db.String(16), nullable=False, default="REF")
    use_separators = db.Column(db.Boolean, nullable=False, default=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Company id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "invoice_prefix": self.invoice_prefix,
            "estimate_prefix": self.estimate_prefix,
            "refund_prefix": self.refund_prefix,
            "use_separators": self.use_separators,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class DocumentSequence(db.Model):
    """
    Per-company, per-document-type counter.

    current_number is the LAST issued number (0 = nothing issued yet).
    Only mutated under an exclusive row lock inside the issuing transaction.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("company_id", "document_type", name="uq_document_sequences_company_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    document_type = db.Column(db.String(16), nullable=False)  # INVOICE, ESTIMATE, REFUND
    current_number = db.Column(db.Integer, nullable=False, default=0)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    company = db.relationship("Company", backref=db.backref("sequences", lazy=True))

    def to_dict(self) -> dict:
        return {
            "company_id": self.company_id,
            "document_type": self.document_type,
            "current_number": self.current_number,
        }
