# Overview: Gapless per-company document numbering for invoices, estimates and refunds.

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Company, DocumentSequence
from ledgerly.time_utils import today
from .concurrency import lock_for_update

logger = logging.getLogger(__name__)


DOC_INVOICE = "INVOICE"
DOC_ESTIMATE = "ESTIMATE"
DOC_REFUND = "REFUND"

# Type tag embedded in the formatted number
DOCUMENT_TAGS = {
    DOC_INVOICE: "INV",
    DOC_ESTIMATE: "EST",
    DOC_REFUND: "REF",
}

SEQUENCE_PAD = 5


@dataclass(frozen=True)
class IssuedNumber:
    sequence: int
    formatted: str


def next_number(company_id: int, document_type: str) -> int:
    """
    Issue the next sequence number for (company, document type).

    Must be called inside the caller's transaction: the counter row stays
    locked until that transaction ends, and a rollback un-issues the number,
    so numbers are never burned without a persisted document.

    Raises:
        ValidationError: unknown document type
        NotFoundError: company does not exist
    """
    if document_type not in DOCUMENT_TAGS:
        raise ValidationError(
            f"Invalid document type '{document_type}'. Must be one of: {', '.join(sorted(DOCUMENT_TAGS))}"
        )

    company = lock_for_update(db.session.query(Company).filter_by(id=company_id)).first()
    if company is None:
        raise NotFoundError("Company not found", details={"company_id": company_id})

    seq = lock_for_update(
        db.session.query(DocumentSequence).filter_by(company_id=company_id, document_type=document_type)
    ).first()
    if seq is None:
        # First document of this type; the company row lock above serializes creation.
        seq = DocumentSequence(company_id=company_id, document_type=document_type, current_number=0)
        db.session.add(seq)

    seq.current_number = (seq.current_number or 0) + 1
    db.session.flush()
    return seq.current_number


def format_document_number(company: Company, document_type: str, sequence: int, issued_on: date) -> str:
    """
    PREFIX-YY-TAG-NNNNN, or PREFIXYYTAGNNNNN when the company turned separators off.
    """
    prefixes = {
        DOC_INVOICE: company.invoice_prefix,
        DOC_ESTIMATE: company.estimate_prefix,
        DOC_REFUND: company.refund_prefix,
    }
    sep = "-" if company.use_separators else ""
    parts = [prefixes[document_type], f"{issued_on.year % 100:02d}", DOCUMENT_TAGS[document_type], f"{sequence:0{SEQUENCE_PAD}d}"]
    return sep.join(part for part in parts if part)


def issue_document_number(company_id: int, document_type: str, issued_on: date | None = None) -> IssuedNumber:
    """Allocate and format in one step (still inside the caller's transaction)."""
    sequence = next_number(company_id, document_type)
    company = db.session.get(Company, company_id)
    formatted = format_document_number(company, document_type, sequence, issued_on or today())
    logger.debug("Issued %s number %s for company %s", document_type, formatted, company_id)
    return IssuedNumber(sequence=sequence, formatted=formatted)


def current_number(company_id: int, document_type: str) -> int:
    """Last issued number (0 when nothing was issued yet). Read only."""
    value = (
        db.session.query(DocumentSequence.current_number)
        .filter_by(company_id=company_id, document_type=document_type)
        .scalar()
    )
    return value or 0
