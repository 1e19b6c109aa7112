# Overview: Pytest coverage for per-company document numbering.

from datetime import date

import pytest

from ledgerly.errors import NotFoundError, ValidationError
from ledgerly.models import Company
from ledgerly.services.concurrency import run_in_transaction
from ledgerly.services.document_service import (
    DOC_ESTIMATE,
    DOC_INVOICE,
    DOC_REFUND,
    current_number,
    format_document_number,
    issue_document_number,
)


ISSUED_ON = date(2026, 3, 1)


def _issue(company_id, document_type):
    return run_in_transaction(
        lambda: issue_document_number(company_id, document_type, ISSUED_ON),
        operation="Issue number",
    )


class TestFormatting:
    def test_separated_format(self):
        company = Company(invoice_prefix="INV", estimate_prefix="EST", refund_prefix="REF", use_separators=True)
        assert format_document_number(company, DOC_INVOICE, 42, ISSUED_ON) == "INV-26-INV-00042"
        assert format_document_number(company, DOC_REFUND, 3, ISSUED_ON) == "REF-26-REF-00003"

    def test_compact_format(self):
        company = Company(invoice_prefix="ACME", estimate_prefix="Q", refund_prefix="CR", use_separators=False)
        assert format_document_number(company, DOC_ESTIMATE, 7, date(2031, 5, 2)) == "Q31EST00007"

    def test_sequence_wider_than_padding(self):
        company = Company(invoice_prefix="INV", estimate_prefix="EST", refund_prefix="REF", use_separators=True)
        assert format_document_number(company, DOC_INVOICE, 123456, ISSUED_ON) == "INV-26-INV-123456"


class TestIssuing:
    def test_first_numbers_are_contiguous(self, company):
        first = _issue(company.id, DOC_INVOICE)
        second = _issue(company.id, DOC_INVOICE)

        assert (first.sequence, first.formatted) == (1, "INV-26-INV-00001")
        assert (second.sequence, second.formatted) == (2, "INV-26-INV-00002")
        assert current_number(company.id, DOC_INVOICE) == 2

    def test_document_types_count_independently(self, company):
        _issue(company.id, DOC_INVOICE)
        _issue(company.id, DOC_INVOICE)
        estimate = _issue(company.id, DOC_ESTIMATE)

        assert estimate.formatted == "EST-26-EST-00001"
        assert current_number(company.id, DOC_REFUND) == 0

    def test_companies_count_independently(self, company, other_company):
        _issue(company.id, DOC_INVOICE)
        other = _issue(other_company.id, DOC_INVOICE)
        assert other.sequence == 1

    def test_rollback_returns_the_number(self, company):
        def _op():
            issue_document_number(company.id, DOC_INVOICE, ISSUED_ON)
            raise ValidationError("document rejected after numbering")

        with pytest.raises(ValidationError):
            run_in_transaction(_op, operation="Issue number")

        assert current_number(company.id, DOC_INVOICE) == 0
        assert _issue(company.id, DOC_INVOICE).sequence == 1

    def test_unknown_document_type(self, company):
        with pytest.raises(ValidationError):
            _issue(company.id, "RECEIPT")

    def test_unknown_company(self, db_session):
        with pytest.raises(NotFoundError):
            _issue(9999, DOC_INVOICE)
