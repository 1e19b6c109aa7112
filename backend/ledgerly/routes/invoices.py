# Overview: Flask API routes for invoice operations; parses input and returns JSON responses.

# backend/ledgerly/routes/invoices.py
"""
Invoice API routes.

Every mutating endpoint maps to one lifecycle operation, which runs in a
single transaction. Domain failures come back as
{"error": ..., "details": {...}} with the error's status code.
"""

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError, ValidationError
from ..services import invoice_service
from ..services.edit_lock_service import get_registry
from ..validation import require_int


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


def _company_id() -> int:
    company_id = request.args.get("company_id", type=int)
    if not company_id:
        raise ValidationError("company_id query parameter required")
    return company_id


def _body_company_id(data: dict) -> int:
    if "company_id" in data:
        return require_int(data, "company_id", minimum=1)
    return _company_id()


@invoices_bp.post("/")
def create_invoice_route():
    """
    Create an invoice (status "opened" by default, or "proforma").

    Request body:
    {
        "company_id": 1,
        "customer_id": 7,
        "status": "opened",
        "invoice_date": "2026-03-01",
        "due_date": "2026-03-31",
        "discount_type": "fixed", "discount_value": 0, "shipping_cents": 0,
        "items": [{"product_id": 3, "quantity": 7, "unit_price_cents": 1000, "tax_rate_bps": 1000}]
    }
    """
    try:
        invoice = invoice_service.create_invoice(request.get_json(silent=True))
        return jsonify({"invoice": invoice.to_dict()}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.get("/")
def list_invoices_route():
    """List invoices for a company; past-due invoices are marked overdue first."""
    try:
        invoices = invoice_service.list_invoices(
            _company_id(),
            status=request.args.get("status"),
            customer_id=request.args.get("customer_id", type=int),
        )
        return jsonify({"invoices": [inv.to_dict(include_items=False) for inv in invoices]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list invoices")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.get("/<int:invoice_id>")
def get_invoice_route(invoice_id: int):
    try:
        invoice = invoice_service.get_invoice(invoice_id, _company_id())
        return jsonify({"invoice": invoice.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@invoices_bp.put("/<int:invoice_id>")
def update_invoice_route(invoice_id: int):
    """
    Replace an invoice's lines and patch its header.

    Lines with "id" are edited, lines without are added, missing ids are
    removed. Rejected with 423 when another editor holds the edit lock.
    """
    try:
        data = request.get_json(silent=True) or {}
        get_registry().ensure_editable("invoice", invoice_id, data.get("editor"))
        invoice = invoice_service.update_invoice(invoice_id, data)
        return jsonify({"invoice": invoice.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.post("/<int:invoice_id>/cancel")
def cancel_invoice_route(invoice_id: int):
    try:
        data = request.get_json(silent=True) or {}
        get_registry().ensure_editable("invoice", invoice_id, data.get("editor"))
        invoice = invoice_service.cancel_invoice(invoice_id, _body_company_id(data))
        return jsonify({"invoice": invoice.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to cancel invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.delete("/<int:invoice_id>")
def delete_invoice_route(invoice_id: int):
    """Delete a cancelled or proforma invoice (live invoices must be cancelled first)."""
    try:
        invoice_service.delete_invoice(invoice_id, _company_id())
        return jsonify({"deleted": True, "invoice_id": invoice_id}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.get("/<int:invoice_id>/payments")
def list_invoice_payments_route(invoice_id: int):
    try:
        payments = invoice_service.list_invoice_payments(invoice_id, _company_id())
        return jsonify({"payments": [p.to_dict() for p in payments]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@invoices_bp.post("/<int:invoice_id>/refunds")
def process_refund_route(invoice_id: int):
    """
    Refund returned units of a paid or partially paid invoice.

    Request body:
    {
        "company_id": 1,
        "reason": "Damaged",
        "items": [{"invoice_item_id": 12, "quantity": 2, "unit_price_cents": 900}]
    }
    """
    try:
        refund = invoice_service.process_refund(invoice_id, request.get_json(silent=True))
        return jsonify({"refund": refund.to_dict()}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to process refund")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.get("/<int:invoice_id>/refunds")
def list_invoice_refunds_route(invoice_id: int):
    try:
        refunds = invoice_service.list_invoice_refunds(invoice_id, _company_id())
        return jsonify({"refunds": [r.to_dict() for r in refunds]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@invoices_bp.post("/<int:invoice_id>/attachments")
def add_attachment_route(invoice_id: int):
    try:
        data = request.get_json(silent=True) or {}
        attachment = invoice_service.add_attachment(
            invoice_id,
            _body_company_id(data),
            file_name=data.get("file_name"),
            file_path=data.get("file_path"),
        )
        return jsonify({"attachment": attachment.to_dict()}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add attachment")
        return jsonify({"error": "Internal server error"}), 500
