# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

# backend/ledgerly/routes/payments.py
"""
Customer payment API routes.

A payment is split across one or more of the customer's invoices:
{
    "company_id": 1,
    "customer_id": 7,
    "amount_cents": 5000,
    "payment_method": "Bank Transfer",
    "payment_date": "2026-03-10",
    "invoice_payments": [{"invoice_id": 4, "amount_cents": 3000},
                         {"invoice_id": 5, "amount_cents": 2000}]
}
"""

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError
from ..services import invoice_service


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.post("/")
def record_payment_route():
    try:
        payments = invoice_service.record_payment(request.get_json(silent=True))
        return jsonify({"payments": [p.to_dict() for p in payments]}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.put("/<int:payment_id>")
def update_payment_route(payment_id: int):
    try:
        payment = invoice_service.update_payment(payment_id, request.get_json(silent=True) or {})
        return jsonify({"payment": payment.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update payment")
        return jsonify({"error": "Internal server error"}), 500
