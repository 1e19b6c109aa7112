# Overview: Flask API routes for customer credit checks; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError
from ..services import balance_service
from ..validation import optional_int, require_int


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.post("/<int:customer_id>/eligibility")
def check_eligibility_route(customer_id: int):
    """
    Can this customer be invoiced on credit for `invoice_total_cents`?

    Request body: {"company_id": 1, "invoice_total_cents": 25000}
    """
    try:
        data = request.get_json(silent=True) or {}
        result = balance_service.check_customer_eligibility(
            customer_id,
            require_int(data, "company_id", minimum=1),
            optional_int(data, "invoice_total_cents", minimum=0) or 0,
            overdue_block_days=current_app.config.get("CREDIT_BLOCK_OVERDUE_DAYS", 60),
        )
        return jsonify(result.to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to check customer eligibility")
        return jsonify({"error": "Internal server error"}), 500
