# Overview: Flask API routes for estimates; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError, ValidationError
from ..services import estimate_service
from ..services.edit_lock_service import get_registry


estimates_bp = Blueprint("estimates", __name__, url_prefix="/api/estimates")


@estimates_bp.post("/")
def create_estimate_route():
    try:
        estimate = estimate_service.create_estimate(request.get_json(silent=True))
        return jsonify({"estimate": estimate.to_dict()}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create estimate")
        return jsonify({"error": "Internal server error"}), 500


@estimates_bp.get("/<int:estimate_id>")
def get_estimate_route(estimate_id: int):
    try:
        company_id = request.args.get("company_id", type=int)
        if not company_id:
            raise ValidationError("company_id query parameter required")
        estimate = estimate_service.get_estimate(estimate_id, company_id)
        return jsonify({"estimate": estimate.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@estimates_bp.post("/<int:estimate_id>/convert")
def convert_estimate_route(estimate_id: int):
    """
    Convert an estimate into an invoice.

    Request body: {"company_id": 1, "status": "opened", "due_date": "2026-04-30", "editor": "dana"}
    """
    try:
        data = request.get_json(silent=True) or {}
        get_registry().ensure_editable("estimate", estimate_id, data.get("editor"))
        invoice = estimate_service.convert_estimate_to_invoice(estimate_id, data)
        return jsonify({"invoice": invoice.to_dict()}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to convert estimate")
        return jsonify({"error": "Internal server error"}), 500
