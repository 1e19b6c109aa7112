# Overview: Flask API routes for stock intake and lot inspection; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Product
from ..services import lot_service
from ..validation import optional_int, optional_str, require_int
from ledgerly.time_utils import parse_iso_datetime


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/products")


@inventory_bp.post("/<int:product_id>/lots")
def receive_lot_route(product_id: int):
    """
    Receive a purchase lot into stock.

    Request body: {"company_id": 1, "quantity": 10, "unit_cost_cents": 450, "reference": "PO-0012"}
    """
    try:
        data = request.get_json(silent=True) or {}
        try:
            received_at = parse_iso_datetime(data.get("received_at"))
        except ValueError:
            raise ValidationError("received_at must be an ISO-8601 datetime") from None
        lot = lot_service.receive_lot(
            company_id=require_int(data, "company_id", minimum=1),
            product_id=product_id,
            quantity=require_int(data, "quantity", minimum=1),
            unit_cost_cents=optional_int(data, "unit_cost_cents", minimum=0) or 0,
            reference=optional_str(data, "reference", max_length=64),
            received_at=received_at,
        )
        return jsonify({"lot": lot.to_dict()}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to receive lot")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/<int:product_id>/lots")
def list_lots_route(product_id: int):
    try:
        company_id = request.args.get("company_id", type=int)
        if not company_id:
            raise ValidationError("company_id query parameter required")
        lots = lot_service.list_lots(product_id, company_id)
        return jsonify({"lots": [lot.to_dict() for lot in lots]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@inventory_bp.get("/<int:product_id>/stock")
def product_stock_route(product_id: int):
    try:
        company_id = request.args.get("company_id", type=int)
        if not company_id:
            raise ValidationError("company_id query parameter required")
        product = db.session.query(Product).filter_by(id=product_id, company_id=company_id).first()
        if product is None:
            raise NotFoundError("Product not found", details={"product_id": product_id})
        return jsonify({
            "product_id": product.id,
            "quantity_on_hand": product.quantity_on_hand,
            "cost_price_cents": product.cost_price_cents,
        }), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
