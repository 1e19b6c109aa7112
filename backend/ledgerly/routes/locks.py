# Overview: Flask API routes for advisory edit locks on invoices and estimates.

from flask import Blueprint, jsonify, request

from ..errors import LedgerError
from ..services.edit_lock_service import get_registry


locks_bp = Blueprint("locks", __name__, url_prefix="/api/locks")


@locks_bp.get("/")
@locks_bp.get("/<document_type>")
def list_locks_route(document_type: str | None = None):
    try:
        locks = get_registry().list_locks(document_type)
        return jsonify({"locks": [lock.to_dict() for lock in locks]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@locks_bp.get("/<document_type>/<int:document_id>")
def get_lock_route(document_type: str, document_id: int):
    try:
        lock = get_registry().get(document_type, document_id)
        return jsonify({"locked": lock is not None, "lock": lock.to_dict() if lock else None}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@locks_bp.post("/<document_type>/<int:document_id>")
def acquire_lock_route(document_type: str, document_id: int):
    try:
        data = request.get_json(silent=True) or {}
        lock = get_registry().acquire(document_type, document_id, data.get("editor"))
        return jsonify({"lock": lock.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@locks_bp.delete("/<document_type>/<int:document_id>")
def release_lock_route(document_type: str, document_id: int):
    try:
        data = request.get_json(silent=True) or {}
        released = get_registry().release(document_type, document_id, data.get("editor"))
        return jsonify({"released": released}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
