# Overview: Flask API routes for returns operations; parses input and returns JSON responses.

# backend/bms_pos/routes/returns.py
"""
Return Processing API Routes

WHY: Customers return items from an earlier sale. One request carries the
whole return; it is validated, approved (manager PIN when policy requires)
and written in one unit of work.

ERRORS:
- 400: invalid input, policy violation, quantity above what is returnable
- 403: manager approval required but not verified (missing or wrong PIN)
- 404: original sale not found
- 409: concurrent modification persisted after retries; safe to retry
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..errors import PosError
from ..services import return_service
from ..services.settings_service import get_settings_snapshot
from ..validation import validate_return_request
from ..decorators import require_actor
from . import date_arg, json_body


returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


# =============================================================================
# RETURN PROCESSING
# =============================================================================

@returns_bp.post("/")
@require_actor
def process_return_route():
    """
    Process a return against an original sale.

    Request body:
    {
        "original_sale_id": 123,
        "items": [
            {
                "original_sale_item_id": 456,
                "return_quantity": 2,
                "line_total_cents": 998,  (optional, defaults to unit price x qty)
                "condition": "good",  ("good" | "defective")
                "reason": "Wrong size"
            }
        ],
        "manager_pin": "123456",  (required above the approval threshold)
        "notes": "..."
    }

    Returns:
        201: {"return": {...with items}}
    """
    try:
        data = validate_return_request(json_body())

        return_doc = return_service.process_return(
            original_sale_id=data["original_sale_id"],
            items=data["items"],
            actor=g.actor,
            settings=get_settings_snapshot(),
            manager_pin=data["manager_pin"],
            notes=data["notes"],
        )

        return jsonify({"return": return_doc.to_dict()}), 201

    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to process return")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# QUERIES
# =============================================================================

@returns_bp.get("/")
@require_actor
def list_returns_route():
    try:
        returns = return_service.list_returns(
            start=date_arg("start_date"),
            end=date_arg("end_date"),
            limit=request.args.get("limit", 500, type=int),
        )
        return jsonify({"returns": [r.to_dict() for r in returns]}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@returns_bp.get("/<int:return_id>")
@require_actor
def get_return_route(return_id: int):
    try:
        return_doc = return_service.get_return(return_id)
        return jsonify({"return": return_doc.to_dict()}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@returns_bp.get("/sales/<int:sale_id>")
@require_actor
def get_sale_returns_route(sale_id: int):
    try:
        returns = return_service.get_sale_returns(sale_id)
        return jsonify({"returns": [r.to_dict() for r in returns]}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@returns_bp.get("/sales/<int:sale_id>/returnable")
@require_actor
def get_returnable_items_route(sale_id: int):
    """Per-line sold / already returned / available quantities for a sale."""
    try:
        return jsonify(return_service.get_returnable_items(sale_id)), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
