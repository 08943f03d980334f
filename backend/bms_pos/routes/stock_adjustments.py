# Overview: Flask API routes for stock adjustment operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..errors import PosError
from ..services import adjustment_service
from ..decorators import require_actor, require_role
from . import date_arg, json_body


stock_adjustments_bp = Blueprint("stock_adjustments", __name__, url_prefix="/api/stock-adjustments")


@stock_adjustments_bp.post("/")
@require_actor
@require_role("Manager", "Inventory")
def create_adjustment_route():
    """
    Create a stock adjustment.

    Request body:
    {
        "product_id": 1,
        "adjustment_type": "DAMAGE",  (DAMAGE|THEFT|EXPIRED|FOUND|CORRECTION|RETURN)
        "quantity_change": -3,
        "reason": "Dropped pallet",
        "notes": null,
        "reference_number": null
    }

    Returns:
        201: Adjustment; applied immediately unless "requires_approval" is true
    """
    try:
        data = json_body()
        adjustment = adjustment_service.create_adjustment(
            product_id=data.get("product_id"),
            adjustment_type=data.get("adjustment_type"),
            quantity_change=data.get("quantity_change"),
            reason=data.get("reason"),
            actor=g.actor,
            notes=data.get("notes"),
            reference_number=data.get("reference_number"),
        )
        return jsonify({"adjustment": adjustment.to_dict()}), 201

    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create stock adjustment")
        return jsonify({"error": "Internal server error"}), 500


@stock_adjustments_bp.put("/<int:adjustment_id>/approve")
@require_actor
def approve_adjustment_route(adjustment_id: int):
    """Approve a pending adjustment (Manager only) and apply it to stock."""
    try:
        adjustment = adjustment_service.approve_adjustment(adjustment_id, actor=g.actor)
        return jsonify({"adjustment": adjustment.to_dict()}), 200

    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to approve stock adjustment")
        return jsonify({"error": "Internal server error"}), 500


@stock_adjustments_bp.get("/")
@require_actor
def list_adjustments_route():
    try:
        adjustments = adjustment_service.list_adjustments(
            start=date_arg("start_date"),
            end=date_arg("end_date"),
            product_id=request.args.get("product_id", type=int),
        )
        return jsonify({"adjustments": [a.to_dict() for a in adjustments]}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@stock_adjustments_bp.get("/pending")
@require_actor
def list_pending_route():
    adjustments = adjustment_service.list_pending_adjustments()
    return jsonify({"adjustments": [a.to_dict() for a in adjustments]}), 200


@stock_adjustments_bp.get("/<int:adjustment_id>")
@require_actor
def get_adjustment_route(adjustment_id: int):
    try:
        adjustment = adjustment_service.get_adjustment(adjustment_id)
        return jsonify({"adjustment": adjustment.to_dict()}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@stock_adjustments_bp.get("/products/<int:product_id>")
@require_actor
def list_product_adjustments_route(product_id: int):
    try:
        adjustments = adjustment_service.list_product_adjustments(product_id)
        return jsonify({"adjustments": [a.to_dict() for a in adjustments]}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
