# Overview: Flask API routes for inventory count operations; parses input and returns JSON responses.

# backend/bms_pos/routes/inventory_counts.py
"""
Physical Inventory Count API Routes

LIFECYCLE: IN_PROGRESS -> COMPLETED | CANCELLED. Starting, completing and
cancelling are manager actions; any employee may record counted items.
Only one count may be in progress at a time (409 otherwise).
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..errors import PosError
from ..services import count_service
from ..decorators import require_actor
from . import date_arg, json_body


inventory_counts_bp = Blueprint("inventory_counts", __name__, url_prefix="/api/inventory-counts")


@inventory_counts_bp.post("/")
@require_actor
def start_count_route():
    """
    Start a count.

    Request body:
    {
        "count_name": "Monthly Count - December",
        "count_type": "FULL",  (FULL|CYCLE|SPOT|ANNUAL)
        "notes": null
    }
    """
    try:
        data = json_body()
        count = count_service.start_count(
            count_name=data.get("count_name"),
            count_type=data.get("count_type"),
            actor=g.actor,
            notes=data.get("notes"),
        )
        return jsonify({"count": count.to_dict()}), 201

    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to start inventory count")
        return jsonify({"error": "Internal server error"}), 500


@inventory_counts_bp.post("/<int:count_id>/items")
@require_actor
def add_count_item_route(count_id: int):
    """
    Record a counted product.

    Request body:
    {
        "product_id": 1,
        "counted_quantity": 42,
        "product_batch_id": null,
        "discrepancy_reason": null,
        "notes": null
    }
    """
    try:
        data = json_body()
        item = count_service.add_count_item(
            count_id=count_id,
            product_id=data.get("product_id"),
            counted_quantity=data.get("counted_quantity"),
            actor=g.actor,
            product_batch_id=data.get("product_batch_id"),
            discrepancy_reason=data.get("discrepancy_reason"),
            notes=data.get("notes"),
        )
        return jsonify({"item": item.to_dict()}), 201

    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to add inventory count item")
        return jsonify({"error": "Internal server error"}), 500


@inventory_counts_bp.put("/<int:count_id>/complete")
@require_actor
def complete_count_route(count_id: int):
    """
    Complete a count.

    Request body (optional):
    {
        "apply_adjustments": true,
        "completion_notes": null
    }
    """
    try:
        data = json_body()
        apply_adjustments = data.get("apply_adjustments", True)
        if not isinstance(apply_adjustments, bool):
            return jsonify({"error": "apply_adjustments must be a boolean"}), 400

        count = count_service.complete_count(
            count_id,
            actor=g.actor,
            apply_adjustments=apply_adjustments,
            completion_notes=data.get("completion_notes"),
        )
        return jsonify({"count": count.to_dict(include_items=True)}), 200

    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to complete inventory count")
        return jsonify({"error": "Internal server error"}), 500


@inventory_counts_bp.delete("/<int:count_id>")
@require_actor
def cancel_count_route(count_id: int):
    """Cancel an in-progress count. The row is kept with status CANCELLED."""
    try:
        count_service.cancel_count(count_id, actor=g.actor)
        return "", 204

    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to cancel inventory count")
        return jsonify({"error": "Internal server error"}), 500


@inventory_counts_bp.get("/")
@require_actor
def list_counts_route():
    counts = count_service.list_counts(status=request.args.get("status"))
    return jsonify({"counts": [c.to_dict() for c in counts]}), 200


@inventory_counts_bp.get("/active")
@require_actor
def active_count_route():
    count = count_service.get_active_count()
    return jsonify({"count": count.to_dict() if count else None}), 200


@inventory_counts_bp.get("/summary")
@require_actor
def count_summary_route():
    try:
        summary = count_service.get_count_summary(
            start=date_arg("start_date"),
            end=date_arg("end_date"),
        )
        return jsonify(summary), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@inventory_counts_bp.get("/<int:count_id>")
@require_actor
def get_count_route(count_id: int):
    try:
        count = count_service.get_count(count_id)
        return jsonify({"count": count.to_dict(include_items=True)}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@inventory_counts_bp.get("/<int:count_id>/items")
@require_actor
def list_count_items_route(count_id: int):
    try:
        items = count_service.list_count_items(count_id)
        return jsonify({"items": [i.to_dict() for i in items]}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
