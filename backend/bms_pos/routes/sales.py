# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

from flask import Blueprint, jsonify, g, request, current_app

from ..extensions import db
from ..errors import PosError
from ..services import sales_service
from ..services.settings_service import get_settings_snapshot
from ..decorators import require_actor
from . import json_body
from bms_pos.time_utils import to_utc_z


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("/")
@require_actor
def create_sale_route():
    """
    Record a completed sale for the authenticated employee.

    Request body:
    {
        "items": [{"product_id": 1, "quantity": 2, "unit_price_cents": 499 (optional)}],
        "discount_cents": 0,
        "discount_reason": null,
        "amount_paid_cents": 1000,  (0 or omitted means exact)
        "payment_method": "Cash",
        "notes": null
    }

    Returns:
        201: {"sale": {...with items}}
        400: Invalid input or insufficient stock
        409: Concurrent stock update; safe to retry
    """
    try:
        sale = sales_service.create_sale(json_body(), actor=g.actor, settings=get_settings_snapshot())
        return jsonify({"sale": sale.to_dict()}), 201

    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/")
@require_actor
def list_sales_route():
    days = request.args.get("days", 30, type=int)
    employee_id = request.args.get("employee_id", type=int)
    sales = sales_service.list_sales(days=days, employee_id=employee_id)
    return jsonify({"sales": [s.to_dict(include_items=False) for s in sales]}), 200


@sales_bp.get("/summary")
@require_actor
def sales_summary_route():
    try:
        summary = sales_service.get_sales_summary(request.args.get("period", "today"))
        summary["start"] = to_utc_z(summary["start"])
        return jsonify(summary), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.get("/<int:sale_id>")
@require_actor
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
        return jsonify({"sale": sale.to_dict()}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.get("/transaction/<string:transaction_id>")
@require_actor
def get_sale_by_transaction_route(transaction_id: str):
    try:
        sale = sales_service.get_sale_by_transaction_id(transaction_id)
        return jsonify({"sale": sale.to_dict()}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
