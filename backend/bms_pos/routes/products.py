# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/bms_pos/routes/products.py
from flask import Blueprint, jsonify, g, request, current_app

from ..extensions import db
from ..errors import PosError
from ..services import products_service
from ..decorators import require_actor, require_role
from . import json_body


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _flag(name: str, default: str = "false") -> bool:
    return request.args.get(name, default).lower() in ("1", "true", "yes")


@products_bp.get("/")
@require_actor
def list_products_route():
    """
    List products.

    Query params:
        include_inactive: also list deactivated products (default false)
        low_stock: only products at or below their minimum level
        search: name or barcode substring
        category: exact category
    """
    products = products_service.list_products(
        active_only=not _flag("include_inactive"),
        low_stock_only=_flag("low_stock"),
        search=request.args.get("search"),
        category=request.args.get("category"),
    )
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200


@products_bp.get("/<int:product_id>")
@require_actor
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(product_id)
        return jsonify({"product": product.to_dict()}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@products_bp.get("/barcode/<string:barcode>")
@require_actor
def get_product_by_barcode_route(barcode: str):
    try:
        product = products_service.get_product_by_barcode(barcode)
        return jsonify({"product": product.to_dict()}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@products_bp.get("/expiring")
@require_actor
def list_expiring_batches_route():
    """
    Batches expiring within ?days= (default 30), expired ones included.
    """
    try:
        batches = products_service.list_expiring_batches(
            request.args.get("days", products_service.EXPIRING_DEFAULT_DAYS)
        )
        return jsonify({
            "items": [dict(b.to_dict(), product_name=b.product.name) for b in batches],
            "count": len(batches),
        }), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@products_bp.get("/<int:product_id>/batches")
@require_actor
def list_product_batches_route(product_id: int):
    try:
        batches = products_service.list_product_batches(product_id)
        return jsonify({"items": [b.to_dict() for b in batches], "count": len(batches)}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@products_bp.post("/")
@require_actor
@require_role("Manager", "Inventory")
def create_product_route():
    try:
        product = products_service.create_product(json_body(), actor=g.actor)
        return jsonify({"product": product.to_dict()}), 201

    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.put("/<int:product_id>")
@require_actor
@require_role("Manager", "Inventory")
def update_product_route(product_id: int):
    """Partial update. stock_quantity in the body is ignored."""
    try:
        product = products_service.update_product(product_id, json_body(), actor=g.actor)
        return jsonify({"product": product.to_dict()}), 200

    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<int:product_id>")
@require_actor
@require_role("Manager")
def delete_product_route(product_id: int):
    try:
        products_service.delete_product(product_id, actor=g.actor)
        return "", 204

    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("/<int:product_id>/receive")
@require_actor
@require_role("Manager", "Inventory")
def receive_batch_route(product_id: int):
    """
    Receive stock into a product.

    Request body:
    {
        "quantity": 24,
        "batch_number": "LOT-2024-11",  (optional)
        "cost_per_unit_cents": 350,  (optional, defaults to product cost)
        "expiry_date": "2025-06-30",  (optional)
        "notes": "..."  (optional)
    }
    """
    try:
        batch = products_service.receive_batch(product_id, json_body(), actor=g.actor)
        return jsonify({
            "batch": batch.to_dict(),
            "product": batch.product.to_dict(),
        }), 201

    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to receive stock")
        return jsonify({"error": "Internal server error"}), 500
