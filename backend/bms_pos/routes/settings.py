# Overview: Flask API routes for store settings; parses input and returns JSON responses.

from flask import Blueprint, jsonify, g, current_app

from ..extensions import db
from ..errors import PosError
from ..services import settings_service
from ..services.activity_service import log_actor_activity
from ..decorators import require_actor, require_role
from . import json_body


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("/")
@require_actor
def get_settings_route():
    row = settings_service.get_settings_row()
    return jsonify({"settings": row.to_dict()}), 200


@settings_bp.put("/")
@require_actor
@require_role("Manager")
def update_settings_route():
    """
    Partial update of the returns policy / tax rate. Manager only.

    Request body: any subset of
    {
        "enable_returns": true,
        "require_manager_approval_for_returns": false,
        "restock_returned_items": true,
        "allow_defective_item_returns": true,
        "return_time_limit_days": 7,
        "return_manager_approval_cents": 100000,
        "tax_rate_bps": 825
    }
    """
    try:
        patch = json_body()
        row = settings_service.update_settings(patch, actor=g.actor)
        log_actor_activity(
            g.actor,
            f"Updated settings: {', '.join(sorted(patch))}",
            entity_type="SystemSettings", entity_id=row.id, action_type="UPDATE",
        )
        return jsonify({"settings": row.to_dict()}), 200

    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update settings")
        return jsonify({"error": "Internal server error"}), 500
