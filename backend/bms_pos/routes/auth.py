# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

from flask import Blueprint, jsonify, current_app

from ..extensions import db
from ..errors import PosError
from ..services import employee_service
from . import json_body


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Register login with employee ID and PIN.

    Request body:
    {
        "employee_id": "EMP001",
        "pin": "123456",
        "selected_role": "Cashier"  (optional)
    }

    Returns:
        200: {"employee": {...}}
        400: Missing fields
        401: Invalid employee ID / PIN, or role mismatch
    """
    try:
        data = json_body()
        employee = employee_service.login(
            employee_code=data.get("employee_id"),
            pin=data.get("pin"),
            selected_role=data.get("selected_role"),
        )
        return jsonify({"employee": employee.to_dict()}), 200

    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Login failed")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/validate-manager")
def validate_manager_route():
    """
    Check a manager PIN for client-side approval dialogs.

    Request body: {"pin": "123456"}

    Returns:
        200: {"valid": true, "manager": {"id", "name"}}
        400: PIN missing
        401: No active manager has this PIN
    """
    try:
        data = json_body()
        manager = employee_service.validate_manager_pin(data.get("pin"))
        return jsonify({
            "valid": True,
            "manager": {"id": manager.id, "name": manager.name},
        }), 200

    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Manager PIN validation failed")
        return jsonify({"error": "Internal server error"}), 500
