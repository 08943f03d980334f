# Overview: Flask API routes for employee operations; parses input and returns JSON responses.

from flask import Blueprint, jsonify, g, request, current_app

from ..extensions import db
from ..errors import PosError
from ..services import employee_service
from ..decorators import require_actor, require_role
from . import json_body


employees_bp = Blueprint("employees", __name__, url_prefix="/api/employees")


@employees_bp.get("/")
@require_actor
def list_employees_route():
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    employees = employee_service.list_employees(active_only=not include_inactive)
    return jsonify({"employees": [e.to_dict() for e in employees]}), 200


@employees_bp.get("/<int:employee_id>")
@require_actor
def get_employee_route(employee_id: int):
    try:
        employee = employee_service.get_employee(employee_id)
        return jsonify({"employee": employee.to_dict()}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@employees_bp.post("/")
@require_actor
@require_role("Manager")
def create_employee_route():
    """
    Create an employee. Manager only.

    Request body:
    {
        "employee_code": "EMP002",
        "name": "Jane Doe",
        "pin": "123456",
        "role": "Cashier"
    }
    """
    try:
        employee = employee_service.create_employee(json_body(), actor=g.actor)
        return jsonify({"employee": employee.to_dict()}), 201

    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create employee")
        return jsonify({"error": "Internal server error"}), 500


@employees_bp.post("/<int:employee_id>/deactivate")
@require_actor
@require_role("Manager")
def deactivate_employee_route(employee_id: int):
    try:
        employee = employee_service.deactivate_employee(employee_id, actor=g.actor)
        return jsonify({"employee": employee.to_dict()}), 200

    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to deactivate employee")
        return jsonify({"error": "Internal server error"}), 500


@employees_bp.put("/<int:employee_id>")
@require_actor
@require_role("Manager")
def update_employee_route(employee_id: int):
    """
    Change name and/or role. Manager only.

    Request body:
    {
        "name": "Jane Smith",  (optional)
        "role": "Inventory"  (optional)
    }
    """
    try:
        employee = employee_service.update_employee(employee_id, json_body(), actor=g.actor)
        return jsonify({"employee": employee.to_dict()}), 200

    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update employee")
        return jsonify({"error": "Internal server error"}), 500


@employees_bp.put("/<int:employee_id>/activate")
@require_actor
@require_role("Manager")
def activate_employee_route(employee_id: int):
    try:
        employee = employee_service.activate_employee(employee_id, actor=g.actor)
        return jsonify({"employee": employee.to_dict()}), 200

    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to activate employee")
        return jsonify({"error": "Internal server error"}), 500


@employees_bp.put("/<int:employee_id>/reset-pin")
@require_actor
@require_role("Manager")
def reset_pin_route(employee_id: int):
    """
    Request body:
    {
        "new_pin": "654321"
    }
    """
    try:
        employee_service.reset_pin(employee_id, json_body().get("new_pin"), actor=g.actor)
        return jsonify({"message": "PIN reset successfully"}), 200

    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to reset PIN")
        return jsonify({"error": "Internal server error"}), 500
