# Overview: Flask API routes for the audit trail; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..errors import PosError
from ..services import activity_service
from ..decorators import require_actor, require_role
from . import date_arg


activities_bp = Blueprint("activities", __name__, url_prefix="/api/activities")


@activities_bp.get("/")
@require_actor
@require_role("Manager")
def list_activities_route():
    """
    Query the audit trail (newest first). Manager only.

    Query params: start_date, end_date, user_id, action_type, entity_type, limit
    """
    try:
        activities = activity_service.list_activities(
            start=date_arg("start_date"),
            end=date_arg("end_date"),
            user_id=request.args.get("user_id", type=int),
            action_type=request.args.get("action_type"),
            entity_type=request.args.get("entity_type"),
            limit=request.args.get("limit", 1000, type=int),
        )
        return jsonify({"activities": [a.to_dict() for a in activities]}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
