# Overview: Shared request-parsing helpers for the API blueprints.

from flask import request

from ..errors import ValidationError
from bms_pos.time_utils import parse_iso_datetime


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def date_arg(name: str):
    """Optional ISO-8601 query parameter as a UTC-naive datetime."""
    raw = request.args.get(name)
    try:
        return parse_iso_datetime(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date or datetime")
