# Overview: Service-layer operations for store settings; builds immutable snapshots for processors.

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError

from ..errors import ValidationError
from ..extensions import db
from ..models import SystemSettings
from ..models.settings import SETTINGS_ROW_ID
from ..validation import coerce_int


@dataclass(frozen=True)
class SettingsSnapshot:
    """Read-only view of the returns policy, passed into each processor call."""

    enable_returns: bool = True
    require_manager_approval_for_returns: bool = False
    restock_returned_items: bool = True
    allow_defective_item_returns: bool = True
    return_time_limit_days: int = 7
    return_manager_approval_cents: int = 100_000
    tax_rate_bps: int = 0

    @classmethod
    def from_row(cls, row: SystemSettings) -> "SettingsSnapshot":
        return cls(
            enable_returns=row.enable_returns,
            require_manager_approval_for_returns=row.require_manager_approval_for_returns,
            restock_returned_items=row.restock_returned_items,
            allow_defective_item_returns=row.allow_defective_item_returns,
            return_time_limit_days=row.return_time_limit_days,
            return_manager_approval_cents=row.return_manager_approval_cents,
            tax_rate_bps=row.tax_rate_bps,
        )


_BOOL_FIELDS = (
    "enable_returns",
    "require_manager_approval_for_returns",
    "restock_returned_items",
    "allow_defective_item_returns",
)
_INT_RANGES = {
    "return_time_limit_days": (0, 3650),
    "return_manager_approval_cents": (0, 999_999_999),
    "tax_rate_bps": (0, 10_000),
}


def get_settings_row() -> SystemSettings:
    """
    Return the settings row, creating it with defaults on first use.

    The row always has id SETTINGS_ROW_ID. When two first requests race, the
    loser's insert fails on the primary key and it reads the winner's row.
    """
    row = db.session.get(SystemSettings, SETTINGS_ROW_ID)
    if row is not None:
        return row

    db.session.add(SystemSettings(id=SETTINGS_ROW_ID))
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
    return db.session.get(SystemSettings, SETTINGS_ROW_ID)


def get_settings_snapshot() -> SettingsSnapshot:
    return SettingsSnapshot.from_row(get_settings_row())


def update_settings(patch: dict, actor) -> SystemSettings:
    """
    Apply a partial settings update. Manager only (enforced by the route).

    Unknown keys are rejected so a typo never silently does nothing.
    """
    if not isinstance(patch, dict) or not patch:
        raise ValidationError("No settings provided")

    errors = []
    cleaned = {}
    for key, value in patch.items():
        if key in _BOOL_FIELDS:
            if not isinstance(value, bool):
                errors.append(f"{key} must be a boolean")
            else:
                cleaned[key] = value
        elif key in _INT_RANGES:
            low, high = _INT_RANGES[key]
            try:
                number = coerce_int(value, key)
            except ValidationError as e:
                errors.append(e.message)
                continue
            if number < low or number > high:
                errors.append(f"{key} must be between {low} and {high}")
            else:
                cleaned[key] = number
        else:
            errors.append(f"Unknown setting: {key}")

    if errors:
        raise ValidationError(errors[0] if len(errors) == 1 else "Invalid settings", errors)

    row = get_settings_row()
    for key, value in cleaned.items():
        setattr(row, key, value)
    row.updated_by_employee_id = actor.id
    db.session.commit()
    return row
