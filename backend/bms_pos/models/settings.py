from __future__ import annotations

from ..extensions import db
from bms_pos.time_utils import to_utc_z

# The settings table holds exactly one row
SETTINGS_ROW_ID = 1


class SystemSettings(db.Model):
    """
    Single-row store policy settings (returns policy, default tax rate).

    Services never read this row directly: settings_service turns it into an
    immutable SettingsSnapshot that is passed into each processor call.
    """
    __tablename__ = "system_settings"
    __table_args__ = (
        db.CheckConstraint("return_time_limit_days >= 0", name="ck_settings_return_days"),
        db.CheckConstraint("return_manager_approval_cents >= 0", name="ck_settings_return_threshold"),
        db.CheckConstraint(f"id = {SETTINGS_ROW_ID}", name="ck_settings_single_row"),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=False, default=SETTINGS_ROW_ID)

    enable_returns = db.Column(db.Boolean, nullable=False, default=True)
    require_manager_approval_for_returns = db.Column(db.Boolean, nullable=False, default=False)
    restock_returned_items = db.Column(db.Boolean, nullable=False, default=True)
    allow_defective_item_returns = db.Column(db.Boolean, nullable=False, default=True)
    return_time_limit_days = db.Column(db.Integer, nullable=False, default=7)
    # Returns above this refund total need a manager PIN ($1,000.00)
    return_manager_approval_cents = db.Column(db.Integer, nullable=False, default=100_000)

    # Basis points: 825 == 8.25%
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)

    updated_by_employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "enable_returns": self.enable_returns,
            "require_manager_approval_for_returns": self.require_manager_approval_for_returns,
            "restock_returned_items": self.restock_returned_items,
            "allow_defective_item_returns": self.allow_defective_item_returns,
            "return_time_limit_days": self.return_time_limit_days,
            "return_manager_approval_cents": self.return_manager_approval_cents,
            "tax_rate_bps": self.tax_rate_bps,
            "updated_by_employee_id": self.updated_by_employee_id,
            "updated_at": to_utc_z(self.updated_at),
        }
