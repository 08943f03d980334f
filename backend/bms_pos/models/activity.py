from __future__ import annotations

from ..extensions import db
from bms_pos.time_utils import to_utc_z


class UserActivity(db.Model):
    """
    Audit trail: who did what, when, to which entity.

    IMMUTABLE: Never update or delete. Append-only.
    Written by the activity sink in its own short-lived session, so a failed
    audit write never rolls back the business operation it describes.
    """
    __tablename__ = "user_activities"
    __table_args__ = (
        db.Index("ix_user_activities_user_occurred", "user_id", "occurred_at"),
        db.Index("ix_user_activities_entity", "entity_type", "entity_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # No FK: activity for a since-deleted employee must still be insertable
    user_id = db.Column(db.Integer, nullable=True, index=True)
    user_name = db.Column(db.String(100), nullable=False)

    action = db.Column(db.String(200), nullable=False)
    details = db.Column(db.Text, nullable=True)

    entity_type = db.Column(db.String(50), nullable=True)
    entity_id = db.Column(db.Integer, nullable=True)
    # CREATE, APPROVE, COMPLETE, CANCEL, DISCREPANCY, LOGIN, LOGIN_FAILED, SALE, ...
    action_type = db.Column(db.String(20), nullable=True, index=True)

    ip_address = db.Column(db.String(45), nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "action": self.action,
            "details": self.details,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action_type": self.action_type,
            "ip_address": self.ip_address,
            "occurred_at": to_utc_z(self.occurred_at),
        }
