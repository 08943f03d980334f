from __future__ import annotations

from ..extensions import db
from bms_pos.time_utils import to_utc_z


class Employee(db.Model):
    """
    Store employee. Employees log in with a 6-digit PIN at the register.

    ROLES: Manager, Cashier, Inventory (exact, case-sensitive).
    Only managers approve adjustments, run inventory counts and authorize
    returns above the approval threshold.

    PIN STORAGE: `pin_hash` holds a bcrypt hash. Rows imported from the
    legacy system may still hold a plaintext PIN; it is upgraded to a hash
    the first time it verifies (see pin_service).
    """
    __tablename__ = "employees"
    __table_args__ = (
        db.Index("ix_employees_role_active", "role", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Login identifier printed on the badge (e.g. "EMP001")
    employee_code = db.Column(db.String(10), nullable=False, unique=True)
    pin_hash = db.Column(db.String(60), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    role = db.Column(db.String(20), nullable=False, default="Cashier")
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Employee id={self.id} code={self.employee_code!r} role={self.role!r}>"

    @property
    def is_manager(self) -> bool:
        return self.role == "Manager"

    def to_dict(self) -> dict:
        # pin_hash is never serialized
        return {
            "id": self.id,
            "employee_code": self.employee_code,
            "name": self.name,
            "role": self.role,
            "is_manager": self.is_manager,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
