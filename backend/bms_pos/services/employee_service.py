# Overview: Service-layer operations for employees; login and manager PIN checks.

"""
Employees and PIN login.

LOGIN: employee_code + 6-digit PIN, optionally with the role the operator
selected on the login screen. Unknown employee, wrong PIN and role mismatch
are all 401. Every attempt is audited (LOGIN / LOGIN_FAILED).

MANAGER APPROVAL: find_manager_by_pin() checks a PIN against every active
manager. Used by returns above the approval threshold and by the client's
approval dialogs (validate-manager endpoint).
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Employee
from ..validation import ROLE_MANAGER, validate_employee, validate_pin
from .activity_service import log_activity, log_actor_activity
from .pin_service import hash_pin, is_legacy_pin, verify_pin


def create_employee(payload: dict, actor=None) -> Employee:
    data = validate_employee(payload)

    existing = db.session.query(Employee).filter_by(employee_code=data["employee_code"]).first()
    if existing:
        raise ConflictError(f"Employee ID {data['employee_code']} already exists", retryable=False)

    employee = Employee(
        employee_code=data["employee_code"],
        name=data["name"],
        role=data["role"],
        pin_hash=hash_pin(data["pin"]),
        is_active=True,
    )
    db.session.add(employee)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Employee ID {data['employee_code']} already exists", retryable=False)

    if actor is not None:
        log_actor_activity(
            actor,
            f"Created employee {employee.employee_code} ({employee.role})",
            entity_type="Employee", entity_id=employee.id, action_type="CREATE",
        )
    return employee


def get_employee(employee_id: int) -> Employee:
    employee = db.session.get(Employee, employee_id)
    if employee is None:
        raise NotFoundError("Employee not found")
    return employee


def list_employees(active_only: bool = True) -> list[Employee]:
    query = db.session.query(Employee)
    if active_only:
        query = query.filter(Employee.is_active.is_(True))
    return query.order_by(Employee.name.asc()).all()


def deactivate_employee(employee_id: int, actor) -> Employee:
    employee = get_employee(employee_id)
    if employee.id == actor.id:
        raise ValidationError("You cannot deactivate your own account")
    if not employee.is_active:
        return employee

    employee.is_active = False
    db.session.commit()

    log_actor_activity(
        actor,
        f"Deactivated employee {employee.employee_code}",
        entity_type="Employee", entity_id=employee.id, action_type="UPDATE",
    )
    return employee


def activate_employee(employee_id: int, actor) -> Employee:
    employee = get_employee(employee_id)
    if employee.is_active:
        return employee

    employee.is_active = True
    db.session.commit()

    log_actor_activity(
        actor,
        f"Activated employee {employee.employee_code}",
        entity_type="Employee", entity_id=employee.id, action_type="UPDATE",
    )
    return employee


def update_employee(employee_id: int, payload: dict, actor) -> Employee:
    """
    Change an employee's name and/or role. Manager only (route-enforced).

    The employee code and PIN are not editable here; the PIN has its own
    reset operation. A manager cannot demote their own account.
    """
    employee = get_employee(employee_id)

    unsupported = sorted(set(payload) & {"employee_code", "pin"})
    if unsupported:
        raise ValidationError(f"Cannot update {', '.join(unsupported)} here")

    data = validate_employee(payload, partial=True)
    if not data:
        raise ValidationError("Nothing to update")

    if employee.id == actor.id and data.get("role", employee.role) != employee.role:
        raise ValidationError("You cannot change your own role")

    changes = []
    for field in ("name", "role"):
        if field in data and data[field] != getattr(employee, field):
            changes.append(f"{field}: {getattr(employee, field)} -> {data[field]}")
            setattr(employee, field, data[field])

    if not changes:
        return employee

    db.session.commit()

    log_actor_activity(
        actor,
        f"Updated employee {employee.employee_code} ({'; '.join(changes)})",
        entity_type="Employee", entity_id=employee.id, action_type="UPDATE",
    )
    return employee


def reset_pin(employee_id: int, new_pin, actor) -> Employee:
    """Replace an employee's PIN with a freshly hashed one."""
    employee = get_employee(employee_id)
    pin = validate_pin(new_pin)

    employee.pin_hash = hash_pin(pin)
    db.session.commit()

    # Never log the PIN itself
    log_actor_activity(
        actor,
        f"Reset PIN for employee {employee.employee_code}",
        entity_type="Employee", entity_id=employee.id, action_type="UPDATE",
    )
    return employee


def verify_employee_pin(employee: Employee, pin: str) -> bool:
    """
    Check a PIN for one employee; upgrade a legacy plaintext PIN on success.

    The upgrade is staged on the session; the caller's commit persists it.
    """
    if not verify_pin(pin, employee.pin_hash):
        return False
    if is_legacy_pin(employee.pin_hash):
        employee.pin_hash = hash_pin(pin)
    return True


def find_manager_by_pin(pin: str | None) -> Employee | None:
    """Return the active manager whose PIN matches, or None."""
    if not pin:
        return None
    managers = (
        db.session.query(Employee)
        .filter(Employee.is_active.is_(True), Employee.role == ROLE_MANAGER)
        .order_by(Employee.id.asc())
        .all()
    )
    for manager in managers:
        if verify_employee_pin(manager, pin):
            return manager
    return None


def validate_manager_pin(pin: str | None) -> Employee:
    if not pin:
        raise ValidationError("PIN is required")
    if not isinstance(pin, str):
        raise ValidationError("PIN must be a string of digits")
    manager = find_manager_by_pin(pin)
    if manager is None:
        raise AuthenticationError("Invalid manager PIN")
    db.session.commit()  # persist a legacy PIN upgrade
    return manager


def login(employee_code: str | None, pin: str | None, selected_role: str | None = None) -> Employee:
    """
    Authenticate an employee at the register.

    Raises:
        ValidationError: employee id or PIN missing or not a string (400)
        AuthenticationError: unknown employee, wrong PIN, role mismatch (401)
    """
    for label, value in (("Employee ID", employee_code), ("PIN", pin), ("selected_role", selected_role)):
        if value is not None and not isinstance(value, str):
            raise ValidationError(f"{label} must be a string")

    employee_code = (employee_code or "").strip()
    if not employee_code or not pin:
        raise ValidationError("Employee ID and PIN are required")

    employee = (
        db.session.query(Employee)
        .filter(Employee.employee_code == employee_code, Employee.is_active.is_(True))
        .first()
    )
    if employee is None:
        log_activity(
            None, employee_code, "Failed login attempt - unknown employee ID",
            entity_type="Employee", action_type="LOGIN_FAILED",
        )
        raise AuthenticationError("Invalid employee ID or PIN")

    if not verify_employee_pin(employee, pin):
        log_activity(
            employee.id, employee.name, "Failed login attempt - invalid PIN",
            entity_type="Employee", entity_id=employee.id, action_type="LOGIN_FAILED",
        )
        raise AuthenticationError("Invalid employee ID or PIN")

    if selected_role and selected_role.strip().lower() != employee.role.lower():
        db.session.rollback()
        log_activity(
            employee.id, employee.name,
            f"Failed login attempt - role mismatch (selected {selected_role})",
            entity_type="Employee", entity_id=employee.id, action_type="LOGIN_FAILED",
        )
        raise AuthenticationError(f"Access denied. Your role is {employee.role}")

    db.session.commit()  # persist a legacy PIN upgrade

    log_activity(
        employee.id, employee.name, f"Logged in as {employee.role}",
        entity_type="Employee", entity_id=employee.id, action_type="LOGIN",
    )
    return employee
