"""
Employee login and manager PIN tests.

Verifies:
- PINs are stored hashed; legacy plaintext PINs upgrade on first success
- Login failures are 401 with one message; role mismatch names the role
- Every login attempt is audited
"""

import pytest

from bms_pos.errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from bms_pos.models import Employee, UserActivity
from bms_pos.services import employee_service
from bms_pos.services.pin_service import is_legacy_pin

from conftest import CASHIER_PIN, MANAGER_PIN


class TestLogin:
    def test_success(self, db_session, cashier):
        employee = employee_service.login("EMP001", CASHIER_PIN)
        assert employee.id == cashier.id

        event = db_session.query(UserActivity).filter_by(action_type="LOGIN").one()
        assert event.user_id == cashier.id

    def test_selected_role_is_case_insensitive(self, db_session, cashier):
        assert employee_service.login("EMP001", CASHIER_PIN, selected_role="cashier").id == cashier.id

    def test_role_mismatch(self, db_session, cashier):
        with pytest.raises(AuthenticationError) as exc:
            employee_service.login("EMP001", CASHIER_PIN, selected_role="Manager")
        assert exc.value.message == "Access denied. Your role is Cashier"

    @pytest.mark.parametrize("code,pin", [("EMP001", "999999"), ("NOBODY", CASHIER_PIN)])
    def test_bad_credentials_share_a_message(self, db_session, cashier, code, pin):
        with pytest.raises(AuthenticationError) as exc:
            employee_service.login(code, pin)
        assert exc.value.message == "Invalid employee ID or PIN"
        assert db_session.query(UserActivity).filter_by(action_type="LOGIN_FAILED").count() == 1

    def test_missing_fields(self, db_session):
        with pytest.raises(ValidationError):
            employee_service.login("", None)

    @pytest.mark.parametrize(
        "code,pin,role",
        [("EMP001", 222222, None), (1, CASHIER_PIN, None), ("EMP001", CASHIER_PIN, 3)],
    )
    def test_non_string_fields(self, db_session, cashier, code, pin, role):
        with pytest.raises(ValidationError):
            employee_service.login(code, pin, selected_role=role)

    def test_inactive_employee_cannot_login(self, db_session, cashier, manager_actor):
        employee_service.deactivate_employee(cashier.id, manager_actor)
        with pytest.raises(AuthenticationError):
            employee_service.login("EMP001", CASHIER_PIN)

    def test_legacy_pin_upgraded(self, db_session):
        legacy = Employee(employee_code="OLD001", name="Old Timer", role="Cashier", pin_hash="246810")
        db_session.add(legacy)
        db_session.commit()

        employee_service.login("OLD001", "246810")
        db_session.expire_all()
        stored = db_session.get(Employee, legacy.id)
        assert not is_legacy_pin(stored.pin_hash)
        assert stored.pin_hash != "246810"

        # Still works with the upgraded hash
        assert employee_service.login("OLD001", "246810").id == legacy.id


class TestManagerPin:
    def test_valid(self, db_session, manager):
        assert employee_service.validate_manager_pin(MANAGER_PIN).id == manager.id

    def test_cashier_pin_is_not_a_manager_pin(self, db_session, manager, cashier):
        with pytest.raises(AuthenticationError):
            employee_service.validate_manager_pin(CASHIER_PIN)

    def test_missing(self, db_session):
        with pytest.raises(ValidationError):
            employee_service.validate_manager_pin("")

    def test_numeric_pin_rejected(self, db_session, manager):
        with pytest.raises(ValidationError):
            employee_service.validate_manager_pin(111111)


class TestEmployees:
    def test_create_hashes_pin(self, db_session, manager_actor):
        employee = employee_service.create_employee(
            {"employee_code": "EMP050", "name": "New Hire", "pin": "135790", "role": "Cashier"},
            manager_actor,
        )
        assert employee.pin_hash.startswith("$2")
        assert "pin_hash" not in employee.to_dict()

    def test_duplicate_code(self, db_session, cashier, manager_actor):
        with pytest.raises(ConflictError):
            employee_service.create_employee(
                {"employee_code": "EMP001", "name": "Clone", "pin": "135790", "role": "Cashier"},
                manager_actor,
            )

    def test_cannot_deactivate_self(self, db_session, manager_actor):
        with pytest.raises(ValidationError):
            employee_service.deactivate_employee(manager_actor.id, manager_actor)

    def test_update_name_and_role(self, db_session, cashier, manager_actor):
        employee = employee_service.update_employee(
            cashier.id, {"name": "Casey Cashier", "role": "Inventory"}, manager_actor,
        )
        assert employee.name == "Casey Cashier"
        assert employee.role == "Inventory"

        event = db_session.query(UserActivity).filter_by(action_type="UPDATE", entity_id=cashier.id).one()
        assert "role: Cashier -> Inventory" in event.action

    def test_update_rejects_bad_role(self, db_session, cashier, manager_actor):
        with pytest.raises(ValidationError):
            employee_service.update_employee(cashier.id, {"role": "cashier"}, manager_actor)

    def test_update_cannot_touch_pin_or_code(self, db_session, cashier, manager_actor):
        with pytest.raises(ValidationError):
            employee_service.update_employee(cashier.id, {"pin": "999999"}, manager_actor)
        with pytest.raises(ValidationError):
            employee_service.update_employee(cashier.id, {"employee_code": "EMP999"}, manager_actor)

    def test_cannot_change_own_role(self, db_session, manager_actor):
        with pytest.raises(ValidationError):
            employee_service.update_employee(manager_actor.id, {"role": "Cashier"}, manager_actor)

    def test_reactivate_allows_login(self, db_session, cashier, manager_actor):
        employee_service.deactivate_employee(cashier.id, manager_actor)
        employee = employee_service.activate_employee(cashier.id, manager_actor)
        assert employee.is_active is True
        assert employee_service.login("EMP001", CASHIER_PIN).id == cashier.id

    def test_reset_pin(self, db_session, cashier, manager_actor):
        employee_service.reset_pin(cashier.id, "864200", manager_actor)

        with pytest.raises(AuthenticationError):
            employee_service.login("EMP001", CASHIER_PIN)
        assert employee_service.login("EMP001", "864200").id == cashier.id

        stored = db_session.get(Employee, cashier.id).pin_hash
        assert stored.startswith("$2")
        event = db_session.query(UserActivity).filter(UserActivity.action.like("Reset PIN%")).one()
        assert "864200" not in event.action

    @pytest.mark.parametrize("pin", ["12", "abcdef", 864200, None])
    def test_reset_pin_rejects_invalid(self, db_session, cashier, manager_actor, pin):
        with pytest.raises(ValidationError):
            employee_service.reset_pin(cashier.id, pin, manager_actor)

    def test_reset_pin_unknown_employee(self, db_session, manager_actor):
        with pytest.raises(NotFoundError):
            employee_service.reset_pin(999999, "864200", manager_actor)
