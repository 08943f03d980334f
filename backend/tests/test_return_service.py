"""
Return processor tests.

Verifies:
- Stock restocking for good-condition items, none for defective
- Returned quantity never exceeds sold quantity (incl. repeated lines)
- A rejected multi-item return leaves no header, items or stock change
- Returns policy: enabled flag, time window, defective items
- Manager approval gating with a generic failure message
"""

from dataclasses import replace
from datetime import timedelta

import pytest

from bms_pos.errors import AuthorizationError, NotFoundError, ValidationError
from bms_pos.models import Employee, Return, ReturnItem, UserActivity
from bms_pos.services import return_service, sales_service
from bms_pos.time_utils import utcnow

from conftest import MANAGER_PIN


def _sell(actor, settings, *lines):
    return sales_service.create_sale(
        {"items": [{"product_id": p.id, "quantity": q} for p, q in lines]},
        actor,
        settings,
    )


def _item(sale_item, quantity, condition="good", line_total=None):
    return {
        "original_sale_item_id": sale_item.id,
        "return_quantity": quantity,
        "line_total_cents": line_total,
        "condition": condition,
        "reason": "Customer changed mind",
    }


# =============================================================================
# HAPPY PATH AND STOCK
# =============================================================================


class TestReturnStock:
    def test_sale_return_restock_flow(self, db_session, product, cashier_actor, default_settings):
        sale = _sell(cashier_actor, default_settings, (product, 10))
        assert product.stock_quantity == 90

        sale_item = sale.items[0]
        return_doc = return_service.process_return(
            sale.id, [_item(sale_item, 5)], cashier_actor, default_settings,
        )

        assert product.stock_quantity == 95
        assert return_doc.status == "Completed"
        assert return_doc.return_number.startswith("RET-")
        assert return_doc.total_refund_cents == 5000
        assert return_doc.items[0].restocked_to_inventory is True
        assert sale_item.returned_quantity == 5

        with pytest.raises(ValidationError) as exc:
            return_service.process_return(
                sale.id, [_item(sale_item, 6)], cashier_actor, default_settings,
            )
        assert "Only 5 available to return" in exc.value.message

        assert product.stock_quantity == 95
        assert db_session.query(Return).count() == 1
        assert sale_item.returned_quantity == 5

    def test_defective_items_not_restocked(self, db_session, product, cashier_actor, default_settings):
        sale = _sell(cashier_actor, default_settings, (product, 4))
        return_doc = return_service.process_return(
            sale.id, [_item(sale.items[0], 2, condition="defective")], cashier_actor, default_settings,
        )
        assert product.stock_quantity == 96
        assert return_doc.items[0].restocked_to_inventory is False
        assert return_doc.items[0].condition == "defective"

    def test_restock_policy_off(self, db_session, product, cashier_actor, default_settings):
        settings = replace(default_settings, restock_returned_items=False)
        sale = _sell(cashier_actor, settings, (product, 4))
        return_doc = return_service.process_return(
            sale.id, [_item(sale.items[0], 2)], cashier_actor, settings,
        )
        assert product.stock_quantity == 96
        assert return_doc.items[0].restocked_to_inventory is False

    def test_explicit_line_total_is_refunded(self, db_session, product, cashier_actor, default_settings):
        sale = _sell(cashier_actor, default_settings, (product, 2))
        return_doc = return_service.process_return(
            sale.id, [_item(sale.items[0], 1, line_total=750)], cashier_actor, default_settings,
        )
        assert return_doc.total_refund_cents == 750
        assert return_doc.items[0].unit_price_cents == 1000

    def test_audit_event_written(self, db_session, product, cashier_actor, default_settings):
        sale = _sell(cashier_actor, default_settings, (product, 3))
        return_doc = return_service.process_return(
            sale.id, [_item(sale.items[0], 1)], cashier_actor, default_settings,
        )
        event = (
            db_session.query(UserActivity)
            .filter_by(entity_type="Return", entity_id=return_doc.id)
            .one()
        )
        assert event.action_type == "CREATE"
        assert event.user_id == cashier_actor.id
        assert "1x Widget" in event.action
        assert sale.transaction_id in event.details


# =============================================================================
# ATOMIC REJECTION
# =============================================================================


class TestReturnRejection:
    def test_multi_item_rejection_leaves_nothing(
        self, db_session, product, cheap_product, cashier_actor, default_settings
    ):
        sale = _sell(cashier_actor, default_settings, (product, 10), (cheap_product, 2))
        first, second = sale.items

        with pytest.raises(ValidationError):
            return_service.process_return(
                sale.id,
                [_item(first, 3), _item(second, 3)],
                cashier_actor,
                default_settings,
            )

        assert db_session.query(Return).count() == 0
        assert db_session.query(ReturnItem).count() == 0
        assert product.stock_quantity == 90
        assert cheap_product.stock_quantity == 18
        assert first.returned_quantity == 0

    def test_repeated_lines_are_summed(self, db_session, product, cashier_actor, default_settings):
        sale = _sell(cashier_actor, default_settings, (product, 10))
        line = sale.items[0]
        with pytest.raises(ValidationError):
            return_service.process_return(
                sale.id, [_item(line, 6), _item(line, 6)], cashier_actor, default_settings,
            )
        assert db_session.query(Return).count() == 0

    def test_zero_quantity_rejected(self, db_session, product, cashier_actor, default_settings):
        sale = _sell(cashier_actor, default_settings, (product, 1))
        with pytest.raises(ValidationError):
            return_service.process_return(
                sale.id, [_item(sale.items[0], 0)], cashier_actor, default_settings,
            )

    def test_unknown_sale(self, db_session, cashier_actor, default_settings):
        with pytest.raises(NotFoundError):
            return_service.process_return(
                999999,
                [{"original_sale_item_id": 1, "return_quantity": 1, "condition": "good"}],
                cashier_actor,
                default_settings,
            )

    def test_item_from_another_sale(self, db_session, product, cashier_actor, default_settings):
        sale_a = _sell(cashier_actor, default_settings, (product, 1))
        sale_b = _sell(cashier_actor, default_settings, (product, 1))
        with pytest.raises(ValidationError):
            return_service.process_return(
                sale_a.id, [_item(sale_b.items[0], 1)], cashier_actor, default_settings,
            )


# =============================================================================
# POLICY
# =============================================================================


class TestReturnPolicy:
    def test_returns_disabled(self, db_session, product, cashier_actor, default_settings):
        sale = _sell(cashier_actor, default_settings, (product, 1))
        settings = replace(default_settings, enable_returns=False)
        with pytest.raises(ValidationError) as exc:
            return_service.process_return(sale.id, [_item(sale.items[0], 1)], cashier_actor, settings)
        assert "disabled" in exc.value.message

    def test_return_window_expired(self, db_session, product, cashier_actor, default_settings):
        sale = _sell(cashier_actor, default_settings, (product, 1))
        sale.sale_date = utcnow() - timedelta(days=10)
        db_session.commit()

        with pytest.raises(ValidationError) as exc:
            return_service.process_return(
                sale.id, [_item(sale.items[0], 1)], cashier_actor, default_settings,
            )
        assert "7 days" in exc.value.message

        unlimited = replace(default_settings, return_time_limit_days=0)
        return_doc = return_service.process_return(
            sale.id, [_item(sale.items[0], 1)], cashier_actor, unlimited,
        )
        assert return_doc.id is not None

    def test_defective_returns_disallowed(self, db_session, product, cashier_actor, default_settings):
        sale = _sell(cashier_actor, default_settings, (product, 1))
        settings = replace(default_settings, allow_defective_item_returns=False)
        with pytest.raises(ValidationError):
            return_service.process_return(
                sale.id, [_item(sale.items[0], 1, condition="defective")], cashier_actor, settings,
            )


# =============================================================================
# MANAGER APPROVAL
# =============================================================================


class TestManagerApproval:
    def test_below_threshold_needs_no_pin(self, db_session, product, cashier_actor, default_settings):
        sale = _sell(cashier_actor, default_settings, (product, 2))
        return_doc = return_service.process_return(
            sale.id, [_item(sale.items[0], 2)], cashier_actor, default_settings,
        )
        assert return_doc.manager_approval_required is False
        assert return_doc.approved_by_employee_id is None

    @pytest.mark.parametrize("pin", [None, "999999"])
    def test_missing_or_wrong_pin_is_generic(
        self, db_session, product, manager, cashier_actor, default_settings, pin
    ):
        settings = replace(default_settings, return_manager_approval_cents=1000)
        sale = _sell(cashier_actor, settings, (product, 5))

        with pytest.raises(AuthorizationError) as exc:
            return_service.process_return(
                sale.id, [_item(sale.items[0], 5)], cashier_actor, settings, manager_pin=pin,
            )
        assert exc.value.message == "Manager approval could not be verified"
        assert db_session.query(Return).count() == 0
        assert product.stock_quantity == 95

    def test_valid_pin_records_approver(self, db_session, product, manager, cashier_actor, default_settings):
        settings = replace(default_settings, return_manager_approval_cents=1000)
        sale = _sell(cashier_actor, settings, (product, 5))

        return_doc = return_service.process_return(
            sale.id, [_item(sale.items[0], 5)], cashier_actor, settings, manager_pin=MANAGER_PIN,
        )
        assert return_doc.manager_approval_required is True
        assert return_doc.approved_by_employee_id == manager.id

    def test_policy_requires_approval_for_every_return(
        self, db_session, product, cashier, cashier_actor, default_settings
    ):
        settings = replace(default_settings, require_manager_approval_for_returns=True)
        sale = _sell(cashier_actor, settings, (product, 1))
        # A cashier's PIN is not a manager PIN
        with pytest.raises(AuthorizationError):
            return_service.process_return(
                sale.id, [_item(sale.items[0], 1)], cashier_actor, settings, manager_pin="222222",
            )

    def test_legacy_manager_pin_upgraded(self, db_session, product, cashier_actor, default_settings):
        legacy = Employee(employee_code="MGR900", name="Legacy Lee", role="Manager", pin_hash="424242")
        db_session.add(legacy)
        db_session.commit()

        settings = replace(default_settings, require_manager_approval_for_returns=True)
        sale = _sell(cashier_actor, settings, (product, 1))
        return_doc = return_service.process_return(
            sale.id, [_item(sale.items[0], 1)], cashier_actor, settings, manager_pin="424242",
        )

        assert return_doc.approved_by_employee_id == legacy.id
        assert legacy.pin_hash.startswith("$2")


# =============================================================================
# QUERIES
# =============================================================================


class TestReturnQueries:
    def test_returnable_items(self, db_session, product, cheap_product, cashier_actor, default_settings):
        sale = _sell(cashier_actor, default_settings, (product, 3), (cheap_product, 2))
        return_service.process_return(
            sale.id, [_item(sale.items[0], 2)], cashier_actor, default_settings,
        )

        result = return_service.get_returnable_items(sale.id)
        by_product = {line["product_name"]: line for line in result["items"]}
        assert by_product["Widget"]["already_returned"] == 2
        assert by_product["Widget"]["available_to_return"] == 1
        assert by_product["Gadget"]["available_to_return"] == 2

    def test_sale_returns_and_lookup(self, db_session, product, cashier_actor, default_settings):
        sale = _sell(cashier_actor, default_settings, (product, 3))
        return_doc = return_service.process_return(
            sale.id, [_item(sale.items[0], 1)], cashier_actor, default_settings,
        )
        assert [r.id for r in return_service.get_sale_returns(sale.id)] == [return_doc.id]
        assert return_service.get_return(return_doc.id).original_sale_id == sale.id
        with pytest.raises(NotFoundError):
            return_service.get_return(123456)
