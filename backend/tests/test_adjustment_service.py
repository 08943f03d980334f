"""
Stock adjustment processor tests.

Verifies:
- Small adjustments apply immediately and are auto-approved
- Large / high-value / THEFT adjustments wait for a manager
- Approval applies the change exactly once, re-basing on stock drift
- Negative resulting stock is rejected
"""

import pytest

from bms_pos.errors import AuthorizationError, ConflictError, ValidationError
from bms_pos.models import StockAdjustment
from bms_pos.services import adjustment_service, sales_service
from bms_pos.services.adjustment_service import requires_approval


class TestApprovalRule:
    @pytest.mark.parametrize(
        "adjustment_type,change,cost,expected",
        [
            ("DAMAGE", -50, 0, False),
            ("DAMAGE", -51, 0, True),
            ("FOUND", 60, 0, True),
            ("DAMAGE", -10, 5_000, False),   # exactly $500.00
            ("DAMAGE", -11, 5_000, True),    # $550.00
            ("THEFT", -1, 1, True),
            ("CORRECTION", 3, 100, False),
        ],
    )
    def test_requires_approval(self, adjustment_type, change, cost, expected):
        assert requires_approval(adjustment_type, change, cost) is expected


class TestCreateAdjustment:
    def test_small_adjustment_applies_immediately(self, db_session, product, clerk_actor):
        adjustment = adjustment_service.create_adjustment(
            product.id, "DAMAGE", -3, "Dropped", clerk_actor,
        )
        assert adjustment.requires_approval is False
        assert adjustment.is_approved is True
        assert adjustment.quantity_before == 100
        assert adjustment.quantity_after == 97
        assert adjustment.cost_impact_cents == -1500
        assert product.stock_quantity == 97

    def test_large_adjustment_waits_for_manager(self, db_session, product, clerk_actor, manager_actor):
        adjustment = adjustment_service.create_adjustment(
            product.id, "FOUND", 60, "Back room pallet", clerk_actor,
        )
        assert adjustment.requires_approval is True
        assert adjustment.is_approved is False
        assert product.stock_quantity == 100
        assert [a.id for a in adjustment_service.list_pending_adjustments()] == [adjustment.id]

        approved = adjustment_service.approve_adjustment(adjustment.id, manager_actor)
        assert approved.is_approved is True
        assert approved.approved_by_employee_id == manager_actor.id
        assert approved.approved_at is not None
        assert product.stock_quantity == 160
        assert adjustment_service.list_pending_adjustments() == []

    def test_negative_result_rejected(self, db_session, product, clerk_actor):
        with pytest.raises(ValidationError):
            adjustment_service.create_adjustment(product.id, "DAMAGE", -101, "Gone", clerk_actor)
        assert product.stock_quantity == 100
        assert db_session.query(StockAdjustment).count() == 0

    def test_invalid_input(self, db_session, product, clerk_actor):
        with pytest.raises(ValidationError):
            adjustment_service.create_adjustment(product.id, "DAMAGE", 0, "", clerk_actor)


class TestApproveAdjustment:
    def _pending(self, product, actor):
        return adjustment_service.create_adjustment(product.id, "THEFT", -4, "Shoplifting", actor)

    def test_only_managers_approve(self, db_session, product, clerk_actor):
        adjustment = self._pending(product, clerk_actor)
        with pytest.raises(AuthorizationError):
            adjustment_service.approve_adjustment(adjustment.id, clerk_actor)
        assert product.stock_quantity == 100

    def test_never_applied_twice(self, db_session, product, clerk_actor, manager_actor):
        adjustment = self._pending(product, clerk_actor)
        adjustment_service.approve_adjustment(adjustment.id, manager_actor)
        assert product.stock_quantity == 96

        with pytest.raises(ValidationError) as exc:
            adjustment_service.approve_adjustment(adjustment.id, manager_actor)
        assert "already approved" in exc.value.message
        assert product.stock_quantity == 96

    def test_auto_approved_cannot_be_approved(self, db_session, product, clerk_actor, manager_actor):
        adjustment = adjustment_service.create_adjustment(product.id, "DAMAGE", -1, "Dent", clerk_actor)
        with pytest.raises(ValidationError):
            adjustment_service.approve_adjustment(adjustment.id, manager_actor)

    def test_drift_is_rebased(self, db_session, product, clerk_actor, cashier_actor, manager_actor, default_settings):
        adjustment = self._pending(product, clerk_actor)
        sales_service.create_sale(
            {"items": [{"product_id": product.id, "quantity": 10}]}, cashier_actor, default_settings,
        )
        assert product.stock_quantity == 90

        approved = adjustment_service.approve_adjustment(adjustment.id, manager_actor)
        assert approved.quantity_before == 90
        assert approved.quantity_after == 86
        assert product.stock_quantity == 86

    def test_drift_below_zero_rejected(self, db_session, cheap_product, clerk_actor, cashier_actor, manager_actor, default_settings):
        adjustment = adjustment_service.create_adjustment(
            cheap_product.id, "THEFT", -15, "Missing case", clerk_actor,
        )
        sales_service.create_sale(
            {"items": [{"product_id": cheap_product.id, "quantity": 10}]}, cashier_actor, default_settings,
        )
        with pytest.raises(ConflictError):
            adjustment_service.approve_adjustment(adjustment.id, manager_actor)
        assert cheap_product.stock_quantity == 10
        assert adjustment_service.get_adjustment(adjustment.id).is_approved is False


class TestAdjustmentQueries:
    def test_by_product(self, db_session, product, cheap_product, clerk_actor):
        adjustment_service.create_adjustment(product.id, "FOUND", 2, "Shelf", clerk_actor)
        adjustment_service.create_adjustment(cheap_product.id, "FOUND", 1, "Shelf", clerk_actor)

        assert len(adjustment_service.list_adjustments()) == 2
        assert len(adjustment_service.list_product_adjustments(product.id)) == 1
        assert len(adjustment_service.list_adjustments(product_id=cheap_product.id)) == 1
