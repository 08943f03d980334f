"""
Inventory count processor tests.

Verifies:
- Only one count IN_PROGRESS; manager-only lifecycle actions
- Variance and running totals per counted item
- Completion writes CORRECTION adjustments and sets stock to counted
- Terminal states reject further changes
"""

import pytest

from bms_pos.errors import AuthorizationError, ConflictError, ValidationError
from bms_pos.models import Product, StockAdjustment, UserActivity
from bms_pos.services import count_service


@pytest.fixture
def small_cost_product(db_session):
    product = Product(
        barcode="5550001",
        name="Bolt",
        price_cents=25,
        cost_cents=10,
        stock_quantity=50,
    )
    db_session.add(product)
    db_session.commit()
    return product


# =============================================================================
# LIFECYCLE
# =============================================================================


class TestCountLifecycle:
    def test_manager_only(self, db_session, clerk_actor):
        with pytest.raises(AuthorizationError):
            count_service.start_count("Monthly", "FULL", clerk_actor)

    def test_invalid_type(self, db_session, manager_actor):
        with pytest.raises(ValidationError):
            count_service.start_count("Monthly", "WEEKLY", manager_actor)

    def test_single_in_progress(self, db_session, manager_actor):
        first = count_service.start_count("Monthly", "FULL", manager_actor)
        assert first.status == "IN_PROGRESS"

        with pytest.raises(ConflictError) as exc:
            count_service.start_count("Spot check", "SPOT", manager_actor)
        assert "Monthly" in exc.value.message

    def test_cancel_then_start_again(self, db_session, manager_actor, product):
        count = count_service.start_count("Monthly", "FULL", manager_actor)
        count_service.add_count_item(count.id, product.id, 90, manager_actor)

        cancelled = count_service.cancel_count(count.id, manager_actor)
        assert cancelled.status == "CANCELLED"
        assert product.stock_quantity == 100

        with pytest.raises(ValidationError):
            count_service.cancel_count(count.id, manager_actor)

        again = count_service.start_count("Monthly (retry)", "FULL", manager_actor)
        assert again.status == "IN_PROGRESS"

    def test_completed_is_terminal(self, db_session, manager_actor, product):
        count = count_service.start_count("Monthly", "FULL", manager_actor)
        count_service.complete_count(count.id, manager_actor)

        with pytest.raises(ValidationError):
            count_service.add_count_item(count.id, product.id, 1, manager_actor)
        with pytest.raises(ValidationError) as exc:
            count_service.cancel_count(count.id, manager_actor)
        assert "completed" in exc.value.message
        with pytest.raises(ValidationError):
            count_service.complete_count(count.id, manager_actor)


# =============================================================================
# ITEMS AND TOTALS
# =============================================================================


class TestCountItems:
    def test_shrinkage_totals_and_completion(self, db_session, manager_actor, clerk_actor, small_cost_product):
        count = count_service.start_count("Monthly", "CYCLE", manager_actor)
        item = count_service.add_count_item(count.id, small_cost_product.id, 47, clerk_actor)

        assert item.system_quantity == 50
        assert item.variance == -3
        assert item.variance_value_cents == -30
        assert count.total_items_counted == 1
        assert count.total_discrepancies == 1
        assert count.total_shrinkage_cents == 30
        assert count.total_overage_cents == 0
        assert count.net_variance_cents == -30

        completed = count_service.complete_count(count.id, manager_actor)
        assert completed.status == "COMPLETED"
        assert completed.adjustments_applied is True
        assert small_cost_product.stock_quantity == 47

        correction = db_session.query(StockAdjustment).one()
        assert correction.adjustment_type == "CORRECTION"
        assert correction.reference_number == f"IC-{count.id}"
        assert correction.reason == "Inventory count adjustment - Monthly"
        assert correction.quantity_change == -3
        assert correction.is_approved is True
        assert correction.requires_approval is False

    def test_overage(self, db_session, manager_actor, small_cost_product):
        count = count_service.start_count("Spot", "SPOT", manager_actor)
        count_service.add_count_item(count.id, small_cost_product.id, 52, manager_actor)
        assert count.total_overage_cents == 20
        assert count.net_variance_cents == 20

    def test_matching_count_has_no_discrepancy(self, db_session, manager_actor, product):
        count = count_service.start_count("Spot", "SPOT", manager_actor)
        count_service.add_count_item(count.id, product.id, 100, manager_actor)
        count_service.complete_count(count.id, manager_actor)

        assert count.total_discrepancies == 0
        assert db_session.query(StockAdjustment).count() == 0

    def test_duplicate_item_rejected(self, db_session, manager_actor, product):
        count = count_service.start_count("Spot", "SPOT", manager_actor)
        count_service.add_count_item(count.id, product.id, 99, manager_actor)
        with pytest.raises(ValidationError):
            count_service.add_count_item(count.id, product.id, 98, manager_actor)
        assert count.total_items_counted == 1

    def test_complete_without_adjustments(self, db_session, manager_actor, product):
        count = count_service.start_count("Audit only", "ANNUAL", manager_actor)
        count_service.add_count_item(count.id, product.id, 80, manager_actor)

        completed = count_service.complete_count(count.id, manager_actor, apply_adjustments=False)
        assert completed.adjustments_applied is False
        assert product.stock_quantity == 100
        assert db_session.query(StockAdjustment).count() == 0

    def test_significant_discrepancy_audited(self, db_session, manager_actor, product):
        count = count_service.start_count("Spot", "SPOT", manager_actor)
        item = count_service.add_count_item(count.id, product.id, 80, manager_actor)

        event = db_session.query(UserActivity).filter_by(action_type="DISCREPANCY").one()
        assert event.entity_type == "InventoryCountItem"
        assert event.entity_id == item.id
        assert "Widget" in event.action

    def test_completion_uses_live_stock(self, db_session, manager_actor, product):
        count = count_service.start_count("Spot", "SPOT", manager_actor)
        count_service.add_count_item(count.id, product.id, 95, manager_actor)

        # Stock moves after counting
        product.stock_quantity = 97
        db_session.commit()

        count_service.complete_count(count.id, manager_actor)
        correction = db_session.query(StockAdjustment).one()
        assert correction.quantity_before == 97
        assert correction.quantity_change == -2
        assert product.stock_quantity == 95


class TestCountQueries:
    def test_summary(self, db_session, manager_actor, small_cost_product, product):
        first = count_service.start_count("One", "SPOT", manager_actor)
        count_service.add_count_item(first.id, small_cost_product.id, 47, manager_actor)
        count_service.complete_count(first.id, manager_actor)

        second = count_service.start_count("Two", "SPOT", manager_actor)
        count_service.add_count_item(second.id, product.id, 100, manager_actor)

        summary = count_service.get_count_summary()
        assert summary["total_counts"] == 2
        assert summary["completed_counts"] == 1
        assert summary["in_progress_counts"] == 1
        assert summary["total_items_counted"] == 2
        assert summary["total_shrinkage_cents"] == 30
        assert summary["net_variance_cents"] == -30

        assert len(count_service.list_count_items(first.id)) == 1
        assert count_service.get_active_count().id == second.id
