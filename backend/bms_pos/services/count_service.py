# backend/bms_pos/services/count_service.py
"""
Physical inventory count service.

WHY: Regular physical counts keep the system's stock honest. Each counted
item is compared against the system quantity at the moment it is counted;
completing the count turns the variances into CORRECTION adjustments.

LIFECYCLE:
1. IN_PROGRESS: items being counted, running totals kept on the count
2. COMPLETED: closed; variances optionally applied to stock (terminal)
3. CANCELLED: abandoned, stock untouched (terminal)

Only one count may be IN_PROGRESS. Starting, completing and cancelling are
manager actions.
"""
from __future__ import annotations

from collections import OrderedDict
from datetime import datetime

from ..errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import InventoryCount, InventoryCountItem, Product, ProductBatch, StockAdjustment
from ..validation import validate_count_item, validate_count_request
from .activity_service import log_actor_activity
from .concurrency import lock_for_update, run_with_retry
from bms_pos.time_utils import utcnow


# Count status constants
COUNT_STATUS_IN_PROGRESS = "IN_PROGRESS"
COUNT_STATUS_COMPLETED = "COMPLETED"
COUNT_STATUS_CANCELLED = "CANCELLED"

# A discrepancy above either bound is flagged in the audit trail
SIGNIFICANT_VARIANCE_UNITS = 10
SIGNIFICANT_VARIANCE_CENTS = 10_000


def _require_manager(actor, action: str) -> None:
    if not actor.is_manager:
        raise AuthorizationError(f"Only managers can {action} inventory counts")


def _locked_count(count_id: int) -> InventoryCount:
    count = lock_for_update(db.session.query(InventoryCount).filter_by(id=count_id)).first()
    if count is None:
        raise NotFoundError("Inventory count not found")
    return count


def start_count(count_name: str, count_type: str, actor, notes: str | None = None) -> InventoryCount:
    """
    Open a new count (status IN_PROGRESS).

    Raises:
        ValidationError: name blank or type invalid
        AuthorizationError: actor is not a manager
        ConflictError: another count is already in progress
    """
    data = validate_count_request({"count_name": count_name, "count_type": count_type, "notes": notes})
    _require_manager(actor, "start")

    def _op():
        active = (
            db.session.query(InventoryCount)
            .filter(InventoryCount.status == COUNT_STATUS_IN_PROGRESS)
            .first()
        )
        if active is not None:
            raise ConflictError(
                f"Another inventory count is already in progress: {active.count_name}",
                retryable=False,
            )

        count = InventoryCount(
            count_name=data["count_name"],
            count_type=data["count_type"],
            status=COUNT_STATUS_IN_PROGRESS,
            notes=data["notes"],
            started_by_employee_id=actor.id,
            started_at=utcnow(),
        )
        db.session.add(count)
        db.session.commit()
        return count

    count = run_with_retry(_op)

    log_actor_activity(
        actor,
        f"Started inventory count: {count.count_name}",
        details=f"Type: {count.count_type}, Notes: {count.notes or ''}",
        entity_type="InventoryCount", entity_id=count.id, action_type="CREATE",
    )
    return count


def add_count_item(
    count_id: int,
    product_id: int,
    counted_quantity: int,
    actor,
    product_batch_id: int | None = None,
    discrepancy_reason: str | None = None,
    notes: str | None = None,
) -> InventoryCountItem:
    """
    Record one counted product (or product batch) on an open count.

    variance = counted - system stock at this moment; the count's running
    totals are updated in the same unit of work.
    """
    data = validate_count_item({
        "product_id": product_id,
        "counted_quantity": counted_quantity,
        "product_batch_id": product_batch_id,
        "discrepancy_reason": discrepancy_reason,
        "notes": notes,
    })

    def _op():
        count = _locked_count(count_id)
        if count.status != COUNT_STATUS_IN_PROGRESS:
            raise ValidationError("Inventory count is not in progress")

        product = db.session.get(Product, data["product_id"])
        if product is None:
            raise NotFoundError("Product not found")

        batch_id = data["product_batch_id"]
        if batch_id is not None:
            batch = db.session.get(ProductBatch, batch_id)
            if batch is None or batch.product_id != product.id:
                raise ValidationError("Product batch not found for this product")

        duplicate = (
            db.session.query(InventoryCountItem.id)
            .filter(
                InventoryCountItem.inventory_count_id == count.id,
                InventoryCountItem.product_id == product.id,
                InventoryCountItem.product_batch_id.is_(None)
                if batch_id is None
                else InventoryCountItem.product_batch_id == batch_id,
            )
            .first()
        )
        if duplicate is not None:
            raise ValidationError("Product has already been counted in this inventory count")

        system_quantity = product.stock_quantity
        counted = data["counted_quantity"]
        variance = counted - system_quantity
        variance_value = variance * product.cost_cents

        item = InventoryCountItem(
            inventory_count_id=count.id,
            product_id=product.id,
            product_batch_id=batch_id,
            system_quantity=system_quantity,
            counted_quantity=counted,
            variance=variance,
            cost_per_unit_cents=product.cost_cents,
            variance_value_cents=variance_value,
            discrepancy_reason=data["discrepancy_reason"],
            notes=data["notes"],
            counted_by_employee_id=actor.id,
            counted_at=utcnow(),
        )
        db.session.add(item)

        count.total_items_counted += 1
        if variance != 0:
            count.total_discrepancies += 1
            if variance < 0:
                count.total_shrinkage_cents += abs(variance_value)
            else:
                count.total_overage_cents += variance_value
        count.net_variance_cents += variance_value

        db.session.commit()
        return item

    item = run_with_retry(_op)

    if (abs(item.variance) > SIGNIFICANT_VARIANCE_UNITS
            or abs(item.variance_value_cents) > SIGNIFICANT_VARIANCE_CENTS):
        log_actor_activity(
            actor,
            f"SIGNIFICANT DISCREPANCY: {item.product.name}",
            details=(
                f"Expected: {item.system_quantity}, Counted: {item.counted_quantity}, "
                f"Variance: {item.variance} (${item.variance_value_cents / 100:.2f}), "
                f"Reason: {item.discrepancy_reason or ''}"
            ),
            entity_type="InventoryCountItem", entity_id=item.id, action_type="DISCREPANCY",
        )
    return item


def complete_count(
    count_id: int,
    actor,
    apply_adjustments: bool = True,
    completion_notes: str | None = None,
) -> InventoryCount:
    """
    Close a count; optionally set stock to the counted quantities.

    Items are grouped per product (batch items of one product add up). For
    every product with a nonzero recorded variance the live stock is locked
    and set to the counted total, with one auto-approved CORRECTION
    adjustment (reference IC-{count id}) recording the live before/after.
    Everything commits together.
    """
    _require_manager(actor, "complete")

    def _op():
        count = _locked_count(count_id)
        if count.status != COUNT_STATUS_IN_PROGRESS:
            raise ValidationError("Inventory count is not in progress")

        now = utcnow()
        adjusted = 0
        if apply_adjustments:
            counted_by_product: "OrderedDict[int, int]" = OrderedDict()
            has_variance: set[int] = set()
            for item in count.items:
                counted_by_product[item.product_id] = (
                    counted_by_product.get(item.product_id, 0) + item.counted_quantity
                )
                if item.variance != 0:
                    has_variance.add(item.product_id)

            for product_id in sorted(has_variance):
                product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
                if product is None:
                    continue
                counted = counted_by_product[product_id]
                before = product.stock_quantity
                change = counted - before
                if change == 0:
                    continue

                db.session.add(StockAdjustment(
                    product_id=product.id,
                    adjustment_type="CORRECTION",
                    quantity_change=change,
                    quantity_before=before,
                    quantity_after=counted,
                    reason=f"Inventory count adjustment - {count.count_name}",
                    reference_number=f"IC-{count.id}",
                    adjusted_by_employee_id=actor.id,
                    cost_impact_cents=change * product.cost_cents,
                    adjustment_date=now,
                    requires_approval=False,
                    is_approved=True,
                    approved_by_employee_id=actor.id,
                    approved_at=now,
                ))
                product.stock_quantity = counted
                adjusted += 1

        count.status = COUNT_STATUS_COMPLETED
        count.completed_by_employee_id = actor.id
        count.completed_at = now
        count.adjustments_applied = bool(apply_adjustments)
        if completion_notes:
            count.notes = f"{count.notes}\n{completion_notes}" if count.notes else completion_notes

        db.session.commit()
        return count, adjusted

    count, adjusted = run_with_retry(_op)

    adjustment_text = f" ({adjusted} stock adjustments applied)" if apply_adjustments else " (no adjustments applied)"
    log_actor_activity(
        actor,
        f"Completed inventory count: {count.count_name}{adjustment_text}",
        details=(
            f"Items: {count.total_items_counted}, Discrepancies: {count.total_discrepancies}, "
            f"Net Variance: {count.net_variance_cents / 100:.2f}"
        ),
        entity_type="InventoryCount", entity_id=count.id, action_type="COMPLETE",
    )
    return count


def cancel_count(count_id: int, actor) -> InventoryCount:
    """Abandon an in-progress count. Stock is not touched."""
    _require_manager(actor, "cancel")

    def _op():
        count = _locked_count(count_id)
        if count.status == COUNT_STATUS_COMPLETED:
            raise ValidationError("Cannot cancel completed inventory count")
        if count.status == COUNT_STATUS_CANCELLED:
            raise ValidationError("Inventory count is already cancelled")

        count.status = COUNT_STATUS_CANCELLED
        count.completed_by_employee_id = actor.id
        count.completed_at = utcnow()
        db.session.commit()
        return count

    count = run_with_retry(_op)

    log_actor_activity(
        actor,
        f"Cancelled inventory count: {count.count_name}",
        details=f"Items counted: {count.total_items_counted}",
        entity_type="InventoryCount", entity_id=count.id, action_type="CANCEL",
    )
    return count


# =============================================================================
# QUERIES
# =============================================================================

def get_count(count_id: int) -> InventoryCount:
    count = db.session.get(InventoryCount, count_id)
    if count is None:
        raise NotFoundError("Inventory count not found")
    return count


def get_active_count() -> InventoryCount | None:
    return (
        db.session.query(InventoryCount)
        .filter(InventoryCount.status == COUNT_STATUS_IN_PROGRESS)
        .first()
    )


def list_counts(status: str | None = None, limit: int = 200) -> list[InventoryCount]:
    query = db.session.query(InventoryCount)
    if status:
        query = query.filter(InventoryCount.status == status)
    return query.order_by(InventoryCount.started_at.desc(), InventoryCount.id.desc()).limit(limit).all()


def list_count_items(count_id: int) -> list[InventoryCountItem]:
    count = get_count(count_id)
    return list(count.items)


def get_count_summary(start: datetime | None = None, end: datetime | None = None) -> dict:
    query = db.session.query(InventoryCount)
    if start is not None:
        query = query.filter(InventoryCount.started_at >= start)
    if end is not None:
        query = query.filter(InventoryCount.started_at <= end)
    counts = query.all()

    return {
        "total_counts": len(counts),
        "completed_counts": sum(1 for c in counts if c.status == COUNT_STATUS_COMPLETED),
        "in_progress_counts": sum(1 for c in counts if c.status == COUNT_STATUS_IN_PROGRESS),
        "cancelled_counts": sum(1 for c in counts if c.status == COUNT_STATUS_CANCELLED),
        "total_items_counted": sum(c.total_items_counted for c in counts),
        "total_discrepancies": sum(c.total_discrepancies for c in counts),
        "total_shrinkage_cents": sum(c.total_shrinkage_cents for c in counts),
        "total_overage_cents": sum(c.total_overage_cents for c in counts),
        "net_variance_cents": sum(c.net_variance_cents for c in counts),
    }
