# Overview: Service-layer operations for stock adjustments; encapsulates business logic and database work.

"""
Stock Adjustment Service

WHY: Shelves drift from the system (damage, theft, expiry, found stock).
Adjustments correct stock with a reason and an audit trail; large or
suspicious ones wait for a manager.

APPROVAL RULE: approval is required when |change| > 50 units, or
|change x unit cost| > $500.00, or the type is THEFT. Pending adjustments
leave stock untouched until approve_adjustment() applies them exactly once.

DRIFT: Stock may move (sales, returns) between creation and approval. If
stock still equals quantity_before, stock becomes quantity_after. Otherwise
the signed change is re-applied to current stock, the before/after
snapshots are re-based, and a result below zero is rejected.
"""

from __future__ import annotations

from datetime import datetime

from ..errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Product, StockAdjustment
from ..validation import ensure_non_negative_stock, validate_stock_adjustment
from .activity_service import log_actor_activity
from .concurrency import lock_for_update, run_with_retry
from bms_pos.time_utils import utcnow

APPROVAL_QUANTITY_THRESHOLD = 50
APPROVAL_VALUE_THRESHOLD_CENTS = 50_000
ALWAYS_REQUIRE_APPROVAL_TYPES = {"THEFT"}


def requires_approval(adjustment_type: str, quantity_change: int, cost_cents: int) -> bool:
    if abs(quantity_change) > APPROVAL_QUANTITY_THRESHOLD:
        return True
    if abs(quantity_change * cost_cents) > APPROVAL_VALUE_THRESHOLD_CENTS:
        return True
    return adjustment_type in ALWAYS_REQUIRE_APPROVAL_TYPES


def _signed(change: int) -> str:
    return f"+{change}" if change > 0 else str(change)


def create_adjustment(
    product_id: int,
    adjustment_type: str,
    quantity_change: int,
    reason: str,
    actor,
    notes: str | None = None,
    reference_number: str | None = None,
) -> StockAdjustment:
    """
    Record a stock adjustment; apply it now unless it needs approval.

    Raises:
        ValidationError: bad input or negative resulting stock
        NotFoundError: unknown product
    """
    data = validate_stock_adjustment({
        "product_id": product_id,
        "adjustment_type": adjustment_type,
        "quantity_change": quantity_change,
        "reason": reason,
        "notes": notes,
        "reference_number": reference_number,
    })

    def _op():
        product = lock_for_update(db.session.query(Product).filter_by(id=data["product_id"])).first()
        if product is None:
            raise NotFoundError("Product not found")

        change = data["quantity_change"]
        before = product.stock_quantity
        after = ensure_non_negative_stock(before, change)
        needs_approval = requires_approval(data["adjustment_type"], change, product.cost_cents)

        now = utcnow()
        adjustment = StockAdjustment(
            product_id=product.id,
            adjustment_type=data["adjustment_type"],
            quantity_change=change,
            quantity_before=before,
            quantity_after=after,
            reason=data["reason"],
            notes=data["notes"],
            reference_number=data["reference_number"],
            adjusted_by_employee_id=actor.id,
            cost_impact_cents=change * product.cost_cents,
            adjustment_date=now,
            requires_approval=needs_approval,
            is_approved=not needs_approval,
            approved_by_employee_id=None if needs_approval else actor.id,
            approved_at=None if needs_approval else now,
        )
        db.session.add(adjustment)

        if not needs_approval:
            product.stock_quantity = after

        db.session.commit()
        return adjustment

    adjustment = run_with_retry(_op)

    pending = " (PENDING APPROVAL)" if adjustment.requires_approval else ""
    log_actor_activity(
        actor,
        f"Stock adjustment: {adjustment.product.name} {_signed(adjustment.quantity_change)}{pending}",
        details=(
            f"Type: {adjustment.adjustment_type}, Reason: {adjustment.reason}, "
            f"Before: {adjustment.quantity_before}, After: {adjustment.quantity_after}"
        ),
        entity_type="StockAdjustment", entity_id=adjustment.id, action_type="CREATE",
    )
    return adjustment


def approve_adjustment(adjustment_id: int, actor) -> StockAdjustment:
    """
    Manager approval of a pending adjustment; applies the stock change once.

    Raises:
        AuthorizationError: actor is not a manager
        NotFoundError: unknown adjustment
        ValidationError: already approved, or approval was never required
        ConflictError: stock moved so far that the change would go negative
    """
    if not actor.is_manager:
        raise AuthorizationError("Only managers can approve stock adjustments")

    def _op():
        adjustment = lock_for_update(
            db.session.query(StockAdjustment).filter_by(id=adjustment_id)
        ).first()
        if adjustment is None:
            raise NotFoundError("Stock adjustment not found")
        if adjustment.is_approved:
            raise ValidationError("Adjustment is already approved")
        if not adjustment.requires_approval:
            raise ValidationError("Adjustment does not require approval")

        product = lock_for_update(
            db.session.query(Product).filter_by(id=adjustment.product_id)
        ).first()
        if product is None:
            raise NotFoundError("Product not found")

        current = product.stock_quantity
        if current != adjustment.quantity_before:
            rebased = current + adjustment.quantity_change
            if rebased < 0:
                raise ConflictError(
                    f"Stock changed since this adjustment was created (now {current}); "
                    f"applying {_signed(adjustment.quantity_change)} would make it negative",
                    retryable=False,
                )
            adjustment.quantity_before = current
            adjustment.quantity_after = rebased

        product.stock_quantity = adjustment.quantity_after
        adjustment.is_approved = True
        adjustment.approved_by_employee_id = actor.id
        adjustment.approved_at = utcnow()

        db.session.commit()
        return adjustment

    adjustment = run_with_retry(_op)

    log_actor_activity(
        actor,
        f"Approved stock adjustment #{adjustment.id}: {adjustment.product.name} "
        f"{_signed(adjustment.quantity_change)}",
        details=f"Before: {adjustment.quantity_before}, After: {adjustment.quantity_after}",
        entity_type="StockAdjustment", entity_id=adjustment.id, action_type="APPROVE",
    )
    return adjustment


# =============================================================================
# QUERIES
# =============================================================================

def get_adjustment(adjustment_id: int) -> StockAdjustment:
    adjustment = db.session.get(StockAdjustment, adjustment_id)
    if adjustment is None:
        raise NotFoundError("Stock adjustment not found")
    return adjustment


def list_adjustments(
    start: datetime | None = None,
    end: datetime | None = None,
    product_id: int | None = None,
    limit: int = 500,
) -> list[StockAdjustment]:
    query = db.session.query(StockAdjustment)
    if start is not None:
        query = query.filter(StockAdjustment.adjustment_date >= start)
    if end is not None:
        query = query.filter(StockAdjustment.adjustment_date <= end)
    if product_id is not None:
        query = query.filter(StockAdjustment.product_id == product_id)
    return (
        query.order_by(StockAdjustment.adjustment_date.desc(), StockAdjustment.id.desc())
        .limit(limit)
        .all()
    )


def list_pending_adjustments() -> list[StockAdjustment]:
    return (
        db.session.query(StockAdjustment)
        .filter(
            StockAdjustment.requires_approval.is_(True),
            StockAdjustment.is_approved.is_(False),
        )
        .order_by(StockAdjustment.adjustment_date.asc(), StockAdjustment.id.asc())
        .all()
    )


def list_product_adjustments(product_id: int) -> list[StockAdjustment]:
    if db.session.get(Product, product_id) is None:
        raise NotFoundError("Product not found")
    return list_adjustments(product_id=product_id)
