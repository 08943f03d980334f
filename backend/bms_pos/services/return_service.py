# Overview: Service-layer operations for returns; encapsulates business logic and database work.

"""
Returns Service

WHY: Customers bring items back. A return must never refund more units than
were sold on the original line, must respect the store's returns policy, and
must put good-condition stock back on the shelf.

FLOW (one unit of work, retried on concurrency conflicts):
1. Resolve the original sale.
2. Policy: returns enabled, sale inside the return window.
3. Locate every requested line on that sale and resolve its refund amount.
4. Manager approval when policy or the refund total requires it.
5. Pre-validate ALL lines against return history before writing anything.
6. Write Return + ReturnItems, bump SaleItem.returned_quantity, restock.
7. Commit, then audit.

Any rejection in steps 1-5 leaves nothing behind.

CONCURRENCY: Each SaleItem is locked (FOR UPDATE) and carries a
version_id_col. Every return bumps returned_quantity, so two racing returns
on the same line cannot both commit: the loser gets StaleDataError, is
retried, and re-validates against the winner's history. The CHECK
returned_quantity <= quantity backs this up in the database.
"""

from __future__ import annotations

import secrets
from collections import OrderedDict
from datetime import datetime

from ..errors import AuthorizationError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Product, Return, ReturnItem, Sale, SaleItem
from .activity_service import log_actor_activity
from .concurrency import lock_for_update, run_with_retry
from .employee_service import find_manager_by_pin
from .settings_service import SettingsSnapshot
from bms_pos.time_utils import utcnow, whole_days_between

RETURN_STATUS_COMPLETED = "Completed"

CONDITION_GOOD = "good"
CONDITION_DEFECTIVE = "defective"

MANAGER_APPROVAL_FAILED = "Manager approval could not be verified"


def generate_return_number(now: datetime | None = None) -> str:
    now = now or utcnow()
    return f"RET-{now:%Y%m%d}-{secrets.token_hex(4).upper()}"


def already_returned_quantity(sale_item_id: int) -> int:
    """Sum of ReturnItem quantities recorded against one sale line."""
    total = (
        db.session.query(db.func.coalesce(db.func.sum(ReturnItem.return_quantity), 0))
        .filter(ReturnItem.original_sale_item_id == sale_item_id)
        .scalar()
    )
    return int(total or 0)


def approval_required(return_total_cents: int, settings: SettingsSnapshot) -> bool:
    if settings.require_manager_approval_for_returns:
        return True
    threshold = settings.return_manager_approval_cents
    return threshold > 0 and return_total_cents > threshold


# =============================================================================
# PROCESS RETURN
# =============================================================================

def process_return(
    original_sale_id: int,
    items: list[dict],
    actor,
    settings: SettingsSnapshot,
    manager_pin: str | None = None,
    notes: str | None = None,
) -> Return:
    """
    Process a customer return against an original sale.

    Args:
        original_sale_id: Sale being returned against
        items: [{original_sale_item_id, return_quantity, line_total_cents?,
                 condition, reason}], already shape-validated
        actor: Employee processing the return
        settings: Returns policy snapshot
        manager_pin: Required when approval_required() is true
        notes: Free text stored on the return

    Raises:
        NotFoundError: original sale does not exist
        ValidationError: policy or quantity rule violated
        AuthorizationError: manager approval needed but PIN missing or wrong
        ConflictError: concurrent modification persisted after retries
    """
    if not items:
        raise ValidationError("At least one return item is required")

    def _op():
        sale = db.session.get(Sale, original_sale_id)
        if sale is None:
            raise NotFoundError("Original sale not found")

        if not settings.enable_returns:
            raise ValidationError("Returns are currently disabled")

        limit_days = settings.return_time_limit_days
        if limit_days > 0 and whole_days_between(sale.sale_date, utcnow()) > limit_days:
            raise ValidationError(
                f"Return period expired. Returns allowed within {limit_days} days."
            )

        # Locate and lock each distinct line (id order), summing repeats
        requested: "OrderedDict[int, int]" = OrderedDict()
        for item in items:
            if item["return_quantity"] is None or item["return_quantity"] <= 0:
                raise ValidationError("Return quantity must be greater than zero")
            if item["condition"] == CONDITION_DEFECTIVE and not settings.allow_defective_item_returns:
                raise ValidationError("Returns of defective items are not allowed")
            sale_item_id = item["original_sale_item_id"]
            requested[sale_item_id] = requested.get(sale_item_id, 0) + item["return_quantity"]

        sale_items: dict[int, SaleItem] = {}
        for sale_item_id in sorted(requested):
            sale_item = lock_for_update(
                db.session.query(SaleItem).filter_by(id=sale_item_id, sale_id=sale.id)
            ).first()
            if sale_item is None:
                raise ValidationError(f"Original sale item {sale_item_id} not found on this sale")
            sale_items[sale_item_id] = sale_item

        lines = []
        for item in items:
            sale_item = sale_items[item["original_sale_item_id"]]
            line_total = item.get("line_total_cents")
            if line_total is None:
                line_total = sale_item.unit_price_cents * item["return_quantity"]
            lines.append((item, sale_item, line_total))

        return_total = sum(line_total for _, _, line_total in lines)

        approver = None
        needs_approval = approval_required(return_total, settings)
        if needs_approval:
            approver = find_manager_by_pin(manager_pin)
            if approver is None:
                raise AuthorizationError(MANAGER_APPROVAL_FAILED)

        # Pre-validate every line before the first write
        for sale_item_id, quantity in requested.items():
            sale_item = sale_items[sale_item_id]
            already = already_returned_quantity(sale_item_id)
            available = sale_item.quantity - already
            if quantity > available:
                raise ValidationError(
                    f"Cannot return {quantity} of {sale_item.product_name}. "
                    f"Only {available} available to return "
                    f"(originally bought {sale_item.quantity}, already returned {already})."
                )

        now = utcnow()
        return_doc = Return(
            return_number=generate_return_number(now),
            original_sale_id=sale.id,
            return_date=now,
            status=RETURN_STATUS_COMPLETED,
            total_refund_cents=return_total,
            processed_by_employee_id=actor.id,
            approved_by_employee_id=approver.id if approver else None,
            manager_approval_required=needs_approval,
            notes=notes,
        )
        db.session.add(return_doc)

        products: dict[int, Product] = {}
        for item, sale_item, line_total in lines:
            quantity = item["return_quantity"]
            restock = settings.restock_returned_items and item["condition"] == CONDITION_GOOD

            return_doc.items.append(ReturnItem(
                original_sale_item_id=sale_item.id,
                product_id=sale_item.product_id,
                product_name=sale_item.product_name,
                return_quantity=quantity,
                unit_price_cents=sale_item.unit_price_cents,
                line_total_cents=line_total,
                condition=item["condition"],
                reason=item.get("reason") or "",
                restocked_to_inventory=restock,
            ))
            sale_item.returned_quantity = (sale_item.returned_quantity or 0) + quantity

            if restock:
                product = products.get(sale_item.product_id)
                if product is None:
                    product = lock_for_update(
                        db.session.query(Product).filter_by(id=sale_item.product_id)
                    ).first()
                    products[sale_item.product_id] = product
                if product is not None:
                    product.stock_quantity = product.stock_quantity + quantity

        db.session.commit()
        return return_doc

    return_doc = run_with_retry(_op)

    description = ", ".join(f"{ri.return_quantity}x {ri.product_name}" for ri in return_doc.items)
    approval_text = (
        f", Manager Approval: {return_doc.approved_by.name}" if return_doc.approved_by else ""
    )
    log_actor_activity(
        actor,
        f"Processed return {return_doc.return_number}: {description}",
        details=(
            f"Original Sale: {return_doc.original_sale.transaction_id}, "
            f"Total Refund: {return_doc.total_refund_cents / 100:.2f}, "
            f"Items: {len(return_doc.items)}{approval_text}"
        ),
        entity_type="Return", entity_id=return_doc.id, action_type="CREATE",
    )
    return return_doc


# =============================================================================
# QUERIES
# =============================================================================

def get_return(return_id: int) -> Return:
    return_doc = db.session.get(Return, return_id)
    if return_doc is None:
        raise NotFoundError("Return not found")
    return return_doc


def list_returns(
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = 500,
) -> list[Return]:
    query = db.session.query(Return)
    if start is not None:
        query = query.filter(Return.return_date >= start)
    if end is not None:
        query = query.filter(Return.return_date <= end)
    return query.order_by(Return.return_date.desc(), Return.id.desc()).limit(limit).all()


def get_sale_returns(sale_id: int) -> list[Return]:
    if db.session.get(Sale, sale_id) is None:
        raise NotFoundError("Sale not found")
    return (
        db.session.query(Return)
        .filter(Return.original_sale_id == sale_id)
        .order_by(Return.return_date.asc(), Return.id.asc())
        .all()
    )


def get_returnable_items(sale_id: int) -> dict:
    """Per-line sold / already returned / still returnable quantities for a sale."""
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError("Sale not found")

    lines = []
    for sale_item in sale.items:
        already = already_returned_quantity(sale_item.id)
        lines.append({
            "original_sale_item_id": sale_item.id,
            "product_id": sale_item.product_id,
            "product_name": sale_item.product_name,
            "unit_price_cents": sale_item.unit_price_cents,
            "quantity_sold": sale_item.quantity,
            "already_returned": already,
            "available_to_return": max(sale_item.quantity - already, 0),
        })

    return {
        "sale": sale.to_dict(include_items=False),
        "items": lines,
    }
