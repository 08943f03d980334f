# backend/bms_pos/services/products_service.py
"""
Products Service

Product master data plus the two ways stock enters the store outside the
sale/return flow: batch receipt (here) and stock adjustments
(adjustment_service).

STOCK: update_product never writes stock_quantity. Stock only moves through
documented operations so every change has a trail (sale, return, batch,
adjustment, count).

DELETE: a product referenced by any history row (sales, returns,
adjustments, counts, batches) cannot be hard-deleted; deactivate it instead.
"""
from __future__ import annotations

from datetime import timedelta

from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import (
    InventoryCountItem,
    Product,
    ProductBatch,
    ReturnItem,
    SaleItem,
    StockAdjustment,
)
from ..validation import coerce_int, validate_batch_receipt, validate_product
from .activity_service import log_actor_activity
from .concurrency import lock_for_update, run_with_retry
from bms_pos.time_utils import parse_iso_datetime, utcnow

PRODUCT_MUTABLE_FIELDS = {
    "barcode", "name", "description", "category", "unit",
    "price_cents", "cost_cents", "min_stock_level", "is_active",
}

EXPIRING_DEFAULT_DAYS = 30
EXPIRING_MAX_DAYS = 3650


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _ensure_barcode_free(barcode: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Product.id).filter(Product.barcode == barcode)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(f"Barcode {barcode} already exists", retryable=False)


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return product


def get_product_by_barcode(barcode: str) -> Product:
    product = db.session.query(Product).filter_by(barcode=barcode).first()
    if product is None:
        raise NotFoundError("Product not found")
    return product


def list_products(
    active_only: bool = True,
    low_stock_only: bool = False,
    search: str | None = None,
    category: str | None = None,
) -> list[Product]:
    query = db.session.query(Product)
    if active_only:
        query = query.filter(Product.is_active.is_(True))
    if low_stock_only:
        query = query.filter(Product.stock_quantity <= Product.min_stock_level)
    if category:
        query = query.filter(Product.category == category)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(Product.name.ilike(pattern), Product.barcode.ilike(pattern)))
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def create_product(payload: dict, actor) -> Product:
    data = validate_product(payload)
    _ensure_barcode_free(data["barcode"])

    product = Product(
        barcode=data["barcode"],
        name=data["name"],
        description=data.get("description"),
        category=data.get("category"),
        unit=data.get("unit") or "pcs",
        price_cents=data["price_cents"],
        cost_cents=data.get("cost_cents", 0),
        stock_quantity=data.get("stock_quantity", 0),
        min_stock_level=data.get("min_stock_level", 5),
        is_active=data.get("is_active", True),
    )
    db.session.add(product)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Barcode {data['barcode']} already exists", retryable=False)

    log_actor_activity(
        actor, f"Created product {product.name} ({product.barcode})",
        entity_type="Product", entity_id=product.id, action_type="CREATE",
    )
    return product


def update_product(product_id: int, payload: dict, actor) -> Product:
    """Partial update. stock_quantity is not writable here; see receive_batch and adjustments."""
    data = validate_product(payload, partial=True)

    def _op():
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if product is None:
            raise NotFoundError("Product not found")
        if "barcode" in data and data["barcode"] != product.barcode:
            _ensure_barcode_free(data["barcode"], exclude_id=product.id)
        apply_product_patch(product, data)
        db.session.commit()
        return product

    product = run_with_retry(_op)

    log_actor_activity(
        actor,
        f"Updated product {product.name}: {', '.join(sorted(data)) or 'no changes'}",
        entity_type="Product", entity_id=product.id, action_type="UPDATE",
    )
    return product


def receive_batch(product_id: int, payload: dict, actor) -> ProductBatch:
    """
    Receive stock for a product: records a ProductBatch and increments
    stock_quantity in the same unit of work.
    """
    data = validate_batch_receipt(payload)
    try:
        expiry_date = parse_iso_datetime(payload.get("expiry_date") or None)
    except (TypeError, ValueError, AttributeError):
        raise ValidationError("expiry_date must be an ISO-8601 date")

    def _op():
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if product is None:
            raise NotFoundError("Product not found")

        cost = data.get("cost_per_unit_cents")
        batch = ProductBatch(
            product_id=product.id,
            batch_number=data["batch_number"],
            quantity_received=data["quantity"],
            cost_per_unit_cents=product.cost_cents if cost is None else cost,
            expiry_date=expiry_date,
            notes=data["notes"],
            received_by_employee_id=actor.id,
            received_at=utcnow(),
        )
        db.session.add(batch)
        product.stock_quantity = product.stock_quantity + data["quantity"]
        db.session.commit()
        return batch

    batch = run_with_retry(_op)

    log_actor_activity(
        actor,
        f"Received {batch.quantity_received}x {batch.product.name}"
        + (f" (batch {batch.batch_number})" if batch.batch_number else ""),
        entity_type="Product", entity_id=batch.product_id, action_type="RECEIVE",
    )
    return batch


def list_product_batches(product_id: int) -> list[ProductBatch]:
    """Batches received for one product, soonest expiry first (undated last)."""
    get_product(product_id)
    return (
        db.session.query(ProductBatch)
        .filter(ProductBatch.product_id == product_id)
        .order_by(
            ProductBatch.expiry_date.is_(None),
            ProductBatch.expiry_date.asc(),
            ProductBatch.received_at.asc(),
            ProductBatch.id.asc(),
        )
        .all()
    )


def list_expiring_batches(days=EXPIRING_DEFAULT_DAYS) -> list[ProductBatch]:
    """
    Batches of active products expiring within `days` from now.

    Already-expired batches are included; they still need pulling from the
    shelf.
    """
    days = coerce_int(days, "days")
    if days < 0 or days > EXPIRING_MAX_DAYS:
        raise ValidationError(f"days must be between 0 and {EXPIRING_MAX_DAYS}")

    cutoff = utcnow() + timedelta(days=days)
    return (
        db.session.query(ProductBatch)
        .join(Product, Product.id == ProductBatch.product_id)
        .filter(
            ProductBatch.expiry_date.isnot(None),
            ProductBatch.expiry_date <= cutoff,
            Product.is_active.is_(True),
        )
        .order_by(ProductBatch.expiry_date.asc(), ProductBatch.id.asc())
        .all()
    )


def _history_references(product_id: int) -> list[str]:
    checks = (
        (SaleItem, "sales"),
        (ReturnItem, "returns"),
        (StockAdjustment, "stock adjustments"),
        (InventoryCountItem, "inventory counts"),
        (ProductBatch, "received batches"),
    )
    found = []
    for model, label in checks:
        if db.session.query(model.id).filter(model.product_id == product_id).first() is not None:
            found.append(label)
    return found


def delete_product(product_id: int, actor) -> None:
    """
    Hard-delete a product that has no history.

    Raises:
        NotFoundError: unknown product
        ConflictError: product appears in sales/returns/adjustments/counts/batches
    """
    product = get_product(product_id)
    references = _history_references(product.id)
    if references:
        raise ConflictError(
            f"Product {product.name} is referenced by {', '.join(references)}; "
            "deactivate it instead of deleting",
            retryable=False,
        )

    name = product.name
    db.session.delete(product)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Product {name} is referenced by other records", retryable=False)

    log_actor_activity(
        actor, f"Deleted product {name}",
        entity_type="Product", entity_id=product_id, action_type="DELETE",
    )
