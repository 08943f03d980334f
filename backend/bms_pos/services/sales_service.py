# Overview: Service-layer operations for sales; encapsulates business logic and database work.

"""
Sales.

WHY: Sales are the history returns are processed against. A sale line
snapshots the product name, barcode and unit price at sale time so later
product edits never rewrite what the customer was charged.

ATOMICITY: Every product on the sale is locked and every line's stock is
checked before anything is written. One short line rejects the whole sale.

TOTALS (cents, computed server-side):
    subtotal = sum(line totals)
    taxable  = subtotal - discount
    tax      = round_half_up(taxable * tax_rate_bps / 10000)
    total    = taxable + tax
    change   = amount_paid - total   (amount_paid 0 means exact payment)
"""

from __future__ import annotations

import secrets
from collections import OrderedDict
from datetime import timedelta

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Employee, Product, Sale, SaleItem
from ..validation import validate_sale_request
from .activity_service import log_actor_activity
from .concurrency import lock_for_update, run_with_retry
from .settings_service import SettingsSnapshot
from bms_pos.time_utils import utcnow

SUMMARY_PERIODS = {"today": 0, "week": 7, "month": 30}


def generate_transaction_id(now=None) -> str:
    now = now or utcnow()
    return f"TXN-{now:%Y%m%d}-{secrets.token_hex(4).upper()}"


def compute_tax_cents(taxable_cents: int, tax_rate_bps: int) -> int:
    if taxable_cents <= 0 or tax_rate_bps <= 0:
        return 0
    return (taxable_cents * tax_rate_bps + 5_000) // 10_000


def create_sale(payload: dict, actor, settings: SettingsSnapshot) -> Sale:
    """
    Record a completed sale and decrement stock.

    Raises:
        ValidationError: bad input, unknown/inactive product, insufficient stock,
            discount above subtotal, underpayment
    """
    data = validate_sale_request(payload)

    # Same product on several lines: stock is checked against the sum
    requested: "OrderedDict[int, int]" = OrderedDict()
    for line in data["items"]:
        requested[line["product_id"]] = requested.get(line["product_id"], 0) + line["quantity"]

    def _op():
        employee = db.session.get(Employee, actor.id)
        if employee is None or not employee.is_active:
            raise ValidationError("Invalid employee ID")

        products = {}
        # Lock in id order so concurrent sales cannot deadlock each other
        for product_id in sorted(requested):
            product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
            if product is None or not product.is_active:
                raise ValidationError(f"Invalid product ID: {product_id}")
            products[product_id] = product

        for product_id, quantity in requested.items():
            product = products[product_id]
            if product.stock_quantity < quantity:
                raise ValidationError(
                    f"Insufficient stock for {product.name}. "
                    f"Available: {product.stock_quantity}, Requested: {quantity}"
                )

        now = utcnow()
        sale = Sale(
            transaction_id=generate_transaction_id(now),
            employee_id=employee.id,
            sale_date=now,
            tax_rate_bps=settings.tax_rate_bps,
            discount_cents=data["discount_cents"],
            discount_reason=data["discount_reason"],
            payment_method=data["payment_method"],
            status="Completed",
            notes=data["notes"],
        )
        db.session.add(sale)

        subtotal = 0
        for line in data["items"]:
            product = products[line["product_id"]]
            unit_price = product.price_cents if line["unit_price_cents"] is None else line["unit_price_cents"]
            line_total = unit_price * line["quantity"]
            subtotal += line_total
            sale.items.append(SaleItem(
                product_id=product.id,
                quantity=line["quantity"],
                unit_price_cents=unit_price,
                line_total_cents=line_total,
                product_name=product.name,
                product_barcode=product.barcode,
                returned_quantity=0,
            ))

        if sale.discount_cents > subtotal:
            raise ValidationError("Discount cannot exceed the sale subtotal")

        taxable = subtotal - sale.discount_cents
        sale.subtotal_cents = subtotal
        sale.tax_amount_cents = compute_tax_cents(taxable, settings.tax_rate_bps)
        sale.total_cents = taxable + sale.tax_amount_cents

        paid = data["amount_paid_cents"] or sale.total_cents
        if paid < sale.total_cents:
            raise ValidationError(
                f"Amount paid ({paid}) is less than the sale total ({sale.total_cents})"
            )
        sale.amount_paid_cents = paid
        sale.change_cents = paid - sale.total_cents

        for product_id, quantity in requested.items():
            products[product_id].stock_quantity = products[product_id].stock_quantity - quantity

        db.session.commit()
        return sale

    sale = run_with_retry(_op)

    summary = ", ".join(f"{item.quantity}x {item.product_name}" for item in sale.items)
    log_actor_activity(
        actor,
        f"Processed sale {sale.transaction_id}: {summary} - Total: {sale.total_cents / 100:.2f}",
        details=(
            f"Payment: {sale.payment_method}, Items: {len(sale.items)}, "
            f"Discount: {sale.discount_cents / 100:.2f}"
        ),
        entity_type="Sale", entity_id=sale.id, action_type="SALE",
    )
    return sale


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError("Sale not found")
    return sale


def get_sale_by_transaction_id(transaction_id: str) -> Sale:
    sale = db.session.query(Sale).filter_by(transaction_id=transaction_id).first()
    if sale is None:
        raise NotFoundError("Sale not found")
    return sale


def list_sales(days: int | None = 30, employee_id: int | None = None, limit: int = 500) -> list[Sale]:
    query = db.session.query(Sale)
    if days:
        query = query.filter(Sale.sale_date >= utcnow() - timedelta(days=days))
    if employee_id is not None:
        query = query.filter(Sale.employee_id == employee_id)
    return query.order_by(Sale.sale_date.desc(), Sale.id.desc()).limit(limit).all()


def get_sales_summary(period: str = "today") -> dict:
    """Totals for today / the last 7 days / the last 30 days."""
    if period not in SUMMARY_PERIODS:
        raise ValidationError(f"Invalid period. Valid periods: {', '.join(SUMMARY_PERIODS)}")

    now = utcnow()
    start = now.replace(hour=0, minute=0, second=0, microsecond=0) - timedelta(days=SUMMARY_PERIODS[period])
    row = (
        db.session.query(
            db.func.count(Sale.id),
            db.func.coalesce(db.func.sum(Sale.total_cents), 0),
            db.func.coalesce(db.func.sum(Sale.tax_amount_cents), 0),
            db.func.coalesce(db.func.sum(Sale.discount_cents), 0),
        )
        .filter(Sale.sale_date >= start, Sale.status == "Completed")
        .one()
    )
    return {
        "period": period,
        "start": start,
        "total_sales": int(row[0]),
        "total_revenue_cents": int(row[1]),
        "total_tax_cents": int(row[2]),
        "total_discounts_cents": int(row[3]),
    }
