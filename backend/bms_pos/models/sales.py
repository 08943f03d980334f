from __future__ import annotations

from ..extensions import db
from bms_pos.time_utils import to_utc_z


class Sale(db.Model):
    """
    Completed sale. Immutable historical record once written.

    transaction_id format: TXN-{yyyyMMdd}-{8 hex chars}
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_status_date", "status", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.String(32), nullable=False, unique=True)

    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False, index=True)
    sale_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    # All amounts in cents
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    tax_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_reason = db.Column(db.String(255), nullable=True)
    total_cents = db.Column(db.Integer, nullable=False, default=0)
    amount_paid_cents = db.Column(db.Integer, nullable=False, default=0)
    change_cents = db.Column(db.Integer, nullable=False, default=0)

    payment_method = db.Column(db.String(32), nullable=False, default="Cash")
    # Completed, Voided, Refunded
    status = db.Column(db.String(16), nullable=False, default="Completed")
    notes = db.Column(db.String(500), nullable=True)

    employee = db.relationship("Employee")

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "employee_id": self.employee_id,
            "employee_name": self.employee.name if self.employee else None,
            "sale_date": to_utc_z(self.sale_date),
            "subtotal_cents": self.subtotal_cents,
            "tax_rate_bps": self.tax_rate_bps,
            "tax_amount_cents": self.tax_amount_cents,
            "discount_cents": self.discount_cents,
            "discount_reason": self.discount_reason,
            "total_cents": self.total_cents,
            "amount_paid_cents": self.amount_paid_cents,
            "change_cents": self.change_cents,
            "payment_method": self.payment_method,
            "status": self.status,
            "notes": self.notes,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """
    One line of a sale.

    HISTORICAL ACCURACY: product_name, product_barcode and unit_price_cents
    are snapshots taken at sale time. Never re-derive them from the live
    Product row.

    RETURNS: returned_quantity is the running total of ReturnItem quantities
    against this line. It doubles as the concurrency token for returns:
    every return bumps it, so with version_id_col two racing returns cannot
    both commit against the same stale total.
    INVARIANT: returned_quantity <= quantity (CHECK constraint).
    """
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_sale_items_quantity_positive"),
        db.CheckConstraint("returned_quantity >= 0", name="ck_sale_items_returned_non_negative"),
        db.CheckConstraint("returned_quantity <= quantity", name="ck_sale_items_returned_within_sold"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    # Snapshots at time of sale
    product_name = db.Column(db.String(200), nullable=False)
    product_barcode = db.Column(db.String(50), nullable=True)

    returned_quantity = db.Column(db.Integer, nullable=False, default=0)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    sale = db.relationship(
        "Sale",
        backref=db.backref("items", lazy=True, order_by="SaleItem.id"),
    )
    product = db.relationship("Product")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_barcode": self.product_barcode,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
            "returned_quantity": self.returned_quantity,
        }


class Return(db.Model):
    """
    Customer return against an original sale.

    return_number format: RET-{yyyyMMdd}-{8 hex chars}

    Returns are processed in one step (validated, approved if needed, and
    written together), so status is always Completed once a row exists.
    """
    __tablename__ = "returns"
    __table_args__ = (
        db.Index("ix_returns_sale_date", "original_sale_id", "return_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    return_number = db.Column(db.String(32), nullable=False, unique=True)

    original_sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    return_date = db.Column(db.DateTime(timezone=True), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="Completed")

    total_refund_cents = db.Column(db.Integer, nullable=False, default=0)

    processed_by_employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False)
    approved_by_employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=True)
    manager_approval_required = db.Column(db.Boolean, nullable=False, default=False)

    notes = db.Column(db.String(500), nullable=True)

    original_sale = db.relationship("Sale", backref=db.backref("returns", lazy=True))
    processed_by = db.relationship("Employee", foreign_keys=[processed_by_employee_id])
    approved_by = db.relationship("Employee", foreign_keys=[approved_by_employee_id])

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "return_number": self.return_number,
            "original_sale_id": self.original_sale_id,
            "original_transaction_id": self.original_sale.transaction_id if self.original_sale else None,
            "return_date": to_utc_z(self.return_date),
            "status": self.status,
            "total_refund_cents": self.total_refund_cents,
            "processed_by_employee_id": self.processed_by_employee_id,
            "processed_by_name": self.processed_by.name if self.processed_by else None,
            "approved_by_employee_id": self.approved_by_employee_id,
            "approved_by_name": self.approved_by.name if self.approved_by else None,
            "manager_approval_required": self.manager_approval_required,
            "notes": self.notes,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class ReturnItem(db.Model):
    """
    One returned line. restocked_to_inventory records whether this line's
    quantity went back into sellable stock (good condition + restock policy).
    """
    __tablename__ = "return_items"
    __table_args__ = (
        db.CheckConstraint("return_quantity > 0", name="ck_return_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    return_id = db.Column(db.Integer, db.ForeignKey("returns.id"), nullable=False, index=True)
    original_sale_item_id = db.Column(db.Integer, db.ForeignKey("sale_items.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    product_name = db.Column(db.String(200), nullable=False)
    return_quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    # good, defective
    condition = db.Column(db.String(16), nullable=False, default="good")
    reason = db.Column(db.String(255), nullable=False, default="")
    restocked_to_inventory = db.Column(db.Boolean, nullable=False, default=False)

    return_doc = db.relationship(
        "Return",
        backref=db.backref("items", lazy=True, order_by="ReturnItem.id"),
    )
    original_sale_item = db.relationship("SaleItem", backref=db.backref("return_items", lazy=True))
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_id": self.return_id,
            "original_sale_item_id": self.original_sale_item_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "return_quantity": self.return_quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
            "condition": self.condition,
            "reason": self.reason,
            "restocked_to_inventory": self.restocked_to_inventory,
        }
