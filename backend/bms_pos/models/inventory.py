from __future__ import annotations

from ..extensions import db
from bms_pos.time_utils import to_utc_z


class Product(db.Model):
    """
    Product master data with the live stock counter.

    STOCK: `stock_quantity` is a shared mutable counter hit by sales,
    returns, adjustments, batch receipts and count completions. It is guarded
    three ways:
    - services lock the row (SELECT ... FOR UPDATE) for read-validate-write
    - version_id_col turns a lost update into StaleDataError (SQLite ignores
      FOR UPDATE, so this is what protects it)
    - CHECK (stock_quantity >= 0) as the last line of defence

    Money is stored in cents.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
        db.CheckConstraint("price_cents > 0", name="ck_products_price_positive"),
        db.CheckConstraint("cost_cents >= 0", name="ck_products_cost_non_negative"),
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    barcode = db.Column(db.String(50), nullable=False, unique=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.String(500), nullable=True)
    category = db.Column(db.String(100), nullable=True)
    unit = db.Column(db.String(20), nullable=False, default="pcs")

    price_cents = db.Column(db.Integer, nullable=False)
    cost_cents = db.Column(db.Integer, nullable=False, default=0)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    min_stock_level = db.Column(db.Integer, nullable=False, default=5)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} barcode={self.barcode!r} stock={self.stock_quantity}>"

    @property
    def is_low_stock(self) -> bool:
        return self.stock_quantity <= self.min_stock_level

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "barcode": self.barcode,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "unit": self.unit,
            "price_cents": self.price_cents,
            "cost_cents": self.cost_cents,
            "stock_quantity": self.stock_quantity,
            "min_stock_level": self.min_stock_level,
            "is_low_stock": self.is_low_stock,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductBatch(db.Model):
    """
    A receipt of stock for a product (delivery, supplier lot).

    Receiving a batch increments Product.stock_quantity in the same unit of
    work; the batch row keeps what was received, at what cost, and when.
    """
    __tablename__ = "product_batches"
    __table_args__ = (
        db.CheckConstraint("quantity_received > 0", name="ck_product_batches_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    batch_number = db.Column(db.String(100), nullable=True)
    quantity_received = db.Column(db.Integer, nullable=False)
    cost_per_unit_cents = db.Column(db.Integer, nullable=False, default=0)
    expiry_date = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.String(500), nullable=True)

    received_by_employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False)
    received_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("batches", lazy=True))
    received_by = db.relationship("Employee")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "batch_number": self.batch_number,
            "quantity_received": self.quantity_received,
            "cost_per_unit_cents": self.cost_per_unit_cents,
            "expiry_date": to_utc_z(self.expiry_date),
            "notes": self.notes,
            "received_by_employee_id": self.received_by_employee_id,
            "received_at": to_utc_z(self.received_at),
        }


class StockAdjustment(db.Model):
    """
    Manual stock correction (damage, theft, expiry, found stock, ...).

    LIFECYCLE:
    1. Created. If approval is not required it is auto-approved and the
       stock change is applied in the same unit of work.
    2. Otherwise PENDING (requires_approval and not is_approved); stock is
       untouched until a manager approves, at which point it is applied once.

    INVARIANT: quantity_after == quantity_before + quantity_change.
    """
    __tablename__ = "stock_adjustments"
    __table_args__ = (
        db.CheckConstraint("quantity_change <> 0", name="ck_stock_adjustments_change_nonzero"),
        db.CheckConstraint(
            "quantity_after = quantity_before + quantity_change",
            name="ck_stock_adjustments_after_matches",
        ),
        db.CheckConstraint("quantity_after >= 0", name="ck_stock_adjustments_after_non_negative"),
        db.Index("ix_stock_adjustments_pending", "requires_approval", "is_approved"),
        db.Index("ix_stock_adjustments_product_date", "product_id", "adjustment_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # DAMAGE, THEFT, EXPIRED, FOUND, CORRECTION, RETURN
    adjustment_type = db.Column(db.String(50), nullable=False)

    quantity_change = db.Column(db.Integer, nullable=False)  # Signed
    quantity_before = db.Column(db.Integer, nullable=False)
    quantity_after = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(500), nullable=False)
    notes = db.Column(db.String(1000), nullable=True)
    reference_number = db.Column(db.String(200), nullable=True)  # External doc / count reference

    adjusted_by_employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False)
    # quantity_change * product cost at the time of adjustment
    cost_impact_cents = db.Column(db.Integer, nullable=False, default=0)
    adjustment_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    requires_approval = db.Column(db.Boolean, nullable=False, default=False)
    is_approved = db.Column(db.Boolean, nullable=False, default=False)
    approved_by_employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    product = db.relationship("Product", backref=db.backref("stock_adjustments", lazy=True))
    adjusted_by = db.relationship("Employee", foreign_keys=[adjusted_by_employee_id])
    approved_by = db.relationship("Employee", foreign_keys=[approved_by_employee_id])
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_pending(self) -> bool:
        return self.requires_approval and not self.is_approved

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "adjustment_type": self.adjustment_type,
            "quantity_change": self.quantity_change,
            "quantity_before": self.quantity_before,
            "quantity_after": self.quantity_after,
            "reason": self.reason,
            "notes": self.notes,
            "reference_number": self.reference_number,
            "adjusted_by_employee_id": self.adjusted_by_employee_id,
            "adjusted_by_name": self.adjusted_by.name if self.adjusted_by else None,
            "cost_impact_cents": self.cost_impact_cents,
            "adjustment_date": to_utc_z(self.adjustment_date),
            "requires_approval": self.requires_approval,
            "is_approved": self.is_approved,
            "is_pending": self.is_pending,
            "approved_by_employee_id": self.approved_by_employee_id,
            "approved_by_name": self.approved_by.name if self.approved_by else None,
            "approved_at": to_utc_z(self.approved_at) if self.approved_at else None,
            "version_id": self.version_id,
        }


class InventoryCount(db.Model):
    """
    Physical inventory count session.

    LIFECYCLE:
    1. IN_PROGRESS: items being counted; running totals maintained per item
    2. COMPLETED: closed, optionally applying variances to stock (terminal)
    3. CANCELLED: abandoned (terminal)

    Only one count may be IN_PROGRESS at a time, enforced by a partial
    unique index in addition to the service check.
    """
    __tablename__ = "inventory_counts"
    __table_args__ = (
        db.Index(
            "uq_inventory_counts_single_in_progress",
            "status",
            unique=True,
            sqlite_where=db.text("status = 'IN_PROGRESS'"),
            postgresql_where=db.text("status = 'IN_PROGRESS'"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    count_name = db.Column(db.String(100), nullable=False)  # "Monthly Count - December"
    # FULL, CYCLE, SPOT, ANNUAL
    count_type = db.Column(db.String(50), nullable=False)
    # IN_PROGRESS, COMPLETED, CANCELLED
    status = db.Column(db.String(20), nullable=False, default="IN_PROGRESS")
    notes = db.Column(db.String(500), nullable=True)

    started_by_employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False)
    started_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    completed_by_employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    adjustments_applied = db.Column(db.Boolean, nullable=False, default=False)

    # Running totals, maintained as items are added (money in cents)
    total_items_counted = db.Column(db.Integer, nullable=False, default=0)
    total_discrepancies = db.Column(db.Integer, nullable=False, default=0)
    total_shrinkage_cents = db.Column(db.Integer, nullable=False, default=0)
    total_overage_cents = db.Column(db.Integer, nullable=False, default=0)
    net_variance_cents = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    started_by = db.relationship("Employee", foreign_keys=[started_by_employee_id])
    completed_by = db.relationship("Employee", foreign_keys=[completed_by_employee_id])
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "count_name": self.count_name,
            "count_type": self.count_type,
            "status": self.status,
            "notes": self.notes,
            "started_by_employee_id": self.started_by_employee_id,
            "started_by_name": self.started_by.name if self.started_by else None,
            "started_at": to_utc_z(self.started_at),
            "completed_by_employee_id": self.completed_by_employee_id,
            "completed_by_name": self.completed_by.name if self.completed_by else None,
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "adjustments_applied": self.adjustments_applied,
            "total_items_counted": self.total_items_counted,
            "total_discrepancies": self.total_discrepancies,
            "total_shrinkage_cents": self.total_shrinkage_cents,
            "total_overage_cents": self.total_overage_cents,
            "net_variance_cents": self.net_variance_cents,
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class InventoryCountItem(db.Model):
    """
    One counted product (optionally one batch of it) on a count.

    variance = counted_quantity - system_quantity
    variance_value_cents = variance * cost_per_unit_cents
    """
    __tablename__ = "inventory_count_items"
    __table_args__ = (
        db.UniqueConstraint(
            "inventory_count_id", "product_id", "product_batch_id",
            name="uq_inventory_count_items_count_product_batch",
        ),
        db.CheckConstraint("counted_quantity >= 0", name="ck_inventory_count_items_counted_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    inventory_count_id = db.Column(db.Integer, db.ForeignKey("inventory_counts.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    product_batch_id = db.Column(db.Integer, db.ForeignKey("product_batches.id"), nullable=True)

    system_quantity = db.Column(db.Integer, nullable=False)  # What the system says we have
    counted_quantity = db.Column(db.Integer, nullable=False)  # What was physically counted
    variance = db.Column(db.Integer, nullable=False)
    cost_per_unit_cents = db.Column(db.Integer, nullable=False, default=0)
    variance_value_cents = db.Column(db.Integer, nullable=False, default=0)

    discrepancy_reason = db.Column(db.String(200), nullable=True)
    notes = db.Column(db.String(500), nullable=True)

    counted_by_employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False)
    counted_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    inventory_count = db.relationship(
        "InventoryCount",
        backref=db.backref("items", lazy=True, order_by="InventoryCountItem.id"),
    )
    product = db.relationship("Product")
    product_batch = db.relationship("ProductBatch")
    counted_by = db.relationship("Employee")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "inventory_count_id": self.inventory_count_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "product_batch_id": self.product_batch_id,
            "system_quantity": self.system_quantity,
            "counted_quantity": self.counted_quantity,
            "variance": self.variance,
            "cost_per_unit_cents": self.cost_per_unit_cents,
            "variance_value_cents": self.variance_value_cents,
            "discrepancy_reason": self.discrepancy_reason,
            "notes": self.notes,
            "counted_by_employee_id": self.counted_by_employee_id,
            "counted_at": to_utc_z(self.counted_at),
        }
