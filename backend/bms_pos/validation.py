from __future__ import annotations

from typing import Any

from .errors import ValidationError


# Maximum price: $9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

PIN_LENGTH = 6

ROLE_MANAGER = "Manager"
ROLE_CASHIER = "Cashier"
ROLE_INVENTORY = "Inventory"
VALID_ROLES = (ROLE_MANAGER, ROLE_CASHIER, ROLE_INVENTORY)

ADJUSTMENT_TYPES = ("DAMAGE", "THEFT", "EXPIRED", "FOUND", "CORRECTION", "RETURN")
COUNT_TYPES = ("FULL", "CYCLE", "SPOT", "ANNUAL")
RETURN_CONDITIONS = ("good", "defective")


class _Collector:
    """Accumulates rule violations so one response can list them all."""

    def __init__(self):
        self.errors: list[str] = []

    def add(self, message: str) -> None:
        self.errors.append(message)

    def raise_if_any(self, summary: str = "Validation failed") -> None:
        if self.errors:
            message = self.errors[0] if len(self.errors) == 1 else summary
            raise ValidationError(message, self.errors)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion for JSON input.

    Rejects booleans, floats with a fractional part, scientific notation
    and non-numeric strings.
    """
    if value is None:
        raise ValidationError(f"{field} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValidationError(f"{field} must be an integer, not a decimal")
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    raise ValidationError(f"{field} must be an integer")


def optional_int(value: Any, field: str) -> int | None:
    if value is None or value == "":
        return None
    return coerce_int(value, field)


def clean_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _check_int(collector: _Collector, value: Any, field: str) -> int | None:
    try:
        return coerce_int(value, field)
    except ValidationError as e:
        collector.add(e.message)
        return None


# =============================================================================
# EMPLOYEES
# =============================================================================

def pin_errors(pin: Any) -> list[str]:
    if pin is None or pin == "":
        return ["PIN is required"]
    if not isinstance(pin, str):
        return ["PIN must be a string of digits"]
    problems = []
    if len(pin) != PIN_LENGTH:
        problems.append(f"PIN must be exactly {PIN_LENGTH} digits")
    # str.isdigit() accepts non-ASCII digits; PINs are typed on a keypad
    if not all("0" <= ch <= "9" for ch in pin):
        problems.append("PIN must contain only digits")
    return problems


def validate_pin(pin: Any) -> str:
    problems = pin_errors(pin)
    if problems:
        raise ValidationError(problems[0], problems)
    return pin


def validate_role(role: Any) -> str:
    # Exact, case-sensitive match
    if role not in VALID_ROLES:
        raise ValidationError(f"Invalid role. Valid roles: {', '.join(VALID_ROLES)}")
    return role


def validate_employee(payload: dict, *, partial: bool = False) -> dict:
    """Validate employee create/update input. Returns a cleaned dict."""
    c = _Collector()
    cleaned: dict = {}

    if not partial or "employee_code" in payload:
        code = payload.get("employee_code")
        if _is_blank(code):
            c.add("Employee ID is required")
        elif len(str(code).strip()) > 10:
            c.add("Employee ID cannot exceed 10 characters")
        else:
            cleaned["employee_code"] = str(code).strip()

    if not partial or "name" in payload:
        name = payload.get("name")
        if _is_blank(name):
            c.add("Name is required")
        else:
            cleaned["name"] = str(name).strip()

    if not partial or "pin" in payload:
        problems = pin_errors(payload.get("pin"))
        for problem in problems:
            c.add(problem)
        if not problems:
            cleaned["pin"] = payload["pin"]

    if not partial or "role" in payload:
        role = payload.get("role")
        if role not in VALID_ROLES:
            c.add(f"Invalid role. Valid roles: {', '.join(VALID_ROLES)}")
        else:
            cleaned["role"] = role

    c.raise_if_any("Invalid employee")
    return cleaned


# =============================================================================
# PRODUCTS
# =============================================================================

def validate_product(payload: dict, *, partial: bool = False) -> dict:
    """
    Product rules: barcode and name present, price > 0, cost >= 0,
    stock >= 0. Barcode uniqueness is a storage check (products_service).
    """
    c = _Collector()
    cleaned: dict = {}

    for field, label, limit in (("barcode", "Barcode", 50), ("name", "Name", 200)):
        if not partial or field in payload:
            value = payload.get(field)
            if _is_blank(value):
                c.add(f"{label} is required")
            elif len(str(value).strip()) > limit:
                c.add(f"{label} cannot exceed {limit} characters")
            else:
                cleaned[field] = str(value).strip()

    if not partial or "price_cents" in payload:
        price = _check_int(c, payload.get("price_cents"), "price_cents")
        if price is not None:
            if price <= 0:
                c.add("price_cents must be greater than 0")
            elif price > MAX_PRICE_CENTS:
                c.add(f"price_cents cannot exceed {MAX_PRICE_CENTS} (${MAX_PRICE_CENTS / 100:,.2f})")
            else:
                cleaned["price_cents"] = price

    if not partial or "cost_cents" in payload:
        cost = _check_int(c, payload.get("cost_cents", 0), "cost_cents")
        if cost is not None:
            if cost < 0:
                c.add("cost_cents must be >= 0")
            else:
                cleaned["cost_cents"] = cost

    if not partial and "stock_quantity" in payload:
        stock = _check_int(c, payload.get("stock_quantity"), "stock_quantity")
        if stock is not None:
            if stock < 0:
                c.add("stock_quantity must be >= 0")
            else:
                cleaned["stock_quantity"] = stock

    if "min_stock_level" in payload:
        min_level = _check_int(c, payload.get("min_stock_level"), "min_stock_level")
        if min_level is not None:
            if min_level < 0:
                c.add("min_stock_level must be >= 0")
            else:
                cleaned["min_stock_level"] = min_level

    for field in ("description", "category", "unit"):
        if field in payload:
            cleaned[field] = clean_text(payload.get(field))

    if "is_active" in payload:
        if not isinstance(payload["is_active"], bool):
            c.add("is_active must be a boolean")
        else:
            cleaned["is_active"] = payload["is_active"]

    c.raise_if_any("Invalid product")
    return cleaned


def validate_batch_receipt(payload: dict) -> dict:
    c = _Collector()
    cleaned: dict = {}

    quantity = _check_int(c, payload.get("quantity"), "quantity")
    if quantity is not None:
        if quantity <= 0:
            c.add("quantity must be greater than 0")
        else:
            cleaned["quantity"] = quantity

    if payload.get("cost_per_unit_cents") is not None:
        cost = _check_int(c, payload.get("cost_per_unit_cents"), "cost_per_unit_cents")
        if cost is not None:
            if cost < 0:
                c.add("cost_per_unit_cents must be >= 0")
            else:
                cleaned["cost_per_unit_cents"] = cost

    cleaned["batch_number"] = clean_text(payload.get("batch_number"))
    cleaned["notes"] = clean_text(payload.get("notes"))

    c.raise_if_any("Invalid batch receipt")
    return cleaned


# =============================================================================
# STOCK ADJUSTMENTS
# =============================================================================

def validate_stock_adjustment(payload: dict) -> dict:
    """quantity_change != 0, reason present, type in ADJUSTMENT_TYPES."""
    c = _Collector()
    cleaned: dict = {}

    product_id = _check_int(c, payload.get("product_id"), "product_id")
    if product_id is not None:
        cleaned["product_id"] = product_id

    change = _check_int(c, payload.get("quantity_change"), "quantity_change")
    if change is not None:
        if change == 0:
            c.add("Quantity change cannot be zero")
        else:
            cleaned["quantity_change"] = change

    reason = payload.get("reason")
    if _is_blank(reason):
        c.add("Reason is required")
    else:
        cleaned["reason"] = str(reason).strip()

    adjustment_type = payload.get("adjustment_type")
    if adjustment_type not in ADJUSTMENT_TYPES:
        c.add(f"Invalid adjustment type. Valid types: {', '.join(ADJUSTMENT_TYPES)}")
    else:
        cleaned["adjustment_type"] = adjustment_type

    cleaned["notes"] = clean_text(payload.get("notes"))
    cleaned["reference_number"] = clean_text(payload.get("reference_number"))

    c.raise_if_any("Invalid stock adjustment")
    return cleaned


def ensure_non_negative_stock(current: int, change: int) -> int:
    new_quantity = current + change
    if new_quantity < 0:
        raise ValidationError(
            f"Adjustment would result in negative stock ({new_quantity}). Current stock: {current}"
        )
    return new_quantity


# =============================================================================
# RETURNS
# =============================================================================

def validate_return_request(payload: dict) -> dict:
    """
    Shape checks for a return request. Quantity-vs-history checks need the
    database and live in return_service.
    """
    c = _Collector()
    cleaned: dict = {"items": []}

    sale_id = _check_int(c, payload.get("original_sale_id"), "original_sale_id")
    if sale_id is not None:
        cleaned["original_sale_id"] = sale_id

    items = payload.get("items")
    if not isinstance(items, list) or not items:
        c.add("At least one return item is required")
        items = []

    for index, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            c.add(f"Item {index}: must be an object")
            continue

        sale_item_id = _check_int(c, item.get("original_sale_item_id"), f"items[{index}].original_sale_item_id")
        quantity = _check_int(c, item.get("return_quantity"), f"items[{index}].return_quantity")
        # Absent line total: the processor refunds the snapshot unit price x quantity
        line_total = None
        if item.get("line_total_cents") is not None:
            line_total = _check_int(c, item.get("line_total_cents"), f"items[{index}].line_total_cents")
        if line_total is not None and line_total < 0:
            c.add(f"items[{index}].line_total_cents must be >= 0")

        condition = item.get("condition", "good")
        if condition not in RETURN_CONDITIONS:
            c.add(f"items[{index}].condition must be one of: {', '.join(RETURN_CONDITIONS)}")

        cleaned["items"].append({
            "original_sale_item_id": sale_item_id,
            "return_quantity": quantity,
            "line_total_cents": line_total,
            "condition": condition,
            "reason": clean_text(item.get("reason")) or "",
        })

    pin = payload.get("manager_pin")
    cleaned["manager_pin"] = pin if isinstance(pin, str) and pin else None
    cleaned["notes"] = clean_text(payload.get("notes"))

    c.raise_if_any("Invalid return request")
    return cleaned


# =============================================================================
# INVENTORY COUNTS
# =============================================================================

def validate_count_request(payload: dict) -> dict:
    c = _Collector()
    cleaned: dict = {}

    name = payload.get("count_name")
    if _is_blank(name):
        c.add("Count name is required")
    else:
        cleaned["count_name"] = str(name).strip()

    count_type = payload.get("count_type")
    if count_type not in COUNT_TYPES:
        c.add(f"Invalid count type. Valid types: {', '.join(COUNT_TYPES)}")
    else:
        cleaned["count_type"] = count_type

    cleaned["notes"] = clean_text(payload.get("notes"))

    c.raise_if_any("Invalid inventory count")
    return cleaned


def validate_count_item(payload: dict) -> dict:
    c = _Collector()
    cleaned: dict = {}

    product_id = _check_int(c, payload.get("product_id"), "product_id")
    if product_id is not None:
        cleaned["product_id"] = product_id

    counted = _check_int(c, payload.get("counted_quantity"), "counted_quantity")
    if counted is not None:
        if counted < 0:
            c.add("counted_quantity cannot be negative")
        else:
            cleaned["counted_quantity"] = counted

    try:
        cleaned["product_batch_id"] = optional_int(payload.get("product_batch_id"), "product_batch_id")
    except ValidationError as e:
        c.add(e.message)

    cleaned["discrepancy_reason"] = clean_text(payload.get("discrepancy_reason"))
    cleaned["notes"] = clean_text(payload.get("notes"))

    c.raise_if_any("Invalid count item")
    return cleaned


# =============================================================================
# SALES
# =============================================================================

def validate_sale_request(payload: dict) -> dict:
    c = _Collector()
    cleaned: dict = {"items": []}

    items = payload.get("items")
    if not isinstance(items, list) or not items:
        c.add("At least one sale item is required")
        items = []

    for index, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            c.add(f"Item {index}: must be an object")
            continue
        product_id = _check_int(c, item.get("product_id"), f"items[{index}].product_id")
        quantity = _check_int(c, item.get("quantity"), f"items[{index}].quantity")
        if quantity is not None and quantity < 1:
            c.add(f"items[{index}].quantity must be at least 1")
        unit_price = None
        if item.get("unit_price_cents") is not None:
            unit_price = _check_int(c, item.get("unit_price_cents"), f"items[{index}].unit_price_cents")
            if unit_price is not None and unit_price < 0:
                c.add(f"items[{index}].unit_price_cents must be >= 0")
        cleaned["items"].append({
            "product_id": product_id,
            "quantity": quantity,
            "unit_price_cents": unit_price,
        })

    for field in ("discount_cents", "amount_paid_cents"):
        value = _check_int(c, payload.get(field, 0), field)
        if value is not None:
            if value < 0:
                c.add(f"{field} must be >= 0")
            cleaned[field] = value

    cleaned["payment_method"] = clean_text(payload.get("payment_method")) or "Cash"
    cleaned["discount_reason"] = clean_text(payload.get("discount_reason"))
    cleaned["notes"] = clean_text(payload.get("notes"))

    c.raise_if_any("Invalid sale")
    return cleaned
