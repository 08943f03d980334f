"""
Validation rule tests.

Pure functions: no database, no app context.
"""

import pytest

from bms_pos.errors import ValidationError
from bms_pos.validation import (
    coerce_int,
    ensure_non_negative_stock,
    validate_count_item,
    validate_count_request,
    validate_employee,
    validate_pin,
    validate_product,
    validate_return_request,
    validate_role,
    validate_stock_adjustment,
)


# =============================================================================
# PINS AND ROLES
# =============================================================================


class TestPin:
    def test_six_digits_accepted(self):
        assert validate_pin("123456") == "123456"

    @pytest.mark.parametrize("pin", ["", None, "12345", "1234567", "12a456", "12 456", "١٢٣٤٥٦"])
    def test_invalid_pins_rejected(self, pin):
        with pytest.raises(ValidationError):
            validate_pin(pin)

    def test_non_string_rejected(self):
        with pytest.raises(ValidationError):
            validate_pin(123456)


class TestRole:
    @pytest.mark.parametrize("role", ["Manager", "Cashier", "Inventory"])
    def test_valid_roles(self, role):
        assert validate_role(role) == role

    @pytest.mark.parametrize("role", ["manager", "CASHIER", "Admin", "", None])
    def test_role_match_is_exact(self, role):
        with pytest.raises(ValidationError):
            validate_role(role)


class TestEmployee:
    def test_collects_every_failing_field(self):
        with pytest.raises(ValidationError) as exc:
            validate_employee({"employee_code": " ", "name": "", "pin": "12", "role": "boss"})
        errors = exc.value.errors
        assert "Employee ID is required" in errors
        assert "Name is required" in errors
        assert any("PIN" in e for e in errors)
        assert any("Invalid role" in e for e in errors)

    def test_cleans_valid_input(self):
        cleaned = validate_employee({
            "employee_code": " EMP009 ",
            "name": " Pat ",
            "pin": "654321",
            "role": "Cashier",
        })
        assert cleaned == {"employee_code": "EMP009", "name": "Pat", "pin": "654321", "role": "Cashier"}


# =============================================================================
# INTEGER COERCION
# =============================================================================


class TestCoerceInt:
    @pytest.mark.parametrize("value,expected", [(5, 5), ("7", 7), (" -3 ", -3), (4.0, 4)])
    def test_accepts_integers(self, value, expected):
        assert coerce_int(value, "qty") == expected

    @pytest.mark.parametrize("value", [True, False, 1.5, "1.5", "1e3", "abc", "", [], None])
    def test_rejects_non_integers(self, value):
        with pytest.raises(ValidationError):
            coerce_int(value, "qty")


# =============================================================================
# PRODUCTS AND ADJUSTMENTS
# =============================================================================


class TestProduct:
    def test_valid_product(self):
        cleaned = validate_product({
            "barcode": "123",
            "name": "Thing",
            "price_cents": 199,
            "cost_cents": 50,
            "stock_quantity": 10,
        })
        assert cleaned["price_cents"] == 199
        assert cleaned["stock_quantity"] == 10

    def test_rejects_bad_prices_and_stock(self):
        with pytest.raises(ValidationError) as exc:
            validate_product({
                "barcode": "",
                "name": "Thing",
                "price_cents": 0,
                "cost_cents": -1,
                "stock_quantity": -5,
            })
        errors = exc.value.errors
        assert "Barcode is required" in errors
        assert "price_cents must be greater than 0" in errors
        assert "cost_cents must be >= 0" in errors
        assert "stock_quantity must be >= 0" in errors

    def test_partial_update_ignores_stock(self):
        cleaned = validate_product({"name": "New", "stock_quantity": 999}, partial=True)
        assert cleaned == {"name": "New"}


class TestStockAdjustment:
    def test_valid(self):
        cleaned = validate_stock_adjustment({
            "product_id": 1,
            "adjustment_type": "DAMAGE",
            "quantity_change": -2,
            "reason": "Broken",
        })
        assert cleaned["quantity_change"] == -2

    def test_zero_change_blank_reason_bad_type(self):
        with pytest.raises(ValidationError) as exc:
            validate_stock_adjustment({
                "product_id": 1,
                "adjustment_type": "LOST",
                "quantity_change": 0,
                "reason": "  ",
            })
        errors = exc.value.errors
        assert "Quantity change cannot be zero" in errors
        assert "Reason is required" in errors
        assert any(e.startswith("Invalid adjustment type") for e in errors)

    def test_negative_result_rejected(self):
        assert ensure_non_negative_stock(5, -5) == 0
        with pytest.raises(ValidationError):
            ensure_non_negative_stock(5, -6)


# =============================================================================
# RETURNS AND COUNTS
# =============================================================================


class TestReturnRequest:
    def test_requires_items(self):
        with pytest.raises(ValidationError) as exc:
            validate_return_request({"original_sale_id": 1, "items": []})
        assert "At least one return item is required" in exc.value.errors

    def test_item_shape(self):
        with pytest.raises(ValidationError) as exc:
            validate_return_request({
                "original_sale_id": 1,
                "items": [{
                    "original_sale_item_id": "x",
                    "return_quantity": 1.5,
                    "line_total_cents": -1,
                    "condition": "broken",
                }],
            })
        assert len(exc.value.errors) == 4

    def test_defaults(self):
        cleaned = validate_return_request({
            "original_sale_id": "3",
            "items": [{"original_sale_item_id": 9, "return_quantity": 1}],
        })
        assert cleaned["original_sale_id"] == 3
        item = cleaned["items"][0]
        assert item["condition"] == "good"
        assert item["line_total_cents"] is None
        assert cleaned["manager_pin"] is None


class TestCountRules:
    def test_count_request(self):
        with pytest.raises(ValidationError) as exc:
            validate_count_request({"count_name": "", "count_type": "WEEKLY"})
        assert len(exc.value.errors) == 2

    def test_count_item_negative(self):
        with pytest.raises(ValidationError):
            validate_count_item({"product_id": 1, "counted_quantity": -1})

    def test_count_item_zero_is_valid(self):
        cleaned = validate_count_item({"product_id": 1, "counted_quantity": 0})
        assert cleaned["counted_quantity"] == 0
        assert cleaned["product_batch_id"] is None
