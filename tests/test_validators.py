import pytest

from validators import (
    VALIDATORS,
    is_non_empty_list,
    is_non_negative,
    is_present,
    is_valid_email,
    validate_customer,
    validate_product,
    validate_repair,
    validate_technician,
)


def valid_repair(**overrides):
    repair = {
        "customer_id": "c1",
        "device_type": "Mobile Phone",
        "brand": "Apple",
        "model": "iPhone 13",
        "status": "pending",
        "cost": 149.99,
        "tasks": ["Screen Replacement"],
    }
    repair.update(overrides)
    return repair


@pytest.mark.parametrize("value,expected", [
    ("x", True), ("  ", False), ("", False), (None, False), (0, True), ([], True),
])
def test_is_present(value, expected):
    assert is_present(value) is expected


@pytest.mark.parametrize("value,expected", [
    ("john.doe@example.com", True),
    ("a@b.co", True),
    ("no-at-sign.com", False),
    ("user@domain", False),
    ("user @domain.com", False),
    (None, False),
])
def test_is_valid_email(value, expected):
    assert is_valid_email(value) is expected


@pytest.mark.parametrize("value,expected", [
    (0, True), (5, True), (2.5, True), (-0.01, False), ("5", False), (True, False), (None, False),
])
def test_is_non_negative(value, expected):
    assert is_non_negative(value) is expected


def test_is_non_empty_list():
    assert is_non_empty_list(["a"])
    assert not is_non_empty_list([])
    assert not is_non_empty_list("abc")


def test_customer_requires_name_and_phone():
    result = validate_customer({"name": " ", "phone": ""})
    assert not result.valid
    assert result.errors == ["Name is required", "Phone is required"]


def test_customer_email_optional_but_checked_when_present():
    assert validate_customer({"name": "Jane", "phone": "555"}).valid
    assert validate_customer({"name": "Jane", "phone": "555", "email": ""}).valid
    result = validate_customer({"name": "Jane", "phone": "555", "email": "jane-at-example"})
    assert result.errors == ["Email format is invalid"]


def test_repair_valid():
    assert validate_repair(valid_repair()).valid


def test_repair_reports_every_violation():
    result = validate_repair({"status": "broken", "cost": -5, "tasks": []})
    assert not result.valid
    assert result.errors == [
        "Customer ID is required",
        "Device type is required",
        "Brand is required",
        "Model is required",
        "Status must be one of: pending, in-progress, completed",
        "Cost must be a non-negative number",
        "At least one task is required",
    ]


def test_repair_negative_cost_rejected_zero_accepted():
    assert not validate_repair(valid_repair(cost=-5)).valid
    assert validate_repair(valid_repair(cost=0, tasks=["Diagnostic"])).valid


def test_repair_missing_status():
    result = validate_repair(valid_repair(status=""))
    assert result.errors == ["Status is required"]


def test_product_rules():
    product = {"name": "Battery", "category": "Repair Parts", "supplier": "Acme", "quantity": 0, "price": 9.99}
    assert validate_product(product).valid
    result = validate_product({**product, "quantity": -1, "price": -2, "supplier": " "})
    assert result.errors == [
        "Supplier is required",
        "Quantity must be a non-negative number",
        "Price must be a non-negative number",
    ]


def test_technician_rules():
    tech = {"name": "Sarah Lee", "phone": "555-456-7890", "specialization": ["Laptops"], "availability": True}
    assert validate_technician(tech).valid
    result = validate_technician({**tech, "specialization": [], "availability": "yes", "email": "bad"})
    assert not result.valid
    assert any("specialization" in e for e in result.errors)
    assert "Availability must be a boolean value" in result.errors
    assert "Email format is invalid" in result.errors


def test_validators_keyed_by_collection():
    assert set(VALIDATORS) == {"customers", "repairs", "products", "technicians"}
    assert VALIDATORS["repairs"] is validate_repair
