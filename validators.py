"""
Validation rules for the repair-shop collections.

Every rule is evaluated independently so callers get the full list of
problems at once. The same validators back both the repositories and the
access-control policy.
"""

import re
from typing import Any, Callable, Dict, List

from pydantic import BaseModel, Field

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
REPAIR_STATUSES = ("pending", "in-progress", "completed")


class ValidationResult(BaseModel):
    valid: bool
    errors: List[str] = Field(default_factory=list)


def is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return len(value.strip()) > 0
    return True


def is_valid_email(value: Any) -> bool:
    return isinstance(value, str) and EMAIL_PATTERN.match(value) is not None


def is_non_negative(value: Any) -> bool:
    # bool is an int subclass; True must not pass as a price
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return value >= 0


def is_non_empty_list(value: Any) -> bool:
    return isinstance(value, (list, tuple)) and len(value) > 0


def _result(errors: List[str]) -> ValidationResult:
    return ValidationResult(valid=not errors, errors=errors)


def validate_customer(customer: Dict[str, Any]) -> ValidationResult:
    errors = []
    if not is_present(customer.get("name")):
        errors.append("Name is required")
    if not is_present(customer.get("phone")):
        errors.append("Phone is required")
    email = customer.get("email")
    if email and not is_valid_email(email):
        errors.append("Email format is invalid")
    return _result(errors)


def validate_repair(repair: Dict[str, Any]) -> ValidationResult:
    errors = []
    if not is_present(repair.get("customer_id")):
        errors.append("Customer ID is required")
    if not is_present(repair.get("device_type")):
        errors.append("Device type is required")
    if not is_present(repair.get("brand")):
        errors.append("Brand is required")
    if not is_present(repair.get("model")):
        errors.append("Model is required")

    status = repair.get("status")
    if not is_present(status):
        errors.append("Status is required")
    elif status not in REPAIR_STATUSES:
        errors.append(f"Status must be one of: {', '.join(REPAIR_STATUSES)}")

    if not is_non_negative(repair.get("cost")):
        errors.append("Cost must be a non-negative number")
    if not is_non_empty_list(repair.get("tasks")):
        errors.append("At least one task is required")
    return _result(errors)


def validate_product(product: Dict[str, Any]) -> ValidationResult:
    errors = []
    if not is_present(product.get("name")):
        errors.append("Name is required")
    if not is_present(product.get("category")):
        errors.append("Category is required")
    if not is_present(product.get("supplier")):
        errors.append("Supplier is required")
    if not is_non_negative(product.get("quantity")):
        errors.append("Quantity must be a non-negative number")
    if not is_non_negative(product.get("price")):
        errors.append("Price must be a non-negative number")
    return _result(errors)


def validate_technician(technician: Dict[str, Any]) -> ValidationResult:
    errors = []
    if not is_present(technician.get("name")):
        errors.append("Name is required")
    if not is_present(technician.get("phone")):
        errors.append("Phone is required")
    if not is_non_empty_list(technician.get("specialization")):
        errors.append("At least one specialization is required")
    email = technician.get("email")
    if email and not is_valid_email(email):
        errors.append("Email format is invalid")
    if not isinstance(technician.get("availability"), bool):
        errors.append("Availability must be a boolean value")
    return _result(errors)


# Collection name -> validator
VALIDATORS: Dict[str, Callable[[Dict[str, Any]], ValidationResult]] = {
    "customers": validate_customer,
    "repairs": validate_repair,
    "products": validate_product,
    "technicians": validate_technician,
}
