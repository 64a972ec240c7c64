"""
Repositories for the repair-shop collections.

One repository per collection. Writes are validated before anything reaches
MongoDB and every read or write is offered to the optional access guard
first. Storage failures are logged and reported as ``None`` (add), ``False``
(update/delete) or ``[]`` (reads); validation, not-found and permission
problems are raised.
"""

import logging
import random
import string
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import BaseModel
from pymongo.database import Database
from pymongo.errors import PyMongoError

from database import (
    create_document,
    delete_document,
    document_exists,
    get_document,
    get_documents,
    to_public,
    update_document,
)
from errors import NotFoundError, ValidationError
from validators import (
    ValidationResult,
    validate_customer,
    validate_product,
    validate_repair,
    validate_technician,
)

logger = logging.getLogger(__name__)

# guard(collection, action, document, existing) raises to refuse the operation
Guard = Callable[[str, str, Dict[str, Any], Optional[Dict[str, Any]]], None]

MONTH_ABBREVIATIONS = ("jan", "feb", "mar", "apr", "may", "jun",
                       "jul", "aug", "sep", "oct", "nov", "dec")
BASE36_ALPHABET = string.digits + string.ascii_uppercase
SECONDARY_ID_ATTEMPTS = 5
SERVER_FIELDS = ("id", "_id", "created_at", "updated_at")


def generate_repair_id(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return f"{MONTH_ABBREVIATIONS[now.month - 1]}{random.randint(1000, 9999)}"


def generate_product_id() -> str:
    return "PROD-" + "".join(random.choices(BASE36_ALPHABET, k=8))


def generate_technician_id() -> str:
    return "TECH-" + "".join(random.choices(BASE36_ALPHABET, k=6))


def is_empty_param(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class Repository:
    collection_name: str = ""
    label: str = "document"
    secondary_id_field: Optional[str] = None

    def __init__(self, db: Database, guard: Optional[Guard] = None):
        self.db = db
        self.guard = guard

    def validate(self, record: Dict[str, Any]) -> ValidationResult:
        raise NotImplementedError

    def generate_secondary_id(self) -> str:
        raise NotImplementedError

    def _clean(self, payload: Union[BaseModel, Dict[str, Any]], exclude_none: bool) -> Dict[str, Any]:
        if isinstance(payload, BaseModel):
            data = payload.model_dump(exclude_none=exclude_none, exclude_unset=not exclude_none)
        else:
            data = dict(payload)
        for field in SERVER_FIELDS:
            data.pop(field, None)
        if self.secondary_id_field:
            data.pop(self.secondary_id_field, None)
        return data

    def _check(self, action: str, document: Dict[str, Any], existing: Optional[Dict[str, Any]] = None) -> None:
        if self.guard is not None:
            self.guard(self.collection_name, action, document, existing)

    def _require_valid(self, record: Dict[str, Any]) -> None:
        result = self.validate(record)
        if not result.valid:
            logger.warning("%s validation failed: %s", self.label.capitalize(), result.errors)
            raise ValidationError(result.errors)

    def _mint_secondary_id(self) -> str:
        # Best effort: the check and the insert are not atomic.
        candidate = ""
        for _ in range(SECONDARY_ID_ATTEMPTS):
            candidate = self.generate_secondary_id()
            if not document_exists(self.db, self.collection_name, {self.secondary_id_field: candidate}):
                return candidate
            logger.warning("%s %s already taken, generating another", self.secondary_id_field, candidate)
        return candidate

    def _fetch(self, filter_dict: Dict[str, Any]) -> List[dict]:
        try:
            docs = get_documents(self.db, self.collection_name, filter_dict)
        except PyMongoError:
            logger.exception("Error getting %s", self.collection_name)
            return []
        return [to_public(d) for d in docs]

    def add(self, payload: Union[BaseModel, Dict[str, Any]]) -> Optional[str]:
        record = self._clean(payload, exclude_none=True)
        self._require_valid(record)
        try:
            if self.secondary_id_field:
                record[self.secondary_id_field] = self._mint_secondary_id()
            self._check("create", record)
            return create_document(self.db, self.collection_name, record)
        except PyMongoError:
            logger.exception("Error adding %s", self.label)
            return None

    def get(self, doc_id: str) -> Optional[dict]:
        self._check("read", {"id": doc_id})
        try:
            doc = get_document(self.db, self.collection_name, doc_id)
        except PyMongoError:
            logger.exception("Error getting %s %s", self.label, doc_id)
            return None
        return to_public(doc) if doc else None

    def update(self, doc_id: str, changes: Union[BaseModel, Dict[str, Any]]) -> bool:
        changes = self._clean(changes, exclude_none=False)
        try:
            existing = get_document(self.db, self.collection_name, doc_id)
        except PyMongoError:
            logger.exception("Error updating %s %s", self.label, doc_id)
            return False
        if existing is None:
            raise NotFoundError(f"{self.label.capitalize()} not found")

        merged = {k: v for k, v in existing.items() if k != "_id"}
        merged.update(changes)
        self._require_valid(merged)
        self._check("update", merged, to_public(existing))
        try:
            return update_document(self.db, self.collection_name, doc_id, changes)
        except PyMongoError:
            logger.exception("Error updating %s %s", self.label, doc_id)
            return False

    def delete(self, doc_id: str) -> bool:
        try:
            existing = get_document(self.db, self.collection_name, doc_id)
        except PyMongoError:
            logger.exception("Error deleting %s %s", self.label, doc_id)
            return False
        if existing is None:
            raise NotFoundError(f"{self.label.capitalize()} not found")

        self._check("delete", to_public(existing), to_public(existing))
        try:
            return delete_document(self.db, self.collection_name, doc_id)
        except PyMongoError:
            logger.exception("Error deleting %s %s", self.label, doc_id)
            return False

    def list(self) -> List[dict]:
        self._check("read", {})
        return self._fetch({})

    def find_by(self, field: str, value: Any) -> List[dict]:
        """Equality query on one field; an empty value short-circuits to []."""
        if is_empty_param(value):
            return []
        self._check("read", {field: value})
        return self._fetch({field: value})


class CustomerRepository(Repository):
    collection_name = "customers"
    label = "customer"

    def validate(self, record):
        return validate_customer(record)


class RepairRepository(Repository):
    collection_name = "repairs"
    label = "repair"
    secondary_id_field = "repair_id"

    def validate(self, record):
        return validate_repair(record)

    def generate_secondary_id(self):
        return generate_repair_id()

    def by_status(self, status: str) -> List[dict]:
        return self.find_by("status", status)

    def by_customer_id(self, customer_id: str) -> List[dict]:
        return self.find_by("customer_id", customer_id)


class ProductRepository(Repository):
    collection_name = "products"
    label = "product"
    secondary_id_field = "product_id"

    def validate(self, record):
        return validate_product(record)

    def generate_secondary_id(self):
        return generate_product_id()

    def by_category(self, category: str) -> List[dict]:
        return self.find_by("category", category)


class TechnicianRepository(Repository):
    collection_name = "technicians"
    label = "technician"
    secondary_id_field = "tech_id"

    def validate(self, record):
        return validate_technician(record)

    def generate_secondary_id(self):
        return generate_technician_id()

    def by_availability(self, availability: bool) -> List[dict]:
        return self.find_by("availability", availability)

    def available(self) -> List[dict]:
        return self.by_availability(True)


class Repositories:
    """All four repositories sharing one database handle and guard."""

    def __init__(self, db: Database, guard: Optional[Guard] = None):
        self.customers = CustomerRepository(db, guard)
        self.repairs = RepairRepository(db, guard)
        self.products = ProductRepository(db, guard)
        self.technicians = TechnicianRepository(db, guard)
