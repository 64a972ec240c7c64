"""
Access-control policy

Rules are plain data: ``RULES[collection][action]`` is a predicate taking
``(principal, document, existing)``. ``document`` is what is being read or
written (for updates, the merged record) and ``existing`` is the stored
document before the write, when there is one.

Payload checks reuse validators.VALIDATORS, so the rules cannot drift from
the validation the repositories perform.
"""

import logging
from typing import Any, Callable, Dict, Optional

from errors import PermissionDeniedError
from schemas import Principal
from validators import VALIDATORS

logger = logging.getLogger(__name__)

ADMIN = "admin"
STAFF = "staff"
ROLES = (ADMIN, STAFF)

Document = Optional[Dict[str, Any]]
Rule = Callable[[Optional[Principal], Document, Document], bool]


def is_authenticated(principal: Optional[Principal], document: Document, existing: Document) -> bool:
    return principal is not None and principal.is_active


def has_role(*roles: str) -> Rule:
    def rule(principal, document, existing):
        return is_authenticated(principal, document, existing) and principal.role in roles
    return rule


def valid_payload(collection: str) -> Rule:
    validate = VALIDATORS[collection]

    def rule(principal, document, existing):
        return document is not None and validate(document).valid
    return rule


def is_owner(principal, document, existing):
    if not is_authenticated(principal, document, existing):
        return False
    target = existing if existing is not None else document
    return target is not None and target.get("id") == principal.id


def keeps_role(principal, document, existing):
    if existing is None or document is None:
        return False
    return document.get("role") == existing.get("role")


def all_of(*rules: Rule) -> Rule:
    def rule(principal, document, existing):
        return all(r(principal, document, existing) for r in rules)
    return rule


def any_of(*rules: Rule) -> Rule:
    def rule(principal, document, existing):
        return any(r(principal, document, existing) for r in rules)
    return rule


def _entity_rules(collection: str, *writers: str) -> Dict[str, Rule]:
    write = all_of(has_role(*writers), valid_payload(collection))
    return {
        "read": is_authenticated,
        "create": write,
        "update": write,
        "delete": has_role(ADMIN),
    }


_user_write = any_of(has_role(ADMIN), all_of(is_owner, keeps_role))

RULES: Dict[str, Dict[str, Rule]] = {
    "customers": _entity_rules("customers", STAFF, ADMIN),
    "repairs": _entity_rules("repairs", STAFF, ADMIN),
    "products": _entity_rules("products", STAFF, ADMIN),
    "technicians": _entity_rules("technicians", ADMIN),
    "users": {
        "read": is_authenticated,
        "create": _user_write,
        "update": _user_write,
        "delete": has_role(ADMIN),
    },
}


def is_allowed(collection: str, action: str, principal: Optional[Principal],
               document: Document = None, existing: Document = None) -> bool:
    rule = RULES.get(collection, {}).get(action)
    if rule is None:
        return False
    return rule(principal, document, existing)


def authorize(collection: str, action: str, principal: Optional[Principal],
              document: Document = None, existing: Document = None) -> None:
    if not is_allowed(collection, action, principal, document, existing):
        logger.warning(
            "Denied %s on %s for %s",
            action, collection, principal.email if principal else "anonymous",
        )
        raise PermissionDeniedError("Missing or insufficient permissions")


def guard_for(principal: Optional[Principal]):
    """Build the guard callable repositories use to check each operation."""
    def guard(collection, action, document, existing=None):
        authorize(collection, action, principal, document, existing)
    return guard
