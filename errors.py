"""
Domain errors

Validation, not-found and permission problems are raised as exceptions so
the caller (usually a route handler) can turn them into a response.
Storage failures are NOT represented here: repositories log them and
return an empty result instead.
"""

from typing import Iterable


class RepairShopError(Exception):
    """Base class for every error raised by the data-access layer."""


class ValidationError(RepairShopError):
    def __init__(self, errors: Iterable[str]):
        self.errors = list(errors)
        super().__init__(f"Validation failed: {', '.join(self.errors)}")


class NotFoundError(RepairShopError):
    pass


class PermissionDeniedError(RepairShopError):
    pass


class AuthError(RepairShopError):
    pass
