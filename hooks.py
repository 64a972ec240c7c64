"""
Read-only query adapters.

Each adapter wraps one repository read and exposes the same three fields:
``data`` (empty until the first fetch succeeds), ``loading`` and ``error``.
Changing the parameter triggers a new fetch; an empty parameter resolves to
an empty result without calling the repository. Nothing is cached between
adapters.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from auth import AuthGateway
from repositories import Repositories, is_empty_param
from schemas import Principal

logger = logging.getLogger(__name__)

_NO_PARAM = object()


class QueryState(BaseModel):
    data: List[Dict[str, Any]] = Field(default_factory=list)
    loading: bool = True
    error: Optional[str] = None


class AuthState(BaseModel):
    user: Optional[Principal] = None
    loading: bool = True


class Query:
    def __init__(self, fetch: Callable[..., List[dict]], param: Any = _NO_PARAM):
        self._fetch = fetch
        self._param = param
        self.state = QueryState()
        self.refresh()

    @property
    def data(self) -> List[Dict[str, Any]]:
        return self.state.data

    @property
    def loading(self) -> bool:
        return self.state.loading

    @property
    def error(self) -> Optional[str]:
        return self.state.error

    @property
    def param(self) -> Any:
        return None if self._param is _NO_PARAM else self._param

    def set_param(self, value: Any) -> None:
        if self._param is not _NO_PARAM and value == self._param:
            return
        self._param = value
        self.refresh()

    def refresh(self) -> QueryState:
        previous = self.state.data
        self.state = QueryState(data=previous, loading=True)

        if self._param is _NO_PARAM:
            args = ()
        elif is_empty_param(self._param):
            self.state = QueryState(data=[], loading=False)
            return self.state
        else:
            args = (self._param,)

        try:
            data = self._fetch(*args)
        except Exception as exc:
            logger.error("Query %s failed: %s", getattr(self._fetch, "__name__", self._fetch), exc)
            self.state = QueryState(data=previous, loading=False, error=str(exc) or exc.__class__.__name__)
            return self.state

        self.state = QueryState(data=data, loading=False)
        return self.state


def use_customers(repos: Repositories) -> Query:
    return Query(repos.customers.list)


def use_repairs(repos: Repositories) -> Query:
    return Query(repos.repairs.list)


def use_repairs_by_status(repos: Repositories, status: Optional[str]) -> Query:
    return Query(repos.repairs.by_status, status)


def use_repairs_by_customer_id(repos: Repositories, customer_id: Optional[str]) -> Query:
    return Query(repos.repairs.by_customer_id, customer_id)


def use_products(repos: Repositories) -> Query:
    return Query(repos.products.list)


def use_products_by_category(repos: Repositories, category: Optional[str]) -> Query:
    return Query(repos.products.by_category, category)


def use_technicians(repos: Repositories) -> Query:
    return Query(repos.technicians.list)


def use_available_technicians(repos: Repositories) -> Query:
    return Query(repos.technicians.available)


def use_auth(gateway: AuthGateway) -> AuthState:
    return AuthState(user=gateway.get_current_user(), loading=False)
