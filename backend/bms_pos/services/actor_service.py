# Overview: Service-layer operations for resolving the authenticated actor of a request.

"""
Authenticated actor resolution.

The client identifies the operator with the legacy X-User-Id / X-User-Name
headers. Services never read headers: routes resolve an Actor once through
the resolver named by ACTOR_RESOLVER and pass it down. The id is looked up
against active employees; the display name header is informational only,
the stored employee name wins.

Deployments can register another resolver (e.g. a signed token) with
register_resolver() without touching any service.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from flask import current_app, request

from ..errors import AuthenticationError
from ..extensions import db
from ..models import Employee

USER_ID_HEADER = "X-User-Id"
USER_NAME_HEADER = "X-User-Name"


@dataclass(frozen=True)
class Actor:
    id: int
    name: str
    role: str

    @property
    def is_manager(self) -> bool:
        return self.role == "Manager"

    @classmethod
    def from_employee(cls, employee: Employee) -> "Actor":
        return cls(id=employee.id, name=employee.name, role=employee.role)


def resolve_from_headers() -> Actor:
    raw_id = (request.headers.get(USER_ID_HEADER) or "").strip()
    if not raw_id:
        raise AuthenticationError("Authentication required")
    try:
        user_id = int(raw_id)
    except ValueError:
        raise AuthenticationError("Invalid user identity")

    employee = db.session.get(Employee, user_id)
    if employee is None or not employee.is_active:
        raise AuthenticationError("Invalid user identity")
    return Actor.from_employee(employee)


_RESOLVERS: dict[str, Callable[[], Actor]] = {
    "headers": resolve_from_headers,
}


def register_resolver(name: str, resolver: Callable[[], Actor]) -> None:
    _RESOLVERS[name] = resolver


def resolve_actor() -> Actor:
    """Resolve the current request's actor. Raises AuthenticationError (401)."""
    name = current_app.config.get("ACTOR_RESOLVER", "headers")
    resolver = _RESOLVERS.get(name)
    if resolver is None:
        raise RuntimeError(f"Unknown ACTOR_RESOLVER: {name}")
    return resolver()
