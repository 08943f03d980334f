# Overview: Error taxonomy shared by services and routes.

"""
Service-layer errors and their HTTP mapping.

Services raise these; routes turn them into JSON with `to_dict()` and the
class status code. Anything that is not a PosError is an unexpected system
failure: routes log it server-side and answer with a generic 500.
"""
from __future__ import annotations


class PosError(Exception):
    """Base class for expected, user-facing failures."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message}


class ValidationError(PosError, ValueError):
    """400-level input problem. `errors` enumerates every failing field."""

    status_code = 400

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = list(errors) if errors else [message]

    def to_dict(self) -> dict:
        return {"error": self.message, "errors": self.errors}


class NotFoundError(PosError, LookupError):
    """404: referenced entity does not exist."""

    status_code = 404


class AuthenticationError(PosError):
    """401: no usable identity, or bad login credentials."""

    status_code = 401


class AuthorizationError(PosError):
    """
    403: identity known but not allowed.

    Messages must stay generic where several checks are combined
    (e.g. manager PIN verification).
    """

    status_code = 403


class ConflictError(PosError, ValueError):
    """409: concurrent modification or uniqueness conflict. Safe to retry."""

    status_code = 409

    def __init__(self, message: str, retryable: bool = True):
        super().__init__(message)
        self.retryable = retryable

    def to_dict(self) -> dict:
        return {"error": self.message, "retryable": self.retryable}
