# Overview: Domain error taxonomy shared by services and routes.

"""
Errors raised by the order, payout and debt services.

Every error carries a stable ``code`` for programmatic handling, a human
``message`` and a ``data`` dict with context. Routes turn them into JSON with
``as_dict()`` and the class ``status_code``.

Usage:
    try:
        lifecycle_service.use_from_warehouse(order_id, actor=actor)
    except NotOnWarehouse:
        ...  # already used, safe to treat a retry as done
"""

from __future__ import annotations

from typing import Any

from flask import current_app, jsonify
from sqlalchemy.exc import OperationalError


class DomainError(Exception):
    """Base class for errors the caller can tell apart by ``code``."""

    status_code = 400
    default_code = "DOMAIN_ERROR"
    default_message = "Request could not be completed"

    def __init__(self, message: str | None = None, *, code: str | None = None, **data: Any):
        self.code = code or self.default_code
        self.message = message or self.default_message
        self.data = data
        super().__init__(self.message)

    def as_dict(self) -> dict[str, Any]:
        return {
            "error": self.message,
            "code": self.code,
            "data": self.data,
        }


class ValidationError(DomainError):
    """Malformed input; caller's fault."""
    default_code = "VALIDATION_ERROR"
    default_message = "Invalid input"


class BadRequest(DomainError):
    default_code = "BAD_REQUEST"
    default_message = "Bad request"


class InvalidAmount(DomainError):
    default_code = "INVALID_AMOUNT"
    default_message = "Amount must be a positive integer in minor units"


class Forbidden(DomainError):
    status_code = 403
    default_code = "FORBIDDEN"
    default_message = "Permission denied"


class NotFound(DomainError):
    status_code = 404
    default_code = "NOT_FOUND"
    default_message = "Not found"


class Conflict(DomainError):
    status_code = 409
    default_code = "CONFLICT"
    default_message = "Conflicts with existing data"


class InvalidTransition(DomainError):
    """The state machine rejects the requested move."""
    status_code = 409
    default_code = "INVALID_TRANSITION"

    def __init__(self, current: str, requested: str, *, entity: str = "order", **data: Any):
        super().__init__(
            f"Cannot move {entity} from '{current}' to '{requested}'",
            current=current,
            requested=requested,
            **data,
        )

    @property
    def current(self) -> str:
        return self.data["current"]

    @property
    def requested(self) -> str:
        return self.data["requested"]


class NotOnWarehouse(DomainError):
    status_code = 409
    default_code = "NOT_ON_WAREHOUSE"
    default_message = "Order is not on the warehouse"


class Overpayment(DomainError):
    status_code = 409
    default_code = "OVERPAYMENT"

    def __init__(self, *, person_name: str, remaining_cents: int, requested_cents: int):
        super().__init__(
            f"Payment of {requested_cents} exceeds remaining debt of {remaining_cents}",
            person_name=person_name,
            remaining_cents=remaining_cents,
            requested_cents=requested_cents,
        )

    @property
    def remaining_cents(self) -> int:
        return self.data["remaining_cents"]


class Unavailable(DomainError):
    """Storage backend unreachable; transient."""
    status_code = 503
    default_code = "UNAVAILABLE"
    default_message = "Service temporarily unavailable"


class InternalError(DomainError):
    status_code = 500
    default_code = "INTERNAL"
    default_message = "Internal server error"


def error_response(exc: Exception, action: str):
    """
    Map an exception escaping a route to a JSON response.

    Domain errors are returned as-is. Lock/connection failures become
    Unavailable. Anything else is logged in full and redacted.
    """
    if isinstance(exc, DomainError):
        return jsonify(exc.as_dict()), exc.status_code
    if isinstance(exc, OperationalError):
        current_app.logger.warning("Storage unavailable during %s: %s", action, exc)
        err = Unavailable()
        return jsonify(err.as_dict()), err.status_code
    current_app.logger.exception("Failed to %s", action)
    err = InternalError()
    return jsonify(err.as_dict()), err.status_code
