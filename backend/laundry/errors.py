# Overview: Domain error taxonomy shared by services and routes.

from __future__ import annotations

from flask import jsonify


class LaundryError(Exception):
    """Base class for errors surfaced to API callers."""
    status_code = 400
    code = "error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(LaundryError):
    """400-level input problem. Never retried automatically."""
    status_code = 400
    code = "validation_error"


class NotFoundError(LaundryError):
    """Referenced customer/order/branch does not resolve."""
    status_code = 404
    code = "not_found"


class InvariantViolation(LaundryError):
    """
    Request would break a ledger invariant (status skip, over-redemption).
    Always raised before any write.
    """
    status_code = 409
    code = "invariant_violation"


class ConflictError(LaundryError):
    """409-level concurrent modification or uniqueness conflict."""
    status_code = 409
    code = "conflict"


def error_response(exc: LaundryError):
    """(body, status) tuple for a domain error, returned directly from routes."""
    return jsonify(exc.to_dict()), exc.status_code
