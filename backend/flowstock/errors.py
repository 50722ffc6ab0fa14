# Overview: Domain error taxonomy shared by services and routes.

"""
FlowStock errors.

Services raise these; routes convert them with error_response(). Each class
carries the HTTP status it maps to so the mapping lives in one place.

InvariantViolation means the stored stock state contradicts itself (for example
a release larger than the reserved quantity). It is logged at CRITICAL with its
details and clients only ever see a generic failure.
"""

from __future__ import annotations

import logging

from flask import jsonify

logger = logging.getLogger(__name__)


class FlowStockError(Exception):
    """Base class for expected, client-visible failures."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(FlowStockError):
    """Malformed or out-of-range input."""
    status_code = 400


class AuthenticationError(FlowStockError):
    """Bad credentials, bad MFA code or unusable token."""
    status_code = 401


class NotFound(FlowStockError):
    status_code = 404


class BusinessRuleError(FlowStockError):
    """Request is well-formed but conflicts with current data (duplicate SKU, inactive supplier...)."""
    status_code = 409


class InsufficientStock(BusinessRuleError):
    status_code = 409

    def __init__(self, sku: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for {sku}: available {available}, requested {requested}",
            {"sku": sku, "available": available, "requested": requested},
        )
        self.sku = sku
        self.available = available
        self.requested = requested


class InvalidTransition(BusinessRuleError):
    status_code = 409

    def __init__(self, entity: str, current: str, target: str):
        super().__init__(
            f"{entity} cannot move from {current} to {target}",
            {"entity": entity, "current_status": current, "target_status": target},
        )


class OverReceipt(FlowStockError):
    status_code = 422

    def __init__(self, sku: str, remaining: int, requested: int):
        super().__init__(
            f"Receipt for {sku} exceeds remaining quantity: remaining {remaining}, requested {requested}",
            {"sku": sku, "remaining": remaining, "requested": requested},
        )


class ThrottledError(FlowStockError):
    status_code = 429


class InvariantViolation(FlowStockError):
    status_code = 500


def error_response(exc: FlowStockError):
    """Render a domain error as (json, status) for a route to return."""
    if isinstance(exc, InvariantViolation):
        logger.critical("Stock invariant violated: %s details=%s", exc.message, exc.details)
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(exc.to_dict()), exc.status_code
