# returns/exceptions.py
"""
Error taxonomy for the returns desk.

Validation-type failures stay Django ``ValidationError`` subclasses so forms,
admin actions and views can keep catching them the usual way; the ``code``
lets callers render different guidance for e.g. an expired window versus a
duplicate request.
"""
from __future__ import annotations

from django.core.exceptions import ObjectDoesNotExist, ValidationError

from accounts.permissions import AccessDenied

__all__ = [
    "AccessDenied",
    "GatewayUnavailable",
    "InvalidState",
    "NotEligible",
    "NotFoundError",
    "PaymentGatewayError",
    "RefundDeclined",
    "ValidationError",
]


class NotFoundError(ObjectDoesNotExist):
    """Referenced order / return request is absent (or hidden from the caller)."""


class NotEligible(ValidationError):
    """Business-rule gate failed: not delivered, window expired, duplicate request."""

    NOT_DELIVERED = "not_delivered"
    WINDOW_EXPIRED = "window_expired"
    DUPLICATE_REQUEST = "duplicate_request"

    def __init__(self, message: str, code: str | None = None, params=None):
        super().__init__(message, code=code, params=params)


class InvalidState(ValidationError):
    """Attempted transition is not permitted from the current status."""

    def __init__(self, message: str, code: str | None = "invalid_state", params=None):
        super().__init__(message, code=code, params=params)


class PaymentGatewayError(Exception):
    """
    External refund call failed. Nothing here is retried automatically;
    ``retryable`` tells the operator whether pressing the button again is safe.
    """

    retryable = False

    def __init__(self, message: str, *, gateway_code: str = "", http_status: int | None = None):
        super().__init__(message)
        self.message = message
        self.gateway_code = gateway_code or ""
        self.http_status = http_status
        # Filled in by the refund processor so failed attempts can be logged after rollback
        self.amount_cents: int | None = None
        self.full_refund = False


class GatewayUnavailable(PaymentGatewayError):
    """Network error, timeout, rate limit or gateway-side 5xx."""

    retryable = True


class RefundDeclined(PaymentGatewayError):
    """Processor rejected the refund (declined, invalid request, already refunded)."""

    retryable = False
