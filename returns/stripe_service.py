# returns/stripe_service.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import stripe
from django.conf import settings

from .exceptions import GatewayUnavailable, PaymentGatewayError, RefundDeclined

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 20


@dataclass(frozen=True)
class GatewayRefund:
    refund_id: str
    status: str
    amount_cents: Optional[int]


def _init_stripe() -> None:
    key = getattr(settings, "STRIPE_SECRET_KEY", None)
    if not key:
        raise RefundDeclined("Stripe is not configured.", gateway_code="not_configured")
    stripe.api_key = key
    # No silent retries: a retry policy belongs to the operator, not this call.
    stripe.max_network_retries = 0
    timeout = int(getattr(settings, "STRIPE_REFUND_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS) or DEFAULT_TIMEOUT_SECONDS)
    stripe.default_http_client = stripe.RequestsClient(timeout=timeout)


def _translate_stripe_error(exc: stripe.StripeError) -> PaymentGatewayError:
    """
    Map Stripe failures onto retryable vs fatal.

    Connection problems, rate limits and Stripe-side 5xx may succeed on a
    later manual retry; anything the processor actively rejected will not.
    """
    message = getattr(exc, "user_message", None) or str(exc) or "Stripe refund failed."
    code = getattr(exc, "code", None) or ""
    http_status = getattr(exc, "http_status", None)

    if isinstance(exc, (stripe.APIConnectionError, stripe.RateLimitError)):
        return GatewayUnavailable(message, gateway_code=code, http_status=http_status)
    if isinstance(exc, (stripe.CardError, stripe.InvalidRequestError, stripe.PermissionError)):
        return RefundDeclined(message, gateway_code=code, http_status=http_status)
    if isinstance(exc, stripe.AuthenticationError):
        # Bad key: needs an operator, retrying as-is will never work
        return RefundDeclined(message, gateway_code=code or "authentication", http_status=http_status)
    if http_status is not None and int(http_status) >= 500:
        return GatewayUnavailable(message, gateway_code=code, http_status=http_status)
    return RefundDeclined(message, gateway_code=code, http_status=http_status)


def create_stripe_refund(
    *,
    payment_intent: str,
    amount_cents: Optional[int],
    idempotency_key: str,
    metadata: Optional[dict[str, str]] = None,
) -> GatewayRefund:
    """
    Create a Stripe refund against a PaymentIntent.

    - amount_cents=None refunds whatever is left on the charge (full refund form)
    - idempotency_key makes a double-submitted approval a no-op on Stripe's side
    """
    payment_intent = (payment_intent or "").strip()
    if not payment_intent:
        raise ValueError("Order has no Stripe payment intent id; cannot refund.")
    if amount_cents is not None and int(amount_cents) <= 0:
        raise ValueError("Refund amount must be > 0.")

    _init_stripe()

    params: dict = {
        "payment_intent": payment_intent,
        "metadata": dict(metadata or {}),
    }
    if amount_cents is not None:
        params["amount"] = int(amount_cents)

    try:
        refund = stripe.Refund.create(**params, idempotency_key=idempotency_key)
    except stripe.StripeError as exc:
        raise _translate_stripe_error(exc) from exc

    refund_id = str(getattr(refund, "id", "") or "").strip()
    if not refund_id:
        raise GatewayUnavailable("Stripe did not return a refund id.")

    status = str(getattr(refund, "status", "") or "")
    if status in ("failed", "canceled"):
        raise RefundDeclined(f"Stripe refund {refund_id} {status}.", gateway_code=status)

    amount = getattr(refund, "amount", None)
    return GatewayRefund(
        refund_id=refund_id,
        status=status,
        amount_cents=int(amount) if amount is not None else None,
    )
