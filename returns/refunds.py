# returns/refunds.py
"""
Refund processing for approved returns.

Only ever called from inside the ``approved`` transition, before the request
row is saved. If Stripe raises, the caller's transaction rolls back and the
request stays in its previous status.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from django.utils import timezone

from accounts.permissions import Actor
from core.logging_context import current_request_id
from orders.models import Order, OrderEvent
from orders.money import cents_to_dollars, format_money, to_cents, to_decimal

from .exceptions import PaymentGatewayError, ValidationError
from .models import RefundAttempt, ReturnRequest
from .stripe_service import create_stripe_refund

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefundOutcome:
    approved_amount: Decimal
    refund_cents: int
    full_refund: bool
    refund_id: str = ""


def resolve_approved_amount(
    requested: Optional[Decimal],
    previous: Optional[Decimal],
    order_total: Decimal,
) -> Decimal:
    """
    Amount the admin approved, most specific source first:
      1) amount given with this transition
      2) amount stored on the request earlier
      3) the full order total
    """
    if requested is not None:
        return to_decimal(requested)
    if previous is not None:
        return to_decimal(previous)
    return to_decimal(order_total)


def bounded_refund_amount(amount: Decimal, order_total: Decimal) -> Decimal:
    """Clamp to [0, order_total]."""
    total = to_decimal(order_total)
    return max(Decimal("0.00"), min(to_decimal(amount), total))


def _idempotency_key(rr: ReturnRequest, cents: int) -> str:
    return f"returnreq-{rr.pk}-{cents}"


def record_attempt(
    *,
    rr: ReturnRequest,
    actor: Optional[Actor],
    amount_cents: int,
    full_refund: bool,
    refund_id: str = "",
    error: Optional[PaymentGatewayError] = None,
) -> RefundAttempt:
    return RefundAttempt.objects.create(
        return_request=rr,
        actor_id=actor.user_id if actor else None,
        request_id=current_request_id(),
        amount_cents=max(0, int(amount_cents)),
        full_refund=full_refund,
        success=error is None,
        retryable=bool(error is not None and error.retryable),
        stripe_refund_id=refund_id,
        error_message=str(error) if error is not None else "",
    )


def process_refund(
    *,
    rr: ReturnRequest,
    order: Order,
    approved_amount: Optional[Decimal],
    actor: Optional[Actor] = None,
) -> RefundOutcome:
    """
    Work out how much to refund, move the money, reconcile the order.

    Mutates ``rr`` (approved_amount, stripe_refund_id, refunded_at) without
    saving it; the transition saves the row once everything succeeded.
    Raises PaymentGatewayError on any gateway failure.
    """
    total = to_decimal(order.total_amount)
    resolved = resolve_approved_amount(approved_amount, rr.approved_amount, total)
    amount = bounded_refund_amount(resolved, total)
    cents = to_cents(amount)
    total_cents = to_cents(total)
    full = cents == total_cents

    payment_intent = (order.stripe_payment_intent_id or "").strip()
    if not payment_intent:
        # Paid outside Stripe: record the decision, nothing to call
        rr.approved_amount = amount
        logger.info("Return %s approved without gateway refund (no payment intent) amount=%s", rr.rma_number, amount)
        return RefundOutcome(approved_amount=amount, refund_cents=cents, full_refund=full)

    if cents <= 0:
        raise ValidationError("Refund amount must be > 0.", code="zero_refund")

    try:
        refund = create_stripe_refund(
            payment_intent=payment_intent,
            amount_cents=None if full else cents,
            idempotency_key=_idempotency_key(rr, cents),
            metadata={
                "return_request_id": str(rr.pk),
                "rma_number": rr.rma_number,
                "order_id": str(order.pk),
                "order_number": order.order_number,
            },
        )
    except PaymentGatewayError as exc:
        exc.amount_cents = cents
        exc.full_refund = full
        log = logger.error if exc.retryable else logger.warning
        log(
            "Refund failed rma=%s pi=%s cents=%s retryable=%s: %s",
            rr.rma_number,
            payment_intent,
            cents,
            exc.retryable,
            exc,
        )
        raise

    rr.approved_amount = amount
    rr.stripe_refund_id = refund.refund_id
    rr.refunded_at = timezone.now()

    record_attempt(rr=rr, actor=actor, amount_cents=cents, full_refund=full, refund_id=refund.refund_id)

    if full:
        order.mark_refunded(note=f"Full refund of {format_money(amount)} via refund {refund.refund_id} (return {rr.rma_number})")
    else:
        note = f"Partial refund of {format_money(cents_to_dollars(cents))} via refund {refund.refund_id}"
        order.append_admin_note(note)
        order.add_event(OrderEvent.Type.PARTIALLY_REFUNDED, f"{note} (return {rr.rma_number})")

    logger.info(
        "Refund processed rma=%s refund=%s cents=%s full=%s",
        rr.rma_number,
        refund.refund_id,
        cents,
        full,
    )
    return RefundOutcome(approved_amount=amount, refund_cents=cents, full_refund=full, refund_id=refund.refund_id)
