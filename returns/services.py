# returns/services.py

from __future__ import annotations

import logging
import secrets
import string
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Optional

from django.db import IntegrityError, transaction
from django.db.models import QuerySet
from django.utils import timezone

from accounts.permissions import Actor, Role, require_role
from orders.models import Order, OrderEvent
from orders.money import to_decimal

from . import attachments as att
from .eligibility import (
    MSG_DUPLICATE,
    MSG_NOT_FOUND,
    Eligibility,
    assert_can_return,
    can_return,
    existing_request_id,
)
from .exceptions import (
    AccessDenied,
    InvalidState,
    NotEligible,
    NotFoundError,
    PaymentGatewayError,
    ValidationError,
)
from .models import ReturnItem, ReturnMessage, ReturnRequest
from .refunds import bounded_refund_amount, process_refund, record_attempt

logger = logging.getLogger(__name__)

RMA_ALPHABET = string.digits + string.ascii_uppercase

DEFAULT_USER_LIST_LIMIT = 20
DEFAULT_ADMIN_LIST_LIMIT = 50
MAX_LIST_LIMIT = 500


# ============================================================
# Helpers
# ============================================================
@dataclass(frozen=True)
class ReturnItemInput:
    order_item_index: int
    quantity: int
    reason: str = ""


def generate_rma_number(*, now_ms: Optional[int] = None) -> str:
    """RMA-<epoch millis>-<6 random base36 chars>."""
    millis = int(now_ms if now_ms is not None else time.time() * 1000)
    suffix = "".join(secrets.choice(RMA_ALPHABET) for _ in range(6))
    return f"RMA-{millis}-{suffix}"


def _clamp_limit(limit: Optional[int], default: int) -> int:
    try:
        value = int(limit) if limit is not None else default
    except (TypeError, ValueError):
        value = default
    return max(1, min(value, MAX_LIST_LIMIT))


def _coerce_item(raw: Any) -> ReturnItemInput:
    if isinstance(raw, ReturnItemInput):
        return raw
    if not isinstance(raw, dict):
        raise ValidationError("Each return item must be an object.", code="invalid_item")
    try:
        index = int(raw.get("order_item_index"))
        quantity = int(raw.get("quantity", 0))
    except (TypeError, ValueError):
        raise ValidationError("Return items need a numeric order_item_index and quantity.", code="invalid_item")
    return ReturnItemInput(order_item_index=index, quantity=quantity, reason=str(raw.get("reason") or "").strip())


def clean_return_items(raw_items: Iterable[Any] | None) -> list[ReturnItemInput]:
    items = [_coerce_item(x) for x in (raw_items or [])]

    for item in items:
        if item.order_item_index < 0:
            raise ValidationError("order_item_index cannot be negative.", code="invalid_item")
        if item.quantity < 0:
            raise ValidationError("Quantity cannot be negative.", code="invalid_item")

    indexes = [i.order_item_index for i in items]
    if len(indexes) != len(set(indexes)):
        raise ValidationError("Each order line can only be listed once.", code="duplicate_item")

    if not any(i.quantity > 0 for i in items):
        raise ValidationError("Select at least one item to return.", code="no_items")
    return items


def _check_items_against_order(order: Order, items: list[ReturnItemInput]) -> None:
    lines = list(order.items.all())
    for item in items:
        if item.order_item_index >= len(lines):
            raise ValidationError(
                f"Order has no line #{item.order_item_index}.",
                code="invalid_item",
            )
        line = lines[item.order_item_index]
        if item.quantity > line.quantity:
            raise ValidationError(
                f"Cannot return {item.quantity} of {line.product_name}; only {line.quantity} ordered.",
                code="invalid_item",
            )


def _clean_amount(value: Any, *, field: str) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        amount = to_decimal(value)
    except ValueError:
        raise ValidationError(f"{field} must be a number.", code="invalid_amount")
    if amount < 0:
        raise ValidationError(f"{field} cannot be negative.", code="invalid_amount")
    return amount


def _get_order_for(order_id, actor: Actor, *, for_update: bool = False) -> Order:
    qs = Order.objects.select_for_update() if for_update else Order.objects.all()
    try:
        order = qs.get(pk=order_id)
    except Order.DoesNotExist:
        raise NotFoundError("Order not found.")
    if order.buyer_id is None or order.buyer_id != actor.user_id:
        raise AccessDenied("You do not have access to this order.")
    return order


def get_request_for(request_id, actor: Actor, *, for_update: bool = False) -> ReturnRequest:
    """
    Owner or admin. Customers poking at someone else's request get AccessDenied.
    """
    qs = ReturnRequest.objects.select_related("order")
    if for_update:
        qs = qs.select_for_update(of=("self",))
    try:
        rr = qs.get(pk=request_id)
    except ReturnRequest.DoesNotExist:
        raise NotFoundError("Return request not found.")
    if not actor.is_admin and rr.user_id != actor.user_id:
        raise AccessDenied("You do not have access to this return request.")
    return rr


def _status_update_message(rr: ReturnRequest, actor: Actor) -> ReturnMessage:
    body = f"Your return request {rr.rma_number} is now {rr.get_status_display().lower()}."
    if rr.status == ReturnRequest.Status.APPROVED and rr.approved_amount is not None:
        body += f" Approved amount: ${rr.approved_amount:,.2f}."
    if rr.tracking_number:
        body += f" Tracking number: {rr.tracking_number}."
    return ReturnMessage.objects.create(
        return_request=rr,
        sender_id=actor.user_id,
        sender_type=ReturnMessage.SenderType.ADMIN,
        message_type=ReturnMessage.MessageType.STATUS_UPDATE,
        body=body,
    )


# ============================================================
# Queries
# ============================================================
def check_return_eligibility(*, order_id, actor: Actor) -> Eligibility:
    """
    UI pre-check before showing the return form. Never raises for
    missing/foreign orders; they are reported as not allowed.
    """
    try:
        order = _get_order_for(order_id, actor)
    except (NotFoundError, AccessDenied):
        return Eligibility(False, MSG_NOT_FOUND, "not_found")

    existing = existing_request_id(order.pk)
    if existing:
        return Eligibility(False, MSG_DUPLICATE, NotEligible.DUPLICATE_REQUEST, existing_request_id=existing)

    return can_return(order)


def get_return_request(*, request_id, actor: Actor) -> ReturnRequest:
    return get_request_for(request_id, actor)


def list_user_return_requests(*, actor: Actor, limit: Optional[int] = None) -> QuerySet[ReturnRequest]:
    limit = _clamp_limit(limit, DEFAULT_USER_LIST_LIMIT)
    return (
        ReturnRequest.objects.filter(user_id=actor.user_id)
        .select_related("order")
        .prefetch_related("items")
        .order_by("-submitted_at")[:limit]
    )


def list_all_return_requests(
    *,
    actor: Actor,
    status: Optional[str] = None,
    limit: Optional[int] = None,
) -> QuerySet[ReturnRequest]:
    require_role(actor, Role.ADMIN)
    limit = _clamp_limit(limit, DEFAULT_ADMIN_LIST_LIMIT)

    qs = ReturnRequest.objects.select_related("order", "user").prefetch_related("items")
    status = (status or "").strip().lower()
    if status and status != "all":
        if status not in ReturnRequest.Status.values:
            raise ValidationError(f"Unknown status filter: {status}", code="invalid_status")
        qs = qs.filter(status=status)
    return qs.order_by("-submitted_at")[:limit]


# ============================================================
# Lifecycle
# ============================================================
def create_return_request(
    *,
    order_id,
    actor: Actor,
    reason: str,
    description: str,
    return_items: Iterable[Any],
    evidence: Iterable[Any],
    requested_amount: Any = None,
) -> ReturnRequest:
    """
    Customer opens a return for one of their delivered orders.

    - evidence is mandatory (at least one attachment)
    - one request per order, ever (OneToOne on order; the row lock plus the
      unique constraint keep concurrent submits from creating two)
    """
    evidence_items = att.parse_attachments(evidence)
    if not evidence_items:
        raise ValidationError("Please attach at least one photo or file as evidence.", code="evidence_required")

    description = (description or "").strip()
    if not description:
        raise ValidationError("Please describe the problem with your order.", code="description_required")

    if reason not in ReturnRequest.Reason.values:
        raise ValidationError("Please choose a return reason.", code="invalid_reason")

    items = clean_return_items(return_items)
    requested = _clean_amount(requested_amount, field="Requested amount")

    with transaction.atomic():
        order = _get_order_for(order_id, actor, for_update=True)
        _check_items_against_order(order, items)
        if requested is not None and requested > to_decimal(order.total_amount):
            raise ValidationError("Requested amount cannot exceed the order total.", code="invalid_amount")

        assert_can_return(order)

        try:
            with transaction.atomic():
                rr = ReturnRequest.objects.create(
                    order=order,
                    user_id=actor.user_id,
                    type=ReturnRequest.Type.RETURN,
                    reason=reason,
                    description=description,
                    status=ReturnRequest.Status.PENDING,
                    requested_amount=requested,
                    rma_number=generate_rma_number(),
                    evidence=att.serialize(evidence_items),
                    submitted_at=timezone.now(),
                )
        except IntegrityError:
            if ReturnRequest.objects.filter(order_id=order.pk).exists():
                raise NotEligible(MSG_DUPLICATE, code=NotEligible.DUPLICATE_REQUEST)
            raise

        ReturnItem.objects.bulk_create(
            [
                ReturnItem(
                    return_request=rr,
                    position=pos,
                    order_item_index=item.order_item_index,
                    quantity=item.quantity,
                    reason=item.reason,
                )
                for pos, item in enumerate(items)
            ]
        )

        order.add_event(OrderEvent.Type.RETURN_REQUESTED, f"Return requested {rr.rma_number} reason={reason}")

    logger.info("Return request created rma=%s order=%s user=%s", rr.rma_number, order.pk, actor.user_id)
    return rr


def update_return_status(
    *,
    request_id,
    actor: Actor,
    new_status: str,
    approved_amount: Any = None,
    admin_notes: Optional[str] = None,
    tracking_number: Optional[str] = None,
    notify_customer: bool = True,
) -> ReturnRequest:
    """
    Admin review transition.

    Approval refunds through Stripe before the row is saved; a gateway failure
    rolls everything back and the request keeps its previous status. The
    failed attempt is logged after the rollback so it survives.
    """
    require_role(actor, Role.ADMIN)

    if new_status not in ReturnRequest.Status.values:
        raise ValidationError(f"Unknown status: {new_status}", code="invalid_status")
    amount = _clean_amount(approved_amount, field="Approved amount")

    try:
        with transaction.atomic():
            return _apply_status_change(
                request_id=request_id,
                actor=actor,
                new_status=new_status,
                approved_amount=amount,
                admin_notes=admin_notes,
                tracking_number=tracking_number,
                notify_customer=notify_customer,
            )
    except PaymentGatewayError as exc:
        rr = ReturnRequest.objects.filter(pk=request_id).first()
        if rr is not None:
            record_attempt(
                rr=rr,
                actor=actor,
                amount_cents=exc.amount_cents or 0,
                full_refund=exc.full_refund,
                error=exc,
            )
        raise


def _set_approved_amount(rr: ReturnRequest, amount: Decimal) -> None:
    """Editable while pending; fixed once the request was reviewed or money moved."""
    if rr.stripe_refund_id or rr.status != ReturnRequest.Status.PENDING:
        if rr.approved_amount is None or to_decimal(amount) != to_decimal(rr.approved_amount):
            raise InvalidState("The approved amount cannot change after the request was reviewed.", code="amount_locked")
        return
    rr.approved_amount = bounded_refund_amount(amount, rr.order.total_amount)


def _apply_status_change(
    *,
    request_id,
    actor: Actor,
    new_status: str,
    approved_amount: Optional[Decimal],
    admin_notes: Optional[str],
    tracking_number: Optional[str],
    notify_customer: bool,
) -> ReturnRequest:
    rr = get_request_for(request_id, actor, for_update=True)
    previous = rr.status
    changed = new_status != previous

    if changed and not rr.can_transition_to(new_status):
        raise InvalidState(
            f"Cannot change a {rr.get_status_display().lower()} return to {ReturnRequest.Status(new_status).label.lower()}."
        )
    if not changed and rr.is_terminal:
        raise InvalidState("This return request is closed.")

    now = timezone.now()

    if admin_notes is not None:
        rr.admin_notes = admin_notes.strip()
    if tracking_number is not None:
        rr.tracking_number = tracking_number.strip()

    if changed and new_status == ReturnRequest.Status.APPROVED:
        order = Order.objects.select_for_update().get(pk=rr.order_id)
        process_refund(rr=rr, order=order, approved_amount=approved_amount, actor=actor)
        rr.order = order
    elif approved_amount is not None:
        _set_approved_amount(rr, approved_amount)

    if changed:
        rr.status = new_status
        if new_status in (ReturnRequest.Status.APPROVED, ReturnRequest.Status.REJECTED):
            rr.reviewed_at = now
        if new_status in (ReturnRequest.Status.COMPLETED, ReturnRequest.Status.CANCELLED):
            rr.completed_at = now

    rr.save()

    if changed:
        rr.order.add_event(
            OrderEvent.Type.RETURN_UPDATED,
            f"Return {rr.rma_number} {previous} -> {new_status} by={actor.user_id}",
        )
        if notify_customer:
            _status_update_message(rr, actor)

    logger.info("Return status rma=%s %s -> %s by=%s", rr.rma_number, previous, new_status, actor.user_id)
    return rr


@transaction.atomic
def cancel_return_request(*, request_id, actor: Actor) -> ReturnRequest:
    require_role(actor, Role.CUSTOMER)
    rr = get_request_for(request_id, actor, for_update=True)

    if rr.status != ReturnRequest.Status.PENDING:
        raise InvalidState("Can only cancel pending return requests.")

    rr.status = ReturnRequest.Status.CANCELLED
    rr.completed_at = timezone.now()
    rr.save(update_fields=["status", "completed_at", "updated_at"])

    rr.order.add_event(OrderEvent.Type.RETURN_UPDATED, f"Return {rr.rma_number} cancelled by customer")
    logger.info("Return cancelled rma=%s by=%s", rr.rma_number, actor.user_id)
    return rr


@transaction.atomic
def delete_return_request(*, request_id, actor: Actor) -> None:
    """Customer withdraws a pending request entirely; its thread goes with it."""
    require_role(actor, Role.CUSTOMER)
    rr = get_request_for(request_id, actor, for_update=True)

    if rr.status != ReturnRequest.Status.PENDING:
        raise InvalidState("Can only delete pending return requests.")
    if rr.attempts.exists():
        # a timed-out attempt may still have refunded on the gateway side
        raise InvalidState("This return has refund attempts on record; cancel it instead.", code="has_refund_attempts")

    rma = rr.rma_number
    order = rr.order
    deleted_messages, _ = ReturnMessage.objects.filter(return_request=rr).delete()
    rr.delete()

    order.add_event(OrderEvent.Type.RETURN_UPDATED, f"Return {rma} deleted by customer")
    logger.info("Return deleted rma=%s messages=%s by=%s", rma, deleted_messages, actor.user_id)
