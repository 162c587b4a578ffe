# returns/eligibility.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from django.conf import settings
from django.utils import timezone

from orders.models import Order

from .exceptions import NotEligible
from .models import ReturnRequest

DEFAULT_RETURN_WINDOW_DAYS = 30

MSG_NOT_DELIVERED = "Order must be delivered to request a return."
MSG_WINDOW_EXPIRED = "Return window has expired ({days} days)."
MSG_DUPLICATE = "You already submitted a return request for this order."
MSG_NOT_FOUND = "Order not found or access denied."


@dataclass(frozen=True)
class Eligibility:
    allowed: bool
    reason: str = ""
    code: str = ""
    existing_request_id: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "allowed": self.allowed,
            "reason": self.reason or None,
            "code": self.code or None,
            "existing_request_id": self.existing_request_id,
        }


def return_window_days() -> int:
    return int(getattr(settings, "RETURN_WINDOW_DAYS", DEFAULT_RETURN_WINDOW_DAYS))


def days_since(moment: datetime, *, now: Optional[datetime] = None) -> float:
    now = now or timezone.now()
    return (now - moment) / timedelta(days=1)


def can_return(order: Order, *, now: Optional[datetime] = None) -> Eligibility:
    """
    Pure rule check, first failing rule wins:
      1) order is delivered
      2) delivered (or, lacking a delivery stamp, created) within the window
    """
    if order.status != Order.Status.DELIVERED:
        return Eligibility(False, MSG_NOT_DELIVERED, NotEligible.NOT_DELIVERED)

    window = return_window_days()
    if days_since(order.delivered_or_created_at, now=now) > window:
        return Eligibility(False, MSG_WINDOW_EXPIRED.format(days=window), NotEligible.WINDOW_EXPIRED)

    return Eligibility(True)


def existing_request_id(order_id) -> Optional[str]:
    """Any request for the order counts, whatever its status."""
    pk = ReturnRequest.objects.filter(order_id=order_id).values_list("pk", flat=True).first()
    return str(pk) if pk else None


def has_existing_request(order_id) -> bool:
    return ReturnRequest.objects.filter(order_id=order_id).exists()


def assert_can_return(order: Order, *, now: Optional[datetime] = None) -> None:
    if has_existing_request(order.pk):
        raise NotEligible(MSG_DUPLICATE, code=NotEligible.DUPLICATE_REQUEST)

    result = can_return(order, now=now)
    if not result.allowed:
        raise NotEligible(result.reason, code=result.code)
