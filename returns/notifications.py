# returns/notifications.py
from __future__ import annotations

from dataclasses import dataclass, field

from django.db.models import Count

from accounts.permissions import Actor, Role, require_role

from .messaging import counterpart_sender_type
from .models import ReturnMessage
from .services import get_request_for


@dataclass(frozen=True)
class UnreadSummary:
    total: int = 0
    by_request: dict[str, int] = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {"total": self.total, "by_request": dict(self.by_request)}


def unread_count_for_user(*, actor: Actor) -> int:
    """Unread admin-authored messages across the customer's own requests."""
    return ReturnMessage.objects.filter(
        return_request__user_id=actor.user_id,
        sender_type=ReturnMessage.SenderType.ADMIN,
        is_read=False,
    ).count()


def unread_count_for_request(*, request_id, actor: Actor) -> int:
    rr = get_request_for(request_id, actor)
    return ReturnMessage.objects.filter(
        return_request=rr,
        sender_type=counterpart_sender_type(actor),
        is_read=False,
    ).count()


def unread_counts_admin(*, actor: Actor) -> UnreadSummary:
    require_role(actor, Role.ADMIN)

    rows = (
        ReturnMessage.objects.filter(sender_type=ReturnMessage.SenderType.CUSTOMER, is_read=False)
        .values("return_request_id")
        .annotate(n=Count("id"))
        .order_by()
    )
    by_request = {str(r["return_request_id"]): r["n"] for r in rows}
    return UnreadSummary(total=sum(by_request.values()), by_request=by_request)
