# returns/serializers.py
"""
Plain-dict presenters for the JSON views. Amounts go out as strings so
Decimal precision survives the trip.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

from . import attachments as att
from .models import ReturnItem, ReturnMessage, ReturnRequest


def _money(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else f"{value:.2f}"


def _ts(value) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_item(item: ReturnItem) -> dict[str, Any]:
    return {
        "order_item_index": item.order_item_index,
        "quantity": item.quantity,
        "reason": item.reason,
    }


def serialize_return_request(rr: ReturnRequest, *, detail: bool = False) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": str(rr.pk),
        "rma_number": rr.rma_number,
        "order_id": str(rr.order_id),
        "order_number": rr.order.order_number,
        "type": rr.type,
        "reason": rr.reason,
        "status": rr.status,
        "status_label": rr.get_status_display(),
        "requested_amount": _money(rr.requested_amount),
        "approved_amount": _money(rr.approved_amount),
        "tracking_number": rr.tracking_number,
        "submitted_at": _ts(rr.submitted_at),
        "reviewed_at": _ts(rr.reviewed_at),
        "completed_at": _ts(rr.completed_at),
        "refunded": rr.is_refunded,
        "items": [serialize_item(i) for i in rr.items.all()],
    }
    if detail:
        data.update(
            {
                "description": rr.description,
                "evidence": att.resolve_all(rr.evidence),
                "refunded_at": _ts(rr.refunded_at),
                "order_total": _money(rr.order.total_amount),
            }
        )
    return data


def serialize_admin_return_request(rr: ReturnRequest) -> dict[str, Any]:
    data = serialize_return_request(rr, detail=True)
    data.update(
        {
            "user_id": rr.user_id,
            "customer_email": getattr(rr.user, "email", "") or rr.order.email,
            "admin_notes": rr.admin_notes,
            "stripe_refund_id": rr.stripe_refund_id,
        }
    )
    return data


def serialize_message(msg: ReturnMessage) -> dict[str, Any]:
    return {
        "id": str(msg.pk),
        "sender_type": msg.sender_type,
        "sender_id": msg.sender_id,
        "message_type": msg.message_type,
        "body": msg.body,
        "attachments": att.resolve_all(msg.attachments),
        "is_read": msg.is_read,
        "read_at": _ts(msg.read_at),
        "created_at": _ts(msg.created_at),
    }
