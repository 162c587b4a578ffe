# returns/messaging.py
"""
Customer <-> admin thread on a return request.

Messages are append-only. The one mutable bit is ``is_read``, which belongs
to the recipient: customers mark admin messages read and admins mark
customer messages read. Nobody can flip their own messages.
"""
from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone

from accounts.permissions import Actor

from . import attachments as att
from .exceptions import InvalidState, ValidationError
from .models import ReturnMessage
from .services import get_request_for

logger = logging.getLogger(__name__)

MAX_BODY_LENGTH = 5000


def sender_type_for(actor: Actor) -> str:
    return ReturnMessage.SenderType.ADMIN if actor.is_admin else ReturnMessage.SenderType.CUSTOMER


def counterpart_sender_type(actor: Actor) -> str:
    """Messages the actor is the recipient of."""
    return ReturnMessage.SenderType.CUSTOMER if actor.is_admin else ReturnMessage.SenderType.ADMIN


def _default_message_type(actor: Actor) -> str:
    return ReturnMessage.MessageType.ADMIN_RESPONSE if actor.is_admin else ReturnMessage.MessageType.TEXT


@transaction.atomic
def send_return_message(
    *,
    request_id,
    actor: Actor,
    body: str,
    attachments: Iterable[Any] | None = None,
    message_type: Optional[str] = None,
) -> ReturnMessage:
    rr = get_request_for(request_id, actor, for_update=True)

    if rr.is_terminal:
        raise InvalidState("This return request is closed; no new messages can be added.")

    body = (body or "").strip()
    items = att.parse_attachments(attachments)
    if not body and not items:
        raise ValidationError("Message cannot be empty.", code="empty_message")
    if len(body) > MAX_BODY_LENGTH:
        raise ValidationError(f"Message is too long (max {MAX_BODY_LENGTH} characters).", code="message_too_long")

    message_type = message_type or _default_message_type(actor)
    if message_type not in ReturnMessage.MessageType.values:
        raise ValidationError(f"Unknown message type: {message_type}", code="invalid_message_type")
    if not actor.is_admin and message_type != ReturnMessage.MessageType.TEXT:
        raise ValidationError("Customers can only send text messages.", code="invalid_message_type")

    msg = ReturnMessage.objects.create(
        return_request=rr,
        sender_id=actor.user_id,
        sender_type=sender_type_for(actor),
        body=body,
        message_type=message_type,
        attachments=att.serialize(items),
    )
    logger.info(
        "Return message rma=%s sender=%s type=%s attachments=%s",
        rr.rma_number,
        msg.sender_type,
        message_type,
        len(items),
    )
    return msg


def list_return_messages(*, request_id, actor: Actor) -> QuerySet[ReturnMessage]:
    rr = get_request_for(request_id, actor)
    return ReturnMessage.objects.filter(return_request=rr).select_related("sender").order_by("created_at", "id")


def mark_messages_read(*, request_id, actor: Actor) -> int:
    """
    Flip the counterpart's unread messages on this request. Returns the
    number of rows updated (0 on a repeat call).
    """
    rr = get_request_for(request_id, actor)
    updated = ReturnMessage.objects.filter(
        return_request=rr,
        sender_type=counterpart_sender_type(actor),
        is_read=False,
    ).update(is_read=True, read_at=timezone.now())

    if updated:
        logger.info("Marked %s message(s) read rma=%s by=%s", updated, rr.rma_number, actor.user_id)
    return updated
