# returns/models.py
from __future__ import annotations

import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone


class ReturnRequest(models.Model):
    """
    One return per order, for the whole life of the order (OneToOne on order).

    Only ``type=return`` is ever created. Exchange/refund/dispute are kept in
    the choices so historical imports validate, but no code path builds them.
    """

    class Type(models.TextChoices):
        RETURN = "return", "Return"
        EXCHANGE = "exchange", "Exchange"
        REFUND = "refund", "Refund"
        DISPUTE = "dispute", "Dispute"

    class Reason(models.TextChoices):
        DEFECTIVE = "defective", "Defective"
        WRONG_ITEM = "wrong_item", "Wrong item received"
        NOT_AS_DESCRIBED = "not_as_described", "Not as described"
        CHANGE_OF_MIND = "change_of_mind", "Changed my mind"
        DAMAGED_IN_SHIPPING = "damaged_in_shipping", "Damaged in shipping"
        SIZE_ISSUE = "size_issue", "Size issue"
        QUALITY_ISSUE = "quality_issue", "Quality issue"
        OTHER = "other", "Other"

    class Status(models.TextChoices):
        PENDING = "pending", "Pending review"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"
        PROCESSING = "processing", "Processing"
        COMPLETED = "completed", "Completed"
        CANCELLED = "cancelled", "Cancelled"

    TERMINAL_STATUSES = frozenset({Status.COMPLETED, Status.CANCELLED, Status.REJECTED})

    # Admin transitions; cancellation by the customer is its own operation.
    ALLOWED_TRANSITIONS = {
        Status.PENDING: frozenset({Status.APPROVED, Status.REJECTED, Status.CANCELLED}),
        Status.APPROVED: frozenset({Status.PROCESSING, Status.COMPLETED}),
        Status.PROCESSING: frozenset({Status.COMPLETED}),
        Status.REJECTED: frozenset(),
        Status.COMPLETED: frozenset(),
        Status.CANCELLED: frozenset(),
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    order = models.OneToOneField(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="return_request",
        help_text="At most one return request per order, ever.",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="return_requests",
    )

    type = models.CharField(max_length=16, choices=Type.choices, default=Type.RETURN)
    reason = models.CharField(max_length=32, choices=Reason.choices)
    description = models.TextField()

    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING)

    requested_amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    approved_amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)

    rma_number = models.CharField(max_length=40, unique=True)
    tracking_number = models.CharField(max_length=64, blank=True, default="")
    admin_notes = models.TextField(blank=True, default="")

    # Tagged attachment refs: [{"kind": "stored", "key": ...} | {"kind": "url", "url": ...}]
    evidence = models.JSONField(default=list, blank=True)

    # Stripe refund tracking
    stripe_refund_id = models.CharField(max_length=255, blank=True, default="")
    refunded_at = models.DateTimeField(null=True, blank=True)

    submitted_at = models.DateTimeField(default=timezone.now, db_index=True)
    reviewed_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-submitted_at",)
        indexes = [
            models.Index(fields=["status", "-submitted_at"], name="rr_status_submitted_idx"),
            models.Index(fields=["user", "-submitted_at"], name="rr_user_submitted_idx"),
        ]

    def __str__(self) -> str:
        return f"ReturnRequest<{self.rma_number}> {self.status}"

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL_STATUSES

    @property
    def is_refunded(self) -> bool:
        return bool(self.stripe_refund_id)

    def can_transition_to(self, new_status: str) -> bool:
        return new_status in self.ALLOWED_TRANSITIONS.get(self.status, frozenset())


class ReturnItem(models.Model):
    """A line of the order being returned, addressed by its index in the order."""

    return_request = models.ForeignKey(ReturnRequest, on_delete=models.CASCADE, related_name="items")
    position = models.PositiveIntegerField(default=0)
    order_item_index = models.PositiveIntegerField()
    quantity = models.PositiveIntegerField(default=0)
    reason = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        ordering = ("position", "id")

    def __str__(self) -> str:
        return f"#{self.order_item_index} × {self.quantity}"


class ReturnMessage(models.Model):
    """
    Customer <-> admin thread for one return request.

    ``is_read`` is about the recipient: an admin-authored message is read once
    the customer has seen it, and vice versa. It only ever goes False -> True.
    """

    class SenderType(models.TextChoices):
        CUSTOMER = "customer", "Customer"
        ADMIN = "admin", "Admin"

    class MessageType(models.TextChoices):
        TEXT = "text", "Text"
        STATUS_UPDATE = "status_update", "Status update"
        ADMIN_RESPONSE = "admin_response", "Admin response"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    return_request = models.ForeignKey(ReturnRequest, on_delete=models.CASCADE, related_name="messages")
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="return_messages",
    )
    sender_type = models.CharField(max_length=16, choices=SenderType.choices)
    body = models.TextField(blank=True, default="")
    message_type = models.CharField(max_length=16, choices=MessageType.choices, default=MessageType.TEXT)
    attachments = models.JSONField(default=list, blank=True)

    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ("created_at", "id")
        indexes = [
            models.Index(fields=["return_request", "created_at"], name="rmsg_request_created_idx"),
            models.Index(fields=["return_request", "sender_type", "is_read"], name="rmsg_request_unread_idx"),
        ]

    def __str__(self) -> str:
        return f"[{self.sender_type}] {self.message_type} on {self.return_request_id}"


class RefundAttempt(models.Model):
    """Operational log for gateway refund calls (kept even when the transition rolls back)."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    return_request = models.ForeignKey(ReturnRequest, on_delete=models.PROTECT, related_name="attempts")

    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="refund_attempts",
    )
    request_id = models.CharField(max_length=64, blank=True, default="")

    amount_cents = models.PositiveIntegerField(default=0)
    full_refund = models.BooleanField(default=False)

    success = models.BooleanField(default=False)
    retryable = models.BooleanField(default=False)
    stripe_refund_id = models.CharField(max_length=255, blank=True, default="")
    error_message = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        indexes = [
            models.Index(fields=["success", "-created_at"], name="rattempt_success_idx"),
        ]

    def __str__(self) -> str:
        return f"RefundAttempt<{self.pk}> success={self.success}"
