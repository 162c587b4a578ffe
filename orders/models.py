# orders/models.py

from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.db import DatabaseError, models, transaction
from django.utils import timezone

logger = logging.getLogger(__name__)


def _new_order_number() -> str:
    return f"ORD-{uuid.uuid4().hex[:10].upper()}"


class Order(models.Model):
    """
    Order record as seen by the returns desk.

    Totals/taxes/discounts are computed at checkout and only read here.
    The returns engine patches status/payment_status/admin_notes when a
    refund goes through.
    """

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        CONFIRMED = "confirmed", "Confirmed"
        PROCESSING = "processing", "Processing"
        SHIPPED = "shipped", "Shipped"
        DELIVERED = "delivered", "Delivered"
        CANCELLED = "cancelled", "Cancelled"
        REFUNDED = "refunded", "Refunded"

    class PaymentStatus(models.TextChoices):
        PENDING = "pending", "Pending"
        PAID = "paid", "Paid"
        FAILED = "failed", "Failed"
        REFUNDED = "refunded", "Refunded"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order_number = models.CharField(max_length=32, unique=True, default=_new_order_number)

    buyer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="orders",
        help_text="Registered buyer. Null means guest checkout.",
    )
    email = models.EmailField(blank=True, default="")

    status = models.CharField(max_length=24, choices=Status.choices, default=Status.PENDING)
    payment_status = models.CharField(max_length=16, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)

    currency = models.CharField(max_length=8, default="usd")
    total_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))

    # Blank means the order was paid outside Stripe (nothing to refund through the gateway)
    stripe_payment_intent_id = models.CharField(max_length=255, blank=True, default="")

    tracking_number = models.CharField(max_length=64, blank=True, default="")
    shipped_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True, db_index=True)

    customer_notes = models.TextField(blank=True, default="")
    admin_notes = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["-created_at"], name="order_created_idx"),
            models.Index(fields=["status", "-created_at"], name="order_status_created_idx"),
            models.Index(fields=["buyer", "-created_at"], name="order_buyer_created_idx"),
        ]

    def __str__(self) -> str:
        return f"Order {self.order_number} ({self.status})"

    @property
    def total_cents(self) -> int:
        from .money import to_cents

        return to_cents(self.total_amount)

    @property
    def delivered_or_created_at(self):
        return self.delivered_at or self.created_at

    def add_event(self, type_: str, message: str = "") -> None:
        try:
            with transaction.atomic():
                OrderEvent.objects.create(order=self, type=type_, message=message or "")
        except DatabaseError:
            logger.exception("Could not record order event type=%s order=%s", type_, self.pk)

    def mark_delivered(self, *, delivered_at: Optional[timezone.datetime] = None) -> None:
        self.status = self.Status.DELIVERED
        if not self.delivered_at:
            self.delivered_at = delivered_at or timezone.now()
        self.save(update_fields=["status", "delivered_at", "updated_at"])
        self.add_event(OrderEvent.Type.DELIVERED, "Marked delivered")

    def append_admin_note(self, note: str, *, save: bool = True) -> None:
        """Admin notes are a log: new lines are appended, never replaced."""
        note = (note or "").strip()
        if not note:
            return
        existing = (self.admin_notes or "").rstrip()
        self.admin_notes = f"{existing}\n{note}" if existing else note
        if save:
            self.save(update_fields=["admin_notes", "updated_at"])

    def mark_refunded(self, *, note: str = "") -> None:
        self.payment_status = self.PaymentStatus.REFUNDED
        self.status = self.Status.REFUNDED
        self.append_admin_note(note, save=False)
        self.save(update_fields=["payment_status", "status", "admin_notes", "updated_at"])
        self.add_event(OrderEvent.Type.REFUNDED, note)


class OrderItem(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")

    # Line position within the order; return requests address lines by this index
    position = models.PositiveIntegerField(default=0)

    product_name = models.CharField(max_length=255, help_text="Snapshot at time of order.")
    variant_name = models.CharField(max_length=255, blank=True, default="")

    quantity = models.PositiveIntegerField(default=1)
    unit_price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ("position", "created_at")
        indexes = [
            models.Index(fields=["order", "position"], name="orderitem_order_pos_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.quantity} × {self.product_name}"

    @property
    def line_total(self) -> Decimal:
        return Decimal(self.quantity) * self.unit_price


class OrderEvent(models.Model):
    class Type(models.TextChoices):
        CREATED = "created", "Created"
        DELIVERED = "delivered", "Delivered"
        RETURN_REQUESTED = "return_requested", "Return requested"
        RETURN_UPDATED = "return_updated", "Return updated"
        REFUNDED = "refunded", "Refunded"
        PARTIALLY_REFUNDED = "partially_refunded", "Partially refunded"
        WARNING = "warning", "Warning"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="events")
    type = models.CharField(max_length=64, choices=Type.choices)
    message = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        indexes = [models.Index(fields=["order", "-created_at"], name="orderevent_order_created_idx")]

    def __str__(self) -> str:
        return f"{self.type} ({self.created_at:%Y-%m-%d %H:%M})"
