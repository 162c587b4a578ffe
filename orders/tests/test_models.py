from __future__ import annotations

from decimal import Decimal
from unittest.mock import patch

import pytest
from django.db import DatabaseError

from orders.models import Order, OrderEvent

pytestmark = pytest.mark.django_db


def test_order_number_is_generated(delivered_order):
    assert delivered_order.order_number.startswith("ORD-")
    assert len(delivered_order.order_number) == 14


def test_total_cents(delivered_order):
    assert delivered_order.total_cents == 20000


def test_items_are_ordered_by_position(delivered_order):
    assert [i.position for i in delivered_order.items.all()] == [0, 1]
    assert delivered_order.items.first().line_total == Decimal("100.00")


def test_delivered_or_created_at(make_order):
    undelivered = make_order(delivered_days_ago=None)
    assert undelivered.delivered_or_created_at == undelivered.created_at

    delivered = make_order()
    assert delivered.delivered_or_created_at == delivered.delivered_at


def test_append_admin_note_keeps_history(delivered_order):
    delivered_order.append_admin_note("first")
    delivered_order.append_admin_note("  ")
    delivered_order.append_admin_note("second")

    delivered_order.refresh_from_db()
    assert delivered_order.admin_notes == "first\nsecond"


def test_mark_refunded(delivered_order):
    delivered_order.mark_refunded(note="Full refund of $200.00 via refund re_1")

    delivered_order.refresh_from_db()
    assert delivered_order.status == Order.Status.REFUNDED
    assert delivered_order.payment_status == Order.PaymentStatus.REFUNDED
    assert delivered_order.admin_notes == "Full refund of $200.00 via refund re_1"
    assert delivered_order.events.filter(type=OrderEvent.Type.REFUNDED).count() == 1


def test_mark_delivered_keeps_existing_stamp(make_order):
    order = make_order(status=Order.Status.SHIPPED, delivered_days_ago=None)
    order.mark_delivered()
    stamp = order.delivered_at
    assert order.status == Order.Status.DELIVERED
    assert stamp is not None

    order.mark_delivered()
    assert order.delivered_at == stamp


def test_add_event_failure_does_not_break_caller(delivered_order):
    with patch("orders.models.OrderEvent.objects.create", side_effect=DatabaseError("disk full")):
        delivered_order.add_event(OrderEvent.Type.WARNING, "x")

    # Transaction is still usable
    delivered_order.add_event(OrderEvent.Type.WARNING, "y")
    assert list(delivered_order.events.values_list("message", flat=True)) == ["y"]
