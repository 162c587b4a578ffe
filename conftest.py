from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.utils import timezone

from accounts.permissions import actor_for
from orders.models import Order, OrderItem
from returns.models import ReturnRequest
from returns.stripe_service import GatewayRefund


# =============================================================================
# Users / actors
# =============================================================================


@pytest.fixture(autouse=True)
def _clear_cache():
    """Throttle buckets live in the cache; keep tests independent."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def customer(db):
    return get_user_model().objects.create_user(username="buyer", email="buyer@test.local", password="pw")


@pytest.fixture
def other_customer(db):
    return get_user_model().objects.create_user(username="someone", email="someone@test.local", password="pw")


@pytest.fixture
def admin_user(db):
    return get_user_model().objects.create_user(
        username="support", email="support@test.local", password="pw", is_staff=True
    )


@pytest.fixture
def customer_actor(customer):
    return actor_for(customer)


@pytest.fixture
def other_actor(other_customer):
    return actor_for(other_customer)


@pytest.fixture
def admin_actor(admin_user):
    return actor_for(admin_user)


# =============================================================================
# Orders
# =============================================================================


@pytest.fixture
def make_order(db, customer):
    def _make(
        *,
        buyer=None,
        status=Order.Status.DELIVERED,
        total=Decimal("200.00"),
        payment_intent="pi_abc",
        delivered_days_ago=10,
        lines=((2, Decimal("50.00")), (1, Decimal("100.00"))),
    ) -> Order:
        now = timezone.now()
        order = Order.objects.create(
            buyer=buyer or customer,
            email="buyer@test.local",
            status=status,
            payment_status=Order.PaymentStatus.PAID,
            total_amount=total,
            stripe_payment_intent_id=payment_intent,
            delivered_at=(now - timedelta(days=delivered_days_ago)) if delivered_days_ago is not None else None,
        )
        for pos, (qty, price) in enumerate(lines):
            OrderItem.objects.create(
                order=order,
                position=pos,
                product_name=f"Item {pos}",
                quantity=qty,
                unit_price=price,
            )
        return order

    return _make


@pytest.fixture
def delivered_order(make_order):
    """$200.00, paid with pi_abc, delivered 10 days ago."""
    return make_order()


@pytest.fixture
def return_payload():
    return {
        "reason": ReturnRequest.Reason.DEFECTIVE,
        "description": "Arrived cracked.",
        "return_items": [{"order_item_index": 0, "quantity": 1, "reason": "cracked"}],
        "evidence": ["returns/evidence/photo1.jpg"],
    }


@pytest.fixture
def pending_return(delivered_order, customer_actor, return_payload):
    from returns.services import create_return_request

    return create_return_request(order_id=delivered_order.pk, actor=customer_actor, **return_payload)


# =============================================================================
# Gateway
# =============================================================================


@pytest.fixture
def stripe_refund():
    """Patch the gateway call the refund processor makes."""
    with patch("returns.refunds.create_stripe_refund") as mock_create:
        mock_create.return_value = GatewayRefund(refund_id="re_test_123", status="succeeded", amount_cents=None)
        yield mock_create
