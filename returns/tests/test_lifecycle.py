from __future__ import annotations

import re
import uuid
from decimal import Decimal

import pytest
from django.db import IntegrityError

from orders.models import Order, OrderEvent
from returns.exceptions import AccessDenied, GatewayUnavailable, InvalidState, NotEligible, NotFoundError, ValidationError
from returns.models import RefundAttempt, ReturnItem, ReturnMessage, ReturnRequest
from returns.services import (
    cancel_return_request,
    create_return_request,
    delete_return_request,
    generate_rma_number,
    get_return_request,
    list_all_return_requests,
    list_user_return_requests,
    update_return_status,
)

pytestmark = pytest.mark.django_db


# =============================================================================
# Create
# =============================================================================


def test_rma_number_format():
    rma = generate_rma_number(now_ms=1700000000000)
    assert re.fullmatch(r"RMA-1700000000000-[0-9A-Z]{6}", rma)


def test_create_return_request(delivered_order, customer_actor, return_payload):
    rr = create_return_request(order_id=delivered_order.pk, actor=customer_actor, **return_payload)

    assert rr.status == ReturnRequest.Status.PENDING
    assert rr.type == ReturnRequest.Type.RETURN
    assert rr.user_id == customer_actor.user_id
    assert rr.submitted_at is not None
    assert re.fullmatch(r"RMA-\d+-[0-9A-Z]{6}", rr.rma_number)
    assert rr.evidence == [{"kind": "stored", "key": "returns/evidence/photo1.jpg"}]

    items = list(rr.items.all())
    assert [(i.order_item_index, i.quantity, i.reason) for i in items] == [(0, 1, "cracked")]
    assert OrderEvent.objects.filter(order=delivered_order, type=OrderEvent.Type.RETURN_REQUESTED).exists()


def test_create_requires_evidence(delivered_order, customer_actor, return_payload):
    return_payload["evidence"] = []
    with pytest.raises(ValidationError) as exc:
        create_return_request(order_id=delivered_order.pk, actor=customer_actor, **return_payload)
    assert exc.value.code == "evidence_required"
    assert not ReturnRequest.objects.exists()


def test_create_requires_description(delivered_order, customer_actor, return_payload):
    return_payload["description"] = "   "
    with pytest.raises(ValidationError):
        create_return_request(order_id=delivered_order.pk, actor=customer_actor, **return_payload)


@pytest.mark.parametrize(
    "items, code",
    [
        ([], "no_items"),
        ([{"order_item_index": 0, "quantity": 0}], "no_items"),
        ([{"order_item_index": 5, "quantity": 1}], "invalid_item"),
        ([{"order_item_index": 0, "quantity": 3}], "invalid_item"),
        ([{"order_item_index": 0, "quantity": 1}, {"order_item_index": 0, "quantity": 1}], "duplicate_item"),
        ([{"order_item_index": "x", "quantity": 1}], "invalid_item"),
    ],
)
def test_create_validates_items(delivered_order, customer_actor, return_payload, items, code):
    return_payload["return_items"] = items
    with pytest.raises(ValidationError) as exc:
        create_return_request(order_id=delivered_order.pk, actor=customer_actor, **return_payload)
    assert exc.value.code == code


def test_create_rejects_requested_amount_over_total(delivered_order, customer_actor, return_payload):
    with pytest.raises(ValidationError):
        create_return_request(
            order_id=delivered_order.pk,
            actor=customer_actor,
            requested_amount="250.00",
            **return_payload,
        )


def test_create_rejects_undelivered_order(make_order, customer_actor, return_payload):
    order = make_order(status=Order.Status.SHIPPED)
    with pytest.raises(NotEligible) as exc:
        create_return_request(order_id=order.pk, actor=customer_actor, **return_payload)
    assert exc.value.code == NotEligible.NOT_DELIVERED


def test_create_rejects_expired_window(make_order, customer_actor, return_payload):
    order = make_order(delivered_days_ago=31)
    with pytest.raises(NotEligible) as exc:
        create_return_request(order_id=order.pk, actor=customer_actor, **return_payload)
    assert exc.value.code == NotEligible.WINDOW_EXPIRED


def test_create_rejects_second_request_even_after_cancel(pending_return, customer_actor, return_payload):
    cancel_return_request(request_id=pending_return.pk, actor=customer_actor)

    with pytest.raises(NotEligible) as exc:
        create_return_request(order_id=pending_return.order_id, actor=customer_actor, **return_payload)
    assert exc.value.code == NotEligible.DUPLICATE_REQUEST
    assert ReturnRequest.objects.filter(order_id=pending_return.order_id).count() == 1


def test_unique_constraint_maps_to_duplicate(delivered_order, customer_actor, return_payload, monkeypatch):
    """A racing insert that slips past the pre-check still ends as NotEligible."""
    create_return_request(order_id=delivered_order.pk, actor=customer_actor, **return_payload)
    monkeypatch.setattr("returns.services.assert_can_return", lambda order: None)

    with pytest.raises(NotEligible) as exc:
        create_return_request(order_id=delivered_order.pk, actor=customer_actor, **return_payload)
    assert exc.value.code == NotEligible.DUPLICATE_REQUEST


def test_order_is_one_to_one(pending_return):
    with pytest.raises(IntegrityError):
        ReturnRequest.objects.create(
            order=pending_return.order,
            user=pending_return.user,
            reason=ReturnRequest.Reason.OTHER,
            description="again",
            rma_number=generate_rma_number(),
        )


def test_create_on_missing_order(customer_actor, return_payload):
    with pytest.raises(NotFoundError):
        create_return_request(order_id=uuid.uuid4(), actor=customer_actor, **return_payload)


def test_create_on_someone_elses_order(delivered_order, other_actor, return_payload):
    with pytest.raises(AccessDenied):
        create_return_request(order_id=delivered_order.pk, actor=other_actor, **return_payload)


# =============================================================================
# Admin transitions (no payment intent: no gateway involved)
# =============================================================================


@pytest.fixture
def offline_return(make_order, customer_actor, return_payload):
    order = make_order(payment_intent="")
    return create_return_request(order_id=order.pk, actor=customer_actor, **return_payload)


def test_customer_cannot_update_status(offline_return, customer_actor):
    with pytest.raises(AccessDenied):
        update_return_status(request_id=offline_return.pk, actor=customer_actor, new_status="approved")


def test_reject_sets_reviewed_at(offline_return, admin_actor):
    rr = update_return_status(request_id=offline_return.pk, actor=admin_actor, new_status="rejected", admin_notes="Outside policy")
    assert rr.status == ReturnRequest.Status.REJECTED
    assert rr.reviewed_at is not None
    assert rr.completed_at is None
    assert rr.admin_notes == "Outside policy"


def test_approve_without_payment_intent_records_amount(offline_return, admin_actor, stripe_refund):
    rr = update_return_status(request_id=offline_return.pk, actor=admin_actor, new_status="approved")

    stripe_refund.assert_not_called()
    assert rr.status == ReturnRequest.Status.APPROVED
    assert rr.approved_amount == Decimal("200.00")
    assert rr.stripe_refund_id == ""
    assert rr.reviewed_at is not None


def test_full_lifecycle_to_completed(offline_return, admin_actor):
    update_return_status(request_id=offline_return.pk, actor=admin_actor, new_status="approved")
    update_return_status(request_id=offline_return.pk, actor=admin_actor, new_status="processing", tracking_number="1Z999")
    rr = update_return_status(request_id=offline_return.pk, actor=admin_actor, new_status="completed")

    assert rr.status == ReturnRequest.Status.COMPLETED
    assert rr.completed_at is not None
    assert rr.tracking_number == "1Z999"


@pytest.mark.parametrize(
    "path, target",
    [
        (["rejected"], "approved"),
        (["approved"], "pending"),
        (["approved"], "rejected"),
        ([], "processing"),
        ([], "completed"),
        (["approved", "completed"], "processing"),
    ],
)
def test_illegal_transitions(offline_return, admin_actor, path, target):
    for step in path:
        update_return_status(request_id=offline_return.pk, actor=admin_actor, new_status=step)

    with pytest.raises(InvalidState):
        update_return_status(request_id=offline_return.pk, actor=admin_actor, new_status=target)


def test_same_status_updates_fields_only(offline_return, admin_actor):
    rr = update_return_status(
        request_id=offline_return.pk,
        actor=admin_actor,
        new_status="pending",
        admin_notes="Asked for more photos",
    )
    assert rr.status == ReturnRequest.Status.PENDING
    assert rr.admin_notes == "Asked for more photos"
    assert rr.reviewed_at is None
    assert not rr.messages.exists()


def test_same_status_on_terminal_request_is_rejected(offline_return, admin_actor):
    update_return_status(request_id=offline_return.pk, actor=admin_actor, new_status="rejected")
    with pytest.raises(InvalidState):
        update_return_status(request_id=offline_return.pk, actor=admin_actor, new_status="rejected", admin_notes="x")


def test_transition_posts_status_update_message(offline_return, admin_actor):
    update_return_status(request_id=offline_return.pk, actor=admin_actor, new_status="rejected")

    msg = ReturnMessage.objects.get(return_request=offline_return)
    assert msg.message_type == ReturnMessage.MessageType.STATUS_UPDATE
    assert msg.sender_type == ReturnMessage.SenderType.ADMIN
    assert offline_return.rma_number in msg.body
    assert msg.is_read is False


def test_transition_can_skip_customer_message(offline_return, admin_actor):
    update_return_status(request_id=offline_return.pk, actor=admin_actor, new_status="rejected", notify_customer=False)
    assert not ReturnMessage.objects.filter(return_request=offline_return).exists()


def test_unknown_status_is_validation_error(offline_return, admin_actor):
    with pytest.raises(ValidationError):
        update_return_status(request_id=offline_return.pk, actor=admin_actor, new_status="lost")


# =============================================================================
# Cancel / delete
# =============================================================================


def test_cancel_pending(pending_return, customer_actor):
    rr = cancel_return_request(request_id=pending_return.pk, actor=customer_actor)
    assert rr.status == ReturnRequest.Status.CANCELLED
    assert rr.completed_at is not None


def test_cancel_is_owner_only(pending_return, other_actor):
    with pytest.raises(AccessDenied):
        cancel_return_request(request_id=pending_return.pk, actor=other_actor)


def test_cancel_is_customer_only(pending_return, admin_actor):
    with pytest.raises(AccessDenied):
        cancel_return_request(request_id=pending_return.pk, actor=admin_actor)


def test_cancel_non_pending_rejected(offline_return, customer_actor, admin_actor):
    update_return_status(request_id=offline_return.pk, actor=admin_actor, new_status="approved")
    with pytest.raises(InvalidState):
        cancel_return_request(request_id=offline_return.pk, actor=customer_actor)


def test_delete_pending_removes_messages(pending_return, customer_actor):
    from returns.messaging import send_return_message

    send_return_message(request_id=pending_return.pk, actor=customer_actor, body="Any update?")
    delete_return_request(request_id=pending_return.pk, actor=customer_actor)

    assert not ReturnRequest.objects.filter(pk=pending_return.pk).exists()
    assert not ReturnMessage.objects.exists()
    assert not ReturnItem.objects.exists()


def test_delete_non_pending_rejected(pending_return, customer_actor):
    cancel_return_request(request_id=pending_return.pk, actor=customer_actor)
    with pytest.raises(InvalidState):
        delete_return_request(request_id=pending_return.pk, actor=customer_actor)
    assert ReturnRequest.objects.filter(pk=pending_return.pk).exists()


def test_delete_missing_request(customer_actor):
    with pytest.raises(NotFoundError):
        delete_return_request(request_id=uuid.uuid4(), actor=customer_actor)


def test_delete_keeps_failed_refund_attempts(pending_return, customer_actor, admin_actor, stripe_refund):
    stripe_refund.side_effect = GatewayUnavailable("Read timed out")
    with pytest.raises(GatewayUnavailable):
        update_return_status(request_id=pending_return.pk, actor=admin_actor, new_status="approved")
    assert RefundAttempt.objects.count() == 1

    with pytest.raises(InvalidState) as exc:
        delete_return_request(request_id=pending_return.pk, actor=customer_actor)
    assert exc.value.code == "has_refund_attempts"

    assert ReturnRequest.objects.filter(pk=pending_return.pk).exists()
    assert RefundAttempt.objects.filter(return_request=pending_return).count() == 1

    cancel_return_request(request_id=pending_return.pk, actor=customer_actor)
    assert RefundAttempt.objects.count() == 1


# =============================================================================
# Queries
# =============================================================================


def test_list_user_requests_only_returns_own(make_order, customer_actor, other_customer, other_actor, return_payload):
    mine = create_return_request(order_id=make_order().pk, actor=customer_actor, **return_payload)
    theirs_order = make_order(buyer=other_customer)
    create_return_request(order_id=theirs_order.pk, actor=other_actor, **return_payload)

    assert [rr.pk for rr in list_user_return_requests(actor=customer_actor)] == [mine.pk]


def test_list_user_requests_respects_limit(make_order, customer_actor, return_payload):
    for _ in range(3):
        create_return_request(order_id=make_order().pk, actor=customer_actor, **return_payload)
    assert len(list_user_return_requests(actor=customer_actor, limit=2)) == 2


def test_list_all_is_admin_only(pending_return, customer_actor):
    with pytest.raises(AccessDenied):
        list_all_return_requests(actor=customer_actor)


def test_list_all_status_filter(make_order, customer_actor, admin_actor, return_payload):
    a = create_return_request(order_id=make_order().pk, actor=customer_actor, **return_payload)
    b = create_return_request(order_id=make_order().pk, actor=customer_actor, **return_payload)
    cancel_return_request(request_id=b.pk, actor=customer_actor)

    assert {rr.pk for rr in list_all_return_requests(actor=admin_actor, status="all")} == {a.pk, b.pk}
    assert [rr.pk for rr in list_all_return_requests(actor=admin_actor, status="cancelled")] == [b.pk]
    with pytest.raises(ValidationError):
        list_all_return_requests(actor=admin_actor, status="bogus")


def test_get_return_request_visibility(pending_return, customer_actor, other_actor, admin_actor):
    assert get_return_request(request_id=pending_return.pk, actor=customer_actor).pk == pending_return.pk
    assert get_return_request(request_id=pending_return.pk, actor=admin_actor).pk == pending_return.pk
    with pytest.raises(AccessDenied):
        get_return_request(request_id=pending_return.pk, actor=other_actor)
