# returns/views.py
from __future__ import annotations

import json
import logging
from functools import wraps
from typing import Any, Callable

from django.contrib.auth.decorators import login_required
from django.core.exceptions import ObjectDoesNotExist, PermissionDenied, ValidationError
from django.http import HttpRequest, HttpResponse, JsonResponse
from django.views.decorators.http import require_GET, require_POST

from accounts.permissions import actor_for, admin_required
from core.throttle import ThrottleRule, throttle

from . import messaging, notifications, services
from .exceptions import PaymentGatewayError
from .forms import ReturnMessageForm, ReturnRequestCreateForm, ReturnStatusForm
from .serializers import (
    serialize_admin_return_request,
    serialize_message,
    serialize_return_request,
)

logger = logging.getLogger(__name__)


# ----------------------------
# Throttle rules (tune anytime)
# ----------------------------
RETURN_CREATE_RULE = ThrottleRule(key_prefix="return_create", limit=3, window_seconds=60)
RETURN_CUSTOMER_ACTION_RULE = ThrottleRule(key_prefix="return_customer_action", limit=10, window_seconds=60)
RETURN_MESSAGE_RULE = ThrottleRule(key_prefix="return_message", limit=20, window_seconds=60)
RETURN_ADMIN_STATUS_RULE = ThrottleRule(key_prefix="return_admin_status", limit=10, window_seconds=60)


# ============================================================
# Helpers
# ============================================================
def _error(message: str, code: str, status: int, **extra: Any) -> JsonResponse:
    return JsonResponse({"ok": False, "error": message, "code": code, **extra}, status=status)


def _ok(**payload: Any) -> JsonResponse:
    return JsonResponse({"ok": True, **payload})


def _request_data(request: HttpRequest):
    """
    JSON body when the client sent one, form-encoded POST otherwise.
    """
    content_type = (request.content_type or "").lower()
    if content_type == "application/json":
        if not request.body:
            return {}
        try:
            data = json.loads(request.body)
        except ValueError:
            raise ValidationError("Request body is not valid JSON.", code="invalid_json")
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object.", code="invalid_json")
        return data
    return request.POST


def _form_error(form) -> JsonResponse:
    errors = form.errors.get_json_data()
    first = next(iter(errors.values()), [{"message": "Please correct the form."}])[0]["message"]
    return _error(first, "invalid_form", 400, fields=errors)


def service_errors(view_func: Callable[..., HttpResponse]):
    """
    Maps service-layer exceptions onto the JSON error contract:
    validation/eligibility/state 400, access 403, missing 404,
    gateway 503 (retryable) or 502.
    """

    @wraps(view_func)
    def wrapped(request: HttpRequest, *args, **kwargs) -> HttpResponse:
        try:
            return view_func(request, *args, **kwargs)
        except PaymentGatewayError as e:
            status = 503 if e.retryable else 502
            return _error(e.message, e.gateway_code or "payment_gateway_error", status, retryable=e.retryable)
        except ValidationError as e:
            message = e.messages[0] if e.messages else "Invalid request."
            return _error(message, getattr(e, "code", None) or "invalid", 400)
        except PermissionDenied as e:
            return _error(str(e) or "Access denied.", "access_denied", 403)
        except ObjectDoesNotExist as e:
            return _error(str(e) or "Not found.", "not_found", 404)

    return wrapped


# ============================================================
# Customer
# ============================================================
@login_required
@require_GET
@service_errors
def my_returns(request: HttpRequest) -> HttpResponse:
    actor = actor_for(request.user)
    qs = services.list_user_return_requests(actor=actor, limit=request.GET.get("limit"))
    return _ok(returns=[serialize_return_request(rr) for rr in qs])


@login_required
@require_GET
@service_errors
def eligibility(request: HttpRequest, order_id) -> HttpResponse:
    actor = actor_for(request.user)
    result = services.check_return_eligibility(order_id=order_id, actor=actor)
    return _ok(**result.as_dict())


@login_required
@require_POST
@throttle(RETURN_CREATE_RULE)
@service_errors
def create(request: HttpRequest, order_id) -> HttpResponse:
    actor = actor_for(request.user)
    form = ReturnRequestCreateForm(_request_data(request))
    if not form.is_valid():
        return _form_error(form)

    rr = services.create_return_request(
        order_id=order_id,
        actor=actor,
        reason=form.cleaned_data["reason"],
        description=form.cleaned_data.get("description", ""),
        return_items=form.cleaned_data["return_items"],
        evidence=form.cleaned_data["evidence"],
        requested_amount=form.cleaned_data.get("requested_amount"),
    )
    rr = services.get_return_request(request_id=rr.pk, actor=actor)
    return JsonResponse({"ok": True, "return": serialize_return_request(rr, detail=True)}, status=201)


@login_required
@require_GET
@service_errors
def detail(request: HttpRequest, request_id) -> HttpResponse:
    actor = actor_for(request.user)
    rr = services.get_return_request(request_id=request_id, actor=actor)
    if actor.is_admin:
        return _ok(**{"return": serialize_admin_return_request(rr)})
    return _ok(**{"return": serialize_return_request(rr, detail=True)})


@login_required
@require_POST
@throttle(RETURN_CUSTOMER_ACTION_RULE)
@service_errors
def cancel(request: HttpRequest, request_id) -> HttpResponse:
    actor = actor_for(request.user)
    rr = services.cancel_return_request(request_id=request_id, actor=actor)
    return _ok(**{"return": serialize_return_request(rr)})


@login_required
@require_POST
@throttle(RETURN_CUSTOMER_ACTION_RULE)
@service_errors
def delete(request: HttpRequest, request_id) -> HttpResponse:
    actor = actor_for(request.user)
    services.delete_return_request(request_id=request_id, actor=actor)
    return _ok(deleted=str(request_id))


# ============================================================
# Messages (both parties)
# ============================================================
@login_required
@require_GET
@service_errors
def message_list(request: HttpRequest, request_id) -> HttpResponse:
    actor = actor_for(request.user)
    msgs = messaging.list_return_messages(request_id=request_id, actor=actor)
    return _ok(messages=[serialize_message(m) for m in msgs])


@login_required
@require_POST
@throttle(RETURN_MESSAGE_RULE)
@service_errors
def message_send(request: HttpRequest, request_id) -> HttpResponse:
    actor = actor_for(request.user)
    form = ReturnMessageForm(_request_data(request))
    if not form.is_valid():
        return _form_error(form)

    msg = messaging.send_return_message(
        request_id=request_id,
        actor=actor,
        body=form.cleaned_data.get("body", ""),
        attachments=form.cleaned_data["attachments"],
        message_type=form.cleaned_data.get("message_type") or None,
    )
    return JsonResponse({"ok": True, "message": serialize_message(msg)}, status=201)


@login_required
@require_POST
@service_errors
def message_mark_read(request: HttpRequest, request_id) -> HttpResponse:
    actor = actor_for(request.user)
    updated = messaging.mark_messages_read(request_id=request_id, actor=actor)
    return _ok(updated=updated)


@login_required
@require_GET
@service_errors
def unread(request: HttpRequest) -> HttpResponse:
    actor = actor_for(request.user)
    return _ok(unread=notifications.unread_count_for_user(actor=actor))


@login_required
@require_GET
@service_errors
def request_unread(request: HttpRequest, request_id) -> HttpResponse:
    actor = actor_for(request.user)
    count = notifications.unread_count_for_request(request_id=request_id, actor=actor)
    return _ok(request_id=str(request_id), unread=count)


# ============================================================
# Admin
# ============================================================
@login_required
@admin_required
@require_GET
@service_errors
def admin_list(request: HttpRequest) -> HttpResponse:
    actor = actor_for(request.user)
    qs = services.list_all_return_requests(
        actor=actor,
        status=request.GET.get("status"),
        limit=request.GET.get("limit"),
    )
    return _ok(returns=[serialize_admin_return_request(rr) for rr in qs])


@login_required
@admin_required
@require_POST
@throttle(RETURN_ADMIN_STATUS_RULE)
@service_errors
def admin_update_status(request: HttpRequest, request_id) -> HttpResponse:
    actor = actor_for(request.user)
    form = ReturnStatusForm(_request_data(request))
    if not form.is_valid():
        return _form_error(form)

    rr = services.update_return_status(request_id=request_id, actor=actor, **form.service_kwargs())
    return _ok(**{"return": serialize_admin_return_request(rr)})


@login_required
@admin_required
@require_GET
@service_errors
def admin_unread(request: HttpRequest) -> HttpResponse:
    actor = actor_for(request.user)
    return _ok(**notifications.unread_counts_admin(actor=actor).as_dict())
