# core/middleware.py
from __future__ import annotations

from django.utils.deprecation import MiddlewareMixin

from accounts.permissions import Role, is_admin_user

from .logging_context import clear_context, new_request_id, set_context


class RequestIDMiddleware(MiddlewareMixin):
    """
    Adds a stable request id for observability.

    - request.request_id (client-supplied X-Request-ID is honoured, capped at 64 chars)
    - response header: X-Request-ID
    - threadlocal context for logging filters and refund attempt rows

    Must sit after AuthenticationMiddleware so the acting user is known.
    """

    header_name = "HTTP_X_REQUEST_ID"
    response_header = "X-Request-ID"

    def process_request(self, request):
        rid = (request.META.get(self.header_name) or "").strip()[:64] or new_request_id()
        request.request_id = rid

        user = getattr(request, "user", None)
        if user is not None and user.is_authenticated:
            user_id = user.pk
            role = Role.ADMIN if is_admin_user(user) else Role.CUSTOMER
        else:
            user_id, role = None, ""
        set_context(request_id=rid, user_id=user_id, role=str(role), path=(request.path or ""))

    def process_response(self, request, response):
        rid = getattr(request, "request_id", None)
        if rid:
            response[self.response_header] = rid
        clear_context()
        return response

    def process_exception(self, request, exception):
        clear_context()
        return None
