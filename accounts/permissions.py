# accounts/permissions.py
"""
Identity context for the returns desk.

Authentication is Django's job; everything downstream only ever sees an
``Actor`` (user id + role) resolved from ``request.user``. Admin-only
operations call ``require_role(actor, Role.ADMIN)`` explicitly.
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable

from django.core.exceptions import PermissionDenied
from django.db import models
from django.http import HttpRequest, HttpResponse, JsonResponse


class AccessDenied(PermissionDenied):
    """Caller lacks ownership or role for the operation."""


class Role(models.TextChoices):
    CUSTOMER = "customer", "Customer"
    ADMIN = "admin", "Admin"


@dataclass(frozen=True)
class Actor:
    user_id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_customer(self) -> bool:
        return self.role == Role.CUSTOMER


def is_admin_user(user) -> bool:
    if not user or not getattr(user, "is_authenticated", False):
        return False
    return bool(getattr(user, "is_staff", False) or getattr(user, "is_superuser", False))


def actor_for(user) -> Actor:
    if not user or not getattr(user, "is_authenticated", False):
        raise AccessDenied("Authentication required.")
    role = Role.ADMIN if is_admin_user(user) else Role.CUSTOMER
    return Actor(user_id=user.pk, role=role)


def require_role(actor: Actor, role: str) -> None:
    if actor.role != role:
        raise AccessDenied(f"This action requires the {Role(role).label.lower()} role.")


def admin_required(view_func: Callable[..., HttpResponse]):
    """
    JSON-view guard: 403 for non-admin callers instead of a login redirect.
    Services still call ``require_role`` themselves.
    """

    @wraps(view_func)
    def _wrapped(request: HttpRequest, *args: Any, **kwargs: Any) -> HttpResponse:
        if not is_admin_user(getattr(request, "user", None)):
            return JsonResponse({"ok": False, "error": "Admin access required.", "code": "access_denied"}, status=403)
        return view_func(request, *args, **kwargs)

    return _wrapped
