# core/throttle.py
from __future__ import annotations

import time
from dataclasses import dataclass
from functools import wraps
from typing import Callable, Iterable, Tuple

from django.conf import settings
from django.core.cache import cache
from django.http import HttpRequest, HttpResponse, JsonResponse

DEFAULT_METHODS: Tuple[str, ...] = ("POST", "PUT", "PATCH", "DELETE")


@dataclass(frozen=True)
class ThrottleRule:
    key_prefix: str
    limit: int
    window_seconds: int

    @property
    def window(self) -> int:
        return max(1, int(self.window_seconds))


def client_ip(request: HttpRequest) -> str:
    """
    REMOTE_ADDR unless THROTTLE_TRUST_PROXY_HEADERS is on (prod behind our
    own proxy), in which case the first X-Forwarded-For hop wins.
    """
    if getattr(settings, "THROTTLE_TRUST_PROXY_HEADERS", False):
        xff = (request.META.get("HTTP_X_FORWARDED_FOR") or "").split(",")[0].strip()
        if xff:
            return xff
        xri = (request.META.get("HTTP_X_REAL_IP") or "").strip()
        if xri:
            return xri
    return (request.META.get("REMOTE_ADDR") or "").strip() or "ip-unknown"


def throttle_identity(request: HttpRequest) -> str:
    """
    Authenticated callers are throttled per account (so a support agent on
    a shared office IP is not blocked by a colleague); anonymous per IP.
    """
    user = getattr(request, "user", None)
    if user is not None and user.is_authenticated:
        return f"user:{user.pk}"
    return f"ip:{client_ip(request)}"


def _hit(rule: ThrottleRule, identity: str, now: float) -> Tuple[bool, int]:
    """Count one hit in the current fixed window. Returns (allowed, retry_after)."""
    bucket = int(now // rule.window)
    key = f"throttle:{rule.key_prefix}:{bucket}:{identity}"

    # add() is a no-op when the key exists; incr() is atomic on real cache backends
    cache.add(key, 0, timeout=rule.window + 5)
    try:
        count = cache.incr(key)
    except ValueError:
        # expired between add() and incr()
        cache.set(key, 1, timeout=rule.window + 5)
        count = 1

    retry_after = max(1, int(rule.window - (now % rule.window)))
    return count <= rule.limit, retry_after


def throttle(rule: ThrottleRule, *, methods: Iterable[str] | None = None) -> Callable:
    """
    Fixed-window throttle for the JSON endpoints. Only the listed methods
    count (mutations by default). Over the limit: 429 with Retry-After.
    """
    counted: Tuple[str, ...] = tuple(m.upper() for m in methods) if methods else DEFAULT_METHODS

    def decorator(view_func: Callable) -> Callable:
        @wraps(view_func)
        def wrapped(request: HttpRequest, *args, **kwargs) -> HttpResponse:
            if request.method.upper() not in counted:
                return view_func(request, *args, **kwargs)

            allowed, retry_after = _hit(rule, throttle_identity(request), time.time())
            if not allowed:
                resp = JsonResponse(
                    {"ok": False, "error": "Too many requests. Please try again shortly.", "code": "throttled"},
                    status=429,
                )
                resp["Retry-After"] = str(retry_after)
                return resp

            return view_func(request, *args, **kwargs)

        return wrapped

    return decorator
