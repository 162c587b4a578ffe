# core/logging_context.py
"""
Per-request logging context (request id, who is acting, which path).

Set by ``core.middleware.RequestIDMiddleware``; read by the log filter and
by anything that persists an operational row (refund attempts keep the
request id so a support ticket can be matched to the log lines).
"""
from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass
from typing import Optional

_local = threading.local()


@dataclass(frozen=True)
class RequestContext:
    request_id: str
    user_id: Optional[int] = None
    role: str = ""
    path: str = ""


def set_context(*, request_id: str, user_id: Optional[int], role: str = "", path: str = "") -> None:
    _local.ctx = RequestContext(request_id=request_id, user_id=user_id, role=role, path=path)


def clear_context() -> None:
    _local.__dict__.pop("ctx", None)


def get_context() -> Optional[RequestContext]:
    return getattr(_local, "ctx", None)


def current_request_id() -> str:
    """Empty outside a request (management commands, shell, tests)."""
    ctx = get_context()
    return ctx.request_id if ctx else ""


def new_request_id() -> str:
    return uuid.uuid4().hex
