# core/logging_filters.py
from __future__ import annotations

import logging

from .logging_context import get_context


class RequestContextFilter(logging.Filter):
    """
    Stamps request_id / user_id / role / path onto every record so format
    strings can use them unconditionally. Outside a request they are "-".
    """

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = get_context()
        record.request_id = ctx.request_id if ctx else "-"
        record.user_id = ctx.user_id if ctx and ctx.user_id is not None else "-"
        record.role = (ctx.role if ctx else "") or "-"
        record.path = (ctx.path if ctx else "") or "-"
        return True
