# returns/attachments.py
"""
Evidence and message attachments.

An attachment is either a file we stored ourselves (a storage key) or an
external URL the client already had. The variant is decided once, when the
attachment enters the system, and persisted with an explicit ``kind`` tag.
Reads dispatch on the variant; nothing downstream inspects string prefixes.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Union
from urllib.parse import urlparse

from django.core.exceptions import ValidationError

from core.storage_backends import get_media_storage

logger = logging.getLogger(__name__)

KIND_STORED = "stored"
KIND_URL = "url"

MAX_ATTACHMENTS = 10


@dataclass(frozen=True)
class StoredFile:
    key: str

    def to_json(self) -> dict[str, str]:
        return {"kind": KIND_STORED, "key": self.key}


@dataclass(frozen=True)
class ExternalUrl:
    url: str

    def to_json(self) -> dict[str, str]:
        return {"kind": KIND_URL, "url": self.url}


Attachment = Union[StoredFile, ExternalUrl]


def parse_attachment(raw: Any) -> Attachment:
    """
    Classify one attachment coming in from the API.

    Accepts an already-tagged dict ({"kind": ..., ...}) or a bare string.
    Bare strings containing "://" are URLs and must be http(s); anything
    else (colons included, e.g. "img:1.jpg") is a key in our media storage.
    """
    if isinstance(raw, (StoredFile, ExternalUrl)):
        return raw

    if isinstance(raw, dict):
        kind = (raw.get("kind") or "").strip()
        if kind == KIND_STORED and (raw.get("key") or "").strip():
            return StoredFile(key=raw["key"].strip())
        if kind == KIND_URL and (raw.get("url") or "").strip():
            return ExternalUrl(url=raw["url"].strip())
        raise ValidationError("Unrecognised attachment.", code="invalid_attachment")

    value = (raw or "").strip() if isinstance(raw, str) else ""
    if not value:
        raise ValidationError("Attachment reference cannot be empty.", code="invalid_attachment")

    if "://" not in value:
        return StoredFile(key=value)

    scheme = urlparse(value).scheme.lower()
    if scheme in ("http", "https"):
        return ExternalUrl(url=value)
    if scheme:
        raise ValidationError(f"Unsupported attachment URL scheme: {scheme}", code="invalid_attachment")
    raise ValidationError("Malformed attachment URL.", code="invalid_attachment")


def parse_attachments(raw_items: Iterable[Any] | None) -> list[Attachment]:
    items = [parse_attachment(x) for x in (raw_items or [])]
    if len(items) > MAX_ATTACHMENTS:
        raise ValidationError(f"At most {MAX_ATTACHMENTS} attachments are allowed.", code="too_many_attachments")
    return items


def from_json(data: dict[str, Any]) -> Attachment:
    if data.get("kind") == KIND_URL:
        return ExternalUrl(url=data["url"])
    return StoredFile(key=data["key"])


def serialize(items: Iterable[Attachment]) -> list[dict[str, str]]:
    return [a.to_json() for a in items]


def resolve_attachment(attachment: Attachment) -> str:
    """
    Retrievable URL for an attachment.

    Storage failures degrade to the raw key so one broken file never fails a
    whole message list.
    """
    if isinstance(attachment, ExternalUrl):
        return attachment.url

    try:
        return get_media_storage().url(attachment.key)
    except Exception:
        logger.warning("Could not resolve stored attachment key=%s", attachment.key, exc_info=True)
        return attachment.key


def resolve_all(stored: Iterable[dict[str, Any]] | None) -> list[str]:
    return [resolve_attachment(from_json(d)) for d in (stored or [])]
