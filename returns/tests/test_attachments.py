from __future__ import annotations

from unittest.mock import patch

import pytest
from django.core.exceptions import ValidationError

from returns.attachments import (
    MAX_ATTACHMENTS,
    ExternalUrl,
    StoredFile,
    parse_attachment,
    parse_attachments,
    resolve_all,
    resolve_attachment,
    serialize,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("returns/evidence/a.jpg", StoredFile(key="returns/evidence/a.jpg")),
        ("  uploads/b.png ", StoredFile(key="uploads/b.png")),
        ("img:1.jpg", StoredFile(key="img:1.jpg")),
        ("returns/2024:07/e.jpg", StoredFile(key="returns/2024:07/e.jpg")),
        ("https://cdn.example.com/c.jpg", ExternalUrl(url="https://cdn.example.com/c.jpg")),
        ("HTTP://example.com/d.jpg", ExternalUrl(url="HTTP://example.com/d.jpg")),
        ({"kind": "stored", "key": "k1"}, StoredFile(key="k1")),
        ({"kind": "url", "url": "https://x.test/1"}, ExternalUrl(url="https://x.test/1")),
    ],
)
def test_parse_attachment(raw, expected):
    assert parse_attachment(raw) == expected


@pytest.mark.parametrize(
    "raw",
    ["", "   ", None, 42, "ftp://host/file", "://no-scheme", {"kind": "stored"}, {"kind": "blob", "key": "x"}],
)
def test_parse_attachment_rejects(raw):
    with pytest.raises(ValidationError):
        parse_attachment(raw)


def test_parse_attachments_limit():
    with pytest.raises(ValidationError):
        parse_attachments([f"k{i}" for i in range(MAX_ATTACHMENTS + 1)])


def test_serialize_is_tagged():
    assert serialize([StoredFile("k"), ExternalUrl("https://x.test")]) == [
        {"kind": "stored", "key": "k"},
        {"kind": "url", "url": "https://x.test"},
    ]


def test_external_url_resolves_to_itself():
    with patch("returns.attachments.get_media_storage") as storage:
        assert resolve_attachment(ExternalUrl("https://x.test/a.jpg")) == "https://x.test/a.jpg"
    storage.assert_not_called()


def test_stored_file_resolves_through_storage():
    with patch("returns.attachments.get_media_storage") as storage:
        storage.return_value.url.return_value = "https://bucket.s3/media/k?sig=1"
        assert resolve_attachment(StoredFile("k")) == "https://bucket.s3/media/k?sig=1"
    storage.return_value.url.assert_called_once_with("k")


def test_storage_failure_falls_back_to_raw_key():
    with patch("returns.attachments.get_media_storage") as storage:
        storage.return_value.url.side_effect = RuntimeError("no credentials")
        assert resolve_all([{"kind": "stored", "key": "k"}, {"kind": "url", "url": "https://x.test"}]) == [
            "k",
            "https://x.test",
        ]
