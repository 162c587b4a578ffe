# core/storage_backends.py
from __future__ import annotations

import os

from django.conf import settings
from django.core.files.storage import FileSystemStorage, Storage
from storages.backends.s3boto3 import S3Boto3Storage


class MediaStorage(S3Boto3Storage):
    """
    Media bucket storage (return evidence, message attachments).

    Bucket is private; URLs handed to clients are signed and short-lived.
    """
    bucket_name = os.getenv("AWS_S3_MEDIA_BUCKET", "")
    default_acl = None
    file_overwrite = False
    location = "media"
    querystring_auth = True
    custom_domain = None  # ensures signed S3 URLs


def get_media_storage() -> Storage:
    """
    Returns the correct storage for general media.
    - If USE_S3=True: MediaStorage (S3)
    - Else: local filesystem under MEDIA_ROOT
    """
    if getattr(settings, "USE_S3", False):
        return MediaStorage()
    return FileSystemStorage(location=settings.MEDIA_ROOT, base_url=settings.MEDIA_URL)
