"""Resolution of stored project files.

Uploads themselves happen elsewhere; submissions only keep the object key the
upload service returned. Faculty get short-lived download links for review.
"""

from __future__ import annotations

import boto3
from botocore.client import Config

from skillcourses.core.config import is_prod, settings


def get_s3_client(*, endpoint_url: str | None = None):
    ep = (endpoint_url or "").strip() or None
    # For AWS S3, endpoint_url must be None.
    # For S3-compatible providers (MinIO/R2/YC), endpoint_url is required.
    return boto3.client(
        "s3",
        endpoint_url=ep or (str(settings.s3_endpoint_url or "").strip() or None),
        aws_access_key_id=settings.s3_access_key_id,
        aws_secret_access_key=settings.s3_secret_access_key,
        region_name=settings.s3_region_name,
        config=Config(
            signature_version="s3v4",
            connect_timeout=float(settings.s3_connect_timeout_seconds),
            read_timeout=float(settings.s3_read_timeout_seconds),
            retries={
                "max_attempts": int(settings.s3_max_attempts),
                "mode": "standard",
            },
            s3={"addressing_style": str(settings.s3_addressing_style)},
        ),
    )


def _get_presign_client():
    pub = (settings.s3_public_endpoint_url or "").strip()
    # Presign client does not contact S3; endpoint_url affects only the signed host.
    return get_s3_client(endpoint_url=pub or settings.s3_endpoint_url)


def object_key_from_ref(file_ref: str) -> str | None:
    """Accept bare keys and ``s3://bucket/key`` refs; anything else is external."""
    ref = (file_ref or "").strip()
    if not ref:
        return None
    if ref.startswith("s3://"):
        _, _, rest = ref.partition("s3://")
        bucket, _, key = rest.partition("/")
        if bucket != settings.s3_bucket or not key:
            return None
        return key
    if "://" in ref:
        return None
    return ref.lstrip("/")


def presign_get(*, object_key: str, expires_seconds: int | None = None) -> str:
    s3 = _get_presign_client()
    expires = int(expires_seconds or settings.s3_presign_download_expires_seconds or 900)
    if is_prod():
        expires = max(60, min(expires, 300))
    return s3.generate_presigned_url(
        "get_object",
        Params={"Bucket": settings.s3_bucket, "Key": object_key},
        ExpiresIn=expires,
    )


def download_url_for(file_ref: str) -> str | None:
    ref = (file_ref or "").strip()
    if ref.startswith(("http://", "https://")):
        return ref
    key = object_key_from_ref(ref)
    if key is None:
        return None
    return presign_get(object_key=key)
