"""Helpers for writing review media and attachments to object storage."""

from __future__ import annotations

import io
import os
import re
from datetime import timedelta
from typing import Optional
from uuid import uuid4

from minio import Minio
from minio.error import S3Error

from .errors import PayloadTooLarge, UpstreamUnavailable

# purpose: centralize object storage writes and enforce the upload size cap before any write
# status: active

MAX_UPLOAD_BYTES = 25 * 1024 * 1024

_MINIO_CLIENT: Optional[Minio] = None


def _get_upload_dir() -> str:
    """Return the configured upload directory, creating it when needed."""

    upload_dir = os.getenv("UPLOAD_DIR", "uploaded_files")
    os.makedirs(upload_dir, exist_ok=True)
    return upload_dir


def _ensure_minio_client() -> Optional[Minio]:
    """Initialize and return a MinIO client when configuration is present."""

    global _MINIO_CLIENT
    endpoint = os.getenv("MINIO_ENDPOINT", "").strip()
    access_key = os.getenv("MINIO_ACCESS_KEY")
    secret_key = os.getenv("MINIO_SECRET_KEY")
    bucket = os.getenv("MINIO_BUCKET", "deliverables")
    if not endpoint or not access_key or not secret_key:
        return None
    if _MINIO_CLIENT is None:
        client = Minio(
            endpoint.replace("https://", "").replace("http://", ""),
            access_key=access_key,
            secret_key=secret_key,
            secure=endpoint.startswith("https"),
        )
        try:
            if not client.bucket_exists(bucket):
                client.make_bucket(bucket)
        except S3Error as exc:
            raise UpstreamUnavailable(f"Object storage unavailable: {exc}") from exc
        _MINIO_CLIENT = client
    return _MINIO_CLIENT


def build_object_name(namespace: str | None, filename: str) -> str:
    """Construct a normalized storage object key within an optional namespace."""

    safe_name = re.sub(r"[^A-Za-z0-9_.-]", "_", filename) or "upload.bin"
    if not namespace:
        return f"{uuid4()}_{safe_name}"
    clean_namespace = re.sub(r"[^A-Za-z0-9/_.-]", "_", namespace).strip("/")
    return f"{clean_namespace}/{uuid4()}_{safe_name}"


def ensure_within_cap(size: int, limit: Optional[int] = None) -> None:
    limit = MAX_UPLOAD_BYTES if limit is None else limit
    if size > limit:
        raise PayloadTooLarge(f"File size exceeds {limit // (1024 * 1024)} MB limit")


def put_object(
    path: str,
    data: bytes,
    content_type: str = "application/octet-stream",
) -> str:
    """Store ``data`` at ``path`` and return a URL the client can fetch it from."""

    ensure_within_cap(len(data))
    client = _ensure_minio_client()
    if client:
        bucket = os.getenv("MINIO_BUCKET", "deliverables")
        try:
            client.put_object(
                bucket,
                path,
                io.BytesIO(data),
                length=len(data),
                content_type=content_type,
            )
            return client.presigned_get_object(bucket, path, expires=timedelta(days=7))
        except S3Error as exc:
            raise UpstreamUnavailable(f"Upload failed: {exc}") from exc

    upload_dir = _get_upload_dir()
    parts = path.strip("/").split("/")
    target_dir = os.path.join(upload_dir, *parts[:-1])
    os.makedirs(target_dir, exist_ok=True)
    storage_path = os.path.join(target_dir, parts[-1])
    with open(storage_path, "wb") as handle:
        handle.write(data)
    return storage_path
