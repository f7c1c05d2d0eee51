import logging
from typing import Optional

import httpx

from editorial.config import settings

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    pass


def configured() -> bool:
    return bool(settings.storage_url and settings.storage_key and settings.storage_bucket)


def public_url(path: str, bucket: Optional[str] = None) -> str:
    bucket = bucket or settings.storage_bucket
    base = (settings.storage_public_url or settings.storage_url).rstrip("/")
    return f"{base}/storage/v1/object/public/{bucket}/{path.lstrip('/')}"


def upload(path: str, data: bytes, content_type: str, bucket: Optional[str] = None) -> str:
    """Upload bytes to the object-storage bucket and return the public URL."""
    if not configured():
        raise StorageError("storage not configured")
    bucket = bucket or settings.storage_bucket
    url = f"{settings.storage_url.rstrip('/')}/storage/v1/object/{bucket}/{path.lstrip('/')}"
    headers = {
        "Authorization": f"Bearer {settings.storage_key}",
        "apikey": settings.storage_key,
        "Content-Type": content_type,
        "x-upsert": "true",
    }
    try:
        with httpx.Client(timeout=httpx.Timeout(20, connect=5)) as c:
            r = c.post(url, headers=headers, content=data)
    except httpx.HTTPError as e:
        raise StorageError(f"upload failed: {e}") from e
    if r.status_code >= 400:
        raise StorageError(f"upload failed: HTTP {r.status_code} {r.text[:200]}")
    logger.info("stored %s (%d bytes)", path, len(data))
    return public_url(path, bucket)
