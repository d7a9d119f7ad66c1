from __future__ import annotations
import asyncio
import io
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Protocol
import structlog
from minio import Minio
from minio.error import S3Error
from cluehunt.services.media import ext_for_mime

log = structlog.get_logger()


class MediaUploadError(Exception):
    """Transient failure talking to the media store; the caller may retry."""


@dataclass(frozen=True)
class StoredMedia:
    url: str
    delete_handle: str  # opaque to everything but the store


class MediaStore(Protocol):
    async def upload(self, data: bytes, content_type: str) -> StoredMedia: ...
    async def delete(self, handle: str) -> None: ...


def _parse_endpoint(ep: str) -> tuple[str, bool]:
    # Return (host:port, secure)
    secure = ep.startswith("https://")
    host = ep.replace("http://", "").replace("https://", "")
    return host, secure


class MinioMediaStore:
    """
    S3-compatible photo store. Credentials stay server-side; clients only ever
    see the returned URL. The minio client is blocking, so calls run in a thread.
    """

    def __init__(self, endpoint: str, access_key: str, secret_key: str, bucket: str,
                 public_base_url: str = "", presign_expiry_seconds: int = 604800):
        host, secure = _parse_endpoint(endpoint)
        self._client = Minio(host, access_key=access_key, secret_key=secret_key, secure=secure)
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")
        self.presign_expiry = timedelta(seconds=presign_expiry_seconds)
        self._bucket_ready = False

    def _ensure_bucket(self) -> None:
        if self._bucket_ready:
            return
        try:
            if not self._client.bucket_exists(self.bucket):
                self._client.make_bucket(self.bucket)
        except S3Error as e:
            # Bucket creation may race with another worker
            if e.code not in ("BucketAlreadyOwnedByYou", "BucketAlreadyExists"):
                raise
        self._bucket_ready = True

    def _url_for(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{self.bucket}/{key}"
        return self._client.presigned_get_object(self.bucket, key, expires=self.presign_expiry)

    def _put(self, key: str, data: bytes, content_type: str) -> StoredMedia:
        self._ensure_bucket()
        self._client.put_object(
            self.bucket, key, io.BytesIO(data), length=len(data), content_type=content_type
        )
        return StoredMedia(url=self._url_for(key), delete_handle=key)

    async def upload(self, data: bytes, content_type: str) -> StoredMedia:
        key = f"submissions/{uuid.uuid4().hex}.{ext_for_mime(content_type)}"
        try:
            return await asyncio.to_thread(self._put, key, data, content_type)
        except Exception as e:
            raise MediaUploadError(f"upload failed: {e}") from e

    async def delete(self, handle: str) -> None:
        await asyncio.to_thread(self._client.remove_object, self.bucket, handle)


async def discard_media(store: MediaStore, handle: str | None) -> None:
    """Best-effort asset removal: failures are logged, never raised."""
    if not handle:
        return
    try:
        await store.delete(handle)
        log.info("media_deleted", handle=handle)
    except Exception as e:
        log.warning("media_delete_failed", handle=handle, error=str(e))
