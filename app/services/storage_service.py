"""
Object storage gateway for guestbook media.

Blobs live either in the Firebase Cloud Storage bucket or, when Firebase is
disabled, on local disk under UPLOAD_DIR. Both hand out time-limited signed
URLs for read access.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import os
import time
from datetime import timedelta
from functools import lru_cache
from typing import Iterable, List, Optional
from urllib.parse import quote, urlencode

from app.core.config import settings
from app.core.errors import StorageError
from app.services.firebase_client import get_storage_bucket

logger = logging.getLogger(__name__)


def clean_storage_path(path: Optional[str]) -> Optional[str]:
    """Strip a leading slash so paths are bucket-relative"""
    if not path:
        return None
    return path[1:] if path.startswith("/") else path


def content_disposition(filename: str) -> str:
    """Attachment header value with an ASCII fallback and an RFC 5987 UTF-8 name"""
    fallback = filename.encode("ascii", "ignore").decode("ascii").replace('"', "").replace("\\", "").strip()
    return f"attachment; filename=\"{fallback or 'download'}\"; filename*=UTF-8''{quote(filename, safe='')}"


class StorageGateway:
    """Interface shared by the storage backends"""

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        raise NotImplementedError

    def create_signed_url(self, path: str, expires_in: Optional[int] = None, filename: Optional[str] = None) -> str:
        """Time-limited read URL; with a filename the blob downloads under that name"""
        raise NotImplementedError

    def remove(self, paths: Iterable[str]) -> None:
        raise NotImplementedError


class FirebaseStorage(StorageGateway):
    """Firebase Cloud Storage bucket"""

    def __init__(self, bucket=None):
        self.bucket = bucket if bucket is not None else get_storage_bucket()

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        blob = self.bucket.blob(path)
        if blob.exists():
            raise StorageError(f"Object already exists: {path}", error_code="object_exists")
        blob.cache_control = "max-age=3600"
        blob.upload_from_string(data, content_type=content_type)
        return path

    def create_signed_url(self, path: str, expires_in: Optional[int] = None, filename: Optional[str] = None) -> str:
        expires_in = expires_in or settings.SIGNED_URL_EXPIRES
        blob = self.bucket.blob(clean_storage_path(path))
        return blob.generate_signed_url(
            expiration=timedelta(seconds=expires_in),
            version="v4",
            method="GET",
            response_disposition=content_disposition(filename) if filename else None,
        )

    def remove(self, paths: Iterable[str]) -> None:
        for path in paths:
            cleaned = clean_storage_path(path)
            if cleaned:
                self.bucket.blob(cleaned).delete()


class LocalStorage(StorageGateway):
    """Blobs on local disk, served through /media with HMAC-signed query strings"""

    def __init__(self, root: Optional[str] = None, signing_key: Optional[str] = None, base_url: Optional[str] = None):
        self.root = os.path.abspath(root or settings.UPLOAD_DIR)
        self.signing_key = (signing_key or settings.STORAGE_SIGNING_KEY).encode("utf-8")
        self.base_url = (base_url if base_url is not None else settings.BASE_URL).rstrip("/")

    def _full_path(self, path: str) -> str:
        full = os.path.abspath(os.path.join(self.root, clean_storage_path(path)))
        if not full.startswith(self.root + os.sep):
            raise StorageError(f"Invalid storage path: {path}", error_code="invalid_path")
        return full

    def _signature(self, path: str, expires: int, filename: Optional[str] = None) -> str:
        message = f"{clean_storage_path(path)}:{expires}"
        if filename:
            message = f"{message}:{filename}"
        message = message.encode("utf-8")
        return hmac.new(self.signing_key, message, hashlib.sha256).hexdigest()

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        full = self._full_path(path)
        if os.path.exists(full):
            raise StorageError(f"Object already exists: {path}", error_code="object_exists")
        os.makedirs(os.path.dirname(full), exist_ok=True)
        with open(full, "wb") as f:
            f.write(data)
        return clean_storage_path(path)

    def create_signed_url(self, path: str, expires_in: Optional[int] = None, filename: Optional[str] = None) -> str:
        expires_in = expires_in or settings.SIGNED_URL_EXPIRES
        full = self._full_path(path)
        if not os.path.exists(full):
            raise StorageError(f"Object not found: {path}", error_code="object_not_found")
        expires = int(time.time()) + expires_in
        params = {"expires": expires, "signature": self._signature(path, expires, filename)}
        if filename:
            params["filename"] = filename
        query = urlencode(params)
        return f"{self.base_url}/media/{quote(clean_storage_path(path))}?{query}"

    def verify(self, path: str, expires: int, signature: str, filename: Optional[str] = None) -> bool:
        if expires < int(time.time()):
            return False
        return hmac.compare_digest(self._signature(path, expires, filename), signature)

    def open_path(self, path: str) -> str:
        """Absolute file path of a stored blob"""
        full = self._full_path(path)
        if not os.path.exists(full):
            raise StorageError(f"Object not found: {path}", error_code="object_not_found")
        return full

    def remove(self, paths: Iterable[str]) -> None:
        removed: List[str] = []
        for path in paths:
            if not clean_storage_path(path):
                continue
            full = self._full_path(path)
            if os.path.exists(full):
                os.remove(full)
                removed.append(path)
        logger.info(f"Removed {len(removed)} local blob(s)")


@lru_cache(maxsize=1)
def get_storage() -> StorageGateway:
    """Storage backend for the current configuration"""
    if settings.USE_FIREBASE:
        return FirebaseStorage()
    return LocalStorage()
