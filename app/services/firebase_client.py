"""
Firebase initialization and helpers
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import Any
import base64
import os

import firebase_admin
from firebase_admin import credentials, firestore, storage

from app.core.config import settings

logger = logging.getLogger(__name__)


def _load_credentials_info() -> dict[str, Any] | None:
    info: dict[str, Any] | None = None
    if settings.FIREBASE_CREDENTIALS_JSON:
        info = json.loads(settings.FIREBASE_CREDENTIALS_JSON)
    elif getattr(settings, "FIREBASE_CREDENTIALS_B64", None):
        decoded = base64.b64decode(settings.FIREBASE_CREDENTIALS_B64).decode("utf-8")
        info = json.loads(decoded)
    elif getattr(settings, "FIREBASE_CREDENTIALS_FILE", None) and os.path.exists(settings.FIREBASE_CREDENTIALS_FILE):
        with open(settings.FIREBASE_CREDENTIALS_FILE, "r", encoding="utf-8") as f:
            info = json.load(f)
    return info


def check_backend_configuration() -> bool:
    """Report whether the hosted backend is configured.

    Missing credentials only warn outside production; in production they are fatal.
    """
    missing = []
    if not settings.USE_FIREBASE:
        missing.append("USE_FIREBASE")
    else:
        if not (settings.FIREBASE_CREDENTIALS_JSON or settings.FIREBASE_CREDENTIALS_B64 or settings.FIREBASE_CREDENTIALS_FILE):
            missing.append("FIREBASE_CREDENTIALS_*")
        if not settings.FIREBASE_STORAGE_BUCKET:
            missing.append("FIREBASE_STORAGE_BUCKET")

    if not missing:
        return True

    if settings.is_production:
        raise RuntimeError(f"Hosted backend is not configured: missing {', '.join(missing)}")

    logger.warning(f"Hosted backend not configured ({', '.join(missing)} missing); using local database and storage")
    return False


def initialize_firebase() -> None:
    """Initialize the default Firebase app once.

    Expects credentials via one of: FIREBASE_CREDENTIALS_JSON, FIREBASE_CREDENTIALS_B64, FIREBASE_CREDENTIALS_FILE.
    """
    if firebase_admin._apps:
        return

    info = _load_credentials_info()
    if not info:
        raise RuntimeError("Firebase credentials not provided. Set FIREBASE_CREDENTIALS_FILE, FIREBASE_CREDENTIALS_JSON, or FIREBASE_CREDENTIALS_B64")

    cred = credentials.Certificate(info)
    options = {}
    if settings.FIREBASE_STORAGE_BUCKET:
        options["storageBucket"] = settings.FIREBASE_STORAGE_BUCKET
    firebase_admin.initialize_app(cred, options)


@lru_cache(maxsize=1)
def get_firestore_client():
    """Return a cached Firestore client if Firebase is enabled."""
    if not settings.USE_FIREBASE:
        return None

    initialize_firebase()
    return firestore.client()


@lru_cache(maxsize=1)
def get_storage_bucket():
    """Return the Cloud Storage bucket holding guestbook media."""
    if not settings.USE_FIREBASE:
        return None

    initialize_firebase()
    return storage.bucket()
