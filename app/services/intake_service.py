"""
Guest submission intake: validation, media upload and row insert
"""

import logging
import mimetypes
import threading
import time
import uuid
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import GuestbookError, PersistenceError, StorageError, TooManyRecordings, ValidationFailed
from app.schemas.event import EventResponse
from app.schemas.submission import MediaPayload, StorageMeta, SubmissionResponse, MEDIA_TYPES
from app.services.repositories import SubmissionRepo
from app.services.storage_service import StorageGateway

logger = logging.getLogger(__name__)

SUBMISSION_TYPES = ("text",) + MEDIA_TYPES
RECORDING_MIME = "audio/webm"
RECORDING_FILENAME = "voice-message.webm"
RECORDING_TTL_SECONDS = 30 * 60


def max_size_for(message_type: str) -> int:
    if message_type == "video":
        return settings.MAX_VIDEO_SIZE
    if message_type == "voice":
        return settings.MAX_VOICE_SIZE
    return settings.MAX_IMAGE_SIZE


def _format_limit(limit: int) -> str:
    return f"{limit // (1024 * 1024)}MB"


class RecordingSession:
    """Accumulates audio chunks between start and stop"""

    def __init__(self, event_id: str):
        self.id = uuid.uuid4().hex
        self.event_id = event_id
        self.started_at = time.time()
        self.chunks: List[bytes] = []
        self.size = 0
        self.blob: Optional[MediaPayload] = None

    @property
    def is_recording(self) -> bool:
        return self.blob is None

    def append(self, chunk: bytes) -> int:
        if not self.is_recording:
            raise ValidationFailed("Recording already stopped", error_code="recording_stopped")
        limit = settings.MAX_VOICE_SIZE
        if self.size + len(chunk) > limit:
            raise ValidationFailed(f"File size exceeds {_format_limit(limit)} limit", error_code="file_too_large")
        self.chunks.append(chunk)
        self.size += len(chunk)
        return self.size

    def stop(self) -> MediaPayload:
        if self.blob is None:
            self.blob = MediaPayload(data=b"".join(self.chunks), filename=RECORDING_FILENAME, content_type=RECORDING_MIME)
            self.chunks = []
        return self.blob


class RecordingRegistry:
    """In-memory registry of voice recordings awaiting submission"""

    def __init__(self, ttl_seconds: int = RECORDING_TTL_SECONDS, max_sessions: Optional[int] = None):
        self.ttl_seconds = ttl_seconds
        self.max_sessions = max_sessions or settings.MAX_RECORDING_SESSIONS
        self._sessions: Dict[str, RecordingSession] = {}
        self._lock = threading.Lock()

    def _purge_expired(self) -> None:
        cutoff = time.time() - self.ttl_seconds
        for key in [k for k, s in self._sessions.items() if s.started_at < cutoff]:
            del self._sessions[key]

    def start(self, event_id: str) -> RecordingSession:
        with self._lock:
            self._purge_expired()
            if len(self._sessions) >= self.max_sessions:
                logger.warning(f"Recording limit reached ({self.max_sessions} open sessions)")
                raise TooManyRecordings("Too many recordings in progress. Please try again in a few minutes.")
            session = RecordingSession(event_id)
            self._sessions[session.id] = session
            return session

    def get(self, recording_id: str, event_id: str) -> RecordingSession:
        with self._lock:
            self._purge_expired()
            session = self._sessions.get(recording_id)
        if session is None or session.event_id != event_id:
            raise ValidationFailed("Recording not found or expired. Please record again.", error_code="unknown_recording")
        return session

    def discard(self, recording_id: str) -> None:
        with self._lock:
            self._sessions.pop(recording_id, None)


recording_registry = RecordingRegistry()


class IntakeService:
    """Service turning a guest form into a stored submission"""

    @staticmethod
    def check_file_size(message_type: str, size: int) -> None:
        """Reject payloads over the per-type limit before anything is uploaded"""
        limit = max_size_for(message_type)
        if size > limit:
            raise ValidationFailed(
                f"File size exceeds {_format_limit(limit)} limit",
                error_code="file_too_large",
                details={"size": size, "limit": limit},
            )

    @staticmethod
    def validate(
        sender_name: str,
        message_type: str,
        content: Optional[str],
        media: Optional[MediaPayload],
    ) -> None:
        if not sender_name or not sender_name.strip():
            raise ValidationFailed("Please enter your name", error_code="missing_name")

        if message_type not in SUBMISSION_TYPES:
            raise ValidationFailed(f"Unsupported message type '{message_type}'", error_code="invalid_type")

        if message_type == "text":
            if not content or not content.strip():
                raise ValidationFailed("Please enter a message", error_code="missing_content")
            return

        if media is None or media.size == 0:
            raise ValidationFailed("Please record or upload a file", error_code="missing_media")

        IntakeService.check_file_size(message_type, media.size)

    @staticmethod
    def build_storage_path(event_id: str, filename: str, content_type: Optional[str] = None) -> str:
        """{event_id}/{timestamp}-{random}.{ext}"""
        if "." in filename:
            ext = filename.rsplit(".", 1)[-1].lower()
        else:
            guessed = mimetypes.guess_extension(content_type or "") or ".bin"
            ext = guessed.lstrip(".")
        return f"{event_id}/{int(time.time() * 1000)}-{uuid.uuid4().hex[:7]}.{ext}"

    @staticmethod
    def submit(
        db: Session,
        storage: StorageGateway,
        event: EventResponse,
        sender_name: str,
        message_type: str,
        content: Optional[str] = None,
        sender_contact: Optional[str] = None,
        media: Optional[MediaPayload] = None,
    ) -> SubmissionResponse:
        """Validate, upload the payload if any, then insert an unmoderated row"""
        IntakeService.validate(sender_name, message_type, content, media)

        storage_path = None
        storage_meta: dict = {}
        if message_type != "text":
            path = IntakeService.build_storage_path(event.id, media.filename, media.content_type)
            try:
                storage_path = storage.upload(path, media.data, media.content_type)
            except GuestbookError:
                raise
            except Exception as e:
                logger.error(f"Upload failed for event {event.id}: {e}")
                raise StorageError("Failed to upload your file. Please try again.") from e
            storage_meta = StorageMeta(size=media.size, type=media.content_type, name=media.filename).model_dump()

        fields = {
            "event_id": event.id,
            "sender_name": sender_name.strip(),
            "sender_contact": (sender_contact or "").strip() or None,
            "type": message_type,
            "content": content.strip() if message_type == "text" else None,
            "storage_path": storage_path,
            "storage_meta": storage_meta,
            "moderated": False,
            "is_favorite": False,
        }

        try:
            submission = SubmissionRepo.insert(db, fields)
        except Exception as e:
            logger.error(f"Submission insert failed for event {event.id}: {e}")
            if storage_path:
                try:
                    storage.remove([storage_path])
                except Exception as cleanup_error:
                    logger.error(f"Could not remove orphaned blob {storage_path}: {cleanup_error}")
            raise PersistenceError("Failed to submit. Please try again.") from e

        logger.info(f"New {message_type} submission {submission.id} for event {event.slug}")
        return submission
