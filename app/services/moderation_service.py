"""
Couple-facing moderation and review of an event's submissions
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.errors import (
    EventNotFound,
    GuestbookError,
    NotAuthenticated,
    PersistenceError,
    ProfileNotFound,
    StorageError,
    SubmissionNotFound,
    ValidationFailed,
)
from app.core.session import SessionContext
from app.schemas.event import DashboardStats, EventResponse
from app.schemas.submission import BoardView, SenderGroup, SignedMedia, SubmissionResponse
from app.services.repositories import AccountRepo, EventRepo, SubmissionRepo
from app.services.storage_service import StorageGateway, clean_storage_path

logger = logging.getLogger(__name__)

UNKNOWN_SENDER = "Unknown"

Persist = Callable[[str, dict], None]


def sender_key(submission: SubmissionResponse) -> str:
    # Exact match, no normalization: "alice" and "Alice" are two groups
    return submission.sender_name or UNKNOWN_SENDER


def group_by_sender(submissions: List[SubmissionResponse]) -> Dict[str, List[SubmissionResponse]]:
    """Partition submissions by sender display name, newest first inside each group"""
    groups: Dict[str, List[SubmissionResponse]] = {}
    for submission in submissions:
        groups.setdefault(sender_key(submission), []).append(submission)
    for items in groups.values():
        items.sort(key=lambda s: s.created_at, reverse=True)
    return groups


def filter_senders(senders, query: str) -> List[str]:
    """Case-insensitive substring match, alphabetically sorted"""
    q = (query or "").strip().lower()
    return sorted(s for s in senders if q in s.lower())


def extension_for_mime(mime: Optional[str]) -> str:
    """Subtype of the mime type (image/jpeg -> jpeg), or 'file' when unknown"""
    subtype = (mime or "").split(";")[0].strip().partition("/")[2]
    return subtype or "file"


def download_filename(submission: SubmissionResponse) -> str:
    """{sender}-{type}.{extension-from-mime}"""
    mime = (submission.storage_meta or {}).get("type")
    return f"{sender_key(submission)}-{submission.type}.{extension_for_mime(mime)}"


@dataclass
class PatchCommand:
    """A local patch paired with the patch that undoes it"""
    submission_id: str
    patch: dict
    inverse: dict

    @classmethod
    def toggle(cls, submission: SubmissionResponse, field_name: str) -> "PatchCommand":
        current = bool(getattr(submission, field_name))
        return cls(submission.id, {field_name: not current}, {field_name: current})


@dataclass
class ModerationBoard:
    """Local view state of the dashboard: the loaded list plus sender selection"""
    submissions: List[SubmissionResponse]
    selected_sender: Optional[str] = None
    search_query: str = ""
    history: List[PatchCommand] = field(default_factory=list)

    def __post_init__(self):
        if self.selected_sender is not None and self.selected_sender not in self.groups():
            self.selected_sender = None

    def groups(self) -> Dict[str, List[SubmissionResponse]]:
        return group_by_sender(self.submissions)

    def filtered_senders(self) -> List[str]:
        return filter_senders(self.groups().keys(), self.search_query)

    def find(self, submission_id: str) -> SubmissionResponse:
        for submission in self.submissions:
            if submission.id == submission_id:
                return submission
        raise SubmissionNotFound("Submission not found")

    def apply_patch(self, submission_id: str, patch: dict) -> SubmissionResponse:
        updated = None
        for i, submission in enumerate(self.submissions):
            if submission.id == submission_id:
                updated = submission.model_copy(update=patch)
                self.submissions[i] = updated
        if updated is None:
            raise SubmissionNotFound("Submission not found")
        return updated

    def execute(self, command: PatchCommand, persist: Persist) -> SubmissionResponse:
        """Apply the patch locally, persist it, and undo it if persisting fails"""
        updated = self.apply_patch(command.submission_id, command.patch)
        try:
            persist(command.submission_id, command.patch)
        except Exception as e:
            restored = self.apply_patch(command.submission_id, command.inverse)
            logger.error(f"Rolled back {command.patch} on submission {command.submission_id}: {e}")
            if isinstance(e, GuestbookError):
                e.details = restored.model_dump(mode="json")
                raise
            raise PersistenceError(
                "Failed to save the change. It has been reverted.",
                details=restored.model_dump(mode="json"),
            ) from e
        self.history.append(command)
        return updated

    def toggle_moderation(self, submission_id: str, persist: Persist) -> SubmissionResponse:
        return self.execute(PatchCommand.toggle(self.find(submission_id), "moderated"), persist)

    def toggle_favorite(self, submission_id: str, persist: Persist) -> SubmissionResponse:
        return self.execute(PatchCommand.toggle(self.find(submission_id), "is_favorite"), persist)

    def remove(self, submission_id: str) -> None:
        self.submissions = [s for s in self.submissions if s.id != submission_id]
        if self.selected_sender is not None and self.selected_sender not in self.groups():
            self.selected_sender = None

    def view(self) -> BoardView:
        groups = self.groups()
        senders = self.filtered_senders()
        shown = [self.selected_sender] if self.selected_sender else senders
        return BoardView(
            search_query=self.search_query,
            senders=senders,
            selected_sender=self.selected_sender,
            groups=[
                SenderGroup(sender_name=name, count=len(groups[name]), submissions=groups[name])
                for name in shown
            ],
        )


class ModerationService:
    """Service for the couple's dashboard"""

    @staticmethod
    def resolve_event(db: Session, context: Optional[SessionContext]) -> EventResponse:
        """identity -> account -> couple -> event, each step failing distinctly"""
        if context is None or context.closed or not context.identity:
            raise NotAuthenticated("Not signed in")

        if context.event is not None:
            return context.event

        account = context.account or AccountRepo.get(db, context.identity)
        if not account:
            raise ProfileNotFound("User profile not found.")
        context.account = account

        if not account.couple_id:
            raise ProfileNotFound("No couple linked to this account.", error_code="couple_not_linked")

        event = EventRepo.get_by_couple(db, account.couple_id)
        if not event:
            raise EventNotFound("No event linked to this couple.")
        context.event = event
        return event

    @staticmethod
    def load_submissions(db: Session, event: EventResponse) -> List[SubmissionResponse]:
        try:
            return SubmissionRepo.list_for_event(db, event.id)
        except Exception as e:
            logger.error(f"Failed loading submissions for event {event.id}: {e}")
            raise PersistenceError("Failed to load submissions.") from e

    @staticmethod
    def load_board(
        db: Session,
        event: EventResponse,
        search_query: str = "",
        selected_sender: Optional[str] = None,
    ) -> ModerationBoard:
        submissions = ModerationService.load_submissions(db, event)
        return ModerationBoard(submissions, selected_sender=selected_sender, search_query=search_query or "")

    @staticmethod
    def persist_for(db: Session, event: EventResponse) -> Persist:
        def persist(submission_id: str, patch: dict) -> None:
            if not SubmissionRepo.update(db, event.id, submission_id, patch):
                raise SubmissionNotFound("Submission not found")
        return persist

    @staticmethod
    def delete_submission(
        db: Session,
        storage: StorageGateway,
        event: EventResponse,
        board: ModerationBoard,
        submission_id: str,
    ) -> None:
        """Remove the blob (if any) and then the row; irreversible"""
        submission = board.find(submission_id)

        cleaned = clean_storage_path(submission.storage_path)
        if cleaned:
            try:
                storage.remove([cleaned])
            except Exception as e:
                logger.error(f"Failed to remove blob {cleaned}: {e}")
                raise StorageError("Failed to delete the submission.") from e

        try:
            SubmissionRepo.delete(db, event.id, submission_id)
        except Exception as e:
            logger.error(f"Failed to delete submission {submission_id}: {e}")
            raise PersistenceError("Failed to delete the submission.") from e

        board.remove(submission_id)
        logger.info(f"Deleted submission {submission_id} from event {event.slug}")

    @staticmethod
    def signed_media(
        storage: StorageGateway,
        submission: SubmissionResponse,
        expires_in: int,
        for_download: bool = False,
    ) -> SignedMedia:
        cleaned = clean_storage_path(submission.storage_path)
        if submission.type == "text" or not cleaned:
            raise ValidationFailed(f"Submission {submission.id} has no media", error_code="no_media")
        filename = download_filename(submission) if for_download else None
        try:
            url = storage.create_signed_url(cleaned, expires_in, filename=filename)
        except Exception as e:
            logger.error(f"Signed URL error for {cleaned}: {e}")
            raise StorageError(f"Failed to load {submission.type}.", error_code="media_unavailable") from e
        return SignedMedia(
            submission_id=submission.id,
            url=url,
            expires_in=expires_in,
            filename=filename,
        )

    @staticmethod
    def stats(db: Session, event: EventResponse) -> DashboardStats:
        submissions = ModerationService.load_submissions(db, event)
        return DashboardStats(
            total_submissions=len(submissions),
            unread_submissions=sum(1 for s in submissions if not s.moderated),
            total_senders=len({s.sender_name for s in submissions}),
            recent_submissions=submissions[:5],
        )
