"""
Event lookup, public display and settings
"""

import logging
from typing import List

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import EventNotFound, PersistenceError, SlugTaken
from app.schemas.event import EventResponse, EventSettingsUpdate, PublicEventView
from app.schemas.submission import SubmissionResponse
from app.services.repositories import EventRepo, SubmissionRepo

logger = logging.getLogger(__name__)


class EventService:
    """Service for event pages and settings"""

    @staticmethod
    def get_by_slug(db: Session, slug: str) -> EventResponse:
        event = EventRepo.get_by_slug(db, slug)
        if not event:
            raise EventNotFound("Event not found")
        return event

    @staticmethod
    def visible_submissions(db: Session, event: EventResponse) -> List[SubmissionResponse]:
        """Approved submissions, or everything if the couple opted into an unmoderated feed"""
        moderated = None if event.settings.show_all_submissions else True
        try:
            return SubmissionRepo.list_for_event(db, event.id, moderated=moderated)
        except Exception as e:
            logger.error(f"Failed loading public submissions for {event.slug}: {e}")
            raise PersistenceError("Failed to load messages.") from e

    @staticmethod
    def get_public_view(db: Session, slug: str) -> PublicEventView:
        event = EventService.get_by_slug(db, slug)
        return PublicEventView(event=event, submissions=EventService.visible_submissions(db, event))

    @staticmethod
    def update_settings(db: Session, event: EventResponse, update: EventSettingsUpdate) -> EventResponse:
        if update.slug != event.slug and EventRepo.slug_taken(db, update.slug, exclude_event_id=event.id):
            raise SlugTaken(f"The link '{update.slug}' is already in use")

        fields = {
            "title": update.title.strip(),
            "slug": update.slug,
            "background_image_url": update.background_image_url or None,
            "settings": update.settings.model_dump(),
        }
        try:
            updated = EventRepo.update(db, event.id, fields)
        except Exception as e:
            logger.error(f"Error saving settings for event {event.id}: {e}")
            raise PersistenceError(f"Failed to save settings: {e}") from e
        if updated is None:
            raise EventNotFound("Event not found")

        logger.info(f"Settings saved for event {updated.slug}")
        return updated

    @staticmethod
    def public_link(slug: str) -> str:
        return f"{settings.BASE_URL}/event/{slug}"
