"""
Venue slideshow of approved photos and videos
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import PersistenceError
from app.schemas.event import EventResponse
from app.schemas.submission import SubmissionResponse, SLIDESHOW_TYPES
from app.services.repositories import SubmissionRepo

logger = logging.getLogger(__name__)

UrlFetcher = Callable[[SubmissionResponse], str]
SlideListener = Callable[[dict], Awaitable[None]]


class SlideshowService:
    @staticmethod
    def load_playlist(db: Session, event: EventResponse) -> List[SubmissionResponse]:
        """Approved image and video submissions, newest first"""
        try:
            return SubmissionRepo.list_for_event(db, event.id, moderated=True, types=SLIDESHOW_TYPES)
        except Exception as e:
            logger.error(f"Error loading slideshow media for event {event.id}: {e}")
            raise PersistenceError("Failed to load slideshow media.") from e


class Slideshow:
    """Auto-advancing player for one display.

    Images advance after a dwell time, videos when playback ends (plus a short
    delay). Manual navigation resets the pending timer. Each index change drops
    the current signed URL and fetches a fresh one; a fetch that completes after
    the index moved on is discarded.
    """

    def __init__(
        self,
        items: List[SubmissionResponse],
        url_fetcher: UrlFetcher,
        on_change: Optional[SlideListener] = None,
        image_dwell_ms: Optional[int] = None,
        video_end_delay_ms: Optional[int] = None,
    ):
        self.items = list(items)
        self.url_fetcher = url_fetcher
        self.on_change = on_change
        self.image_dwell_ms = settings.SLIDESHOW_IMAGE_DWELL_MS if image_dwell_ms is None else image_dwell_ms
        self.video_end_delay_ms = settings.SLIDESHOW_VIDEO_END_DELAY_MS if video_end_delay_ms is None else video_end_delay_ms
        self.index = 0
        self.current_url: Optional[str] = None
        self.load_failed = False
        self.stopped = False
        self._generation = 0
        self._timer: Optional[asyncio.Task] = None

    @property
    def current(self) -> Optional[SubmissionResponse]:
        return self.items[self.index] if self.items else None

    @property
    def has_previous(self) -> bool:
        return self.index > 0

    @property
    def timer_pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def snapshot(self) -> dict:
        current = self.current
        return {
            "type": "slide",
            "index": self.index,
            "total": len(self.items),
            "has_previous": self.has_previous,
            "submission": current.model_dump(mode="json") if current else None,
            "url": self.current_url,
            "error": "failed_to_load" if self.load_failed else None,
        }

    async def start(self) -> None:
        await self._show()

    def stop(self) -> None:
        """Cancel pending timers; late URL fetches are ignored afterwards"""
        self.stopped = True
        self._cancel_timer()

    async def next(self) -> None:
        if not self.items or self.stopped:
            return
        self._cancel_timer()
        self.index = (self.index + 1) % len(self.items)
        await self._show()

    async def previous(self) -> bool:
        if not self.has_previous or self.stopped:
            return False
        self._cancel_timer()
        self.index -= 1
        await self._show()
        return True

    async def video_ended(self) -> None:
        current = self.current
        if current is None or current.type != "video" or self.stopped:
            return
        self._schedule(self.video_end_delay_ms)

    def _cancel_timer(self) -> None:
        if self._timer is not None and self._timer is not asyncio.current_task():
            self._timer.cancel()
        self._timer = None

    def _schedule(self, delay_ms: int) -> None:
        self._cancel_timer()
        self._timer = asyncio.create_task(self._advance_after(delay_ms))

    async def _advance_after(self, delay_ms: int) -> None:
        await asyncio.sleep(delay_ms / 1000)
        await self.next()

    async def _show(self) -> None:
        self._generation += 1
        generation = self._generation
        self.current_url = None
        self.load_failed = False

        current = self.current
        if current is None:
            if self.on_change:
                await self.on_change(self.snapshot())
            return

        url = None
        try:
            url = await asyncio.to_thread(self.url_fetcher, current)
        except Exception as e:
            logger.error(f"Signed URL error for slide {current.id}: {e}")

        if generation != self._generation or self.stopped:
            return

        self.current_url = url
        self.load_failed = url is None
        if self.on_change:
            await self.on_change(self.snapshot())

        if current.type != "video":
            self._schedule(self.image_dwell_ms)
