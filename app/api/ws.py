"""
WebSocket endpoint driving a venue slideshow
"""

import asyncio
import json
import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Depends, Query
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import get_db
from app.core.errors import GuestbookError, NotAuthenticated
from app.core.session import SessionContext, session_events
from app.services.moderation_service import ModerationService
from app.services.slideshow_service import Slideshow, SlideshowService
from app.services.storage_service import StorageGateway, get_storage
from app.utils.security import resolve_token

logger = logging.getLogger(__name__)

CLOSE_UNAUTHORIZED = 4001
CLOSE_NOT_FOUND = 4004

router = APIRouter()

async def send_personal_message(message: dict, websocket: WebSocket):
    """Send message to specific WebSocket"""
    try:
        await websocket.send_text(json.dumps(message))
    except Exception as e:
        logger.error(f"Error sending slideshow message: {e}")

@router.websocket("/slideshow")
async def slideshow_endpoint(
    websocket: WebSocket,
    token: str = Query(""),
    db: Session = Depends(get_db),
    storage: StorageGateway = Depends(get_storage)
):
    """Auto-advancing slideshow for one connected display.

    Client messages: next, previous, video_ended, ping.
    """
    context: Optional[SessionContext] = None
    try:
        context = resolve_token(db, token)
        event = ModerationService.resolve_event(db, context)
        playlist = SlideshowService.load_playlist(db, event)
    except GuestbookError as e:
        code = CLOSE_UNAUTHORIZED if isinstance(e, NotAuthenticated) else CLOSE_NOT_FOUND
        await websocket.close(code=code, reason=e.message)
        if context:
            context.close()
        return
    
    await websocket.accept()
    
    async def send_slide(snapshot: dict):
        await send_personal_message(snapshot, websocket)
    
    slideshow = Slideshow(
        playlist,
        url_fetcher=lambda s: ModerationService.signed_media(storage, s, settings.SIGNED_URL_EXPIRES).url,
        on_change=send_slide
    )
    
    loop = asyncio.get_running_loop()
    
    def on_session_change(changed: Optional[SessionContext]):
        if changed is None:
            slideshow.stop()
            loop.call_soon_threadsafe(
                lambda: asyncio.ensure_future(websocket.close(code=CLOSE_UNAUTHORIZED, reason="Signed out"))
            )
    
    unsubscribe = session_events.subscribe(context.identity, on_session_change)
    logger.info(f"Slideshow connected for event {event.slug} ({len(playlist)} items)")
    
    try:
        await slideshow.start()
        
        while True:
            data = await websocket.receive_text()
            
            try:
                client_message = json.loads(data)
            except json.JSONDecodeError:
                logger.warning(f"Invalid JSON received from WebSocket: {data}")
                continue
            
            action = client_message.get("type")
            if action == "next":
                await slideshow.next()
            elif action == "previous":
                if not await slideshow.previous():
                    await send_personal_message({"type": "error", "message": "Already at the first slide"}, websocket)
            elif action == "video_ended":
                await slideshow.video_ended()
            elif action == "ping":
                await send_personal_message({"type": "pong", "timestamp": client_message.get("timestamp")}, websocket)
    
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"Slideshow WebSocket error: {e}")
    finally:
        slideshow.stop()
        unsubscribe()
        context.close()
        logger.info(f"Slideshow disconnected for event {event.slug}")
