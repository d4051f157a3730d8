"""
Dashboard API routes - requires authentication
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse, Response
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import get_db
from app.core.errors import GuestbookError
from app.core.session import SessionContext
from app.schemas.event import EventSettingsUpdate
from app.services.event_service import EventService
from app.services.export_service import ExportService
from app.services.moderation_service import ModerationService
from app.services.slideshow_service import SlideshowService
from app.services.storage_service import StorageGateway, content_disposition, get_storage
from app.utils.security import get_session_context
from app.utils.responses import success_response, domain_error_response

router = APIRouter()

@router.get("")
async def dashboard_overview(
    context: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db)
):
    """Counters and most recent submissions"""
    try:
        event = ModerationService.resolve_event(db, context)
        stats = ModerationService.stats(db, event)
    except GuestbookError as e:
        return domain_error_response(e)
    
    return success_response(
        message="Dashboard retrieved",
        data={"event": event.model_dump(mode="json"), "stats": stats.model_dump(mode="json")}
    )

@router.get("/submissions")
async def list_submissions(
    search: str = Query(""),
    sender: Optional[str] = Query(None),
    context: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db)
):
    """Submissions grouped by sender, optionally narrowed to one sender"""
    try:
        event = ModerationService.resolve_event(db, context)
        board = ModerationService.load_board(db, event, search_query=search, selected_sender=sender)
    except GuestbookError as e:
        return domain_error_response(e)
    
    return success_response(
        message="Submissions retrieved successfully",
        data=board.view().model_dump(mode="json")
    )

@router.get("/submissions/export.xlsx")
async def export_submissions(
    context: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db)
):
    """Export every submission of the event to Excel"""
    try:
        event = ModerationService.resolve_event(db, context)
        submissions = ModerationService.load_submissions(db, event)
    except GuestbookError as e:
        return domain_error_response(e)
    
    excel_content = ExportService.export_submissions(submissions)
    
    return Response(
        content=excel_content,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename=guestbook_{event.slug}.xlsx"}
    )

@router.post("/submissions/{submission_id}/moderation")
async def toggle_moderation(
    submission_id: str,
    context: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db)
):
    """Approve for public display, or hide again"""
    try:
        event = ModerationService.resolve_event(db, context)
        board = ModerationService.load_board(db, event)
        submission = board.toggle_moderation(submission_id, ModerationService.persist_for(db, event))
    except GuestbookError as e:
        return domain_error_response(e)
    
    message = "Submission approved" if submission.moderated else "Submission hidden"
    return success_response(message=message, data=submission.model_dump(mode="json"))

@router.post("/submissions/{submission_id}/favorite")
async def toggle_favorite(
    submission_id: str,
    context: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db)
):
    """Mark or unmark a favorite"""
    try:
        event = ModerationService.resolve_event(db, context)
        board = ModerationService.load_board(db, event)
        submission = board.toggle_favorite(submission_id, ModerationService.persist_for(db, event))
    except GuestbookError as e:
        return domain_error_response(e)
    
    message = "Added to favorites" if submission.is_favorite else "Removed from favorites"
    return success_response(message=message, data=submission.model_dump(mode="json"))

@router.delete("/submissions/{submission_id}")
async def delete_submission(
    submission_id: str,
    sender: Optional[str] = Query(None),
    context: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
    storage: StorageGateway = Depends(get_storage)
):
    """Permanently delete a submission and its media"""
    try:
        event = ModerationService.resolve_event(db, context)
        board = ModerationService.load_board(db, event, selected_sender=sender)
        ModerationService.delete_submission(db, storage, event, board, submission_id)
    except GuestbookError as e:
        return domain_error_response(e)
    
    return success_response(
        message="Submission deleted",
        data={
            "deleted_submission_id": submission_id,
            "board": board.view().model_dump(mode="json")
        }
    )

@router.get("/submissions/{submission_id}/media")
async def get_media_url(
    submission_id: str,
    context: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
    storage: StorageGateway = Depends(get_storage)
):
    """Signed URL for viewing a submission's media"""
    try:
        event = ModerationService.resolve_event(db, context)
        board = ModerationService.load_board(db, event)
        signed = ModerationService.signed_media(storage, board.find(submission_id), settings.SIGNED_URL_EXPIRES)
    except GuestbookError as e:
        return domain_error_response(e)
    
    return success_response(message="Media URL issued", data=signed.model_dump())

@router.get("/submissions/{submission_id}/download")
async def download_media(
    submission_id: str,
    context: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
    storage: StorageGateway = Depends(get_storage)
):
    """Redirect to a fresh signed URL, suggesting a derived filename"""
    try:
        event = ModerationService.resolve_event(db, context)
        board = ModerationService.load_board(db, event)
        signed = ModerationService.signed_media(
            storage, board.find(submission_id), settings.SIGNED_URL_EXPIRES, for_download=True
        )
    except GuestbookError as e:
        return domain_error_response(e)
    
    return RedirectResponse(
        url=signed.url,
        status_code=307,
        headers={"Content-Disposition": content_disposition(signed.filename)}
    )

@router.get("/settings")
async def get_settings(
    context: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db)
):
    """Current event settings and its shareable link"""
    try:
        event = ModerationService.resolve_event(db, context)
    except GuestbookError as e:
        return domain_error_response(e)
    
    return success_response(
        message="Settings retrieved",
        data={
            "event": event.model_dump(mode="json"),
            "public_link": EventService.public_link(event.slug),
            "qr_url": f"/event/{event.slug}/qr.png"
        }
    )

@router.put("/settings")
async def update_settings(
    settings_update: EventSettingsUpdate,
    context: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db)
):
    """Save the settings form"""
    try:
        event = ModerationService.resolve_event(db, context)
        updated = EventService.update_settings(db, event, settings_update)
    except GuestbookError as e:
        return domain_error_response(e)
    
    return success_response(
        message="Settings saved successfully!",
        data={
            "event": updated.model_dump(mode="json"),
            "public_link": EventService.public_link(updated.slug)
        }
    )

@router.get("/slideshow")
async def slideshow_playlist(
    context: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db)
):
    """Approved photos and videos in display order"""
    try:
        event = ModerationService.resolve_event(db, context)
        playlist = SlideshowService.load_playlist(db, event)
    except GuestbookError as e:
        return domain_error_response(e)
    
    return success_response(
        message=f"Slideshow loaded: {len(playlist)} items",
        data={
            "items": [item.model_dump(mode="json") for item in playlist],
            "image_dwell_ms": settings.SLIDESHOW_IMAGE_DWELL_MS,
            "video_end_delay_ms": settings.SLIDESHOW_VIDEO_END_DELAY_MS
        }
    )
