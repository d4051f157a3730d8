"""
Public API routes - no authentication required
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import FileResponse, Response
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import get_db
from app.core.errors import GuestbookError, ValidationFailed
from app.schemas.submission import MediaPayload
from app.services.event_service import EventService
from app.services.intake_service import IntakeService, recording_registry
from app.services.qr_service import QRService
from app.services.storage_service import LocalStorage, StorageGateway, get_storage
from app.utils.security import rate_limit_check, get_client_ip
from app.utils.responses import success_response, domain_error_response, rate_limit_error

logger = logging.getLogger(__name__)

router = APIRouter()

@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "ok"}

@router.get("/event/{slug}")
async def get_public_event(
    slug: str,
    request: Request,
    db: Session = Depends(get_db)
):
    """Event page data: the event and its publicly visible submissions"""
    client_ip = get_client_ip(request)
    if not rate_limit_check(client_ip):
        raise rate_limit_error()
    
    try:
        view = EventService.get_public_view(db, slug)
    except GuestbookError as e:
        return domain_error_response(e)
    
    return success_response(
        message="Event retrieved successfully",
        data=view.model_dump(mode="json")
    )

@router.get("/event/{slug}/qr.png")
async def get_qr_code(
    slug: str,
    db: Session = Depends(get_db)
):
    """Get QR code image for the public event page"""
    try:
        EventService.get_by_slug(db, slug)
    except GuestbookError as e:
        return domain_error_response(e)
    
    qr_bytes = QRService.generate_event_qr(slug)
    
    return Response(
        content=qr_bytes,
        media_type="image/png",
        headers={"Content-Disposition": f"inline; filename=qr_{slug}.png"}
    )

@router.post("/event/{slug}/submissions")
async def create_submission(
    slug: str,
    request: Request,
    sender_name: str = Form(""),
    type: str = Form("text"),
    sender_contact: Optional[str] = Form(None),
    content: Optional[str] = Form(None),
    recording_id: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    storage: StorageGateway = Depends(get_storage)
):
    """Guest submission intake"""
    client_ip = get_client_ip(request)
    if not rate_limit_check(client_ip):
        raise rate_limit_error()
    
    try:
        event = EventService.get_by_slug(db, slug)
        
        media = None
        used_recording = False
        if type != "text":
            if recording_id:
                if type != "voice":
                    raise ValidationFailed("Recordings can only be sent as voice messages", error_code="invalid_type")
                media = recording_registry.get(recording_id, event.id).stop()
                used_recording = True
            elif file is not None and file.filename:
                # Reject oversized uploads before reading them
                if file.size is not None:
                    IntakeService.check_file_size(type, file.size)
                data = await file.read()
                media = MediaPayload(
                    data=data,
                    filename=file.filename,
                    content_type=file.content_type or "application/octet-stream"
                )
        
        submission = IntakeService.submit(
            db=db,
            storage=storage,
            event=event,
            sender_name=sender_name,
            message_type=type,
            content=content,
            sender_contact=sender_contact,
            media=media
        )
    except GuestbookError as e:
        return domain_error_response(e)
    
    if used_recording:
        recording_registry.discard(recording_id)
    
    return success_response(
        message="Thank you! Your message has been sent.",
        data=submission.model_dump(mode="json"),
        status_code=201
    )

@router.post("/event/{slug}/recordings")
async def start_recording(
    slug: str,
    request: Request,
    db: Session = Depends(get_db)
):
    """Start a voice recording session"""
    if not rate_limit_check(get_client_ip(request)):
        raise rate_limit_error()
    
    try:
        event = EventService.get_by_slug(db, slug)
        session = recording_registry.start(event.id)
    except GuestbookError as e:
        return domain_error_response(e)
    
    return success_response(
        message="Recording started",
        data={"recording_id": session.id},
        status_code=201
    )

@router.post("/event/{slug}/recordings/{recording_id}/chunks")
async def append_recording_chunk(
    slug: str,
    recording_id: str,
    request: Request,
    db: Session = Depends(get_db)
):
    """Append one audio chunk (raw request body) to a recording"""
    client_ip = get_client_ip(request)
    if not rate_limit_check(f"{client_ip}:recording", settings.RECORDING_CHUNKS_PER_MINUTE):
        raise rate_limit_error()
    
    try:
        event = EventService.get_by_slug(db, slug)
        session = recording_registry.get(recording_id, event.id)
        size = session.append(await request.body())
    except GuestbookError as e:
        return domain_error_response(e)
    
    return success_response(message="Chunk received", data={"recording_id": recording_id, "size": size})

@router.post("/event/{slug}/recordings/{recording_id}/stop")
async def stop_recording(
    slug: str,
    recording_id: str,
    db: Session = Depends(get_db)
):
    """Stop a recording, combining its chunks into one blob"""
    try:
        event = EventService.get_by_slug(db, slug)
        blob = recording_registry.get(recording_id, event.id).stop()
    except GuestbookError as e:
        return domain_error_response(e)
    
    return success_response(
        message="Recording stopped",
        data={
            "recording_id": recording_id,
            "size": blob.size,
            "type": blob.content_type,
            "name": blob.filename
        }
    )

@router.get("/media/{path:path}")
async def serve_media(
    path: str,
    expires: int,
    signature: str,
    filename: Optional[str] = None,
    storage: StorageGateway = Depends(get_storage)
):
    """Serve a locally stored blob for a valid signed URL"""
    if not isinstance(storage, LocalStorage):
        raise HTTPException(status_code=404, detail="Not found")
    
    try:
        if not storage.verify(path, expires, signature, filename):
            raise HTTPException(status_code=403, detail="Invalid or expired link")
        full_path = storage.open_path(path)
    except GuestbookError:
        raise HTTPException(status_code=404, detail="Not found")
    
    return FileResponse(full_path, filename=filename)
