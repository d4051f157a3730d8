"""
Submission-related Pydantic schemas
"""

from datetime import datetime
from typing import Optional, List, Literal
from pydantic import BaseModel, Field

SubmissionType = Literal["text", "voice", "photo", "image", "video"]

IMAGE_TYPES = ("image", "photo")
MEDIA_TYPES = ("voice", "photo", "image", "video")
SLIDESHOW_TYPES = ("video", "image", "photo")

class StorageMeta(BaseModel):
    """Metadata recorded for an uploaded blob"""
    size: int
    type: str
    name: str

class SubmissionResponse(BaseModel):
    """Submission record"""
    id: str
    event_id: str
    sender_name: str
    sender_contact: Optional[str] = None
    type: SubmissionType
    content: Optional[str] = None
    storage_path: Optional[str] = None
    storage_meta: Optional[dict] = None
    moderated: bool = False
    is_favorite: bool = False
    created_at: datetime
    
    class Config:
        from_attributes = True

class MediaPayload(BaseModel):
    """Binary payload attached to an intake request"""
    data: bytes
    filename: str
    content_type: str

    @property
    def size(self) -> int:
        return len(self.data)

class SenderGroup(BaseModel):
    """All submissions of one sender, newest first"""
    sender_name: str
    count: int
    submissions: List[SubmissionResponse]

class BoardView(BaseModel):
    """Moderation board state returned to the dashboard"""
    search_query: str = ""
    senders: List[str]
    selected_sender: Optional[str] = None
    groups: List[SenderGroup] = Field(default_factory=list)

class SignedMedia(BaseModel):
    """Signed URL handed to a viewer"""
    submission_id: str
    url: str
    expires_in: int
    filename: Optional[str] = None
