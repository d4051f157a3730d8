"""
Event-related Pydantic schemas
"""

from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field

from app.schemas.submission import SubmissionResponse

class EventSettings(BaseModel):
    """Free-form settings bag stored on the event"""
    show_all_submissions: bool = False
    enable_notifications: bool = False
    accent_color: str = "gold"

class EventResponse(BaseModel):
    """Event record"""
    id: str
    couple_id: str
    slug: str
    title: str
    settings: EventSettings = Field(default_factory=EventSettings)
    background_image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True

class EventSettingsUpdate(BaseModel):
    """Payload of the dashboard settings form"""
    title: str = Field(min_length=1, max_length=255)
    slug: str = Field(min_length=1, max_length=100, pattern=r"^[a-z0-9][a-z0-9-]*$")
    background_image_url: Optional[str] = None
    settings: EventSettings = Field(default_factory=EventSettings)

class PublicEventView(BaseModel):
    """What the public event page shows"""
    event: EventResponse
    submissions: List[SubmissionResponse]

class DashboardStats(BaseModel):
    """Summary counters for the dashboard landing page"""
    total_submissions: int
    unread_submissions: int
    total_senders: int
    recent_submissions: List[SubmissionResponse]
