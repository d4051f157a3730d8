"""
Submission model
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Text, Boolean, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship

from app.core.db import Base

class Submission(Base):
    __tablename__ = "submissions"
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    event_id = Column(String(36), ForeignKey("events.id"), nullable=False, index=True)
    sender_name = Column(String(255), nullable=False)
    sender_contact = Column(String(255), nullable=True)
    type = Column(String(20), nullable=False)  # text, voice, photo, image, video
    content = Column(Text, nullable=True)
    storage_path = Column(String(1024), nullable=True)
    storage_meta = Column(JSON, default=dict)  # size, type, name
    moderated = Column(Boolean, default=False)
    is_favorite = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    
    # Relationships
    event = relationship("Event", back_populates="submissions")
