"""
Account model
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime

from app.core.db import Base

class Account(Base):
    __tablename__ = "accounts"
    
    id = Column(String(128), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, nullable=False)
    couple_id = Column(String(64), nullable=True, index=True)
    role = Column(String(50), default="couple")
    # Only used when Firebase Auth is disabled
    access_token = Column(String(128), unique=True, nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
