"""
Configuration settings for the application
"""

import os
from typing import List
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """Application settings"""
    
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    
    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./guestbook.db")
    USE_FIREBASE: bool = os.getenv("USE_FIREBASE", "false").lower() in ("1", "true", "yes")
    FIREBASE_CREDENTIALS_JSON: str | None = os.getenv("FIREBASE_CREDENTIALS_JSON")
    FIREBASE_CREDENTIALS_FILE: str | None = os.getenv("FIREBASE_CREDENTIALS_FILE")
    FIREBASE_CREDENTIALS_B64: str | None = os.getenv("FIREBASE_CREDENTIALS_B64")
    FIREBASE_STORAGE_BUCKET: str | None = os.getenv("FIREBASE_STORAGE_BUCKET")
    
    # Storage
    UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "uploads")
    STORAGE_SIGNING_KEY: str = os.getenv("STORAGE_SIGNING_KEY", "dev_signing_key_change_me")
    SIGNED_URL_EXPIRES: int = int(os.getenv("SIGNED_URL_EXPIRES", "3600"))
    
    # Application
    BASE_URL: str = os.getenv("BASE_URL", "http://localhost:8000")
    
    # CORS
    ALLOW_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5000",
        "http://localhost:8000",
    ]
    
    # File limits
    MAX_IMAGE_SIZE: int = 10 * 1024 * 1024  # 10MB
    MAX_VIDEO_SIZE: int = 200 * 1024 * 1024  # 200MB
    MAX_VOICE_SIZE: int = 10 * 1024 * 1024  # 10MB
    
    # Slideshow
    SLIDESHOW_IMAGE_DWELL_MS: int = 7000
    SLIDESHOW_VIDEO_END_DELAY_MS: int = 1000
    
    # Rate limiting
    RATE_LIMIT_PER_MINUTE: int = 30
    RECORDING_CHUNKS_PER_MINUTE: int = 120
    
    # Voice recordings held in memory until submitted
    MAX_RECORDING_SESSIONS: int = 50
    
    class Config:
        env_file = ".env"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

settings = Settings()
