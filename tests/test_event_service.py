"""
Tests for the public event page, settings and exports
"""

import io
import pytest
import pandas as pd
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.db import Base
from app.core.errors import EventNotFound, SlugTaken
from app.schemas.event import EventSettings, EventSettingsUpdate
from app.schemas.submission import MediaPayload
from app.services.event_service import EventService
from app.services.export_service import ExportService
from app.services.intake_service import IntakeService
from app.services.moderation_service import ModerationService
from app.services.qr_service import QRService
from app.services.repositories import EventRepo
from app.services.slideshow_service import SlideshowService
from app.services.storage_service import LocalStorage

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_event.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

@pytest.fixture
def db_session():
    """Create test database session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)

@pytest.fixture
def storage(tmp_path):
    return LocalStorage(root=str(tmp_path), signing_key="test-key", base_url="http://testserver")

@pytest.fixture
def event(db_session):
    return EventRepo.create(db_session, couple_id="couple-1", slug="sarah-john-2025", title="Sarah & John")

def approve(db_session, event, submission_id):
    board = ModerationService.load_board(db_session, event)
    return board.toggle_moderation(submission_id, ModerationService.persist_for(db_session, event))

def test_unknown_slug(db_session):
    with pytest.raises(EventNotFound):
        EventService.get_public_view(db_session, "nobody-2030")

def test_text_message_hidden_until_approved(db_session, storage, event):
    """Guest text appears publicly only after the couple approves it"""
    submission = IntakeService.submit(
        db_session, storage, event, sender_name="Alice", message_type="text", content="Congrats!"
    )
    
    assert submission.moderated is False
    assert EventService.get_public_view(db_session, "sarah-john-2025").submissions == []
    
    approve(db_session, event, submission.id)
    
    view = EventService.get_public_view(db_session, "sarah-john-2025")
    assert [s.id for s in view.submissions] == [submission.id]
    assert view.event.title == "Sarah & John"

def test_approved_photo_reaches_public_page_and_slideshow(db_session, storage, event):
    photo = IntakeService.submit(
        db_session, storage, event,
        sender_name="Bob",
        message_type="photo",
        media=MediaPayload(data=b"jpeg", filename="dance.jpg", content_type="image/jpeg"),
    )
    assert SlideshowService.load_playlist(db_session, event) == []
    
    approve(db_session, event, photo.id)
    
    assert [s.id for s in EventService.visible_submissions(db_session, event)] == [photo.id]
    assert [s.id for s in SlideshowService.load_playlist(db_session, event)] == [photo.id]

def test_show_all_submissions_opt_in(db_session, storage, event):
    """Couples can opt into an unmoderated public feed"""
    IntakeService.submit(db_session, storage, event, sender_name="Alice", message_type="text", content="Hi")
    
    updated = EventService.update_settings(db_session, event, EventSettingsUpdate(
        title=event.title,
        slug=event.slug,
        settings=EventSettings(show_all_submissions=True),
    ))
    
    assert len(EventService.visible_submissions(db_session, updated)) == 1

def test_update_settings(db_session, event):
    updated = EventService.update_settings(db_session, event, EventSettingsUpdate(
        title=" Sarah & John Forever ",
        slug="sarah-john",
        background_image_url="https://img.example/bg.jpg",
        settings=EventSettings(enable_notifications=True, accent_color="rose"),
    ))
    
    assert updated.title == "Sarah & John Forever"
    assert updated.slug == "sarah-john"
    assert updated.settings.accent_color == "rose"
    assert updated.settings.enable_notifications is True
    assert EventRepo.get_by_slug(db_session, "sarah-john").id == event.id

def test_update_settings_slug_taken(db_session, event):
    EventRepo.create(db_session, couple_id="couple-2", slug="taken", title="Other")
    
    with pytest.raises(SlugTaken):
        EventService.update_settings(db_session, event, EventSettingsUpdate(title="T", slug="taken"))

def test_public_link_and_qr(event):
    assert EventService.public_link("sarah-john-2025").endswith("/event/sarah-john-2025")
    assert QRService.generate_event_qr("sarah-john-2025").startswith(b"\x89PNG")

def test_export_submissions(db_session, storage, event):
    IntakeService.submit(db_session, storage, event, sender_name="Alice", message_type="text", content="Congrats!")
    IntakeService.submit(
        db_session, storage, event,
        sender_name="Bob",
        message_type="video",
        media=MediaPayload(data=b"mp4", filename="toast.mp4", content_type="video/mp4"),
    )
    submissions = ModerationService.load_submissions(db_session, event)
    
    df = pd.read_excel(io.BytesIO(ExportService.export_submissions(submissions)))
    
    assert list(df.columns) == ['Sender', 'Contact', 'Type', 'Message', 'File', 'Approved', 'Favorite', 'Received']
    assert sorted(df['Sender']) == ['Alice', 'Bob']
    assert set(df['Approved']) == {'No'}
