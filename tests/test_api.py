"""
End-to-end tests for the HTTP API
"""

from urllib.parse import quote

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.config import settings
from app.core.db import Base, get_db
from app.services.repositories import EventRepo
from app.services.storage_service import LocalStorage, get_storage
from app.utils.security import rate_limiter
from main import app

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_api.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

SLUG = "sarah-john-2025"

def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

@pytest.fixture
def client(tmp_path):
    """Test client wired to a throwaway database and storage directory"""
    Base.metadata.create_all(bind=engine)
    storage = LocalStorage(root=str(tmp_path), signing_key="test-key", base_url="http://testserver")
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    rate_limiter.clear()
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        Base.metadata.drop_all(bind=engine)

@pytest.fixture
def couple(client):
    """Signed-up couple with an event; returns auth headers"""
    response = client.post("/auth/signup", json={
        "email": "couple@example.com",
        "password": "secret123",
        "couple_id": "couple-1"
    })
    assert response.status_code == 201
    token = response.json()["data"]["access_token"]
    
    db = TestingSessionLocal()
    try:
        EventRepo.create(db, couple_id="couple-1", slug=SLUG, title="Sarah & John")
    finally:
        db.close()
    return {"Authorization": f"Bearer {token}"}

def submit_text(client, name="Alice", content="Congrats!"):
    return client.post(f"/event/{SLUG}/submissions", data={
        "sender_name": name,
        "type": "text",
        "content": content
    })

def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}

def test_guest_text_flow(client, couple):
    """Submission stays off the public page until approved"""
    response = submit_text(client)
    assert response.status_code == 201
    submission = response.json()["data"]
    assert submission["moderated"] is False
    
    public = client.get(f"/event/{SLUG}").json()["data"]
    assert public["submissions"] == []
    
    approved = client.post(f"/dashboard/submissions/{submission['id']}/moderation", headers=couple)
    assert approved.status_code == 200
    assert approved.json()["data"]["moderated"] is True
    
    public = client.get(f"/event/{SLUG}").json()["data"]
    assert [s["id"] for s in public["submissions"]] == [submission["id"]]

def test_validation_errors_reported(client, couple):
    response = client.post(f"/event/{SLUG}/submissions", data={"sender_name": " ", "type": "text", "content": "x"})
    
    assert response.status_code == 422
    assert response.json()["error_code"] == "missing_name"

def test_oversized_upload_rejected(client, couple, monkeypatch):
    monkeypatch.setattr(settings, "MAX_IMAGE_SIZE", 10)
    
    response = client.post(
        f"/event/{SLUG}/submissions",
        data={"sender_name": "Bob", "type": "photo"},
        files={"file": ("big.jpg", b"x" * 11, "image/jpeg")}
    )
    
    assert response.status_code == 422
    assert response.json()["error_code"] == "file_too_large"

def test_unknown_event(client):
    response = submit_text(client)
    
    assert response.status_code == 404
    assert response.json()["error_code"] == "event_not_found"

def test_dashboard_requires_session(client, couple):
    assert client.get("/dashboard/submissions").status_code == 401
    assert client.get("/dashboard/submissions", headers={"Authorization": "Bearer nope"}).status_code == 401

def test_dashboard_without_event(client):
    response = client.post("/auth/signup", json={
        "email": "lonely@example.com",
        "password": "secret123",
        "couple_id": "couple-404"
    })
    headers = {"Authorization": f"Bearer {response.json()['data']['access_token']}"}
    
    response = client.get("/dashboard/submissions", headers=headers)
    
    assert response.status_code == 404
    assert response.json()["error_code"] == "event_not_found"

def test_grouped_board_and_search(client, couple):
    for name in ["Alice", "Bob", "Alina", "Alice"]:
        submit_text(client, name=name)
    
    board = client.get("/dashboard/submissions", params={"search": "ali"}, headers=couple).json()["data"]
    
    assert board["senders"] == ["Alice", "Alina"]
    assert {g["sender_name"]: g["count"] for g in board["groups"]} == {"Alice": 2, "Alina": 1}
    
    board = client.get("/dashboard/submissions", params={"sender": "Bob"}, headers=couple).json()["data"]
    assert board["selected_sender"] == "Bob"
    assert [g["sender_name"] for g in board["groups"]] == ["Bob"]

def test_favorite_toggle(client, couple):
    submission_id = submit_text(client).json()["data"]["id"]
    
    first = client.post(f"/dashboard/submissions/{submission_id}/favorite", headers=couple).json()
    second = client.post(f"/dashboard/submissions/{submission_id}/favorite", headers=couple).json()
    
    assert first["data"]["is_favorite"] is True
    assert second["data"]["is_favorite"] is False

def test_photo_media_and_download(client, couple):
    response = client.post(
        f"/event/{SLUG}/submissions",
        data={"sender_name": "Bob", "type": "photo"},
        files={"file": ("dance.jpg", b"jpeg-bytes", "image/jpeg")}
    )
    assert response.status_code == 201
    submission_id = response.json()["data"]["id"]
    
    media = client.get(f"/dashboard/submissions/{submission_id}/media", headers=couple).json()["data"]
    blob = client.get(media["url"])
    assert blob.status_code == 200
    assert blob.content == b"jpeg-bytes"
    
    tampered = client.get(media["url"].replace("signature=", "signature=0"))
    assert tampered.status_code == 403
    
    download = client.get(
        f"/dashboard/submissions/{submission_id}/download",
        headers=couple,
        follow_redirects=False
    )
    assert download.status_code == 307
    assert 'filename="Bob-photo.jpeg"' in download.headers["content-disposition"]
    
    saved = client.get(f"/dashboard/submissions/{submission_id}/download", headers=couple)
    assert saved.status_code == 200
    assert saved.content == b"jpeg-bytes"
    assert 'filename="Bob-photo.jpeg"' in saved.headers["content-disposition"]

def test_download_with_non_ascii_sender(client, couple):
    response = client.post(
        f"/event/{SLUG}/submissions",
        data={"sender_name": "أحمد", "type": "photo"},
        files={"file": ("zaffa.jpg", b"jpeg-bytes", "image/jpeg")}
    )
    submission_id = response.json()["data"]["id"]
    encoded = quote("أحمد-photo.jpeg")
    
    redirect = client.get(
        f"/dashboard/submissions/{submission_id}/download",
        headers=couple,
        follow_redirects=False
    )
    assert redirect.status_code == 307
    assert f"filename*=UTF-8''{encoded}" in redirect.headers["content-disposition"]
    
    saved = client.get(f"/dashboard/submissions/{submission_id}/download", headers=couple)
    assert saved.status_code == 200
    assert encoded in saved.headers["content-disposition"]

def test_download_filename_is_signed(client, couple):
    response = client.post(
        f"/event/{SLUG}/submissions",
        data={"sender_name": "Bob", "type": "photo"},
        files={"file": ("dance.jpg", b"jpeg-bytes", "image/jpeg")}
    )
    submission_id = response.json()["data"]["id"]
    redirect = client.get(
        f"/dashboard/submissions/{submission_id}/download",
        headers=couple,
        follow_redirects=False
    )
    
    renamed = client.get(redirect.headers["location"].replace("Bob-photo", "Eve-photo"))
    
    assert renamed.status_code == 403

def test_text_has_no_media(client, couple):
    submission_id = submit_text(client).json()["data"]["id"]
    
    response = client.get(f"/dashboard/submissions/{submission_id}/media", headers=couple)
    
    assert response.status_code == 422
    assert response.json()["error_code"] == "no_media"

def test_delete_collapses_selection(client, couple):
    submission_id = submit_text(client, name="Bob").json()["data"]["id"]
    submit_text(client, name="Alice")
    
    response = client.delete(f"/dashboard/submissions/{submission_id}", params={"sender": "Bob"}, headers=couple)
    
    assert response.status_code == 200
    board = response.json()["data"]["board"]
    assert board["selected_sender"] is None
    assert board["senders"] == ["Alice"]

def test_voice_recording_flow(client, couple):
    recording_id = client.post(f"/event/{SLUG}/recordings").json()["data"]["recording_id"]
    client.post(f"/event/{SLUG}/recordings/{recording_id}/chunks", content=b"Ogg")
    client.post(f"/event/{SLUG}/recordings/{recording_id}/chunks", content=b"S")
    stopped = client.post(f"/event/{SLUG}/recordings/{recording_id}/stop").json()["data"]
    assert stopped["size"] == 4
    
    response = client.post(f"/event/{SLUG}/submissions", data={
        "sender_name": "Grandma",
        "type": "voice",
        "recording_id": recording_id
    })
    
    assert response.status_code == 201
    assert response.json()["data"]["storage_meta"]["name"] == "voice-message.webm"

def test_text_message_leaves_recording_intact(client, couple):
    recording_id = client.post(f"/event/{SLUG}/recordings").json()["data"]["recording_id"]
    client.post(f"/event/{SLUG}/recordings/{recording_id}/chunks", content=b"OggS")
    
    text = client.post(f"/event/{SLUG}/submissions", data={
        "sender_name": "Grandma",
        "type": "text",
        "content": "Mazel tov!",
        "recording_id": recording_id
    })
    assert text.status_code == 201
    
    voice = client.post(f"/event/{SLUG}/submissions", data={
        "sender_name": "Grandma",
        "type": "voice",
        "recording_id": recording_id
    })
    assert voice.status_code == 201
    assert voice.json()["data"]["storage_meta"]["size"] == 4

def test_recording_rejected_for_photo(client, couple):
    recording_id = client.post(f"/event/{SLUG}/recordings").json()["data"]["recording_id"]
    
    response = client.post(f"/event/{SLUG}/submissions", data={
        "sender_name": "Grandma",
        "type": "photo",
        "recording_id": recording_id
    })
    
    assert response.status_code == 422
    assert response.json()["error_code"] == "invalid_type"

def test_recording_start_rate_limited(client, couple, monkeypatch):
    monkeypatch.setattr(settings, "RATE_LIMIT_PER_MINUTE", 2)
    
    statuses = [client.post(f"/event/{SLUG}/recordings").status_code for _ in range(3)]
    
    assert statuses == [201, 201, 429]

def test_stats_and_settings(client, couple):
    submit_text(client, name="Alice")
    submit_text(client, name="Bob")
    
    stats = client.get("/dashboard", headers=couple).json()["data"]["stats"]
    assert stats["total_submissions"] == 2
    assert stats["unread_submissions"] == 2
    assert stats["total_senders"] == 2
    
    response = client.put("/dashboard/settings", headers=couple, json={
        "title": "Sarah & John",
        "slug": "sj-forever",
        "settings": {"show_all_submissions": True, "enable_notifications": False, "accent_color": "rose"}
    })
    assert response.status_code == 200
    assert response.json()["data"]["public_link"].endswith("/event/sj-forever")
    
    public = client.get("/event/sj-forever").json()["data"]
    assert len(public["submissions"]) == 2

def test_export(client, couple):
    submit_text(client)
    
    response = client.get("/dashboard/submissions/export.xlsx", headers=couple)
    
    assert response.status_code == 200
    assert response.content[:2] == b"PK"

def test_slideshow_socket(client, couple):
    response = client.post(
        f"/event/{SLUG}/submissions",
        data={"sender_name": "Bob", "type": "video"},
        files={"file": ("toast.mp4", b"mp4", "video/mp4")}
    )
    submission_id = response.json()["data"]["id"]
    client.post(f"/dashboard/submissions/{submission_id}/moderation", headers=couple)
    
    playlist = client.get("/dashboard/slideshow", headers=couple).json()["data"]
    assert [item["id"] for item in playlist["items"]] == [submission_id]
    
    token = couple["Authorization"].split(" ", 1)[1]
    with client.websocket_connect(f"/ws/slideshow?token={token}") as websocket:
        slide = websocket.receive_json()
        assert slide["type"] == "slide"
        assert slide["submission"]["id"] == submission_id
        assert slide["url"].startswith("http://testserver/media/")
        
        websocket.send_json({"type": "ping", "timestamp": 1})
        assert websocket.receive_json() == {"type": "pong", "timestamp": 1}

def test_signout_revokes_token(client, couple):
    assert client.get("/auth/me", headers=couple).json()["data"]["email"] == "couple@example.com"
    
    assert client.post("/auth/signout", headers=couple).status_code == 200
    
    assert client.get("/auth/me", headers=couple).status_code == 401
