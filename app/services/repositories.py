"""
Repository layer abstracting storage (SQLAlchemy vs Firebase Firestore).

Both backends hand back the same pydantic records so the services never
need to know which one is active.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models import Account, Event, Submission
from app.schemas.account import AccountResponse
from app.schemas.event import EventResponse, EventSettings
from app.schemas.submission import SubmissionResponse
from app.services.firebase_client import get_firestore_client


def use_firestore() -> bool:
    return settings.USE_FIREBASE is True


def _event_from_sql(event: Event) -> EventResponse:
    return EventResponse(
        id=event.id,
        couple_id=event.couple_id,
        slug=event.slug,
        title=event.title,
        settings=EventSettings(**(event.settings or {})),
        background_image_url=event.background_image_url,
        created_at=event.created_at,
    )


def _doc_to_dict(doc) -> Dict[str, Any]:
    data = doc.to_dict()
    data["id"] = doc.id
    return data


# -------- Account repository --------

class AccountRepo:
    @staticmethod
    def get(db: Session, account_id: str) -> Optional[AccountResponse]:
        if use_firestore():
            return AccountRepo.get_fs(account_id)
        return AccountRepo.get_sql(db, account_id)

    @staticmethod
    def create(db: Session, account_id: str, email: str, couple_id: str, access_token: Optional[str] = None) -> AccountResponse:
        if use_firestore():
            return AccountRepo.create_fs(account_id, email, couple_id)
        return AccountRepo.create_sql(db, account_id, email, couple_id, access_token)

    @staticmethod
    def get_sql(db: Session, account_id: str) -> Optional[AccountResponse]:
        account = db.query(Account).filter(Account.id == account_id).first()
        return AccountResponse.model_validate(account) if account else None

    @staticmethod
    def get_by_token_sql(db: Session, access_token: str) -> Optional[AccountResponse]:
        account = db.query(Account).filter(Account.access_token == access_token).first()
        return AccountResponse.model_validate(account) if account else None

    @staticmethod
    def email_exists_sql(db: Session, email: str) -> bool:
        return db.query(Account).filter(Account.email == email).first() is not None

    @staticmethod
    def create_sql(db: Session, account_id: str, email: str, couple_id: str, access_token: Optional[str]) -> AccountResponse:
        account = Account(id=account_id, email=email, couple_id=couple_id, role="couple", access_token=access_token)
        db.add(account)
        db.commit()
        db.refresh(account)
        return AccountResponse.model_validate(account)

    @staticmethod
    def set_token_sql(db: Session, account_id: str, access_token: Optional[str]) -> None:
        db.query(Account).filter(Account.id == account_id).update({"access_token": access_token})
        db.commit()

    # Firestore shape: collection "accounts/{uid}"
    @staticmethod
    def get_fs(account_id: str) -> Optional[AccountResponse]:
        fs = get_firestore_client()
        doc = fs.collection("accounts").document(account_id).get()
        return AccountResponse(**_doc_to_dict(doc)) if doc.exists else None

    @staticmethod
    def create_fs(account_id: str, email: str, couple_id: str) -> AccountResponse:
        fs = get_firestore_client()
        data = {
            "email": email,
            "couple_id": couple_id,
            "role": "couple",
            "created_at": datetime.utcnow().isoformat(),
        }
        fs.collection("accounts").document(account_id).set(data)
        return AccountResponse(id=account_id, **data)


# -------- Event repository --------

class EventRepo:
    @staticmethod
    def get(db: Session, event_id: str) -> Optional[EventResponse]:
        if use_firestore():
            return EventRepo.get_fs(event_id)
        event = db.query(Event).filter(Event.id == event_id).first()
        return _event_from_sql(event) if event else None

    @staticmethod
    def get_by_slug(db: Session, slug: str) -> Optional[EventResponse]:
        if use_firestore():
            return EventRepo.find_one_fs("slug", slug)
        event = db.query(Event).filter(Event.slug == slug).first()
        return _event_from_sql(event) if event else None

    @staticmethod
    def get_by_couple(db: Session, couple_id: str) -> Optional[EventResponse]:
        if use_firestore():
            return EventRepo.find_one_fs("couple_id", couple_id)
        event = db.query(Event).filter(Event.couple_id == couple_id).first()
        return _event_from_sql(event) if event else None

    @staticmethod
    def slug_taken(db: Session, slug: str, exclude_event_id: Optional[str] = None) -> bool:
        existing = EventRepo.get_by_slug(db, slug)
        return existing is not None and existing.id != exclude_event_id

    @staticmethod
    def create(
        db: Session,
        couple_id: str,
        slug: str,
        title: str,
        settings_bag: Optional[Dict[str, Any]] = None,
        background_image_url: Optional[str] = None,
    ) -> EventResponse:
        bag = EventSettings(**(settings_bag or {})).model_dump()
        if use_firestore():
            return EventRepo.create_fs(couple_id, slug, title, bag, background_image_url)
        event = Event(
            couple_id=couple_id,
            slug=slug,
            title=title,
            settings=bag,
            background_image_url=background_image_url,
        )
        db.add(event)
        db.commit()
        db.refresh(event)
        return _event_from_sql(event)

    @staticmethod
    def update(db: Session, event_id: str, fields: Dict[str, Any]) -> Optional[EventResponse]:
        if use_firestore():
            fs = get_firestore_client()
            fs.collection("events").document(event_id).set(fields, merge=True)
            return EventRepo.get_fs(event_id)
        event = db.query(Event).filter(Event.id == event_id).first()
        if not event:
            return None
        for key, value in fields.items():
            setattr(event, key, value)
        db.commit()
        db.refresh(event)
        return _event_from_sql(event)

    # Firestore shape: collection "events/{event_id}"
    @staticmethod
    def get_fs(event_id: str) -> Optional[EventResponse]:
        fs = get_firestore_client()
        doc = fs.collection("events").document(event_id).get()
        return EventResponse(**_doc_to_dict(doc)) if doc.exists else None

    @staticmethod
    def find_one_fs(field: str, value: str) -> Optional[EventResponse]:
        fs = get_firestore_client()
        docs = fs.collection("events").where(field, "==", value).limit(1).get()
        if docs:
            return EventResponse(**_doc_to_dict(docs[0]))
        return None

    @staticmethod
    def create_fs(couple_id: str, slug: str, title: str, bag: Dict[str, Any], background_image_url: Optional[str]) -> EventResponse:
        fs = get_firestore_client()
        event_id = str(uuid.uuid4())
        data = {
            "couple_id": couple_id,
            "slug": slug,
            "title": title,
            "settings": bag,
            "background_image_url": background_image_url,
            "created_at": datetime.utcnow().isoformat(),
        }
        fs.collection("events").document(event_id).set(data)
        return EventResponse(id=event_id, **data)


# -------- Submission repository --------

class SubmissionRepo:
    @staticmethod
    def list_for_event(
        db: Session,
        event_id: str,
        moderated: Optional[bool] = None,
        types: Optional[Iterable[str]] = None,
        limit: Optional[int] = None,
    ) -> List[SubmissionResponse]:
        """Submissions of an event, newest first"""
        if use_firestore():
            return SubmissionRepo.list_for_event_fs(event_id, moderated, types, limit)

        query = db.query(Submission).filter(Submission.event_id == event_id)
        if moderated is not None:
            query = query.filter(Submission.moderated == moderated)
        if types is not None:
            query = query.filter(Submission.type.in_(list(types)))
        query = query.order_by(Submission.created_at.desc())
        if limit:
            query = query.limit(limit)
        return [SubmissionResponse.model_validate(s) for s in query.all()]

    @staticmethod
    def get(db: Session, event_id: str, submission_id: str) -> Optional[SubmissionResponse]:
        if use_firestore():
            fs = get_firestore_client()
            doc = SubmissionRepo._collection_fs(fs, event_id).document(submission_id).get()
            return SubmissionResponse(**_doc_to_dict(doc)) if doc.exists else None
        submission = db.query(Submission).filter(
            Submission.id == submission_id,
            Submission.event_id == event_id
        ).first()
        return SubmissionResponse.model_validate(submission) if submission else None

    @staticmethod
    def insert(db: Session, fields: Dict[str, Any]) -> SubmissionResponse:
        if use_firestore():
            return SubmissionRepo.insert_fs(fields)
        submission = Submission(**fields)
        db.add(submission)
        try:
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(submission)
        return SubmissionResponse.model_validate(submission)

    @staticmethod
    def update(db: Session, event_id: str, submission_id: str, patch: Dict[str, Any]) -> bool:
        """Apply a partial update; returns False when the row does not exist"""
        if use_firestore():
            fs = get_firestore_client()
            ref = SubmissionRepo._collection_fs(fs, event_id).document(submission_id)
            if not ref.get().exists:
                return False
            ref.set(patch, merge=True)
            return True
        try:
            count = db.query(Submission).filter(
                Submission.id == submission_id,
                Submission.event_id == event_id
            ).update(patch)
            db.commit()
        except Exception:
            db.rollback()
            raise
        return count > 0

    @staticmethod
    def delete(db: Session, event_id: str, submission_id: str) -> None:
        if use_firestore():
            fs = get_firestore_client()
            SubmissionRepo._collection_fs(fs, event_id).document(submission_id).delete()
            return
        try:
            db.query(Submission).filter(
                Submission.id == submission_id,
                Submission.event_id == event_id
            ).delete()
            db.commit()
        except Exception:
            db.rollback()
            raise

    # Firestore submission docs under collection events/{event_id}/submissions
    @staticmethod
    def _collection_fs(fs, event_id: str):
        return fs.collection("events").document(event_id).collection("submissions")

    @staticmethod
    def list_for_event_fs(
        event_id: str,
        moderated: Optional[bool],
        types: Optional[Iterable[str]],
        limit: Optional[int],
    ) -> List[SubmissionResponse]:
        from firebase_admin import firestore

        fs = get_firestore_client()
        query = SubmissionRepo._collection_fs(fs, event_id)
        if moderated is not None:
            query = query.where("moderated", "==", moderated)
        if types is not None:
            query = query.where("type", "in", list(types))
        query = query.order_by("created_at", direction=firestore.Query.DESCENDING)
        if limit:
            query = query.limit(limit)
        return [SubmissionResponse(**_doc_to_dict(d)) for d in query.get()]

    @staticmethod
    def insert_fs(fields: Dict[str, Any]) -> SubmissionResponse:
        fs = get_firestore_client()
        submission_id = str(uuid.uuid4())
        data = dict(fields)
        data.setdefault("created_at", datetime.utcnow().isoformat())
        SubmissionRepo._collection_fs(fs, data["event_id"]).document(submission_id).set(data)
        return SubmissionResponse(id=submission_id, **data)
