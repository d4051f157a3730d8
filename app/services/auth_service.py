"""
Account sign-up and sign-out against the configured identity provider
"""

import logging
import secrets
import uuid
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from app.core.errors import PersistenceError, ValidationFailed
from app.core.session import SessionContext, session_events
from app.schemas.account import AccountResponse, SignupRequest
from app.services.repositories import AccountRepo, use_firestore

logger = logging.getLogger(__name__)


class AuthService:
    """Service for couple accounts"""

    @staticmethod
    def signup(db: Session, request: SignupRequest) -> Tuple[AccountResponse, Optional[str]]:
        """Create the identity and its account row.

        Returns the account and, when Firebase Auth is disabled, a local access token.
        """
        if use_firestore():
            from firebase_admin import auth

            try:
                user = auth.create_user(email=request.email, password=request.password)
            except auth.EmailAlreadyExistsError as e:
                raise ValidationFailed("An account with this email already exists", error_code="email_taken") from e
            except ValueError as e:
                raise ValidationFailed(str(e), error_code="invalid_signup") from e
            account = AccountRepo.create(db, user.uid, request.email, request.couple_id)
            logger.info(f"Created Firebase account {user.uid}")
            return account, None

        if AccountRepo.email_exists_sql(db, request.email):
            raise ValidationFailed("An account with this email already exists", error_code="email_taken")

        token = secrets.token_urlsafe(32)
        try:
            account = AccountRepo.create(db, str(uuid.uuid4()), request.email, request.couple_id, access_token=token)
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to create account for {request.email}: {e}")
            raise PersistenceError("Failed to create account") from e
        logger.info(f"Created local account {account.id}")
        return account, token

    @staticmethod
    def signout(db: Session, context: SessionContext) -> None:
        """Revoke the session and tell listeners (e.g. open slideshows) it ended"""
        if use_firestore():
            from firebase_admin import auth

            auth.revoke_refresh_tokens(context.identity)
        else:
            AccountRepo.set_token_sql(db, context.identity, None)

        session_events.notify(context.identity, None)
        logger.info(f"Signed out {context.identity}")
