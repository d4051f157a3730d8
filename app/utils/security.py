"""
Security utilities and authentication
"""

import logging
import time
from collections import defaultdict
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import get_db
from app.core.errors import NotAuthenticated
from app.core.session import SessionContext
from app.services.repositories import AccountRepo, use_firestore
from app.utils.responses import unauthorized_error

logger = logging.getLogger(__name__)

# Simple in-memory rate limiter
rate_limiter = defaultdict(list)

security = HTTPBearer(auto_error=False)

def resolve_token(db: Session, token: Optional[str]) -> SessionContext:
    """Turn a bearer token into a session context"""
    if not token:
        raise NotAuthenticated("Not signed in")

    if use_firestore():
        from firebase_admin import auth

        try:
            claims = auth.verify_id_token(token, check_revoked=True)
        except Exception as e:
            logger.warning(f"Rejected Firebase ID token: {e}")
            raise NotAuthenticated("Session expired. Please sign in again.") from e
        return SessionContext(identity=claims["uid"], email=claims.get("email"))

    account = AccountRepo.get_by_token_sql(db, token)
    if not account:
        raise NotAuthenticated("Session expired. Please sign in again.")
    return SessionContext(identity=account.id, email=account.email, account=account)

def get_session_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
):
    """Per-request session context, closed when the request finishes"""
    try:
        context = resolve_token(db, credentials.credentials if credentials else None)
    except NotAuthenticated as e:
        unauthorized_error(e.message)
    try:
        yield context
    finally:
        context.close()

def rate_limit_check(client_ip: str, limit: int = None) -> bool:
    """Simple rate limiting by IP address"""
    if limit is None:
        limit = settings.RATE_LIMIT_PER_MINUTE
    
    current_time = time.time()
    minute_ago = current_time - 60
    
    # Clean old requests
    rate_limiter[client_ip] = [
        req_time for req_time in rate_limiter[client_ip] 
        if req_time > minute_ago
    ]
    
    # Check limit
    if len(rate_limiter[client_ip]) >= limit:
        return False
    
    # Add current request
    rate_limiter[client_ip].append(current_time)
    return True

def get_client_ip(request) -> str:
    """Extract client IP from request"""
    # Check for forwarded IP first (for reverse proxy setups)
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    
    # Check for real IP header
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    
    # Fall back to direct client IP
    return request.client.host
