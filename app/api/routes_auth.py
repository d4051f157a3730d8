"""
Account routes
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.core.errors import GuestbookError
from app.core.session import SessionContext
from app.schemas.account import SignupRequest
from app.services.auth_service import AuthService
from app.services.repositories import AccountRepo
from app.utils.security import get_session_context
from app.utils.responses import success_response, domain_error_response, not_found_error

router = APIRouter()

@router.post("/signup")
async def signup(
    signup_data: SignupRequest,
    db: Session = Depends(get_db)
):
    """Create a couple account"""
    try:
        account, access_token = AuthService.signup(db, signup_data)
    except GuestbookError as e:
        return domain_error_response(e)
    
    data = account.model_dump()
    if access_token:
        data["access_token"] = access_token
    
    return success_response(message="Account created", data=data, status_code=201)

@router.post("/signout")
async def signout(
    context: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db)
):
    """End the current session"""
    AuthService.signout(db, context)
    return success_response(message="Signed out")

@router.get("/me")
async def me(
    context: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db)
):
    """Current account"""
    account = context.account or AccountRepo.get(db, context.identity)
    if not account:
        raise not_found_error("Account")
    return success_response(message="Account retrieved", data=account.model_dump())
