"""
Account-related Pydantic schemas
"""

from typing import Optional
from pydantic import BaseModel, EmailStr

class SignupRequest(BaseModel):
    """Sign-up form"""
    email: EmailStr
    password: str
    couple_id: str

class AccountResponse(BaseModel):
    """Account record"""
    id: str
    email: str
    couple_id: Optional[str] = None
    role: str = "couple"
    
    class Config:
        from_attributes = True
