"""Session and sign-in schemas"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    """Console roles"""
    IT_ADMIN = "IT_ADMIN"
    SECURITY_ADMIN = "SECURITY_ADMIN"
    FINANCE_ADMIN = "FINANCE_ADMIN"
    APP_OWNER = "APP_OWNER"
    REVIEWER = "REVIEWER"
    READ_ONLY = "READ_ONLY"


class SignInRequest(BaseModel):
    """Email sign-in; the address must exist in the directory"""
    email: Optional[str] = Field(None, max_length=255)


class SessionUser(BaseModel):
    id: str
    email: str
    name: str
    role: Role = Role.READ_ONLY
    department: Optional[str] = None


class Session(BaseModel):
    user: SessionUser
    expires_at: datetime
