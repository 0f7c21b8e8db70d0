"""Pydantic models for accounts and sessions"""
from pydantic import BaseModel, Field
from typing import Optional

class Credentials(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)

class SignupRequest(Credentials):
    name: Optional[str] = None

class SessionUser(BaseModel):
    """The identity kept in the signed session cookie."""
    id: str
    email: str
