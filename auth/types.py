"""Pydantic models for auth domain."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class LoginRequest(BaseModel):
    """Request payload for password login."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class AccessToken(BaseModel):
    """A signed bearer token."""

    token: str = Field(..., description="Encoded JWT")
    user_id: UUID
    issued_at: datetime
    expires_at: datetime


class TokenResponse(BaseModel):
    """Returned by register and login."""

    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: dict


class AuthenticatedUser(BaseModel):
    """Principal resolved from a valid token."""

    user_id: UUID
    expires_at: datetime
