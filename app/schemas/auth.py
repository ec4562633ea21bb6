"""
app/schemas/auth.py

Request and response schemas for the auth endpoints.
"""

from __future__ import annotations

import datetime as dt
import uuid

from pydantic import BaseModel, Field


class SignInRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=1)


class SignUpRequest(SignInRequest):
    display_name: str = Field(default="", max_length=255)


class AuthUserResponse(BaseModel):
    id: uuid.UUID
    email: str
    display_name: str


class AuthSessionResponse(BaseModel):
    """
    API response model for an authenticated session.
    """

    access_token: str
    token_type: str = "bearer"
    expires_at: dt.datetime
    user: AuthUserResponse
