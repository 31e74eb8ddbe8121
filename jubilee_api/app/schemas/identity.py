"""
Pydantic models for Google sign‑in.
"""

from pydantic import BaseModel, Field


class GoogleCredential(BaseModel):
    """The ID token returned to the browser by Google Identity Services."""

    credential: str = Field(..., min_length=1)


class UserProfile(BaseModel):
    sub: str
    email: str
    name: str = ""
    picture: str = ""


class UserSession(BaseModel):
    user: UserProfile
    token: str
