"""
Pydantic models for the admin session endpoints.
"""

from typing import Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class AdminLogin(BaseModel):
    """Credentials posted to ``/api/admin/auth/login``.

    Both fields default to an empty string so that a missing field is
    reported by the service as ``"username and password required"``
    instead of a schema error.
    """

    username: str = Field("", examples=["admin"])
    password: str = Field("", examples=["s3cret-passphrase"])


class AdminToken(BaseModel):
    token: str
    expires_in: int = Field(..., description="Token lifetime in seconds")

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
    }


class AdminIdentity(BaseModel):
    """The administrator attached to an authorised request."""

    id: int
    username: str
    role: str = "admin"


class AdminRead(BaseModel):
    id: int
    username: str
    created_at: Optional[str] = None

    model_config = {
        "from_attributes": True,
        "alias_generator": to_camel,
        "populate_by_name": True,
    }
