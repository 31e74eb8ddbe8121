"""
Attendee sign‑in endpoints.

The browser obtains a Google ID token through Google Identity Services
and exchanges it here for a session token signed by this API.  The
session token is then sent as ``Authorization: Bearer`` on
registration requests.
"""

from fastapi import APIRouter, Depends, Request

from jubilee_api.app.core.exceptions import UnauthorizedError
from jubilee_api.app.core.security import create_user_token
from jubilee_api.app.schemas.identity import GoogleCredential, UserProfile, UserSession
from jubilee_api.app.services.identity_service import (
    IDENTITY_MISSING_MESSAGE,
    GoogleTokenVerifier,
    get_google_verifier,
    identity_from_token,
)


router = APIRouter()


@router.post("/google", response_model=UserSession)
async def google_sign_in(
    payload: GoogleCredential,
    verifier: GoogleTokenVerifier = Depends(get_google_verifier),
) -> UserSession:
    """Verify a Google ID token and issue an attendee session token."""
    identity = await verifier.verify(payload.credential)
    token = create_user_token(identity.claims())
    return UserSession(user=UserProfile(**identity.claims()), token=token)


@router.get("/me", response_model=UserProfile)
async def current_user(request: Request) -> UserProfile:
    identity = identity_from_token(request)
    if identity is None:
        raise UnauthorizedError(IDENTITY_MISSING_MESSAGE)
    return UserProfile(**identity.claims())
