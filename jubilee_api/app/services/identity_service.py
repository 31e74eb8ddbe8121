"""
Attendee identity resolution.

Attendees sign in with Google in the browser.  Requests then carry the
identity in one of three shapes: a user session token issued by
``POST /api/auth/google``, the ``x-oauth-uid`` / ``x-oauth-email``
headers set by the frontend, or ``oauthUid`` / ``oauthEmail`` form
fields on the registration form.  Whatever the source, the claims go
through ``normalize_identity`` so that the rest of the service only
ever sees a complete ``ResolvedIdentity``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple, Union

import httpx
from fastapi import Request

from jubilee_api.app.core.config import settings
from jubilee_api.app.core.exceptions import UnauthorizedError, UpstreamError
from jubilee_api.app.core.security import InvalidTokenError, decode_access_token


logger = logging.getLogger(__name__)

IDENTITY_MISSING_MESSAGE = "Google account missing. Please login again."

SUB_KEYS = ("sub", "uid", "id", "user_id", "googleId")
EMAIL_KEYS = ("email", "mail", "user_email")
NAME_KEYS = ("name", "fullName", "displayName")
PICTURE_KEYS = ("picture", "photoURL", "avatar")


@dataclass(frozen=True)
class ResolvedIdentity:
    sub: str
    email: str
    name: str = ""
    picture: str = ""

    resolved = True

    def claims(self) -> dict:
        return {"sub": self.sub, "email": self.email, "name": self.name, "picture": self.picture}


@dataclass(frozen=True)
class UnresolvedIdentity:
    """Claims that lack a subject id or an e‑mail address."""

    missing: Tuple[str, ...]

    resolved = False


Identity = Union[ResolvedIdentity, UnresolvedIdentity]


def _first(payload: Mapping[str, Any], keys: Tuple[str, ...]) -> str:
    for key in keys:
        value = payload.get(key)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return ""


def normalize_identity(payload: Optional[Mapping[str, Any]]) -> Identity:
    """Map provider claims with varying key names onto one identity.

    Each field is taken from the first non‑empty alias.  The e‑mail is
    lower‑cased.  A payload without both a subject id and an e‑mail
    yields ``UnresolvedIdentity``; a partial identity is never
    returned.
    """
    payload = payload or {}
    sub = _first(payload, SUB_KEYS)
    email = _first(payload, EMAIL_KEYS).lower()
    missing = tuple(field for field, value in (("sub", sub), ("email", email)) if not value)
    if missing:
        return UnresolvedIdentity(missing=missing)
    return ResolvedIdentity(
        sub=sub,
        email=email,
        name=_first(payload, NAME_KEYS),
        picture=_first(payload, PICTURE_KEYS),
    )


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization", "")
    if header[:7].lower() == "bearer ":
        token = header[7:].strip()
        return token or None
    return None


def identity_from_token(request: Request) -> Optional[ResolvedIdentity]:
    """Return the identity carried by a valid user session token, if any.

    Invalid or expired tokens are ignored so that the caller can fall
    back to the other identity sources.
    """
    token = _bearer_token(request)
    if not token:
        return None
    try:
        claims = decode_access_token(token, settings.user_jwt_secret)
    except InvalidTokenError as exc:
        logger.debug("Ignoring unusable user token: %s", exc)
        return None
    identity = normalize_identity(claims)
    return identity if identity.resolved else None


def resolve_request_identity(
    request: Request,
    form_uid: Optional[str] = None,
    form_email: Optional[str] = None,
) -> ResolvedIdentity:
    """Determine who is submitting a registration.

    Sources in order: a valid user session token, then the
    ``x-oauth-uid`` / ``x-oauth-email`` headers, then the ``oauthUid``
    / ``oauthEmail`` form fields.  Raises ``UnauthorizedError`` when no
    source yields both a subject id and an e‑mail.
    """
    identity = identity_from_token(request)
    if identity is not None:
        return identity
    candidate = normalize_identity(
        {
            "sub": request.headers.get("x-oauth-uid") or form_uid,
            "email": request.headers.get("x-oauth-email") or form_email,
        }
    )
    if not candidate.resolved:
        logger.info("Registration attempt without identity (missing %s)", ", ".join(candidate.missing))
        raise UnauthorizedError(IDENTITY_MISSING_MESSAGE)
    return candidate


def resolve_subject_id(request: Request, query_uid: Optional[str] = None) -> str:
    """Subject id for looking up the caller's own registration.

    Only the subject id is needed here, so the e‑mail may be absent.
    """
    identity = identity_from_token(request)
    if identity is not None:
        return identity.sub
    sub = (request.headers.get("x-oauth-uid") or query_uid or "").strip()
    if not sub:
        raise UnauthorizedError(IDENTITY_MISSING_MESSAGE)
    return sub


class GoogleTokenVerifier:
    """Verify Google ID tokens through the ``tokeninfo`` endpoint."""

    def __init__(
        self,
        tokeninfo_url: str,
        client_id: str = "",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.tokeninfo_url = tokeninfo_url
        self.client_id = client_id
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def verify(self, credential: str) -> ResolvedIdentity:
        try:
            response = await self._client.get(self.tokeninfo_url, params={"id_token": credential})
        except httpx.HTTPError as exc:
            logger.error("Google token verification unavailable: %s", exc)
            raise UpstreamError("Google sign-in unavailable") from exc
        if response.status_code != 200:
            logger.info("Google rejected ID token with HTTP %s", response.status_code)
            raise UnauthorizedError("Google sign-in failed")
        try:
            claims = response.json()
        except ValueError as exc:
            logger.error("Google tokeninfo returned non-JSON body")
            raise UpstreamError("Google sign-in unavailable") from exc

        if self.client_id and claims.get("aud") != self.client_id:
            logger.warning("Google ID token issued for another audience")
            raise UnauthorizedError("Google sign-in failed")
        if str(claims.get("email_verified", "")).lower() != "true":
            raise UnauthorizedError("Google sign-in failed")
        identity = normalize_identity(claims)
        if not identity.resolved:
            raise UnauthorizedError("Google sign-in failed")
        return identity

    async def aclose(self) -> None:
        await self._client.aclose()


def get_google_verifier(request: Request) -> GoogleTokenVerifier:
    return request.app.state.google_verifier
