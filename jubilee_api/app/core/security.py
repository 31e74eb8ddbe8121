"""
Security helpers for password hashing and signed session tokens.

This module implements a lightweight JSON Web Token (JWT) mechanism
using HMAC‑SHA256 signatures and base64url encoding.  Tokens embed
arbitrary claims and an expiration timestamp (``exp``).  Two kinds of
token are issued: admin session tokens (signed with
``settings.admin_jwt_secret``) and attendee session tokens created
after Google sign‑in (signed with ``settings.user_jwt_secret``).

Password hashing uses PBKDF2‑HMAC with SHA‑256 and a random salt.

``require_admin`` is the FastAPI dependency guarding every
admin‑mutating route.  It accepts the token from an
``Authorization: Bearer`` header or, as a fallback, from the
``adminToken`` cookie set at login.
"""

import base64
import hashlib
import hmac
import json
import os
import time
from typing import Any, Dict, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import settings
from .db import get_connection
from .exceptions import ForbiddenError, UnauthorizedError
from ..schemas.admin import AdminIdentity


ADMIN_COOKIE_NAME = "adminToken"
PBKDF2_ITERATIONS = 100_000


class InvalidTokenError(Exception):
    """The token is malformed or its signature does not verify."""


class ExpiredTokenError(InvalidTokenError):
    """The token verified but its ``exp`` claim is in the past."""


def _b64_url_encode(data: bytes) -> str:
    """Base64‑url encode bytes without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("utf-8")


def _b64_url_decode(data: str) -> bytes:
    """Decode base64‑url encoded string, adding padding if necessary."""
    padding = '=' * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def _sign(message: bytes, secret: str) -> bytes:
    """Compute HMAC‑SHA256 signature of a message using the given secret."""
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()


def create_access_token(data: Dict[str, Any], secret: str, expires_delta: int) -> str:
    """Create a signed JWT token with the given payload.

    The payload is extended with an ``exp`` field representing the
    expiration time as a UNIX timestamp.  The token is a string of the
    form ``header.payload.signature``, where each part is base64url
    encoded.

    Parameters
    ----------
    data : dict
        Claims to embed in the token (e.g. ``{"sub": "42"}``).
    secret : str
        HMAC key used to sign the token.
    expires_delta : int
        Lifetime of the token in seconds.

    Returns
    -------
    str
        A signed JWT token.
    """
    to_encode = data.copy()
    to_encode["exp"] = int(time.time()) + expires_delta
    header = {"alg": "HS256", "typ": "JWT"}
    header_b64 = _b64_url_encode(json.dumps(header, separators=(',', ':')).encode("utf-8"))
    payload_b64 = _b64_url_encode(json.dumps(to_encode, separators=(',', ':')).encode("utf-8"))
    signing_input = f"{header_b64}.{payload_b64}".encode("utf-8")
    signature_b64 = _b64_url_encode(_sign(signing_input, secret))
    return f"{header_b64}.{payload_b64}.{signature_b64}"


def decode_access_token(token: str, secret: str) -> Dict[str, Any]:
    """Verify and decode a JWT token.

    Splits the token into header, payload and signature, verifies the
    HMAC signature and checks the ``exp`` field.

    Raises
    ------
    ExpiredTokenError
        The signature is valid but the token has expired.
    InvalidTokenError
        The token is malformed, uses another algorithm or has a bad
        signature.
    """
    parts = token.split('.')
    if len(parts) != 3:
        raise InvalidTokenError("Token must have three segments")
    header_b64, payload_b64, signature_b64 = parts
    try:
        header = json.loads(_b64_url_decode(header_b64).decode("utf-8"))
        actual_sig = _b64_url_decode(signature_b64)
    except (ValueError, UnicodeDecodeError) as exc:
        raise InvalidTokenError("Token is not valid base64url JSON") from exc
    if not isinstance(header, dict) or header.get("alg") != "HS256":
        raise InvalidTokenError("Unsupported token algorithm")
    signing_input = f"{header_b64}.{payload_b64}".encode("utf-8")
    # Constant‑time comparison to prevent timing attacks
    if not hmac.compare_digest(_sign(signing_input, secret), actual_sig):
        raise InvalidTokenError("Signature mismatch")
    try:
        data = json.loads(_b64_url_decode(payload_b64).decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as exc:
        raise InvalidTokenError("Token payload is not valid JSON") from exc
    if not isinstance(data, dict):
        raise InvalidTokenError("Token payload must be an object")
    try:
        exp = int(data.get("exp"))
    except (TypeError, ValueError) as exc:
        raise InvalidTokenError("Token has no usable exp claim") from exc
    if exp < int(time.time()):
        raise ExpiredTokenError("Token expired")
    return data


def create_admin_token(admin_id: int, username: str) -> str:
    """Issue an admin session token valid for ``admin_token_expire_minutes``."""
    return create_access_token(
        {"sub": str(admin_id), "username": username, "role": "admin", "iat": int(time.time())},
        settings.admin_jwt_secret,
        settings.admin_token_expire_minutes * 60,
    )


def create_user_token(claims: Dict[str, Any]) -> str:
    """Issue an attendee session token carrying normalised identity claims."""
    return create_access_token(
        claims,
        settings.user_jwt_secret,
        settings.user_token_expire_minutes * 60,
    )


bearer_scheme = HTTPBearer(auto_error=False)


def _admin_token_from_request(
    request: Request, credentials: Optional[HTTPAuthorizationCredentials]
) -> Optional[str]:
    if credentials is not None and credentials.credentials.strip():
        return credentials.credentials.strip()
    cookie = request.cookies.get(ADMIN_COOKIE_NAME)
    return cookie or None


def require_admin(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> AdminIdentity:
    """Dependency that authorises the caller as an administrator.

    Missing, malformed and expired tokens are rejected with 401.  A
    token that verifies but carries no admin role claim is rejected
    with 403.  The subject must still exist in the ``admins`` table,
    and a token issued before the admin's last password reset is
    rejected with 401.
    """
    token = _admin_token_from_request(request, credentials)
    if not token:
        raise UnauthorizedError("Admin token missing")
    try:
        payload = decode_access_token(token, settings.admin_jwt_secret)
    except ExpiredTokenError:
        raise UnauthorizedError("Admin token expired")
    except InvalidTokenError:
        raise UnauthorizedError("Invalid admin token")

    if payload.get("role") != "admin" and not payload.get("isAdmin"):
        raise ForbiddenError()
    try:
        admin_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise UnauthorizedError("Invalid admin token")

    conn = get_connection()
    try:
        row = conn.execute(
            "SELECT id, username, password_changed_at FROM admins WHERE id = ?",
            (admin_id,),
        ).fetchone()
    finally:
        conn.close()
    if row is None:
        raise UnauthorizedError("Admin no longer exists")
    changed_at = row["password_changed_at"]
    if changed_at is not None:
        issued_at = payload.get("iat")
        if not isinstance(issued_at, int) or issued_at < changed_at:
            raise UnauthorizedError("Admin token expired")
    return AdminIdentity(id=row["id"], username=row["username"], role="admin")


def hash_password(password: str) -> str:
    """Hash a password using PBKDF2‑HMAC with SHA‑256.

    A 16‑byte random salt is generated for each password.  The
    resulting string contains the salt and hash separated by a
    ``$`` (salt in hex, then hash in hex).
    """
    salt = os.urandom(16)
    dk = hashlib.pbkdf2_hmac('sha256', password.encode('utf-8'), salt, PBKDF2_ITERATIONS)
    return f"{salt.hex()}${dk.hex()}"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a stored salt+hash string.

    Splits the stored string into salt and hash, recomputes the
    PBKDF2‑HMAC digest and compares it using constant‑time comparison.
    Malformed stored hashes never match.
    """
    try:
        salt_hex, hash_hex = hashed_password.split('$', 1)
        salt = bytes.fromhex(salt_hex)
        stored_hash = bytes.fromhex(hash_hex)
    except ValueError:
        return False
    dk = hashlib.pbkdf2_hmac('sha256', plain_password.encode('utf-8'), salt, PBKDF2_ITERATIONS)
    return hmac.compare_digest(dk, stored_hash)
