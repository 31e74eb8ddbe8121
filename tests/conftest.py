"""
Pytest configuration for the Silver Jubilee API.

Provides fixtures for:
- A temporary SQLite database per test
- In-memory replacements for the media store and Google verifier
- A TestClient bound to a freshly created app
- Admin accounts, admin tokens and attendee identity headers
"""

from __future__ import annotations

import asyncio
import json
from typing import Dict, Generator, List, Tuple

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from jubilee_api.app.core.config import settings
from jubilee_api.app.core.db import init_db
from jubilee_api.app.core.exceptions import UnauthorizedError, UpstreamError, ValidationError
from jubilee_api.app.core.security import create_admin_token
from jubilee_api.app.main import create_app
from jubilee_api.app.schemas.admin import AdminRead
from jubilee_api.app.services.admin_auth_service import AdminAuthService
from jubilee_api.app.services.identity_service import get_google_verifier, normalize_identity
from jubilee_api.app.services.media_store import MediaObject, check_media, get_media_store


PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "s3cret-passphrase"


class FakeMediaStore:
    """Records uploads and deletions instead of calling the image host."""

    def __init__(self) -> None:
        self.uploads: List[Tuple[str, MediaObject]] = []
        self.deleted: List[str] = []
        self.fail_upload = False
        self.fail_delete = False

    async def upload(self, content, content_type, folder, filename="upload") -> MediaObject:
        problem = check_media(content, content_type, settings.media_max_bytes)
        if problem:
            raise ValidationError({"image": problem})
        if self.fail_upload:
            raise UpstreamError("Failed to store image")
        n = len(self.uploads) + 1
        stored = MediaObject(url=f"https://media.test/{folder}/{n}.png", external_id=f"{folder}/{n}")
        self.uploads.append((folder, stored))
        return stored

    async def delete(self, external_id: str) -> bool:
        if self.fail_delete:
            return False
        self.deleted.append(external_id)
        return True


class FakeGoogleVerifier:
    """Accepts only the credentials registered in ``tokens``."""

    def __init__(self) -> None:
        self.tokens: Dict[str, dict] = {}

    async def verify(self, credential: str):
        claims = self.tokens.get(credential)
        if claims is None:
            raise UnauthorizedError("Google sign-in failed")
        return normalize_identity(claims)


@pytest.fixture
def db_path(tmp_path, monkeypatch) -> str:
    """Point the app at an empty, migrated database file."""
    path = str(tmp_path / "jubilee-test.db")
    monkeypatch.setattr(settings, "database_url", path)
    init_db()
    return path


@pytest.fixture
def media_store() -> FakeMediaStore:
    return FakeMediaStore()


@pytest.fixture
def google_verifier() -> FakeGoogleVerifier:
    return FakeGoogleVerifier()


@pytest.fixture
def app(db_path: str, media_store: FakeMediaStore, google_verifier: FakeGoogleVerifier) -> FastAPI:
    application = create_app()
    application.dependency_overrides[get_media_store] = lambda: media_store
    application.dependency_overrides[get_google_verifier] = lambda: google_verifier
    return application


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def admin_account(db_path: str) -> AdminRead:
    return asyncio.run(AdminAuthService.create_admin(ADMIN_USERNAME, ADMIN_PASSWORD))


@pytest.fixture
def admin_headers(admin_account: AdminRead) -> Dict[str, str]:
    token = create_admin_token(admin_account.id, admin_account.username)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def attendee_headers() -> Dict[str, str]:
    return {"x-oauth-uid": "google-uid-1", "x-oauth-email": "a@x.com"}


def registration_form(**overrides) -> Dict[str, str]:
    """Multipart form fields for a valid registration."""
    form = {
        "name": "A",
        "batch": "2000",
        "contact": "9998887770",
        "email": "a@x.com",
        "comingWithFamily": "true",
        "familyMembers": json.dumps([{"name": "B", "relation": "Spouse"}]),
    }
    form.update(overrides)
    return form


def receipt_file(content: bytes = PNG_BYTES, content_type: str = "image/png"):
    return {"receipt": ("receipt.png", content, content_type)}


@pytest.fixture
def make_form():
    return registration_form


@pytest.fixture
def make_receipt():
    return receipt_file
