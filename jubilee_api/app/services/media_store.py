"""
Media store adapter for receipt and gallery images.

Images are hosted on Cloudinary and reached through its REST upload
API with signed requests.  The adapter can
upload bytes into a folder and delete a previously uploaded asset by
its ``public_id``.

A single ``MediaStore`` is built from ``MediaStoreConfig`` in
``main.create_app`` and shared through ``app.state``; request handlers
receive it via the ``get_media_store`` dependency, which tests override
with an in‑memory fake.
"""

from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Dict, Optional

import httpx
from fastapi import Request

from jubilee_api.app.core.config import Settings
from jubilee_api.app.core.exceptions import UpstreamError, ValidationError


logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = frozenset(
    {"image/png", "image/jpeg", "image/jpg", "image/webp", "image/gif"}
)


@dataclass(frozen=True)
class MediaStoreConfig:
    cloud_name: str
    api_key: str
    api_secret: str
    base_url: str = "https://api.cloudinary.com/v1_1"
    max_bytes: int = 8 * 1024 * 1024
    timeout: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "MediaStoreConfig":
        return cls(
            cloud_name=settings.media_cloud_name,
            api_key=settings.media_api_key,
            api_secret=settings.media_api_secret,
            base_url=settings.media_api_base_url.rstrip("/"),
            max_bytes=settings.media_max_bytes,
            timeout=settings.http_timeout_seconds,
        )

    @property
    def is_complete(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)


@dataclass(frozen=True)
class MediaObject:
    """A stored asset: its public URL and the handle needed to delete it."""

    url: str
    external_id: str


def check_media(content: Optional[bytes], content_type: Optional[str], max_bytes: int) -> Optional[str]:
    """Return a user‑facing error for an unacceptable upload, else ``None``."""
    if not content:
        return "Image file is empty"
    if (content_type or "").lower() not in ALLOWED_CONTENT_TYPES:
        return f"Unsupported image format: {content_type or 'unknown'}"
    if len(content) > max_bytes:
        return f"File too large (max {max_bytes // (1024 * 1024)}MB)"
    return None


def sign_params(params: Dict[str, str], api_secret: str) -> str:
    """Compute a Cloudinary request signature.

    Parameters are sorted by name, joined as ``k=v`` pairs with ``&``,
    suffixed with the API secret and hashed with SHA‑1.
    """
    to_sign = "&".join(f"{key}={params[key]}" for key in sorted(params))
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


class MediaStore:
    """Upload and delete images on the configured Cloudinary account."""

    def __init__(self, config: MediaStoreConfig, client: Optional[httpx.AsyncClient] = None) -> None:
        self.config = config
        self._client = client or httpx.AsyncClient(timeout=config.timeout)

    def _endpoint(self, action: str) -> str:
        return f"{self.config.base_url}/{self.config.cloud_name}/image/{action}"

    def _signed(self, params: Dict[str, str]) -> Dict[str, str]:
        signed = dict(params)
        signed["timestamp"] = str(int(time.time()))
        signed["signature"] = sign_params(signed, self.config.api_secret)
        signed["api_key"] = self.config.api_key
        return signed

    async def upload(
        self,
        content: bytes,
        content_type: str,
        folder: str,
        filename: str = "upload",
    ) -> MediaObject:
        """Store ``content`` under ``folder`` and return its URL and handle.

        Unsupported types and oversized or empty payloads are rejected
        with ``ValidationError`` before any network call.  Every
        provider failure becomes ``UpstreamError("Failed to store
        image")``; the provider's response is only logged.
        """
        problem = check_media(content, content_type, self.config.max_bytes)
        if problem:
            raise ValidationError({"image": problem})
        if not self.config.is_complete:
            logger.error("Media store credentials missing; set CLOUDINARY_CLOUD_NAME, CLOUDINARY_API_KEY and CLOUDINARY_API_SECRET")
            raise UpstreamError("Failed to store image")

        data = self._signed({"folder": folder})
        try:
            response = await self._client.post(
                self._endpoint("upload"),
                data=data,
                files={"file": (filename, content, content_type)},
            )
            response.raise_for_status()
            result = response.json()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Media upload rejected with HTTP %s: %s",
                exc.response.status_code,
                exc.response.text[:500],
            )
            raise UpstreamError("Failed to store image") from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Media upload failed: %s", exc)
            raise UpstreamError("Failed to store image") from exc

        url = result.get("secure_url") if isinstance(result, dict) else None
        public_id = result.get("public_id") if isinstance(result, dict) else None
        if not url or not public_id:
            logger.error("Unexpected media upload response: %r", result)
            raise UpstreamError("Failed to store image")
        logger.info("Stored image %s (%d bytes) in %s", public_id, len(content), folder)
        return MediaObject(url=url, external_id=public_id)

    async def delete(self, external_id: str) -> bool:
        """Best‑effort removal of a stored asset.

        Returns ``True`` when the provider confirms the deletion.  Any
        failure is logged as a warning and reported as ``False``; it is
        never raised, so callers can always drop their local record.
        """
        if not external_id:
            return False
        if not self.config.is_complete:
            logger.warning("Media store credentials missing; cannot delete %s", external_id)
            return False
        try:
            response = await self._client.post(
                self._endpoint("destroy"),
                data=self._signed({"public_id": external_id}),
            )
            response.raise_for_status()
            result = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Media delete warning for %s: %s", external_id, exc)
            return False
        if not isinstance(result, dict) or result.get("result") != "ok":
            logger.warning("Media delete for %s returned %r", external_id, result)
            return False
        return True

    async def aclose(self) -> None:
        await self._client.aclose()


def get_media_store(request: Request) -> MediaStore:
    """FastAPI dependency returning the application's media store."""
    return request.app.state.media_store
