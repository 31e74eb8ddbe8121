"""
Images shown in the fixed sections of the public site.

Administrators upload images into a category (announcement banner,
home page memories, memories page); the public site lists them per
category, newest first.  The local ``images`` table is authoritative
for listings: deleting an image always removes the row, even when the
remote copy cannot be deleted.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from typing import List, Optional

from jubilee_api.app.core.config import settings
from jubilee_api.app.core.db import get_connection
from jubilee_api.app.core.exceptions import NotFoundError, UpstreamError, ValidationError
from jubilee_api.app.schemas.admin import AdminIdentity
from jubilee_api.app.schemas.image import VALID_CATEGORIES, ImageRead
from jubilee_api.app.services.audit_service import AuditService
from jubilee_api.app.services.media_store import MediaStore


logger = logging.getLogger(__name__)


def _row_to_image(row: sqlite3.Row) -> ImageRead:
    return ImageRead(id=row["id"], url=row["url"], category=row["category"], created_at=row["created_at"])


class ImageService:
    """Upload, list and delete site images."""

    @classmethod
    def check_category(cls, category: Optional[str]) -> None:
        if not category or category not in VALID_CATEGORIES:
            raise ValidationError(
                {"category": "Invalid or missing category. Valid: " + ", ".join(VALID_CATEGORIES)}
            )

    @classmethod
    async def upload(
        cls,
        content: bytes,
        content_type: str,
        category: Optional[str],
        media_store: MediaStore,
        actor: Optional[AdminIdentity] = None,
        filename: str = "image",
    ) -> ImageRead:
        cls.check_category(category)
        stored = await media_store.upload(
            content,
            content_type,
            folder=f"{settings.media_root_folder}/{category}",
            filename=filename,
        )
        created_at = datetime.now(timezone.utc).isoformat()
        conn = get_connection()
        try:
            try:
                cursor = conn.execute(
                    "INSERT INTO images (url, public_id, category, created_at) VALUES (?, ?, ?, ?)",
                    (stored.url, stored.external_id, category, created_at),
                )
                conn.commit()
            except sqlite3.Error as exc:
                conn.rollback()
                logger.exception("Failed to save image record for %s", stored.external_id)
                await media_store.delete(stored.external_id)
                raise UpstreamError("Failed to store image") from exc
            image_id = cursor.lastrowid
        finally:
            conn.close()

        logger.info("Image %s uploaded to %s", image_id, category)
        await AuditService.log(
            user_id=actor.id if actor else None,
            action="upload",
            object_type="image",
            object_id=image_id,
            details={"category": category, "public_id": stored.external_id},
        )
        return ImageRead(
            id=image_id,
            url=stored.url,
            category=category,
            created_at=created_at,
        )

    @classmethod
    async def list_images(cls, category: Optional[str] = None) -> List[ImageRead]:
        """Images newest first; an unknown category lists everything."""
        query = "SELECT id, url, category, created_at FROM images"
        params: tuple = ()
        if category in VALID_CATEGORIES:
            query += " WHERE category = ?"
            params = (category,)
        query += " ORDER BY created_at DESC, id DESC"
        conn = get_connection()
        try:
            rows = conn.execute(query, params).fetchall()
        finally:
            conn.close()
        return [_row_to_image(row) for row in rows]

    @classmethod
    async def delete(
        cls,
        image_id: int,
        media_store: MediaStore,
        actor: Optional[AdminIdentity] = None,
    ) -> None:
        conn = get_connection()
        try:
            row = conn.execute(
                "SELECT id, public_id, category FROM images WHERE id = ?",
                (image_id,),
            ).fetchone()
            if not row:
                raise NotFoundError("Image not found")
            remote_deleted = await media_store.delete(row["public_id"])
            conn.execute("DELETE FROM images WHERE id = ?", (image_id,))
            conn.commit()
        finally:
            conn.close()

        if not remote_deleted:
            logger.warning("Image %s removed locally but remote copy %s remains", image_id, row["public_id"])
        await AuditService.log(
            user_id=actor.id if actor else None,
            action="delete",
            object_type="image",
            object_id=image_id,
            details={"public_id": row["public_id"], "remote_deleted": remote_deleted},
        )
