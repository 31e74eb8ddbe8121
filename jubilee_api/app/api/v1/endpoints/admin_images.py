"""
Site image endpoints.

Listing is public so the home and memories pages can render the
gallery.  Uploading and deleting require an admin session.
"""

import base64
import binascii
import re
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, Request, status
from starlette.datastructures import UploadFile

from jubilee_api.app.core.exceptions import ValidationError
from jubilee_api.app.core.security import require_admin
from jubilee_api.app.schemas.admin import AdminIdentity
from jubilee_api.app.schemas.image import ImageRead
from jubilee_api.app.services.image_service import ImageService
from jubilee_api.app.services.media_store import MediaStore, get_media_store


router = APIRouter()

DATA_URL_RE = re.compile(r"^data:(image/(png|jpeg|jpg|webp|gif));base64,")

NO_FILE_MESSAGE = (
    "No file uploaded. Send multipart/form-data with field 'image' (binary) "
    "and 'category', or a base64 data URL in 'image'."
)


def _decode_data_url(value: str):
    match = DATA_URL_RE.match(value)
    if not match:
        return None
    try:
        content = base64.b64decode(value[match.end():], validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError({"image": "Image data URL is not valid base64"})
    return content, match.group(1)


@router.get("", response_model=List[ImageRead])
async def list_images(category: Optional[str] = Query(None)) -> List[ImageRead]:
    """List images newest first, optionally for one category."""
    return await ImageService.list_images(category)


@router.post("/upload", response_model=ImageRead, status_code=status.HTTP_201_CREATED)
async def upload_image(
    request: Request,
    admin: AdminIdentity = Depends(require_admin),
    media_store: MediaStore = Depends(get_media_store),
) -> ImageRead:
    """Upload an image into a category.

    The ``image`` field is either a file part or, for clients that
    cannot send multipart files, a ``data:image/...;base64,`` URL.
    """
    form = await request.form()
    category = str(form.get("category") or "").strip()
    ImageService.check_category(category)
    image = form.get("image")

    if isinstance(image, UploadFile):
        content = await image.read()
        content_type = image.content_type or ""
        filename = image.filename or "image"
    else:
        decoded = _decode_data_url(image) if isinstance(image, str) else None
        if decoded is None:
            raise ValidationError({"image": NO_FILE_MESSAGE})
        content, content_type = decoded
        filename = "image"

    return await ImageService.upload(
        content,
        content_type,
        category,
        media_store,
        actor=admin,
        filename=filename,
    )


@router.delete("/{image_id}")
async def delete_image(
    image_id: int = Path(..., description="Image ID"),
    admin: AdminIdentity = Depends(require_admin),
    media_store: MediaStore = Depends(get_media_store),
) -> dict:
    await ImageService.delete(image_id, media_store, actor=admin)
    return {"ok": True}
