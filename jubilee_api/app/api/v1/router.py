"""
Top‑level router for version 1 of the API.

Attendee routes live under ``/auth`` and ``/event``; everything the
admin panel uses lives under ``/admin``.  The image listing under
``/admin/images`` is public because the site pages read it too.
"""

from fastapi import APIRouter

from .endpoints import admin_auth, admin_event, admin_images, auth, event

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(event.router, prefix="/event", tags=["event"])
router.include_router(admin_auth.router, prefix="/admin/auth", tags=["admin-auth"])
router.include_router(admin_images.router, prefix="/admin/images", tags=["admin-images"])
router.include_router(admin_event.router, prefix="/admin/event", tags=["admin-event"])
