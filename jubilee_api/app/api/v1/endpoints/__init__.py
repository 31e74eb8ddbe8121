"""
Endpoint subpackage for API v1.

Each module defines an APIRouter for one area (attendee sign‑in,
registration, admin session, admin images, admin review).  The routers
are aggregated in ``router.py``.
"""
