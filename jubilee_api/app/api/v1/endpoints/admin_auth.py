"""
Admin session endpoints.

Login returns the token in the body for clients that keep it in local
storage and also sets it as an httpOnly ``adminToken`` cookie.
"""

from fastapi import APIRouter, Request, Response, status

from jubilee_api.app.core.config import settings
from jubilee_api.app.core.exceptions import NotFoundError
from jubilee_api.app.core.security import ADMIN_COOKIE_NAME
from jubilee_api.app.schemas.admin import AdminLogin, AdminToken
from jubilee_api.app.services.admin_auth_service import AdminAuthService


router = APIRouter()


def _client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.post("/login", response_model=AdminToken)
async def login(payload: AdminLogin, request: Request, response: Response) -> AdminToken:
    """Exchange admin credentials for a session token.

    Five failed attempts from one client within five minutes block
    further attempts (429) until the window passes.
    """
    token, expires_in = await AdminAuthService.login(
        payload.username, payload.password, _client_key(request)
    )
    response.set_cookie(
        ADMIN_COOKIE_NAME,
        token,
        max_age=expires_in,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )
    return AdminToken(token=token, expires_in=expires_in)


@router.post("/logout")
async def logout(response: Response) -> dict:
    response.delete_cookie(ADMIN_COOKIE_NAME, path="/")
    return {"message": "Logged out"}


@router.post("/seed", status_code=status.HTTP_201_CREATED)
async def seed_admin(payload: AdminLogin) -> dict:
    """Create an admin account (development only, ``ALLOW_ADMIN_SEED``)."""
    if not settings.allow_admin_seed:
        raise NotFoundError()
    await AdminAuthService.create_admin(payload.username, payload.password)
    return {"message": "Admin seeded"}
