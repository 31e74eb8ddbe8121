"""
Main entrypoint for the Silver Jubilee API.

This module assembles the FastAPI application: logging, CORS, the
shared media store and Google verifier, error rendering and the
versioned routers.  ``create_app`` builds and configures the app,
which is then instantiated at module import time as ``app``::

    uvicorn jubilee_api.app.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api.v1.router import router as v1_router
from .core.config import DEFAULT_SECRET, settings
from .core.db import init_db
from .core.exceptions import AppError
from .core.logging_config import setup_logging
from .services.identity_service import GoogleTokenVerifier
from .services.media_store import MediaStore, MediaStoreConfig


logger = logging.getLogger(__name__)


def _warn_about_configuration(media_config: MediaStoreConfig) -> None:
    if settings.admin_jwt_secret == DEFAULT_SECRET:
        logger.warning("ADMIN_JWT_SECRET is not set; using an insecure default")
    if settings.user_jwt_secret == DEFAULT_SECRET:
        logger.warning("USER_JWT_SECRET is not set; using an insecure default")
    if not media_config.is_complete:
        logger.warning(
            "Media store credentials missing; receipt and image uploads will fail. "
            "Set CLOUDINARY_CLOUD_NAME, CLOUDINARY_API_KEY and CLOUDINARY_API_SECRET."
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Creates the database file if needed and applies pending migrations.
    init_db()
    _warn_about_configuration(app.state.media_store.config)
    logger.info("%s %s started (%s)", settings.project_name, settings.api_version, settings.environment)
    try:
        yield
    finally:
        await app.state.media_store.aclose()
        await app.state.google_verifier.aclose()


def _field_name(loc) -> str:
    parts = [str(p) for p in loc if p not in ("body", "query", "path", "header", "form")]
    return ".".join(parts) or "request"


def register_exception_handlers(app: FastAPI) -> None:
    """Render every error as ``{"message": ...}``."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = {_field_name(err.get("loc", ())): err.get("msg", "Invalid value") for err in exc.errors()}
        return JSONResponse(status_code=400, content={"message": "Invalid request", "errors": errors})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = "Not found" if exc.status_code == 404 else str(exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"message": message}, headers=exc.headers)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        content = {"message": "Server error"}
        if settings.debug and not settings.is_production:
            content["error"] = str(exc)
        return JSONResponse(status_code=500, content=content)


def create_app() -> FastAPI:
    """Create and configure a FastAPI application.

    Returns
    -------
    FastAPI
        A configured FastAPI instance.  The media store and Google
        verifier are created here and shared through ``app.state``.
    """
    setup_logging(settings.log_level, settings.log_file or None)

    app = FastAPI(title=settings.project_name, version=settings.api_version, lifespan=lifespan)

    media_config = MediaStoreConfig.from_settings(settings)
    app.state.media_store = MediaStore(media_config)
    app.state.google_verifier = GoogleTokenVerifier(
        settings.google_tokeninfo_url,
        client_id=settings.google_client_id,
        timeout=settings.http_timeout_seconds,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "x-oauth-uid", "x-oauth-email"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info("%s %s", request.method, request.url.path)
        return await call_next(request)

    register_exception_handlers(app)

    @app.get("/health", tags=["health"])
    async def health() -> dict:
        return {"ok": True}

    app.include_router(v1_router, prefix="/api")

    return app


# Create the application instance at import time so that tools such as
# uvicorn can discover it without calling create_app manually.
app = create_app()
