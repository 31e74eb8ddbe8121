"""
Simple configuration management.

The ``Settings`` dataclass reads configuration directly from
environment variables.  Defaults are provided for all fields so the
API starts in a development setup without any ``.env`` file.  In a
production deployment override at least the two token secrets, the
media store credentials and ``ALLOWED_ORIGINS``.
"""

import os
from dataclasses import dataclass
from typing import List


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


DEFAULT_SECRET = "change_me"


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    project_name: str = os.getenv("PROJECT_NAME", "Silver Jubilee API")
    api_version: str = os.getenv("API_VERSION", "1.0.0")
    debug: bool = _env_bool("DEBUG")
    # ``production`` switches the admin cookie to ``secure`` and hides
    # error details from responses.
    environment: str = os.getenv("ENVIRONMENT", "development")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_file: str = os.getenv("LOG_FILE", "")

    # Path to the SQLite database file.  Relative paths are resolved
    # against the project root by the ``db`` module.
    database_url: str = os.getenv("DATABASE_URL", "jubilee.db")

    # Comma‑separated list of browser origins allowed by CORS.
    allowed_origins: str = os.getenv("ALLOWED_ORIGINS", "http://localhost:5173")

    # Admin session tokens and attendee session tokens are signed with
    # separate secrets so that one can never be replayed as the other.
    admin_jwt_secret: str = os.getenv("ADMIN_JWT_SECRET", DEFAULT_SECRET)
    user_jwt_secret: str = os.getenv("USER_JWT_SECRET", DEFAULT_SECRET)
    admin_token_expire_minutes: int = int(os.getenv("ADMIN_TOKEN_EXPIRE_MINUTES", "60"))
    user_token_expire_minutes: int = int(os.getenv("USER_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7)))

    # Failed admin logins allowed per client inside the window.
    login_max_attempts: int = int(os.getenv("LOGIN_MAX_ATTEMPTS", "5"))
    login_window_seconds: int = int(os.getenv("LOGIN_WINDOW_SECONDS", str(5 * 60)))

    # Development helper: expose ``POST /api/admin/auth/seed``.
    allow_admin_seed: bool = _env_bool("ALLOW_ADMIN_SEED")

    # Registration pricing in whole rupees.
    base_price: int = int(os.getenv("BASE_PRICE", "10000"))
    addon_price: int = int(os.getenv("ADDON_PRICE", "5000"))

    # Batch admission rule.  ``allowed_batch`` (when non-empty) restricts
    # registration to a single graduating year and takes precedence over
    # the year range.
    batch_min_year: int = int(os.getenv("BATCH_MIN_YEAR", "1956"))
    batch_max_year: int = int(os.getenv("BATCH_MAX_YEAR", "2028"))
    allowed_batch: str = os.getenv("ALLOWED_BATCH", "")

    # Image hosting (Cloudinary REST API).
    media_cloud_name: str = os.getenv("CLOUDINARY_CLOUD_NAME", "")
    media_api_key: str = os.getenv("CLOUDINARY_API_KEY", "")
    media_api_secret: str = os.getenv("CLOUDINARY_API_SECRET", "")
    media_api_base_url: str = os.getenv("MEDIA_API_BASE_URL", "https://api.cloudinary.com/v1_1")
    media_root_folder: str = os.getenv("MEDIA_ROOT_FOLDER", "silverjubilee")
    media_max_bytes: int = int(os.getenv("MEDIA_MAX_BYTES", str(8 * 1024 * 1024)))

    # Timeout applied to every outbound HTTP call (media store, Google).
    http_timeout_seconds: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))

    # Google sign‑in.  When ``google_client_id`` is empty the audience of
    # the ID token is not checked.
    google_client_id: str = os.getenv("GOOGLE_CLIENT_ID", "")
    google_tokeninfo_url: str = os.getenv(
        "GOOGLE_TOKENINFO_URL", "https://oauth2.googleapis.com/tokeninfo"
    )

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    def origins(self) -> List[str]:
        """Return ``allowed_origins`` as a list, never empty."""
        parsed = [o.strip() for o in self.allowed_origins.split(",") if o.strip()]
        return parsed or ["http://localhost:5173"]


# Instantiate settings once so other modules can import it without
# repeatedly reading environment variables.  Because the dataclass
# computes values at class definition time, environment variables should
# be set before importing this module.
settings = Settings()
