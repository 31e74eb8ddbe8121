"""
Administrator accounts and login.

Failed logins are recorded per client in the ``login_attempts`` table.
Once a client reaches ``settings.login_max_attempts`` failures inside
``settings.login_window_seconds`` every further attempt is refused with
``RateLimitError`` until the oldest failure leaves the window, even if
the credentials are correct.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from typing import Optional, Tuple

from jubilee_api.app.core.config import settings
from jubilee_api.app.core.db import get_connection
from jubilee_api.app.core.exceptions import (
    ConflictError,
    NotFoundError,
    RateLimitError,
    UnauthorizedError,
    ValidationError,
)
from jubilee_api.app.core.security import create_admin_token, hash_password, verify_password
from jubilee_api.app.schemas.admin import AdminRead
from jubilee_api.app.services.audit_service import AuditService


logger = logging.getLogger(__name__)

# Compared against when the username is unknown so both failure paths
# cost one PBKDF2 round.
_DUMMY_HASH = hash_password("not-a-real-password")


class AdminAuthService:
    """Login, rate limiting and account management for administrators."""

    @classmethod
    def _rate_limit_message(cls) -> str:
        minutes = max(1, settings.login_window_seconds // 60)
        return f"Too many login attempts. Try again in {minutes} minutes."

    @classmethod
    def _recent_failures(cls, conn: sqlite3.Connection, client_key: str, now: float) -> int:
        row = conn.execute(
            "SELECT COUNT(*) AS count FROM login_attempts WHERE client_key = ? AND attempted_at > ?",
            (client_key, now - settings.login_window_seconds),
        ).fetchone()
        return row["count"]

    @classmethod
    def _record_failure(cls, conn: sqlite3.Connection, client_key: str, now: float) -> None:
        conn.execute(
            "INSERT INTO login_attempts (client_key, attempted_at) VALUES (?, ?)",
            (client_key, now),
        )
        # Rows outside the window can never count again.
        conn.execute(
            "DELETE FROM login_attempts WHERE attempted_at <= ?",
            (now - settings.login_window_seconds,),
        )
        conn.commit()

    @classmethod
    async def login(
        cls,
        username: str,
        password: str,
        client_key: str,
        now: Optional[float] = None,
    ) -> Tuple[str, int]:
        """Check credentials and issue an admin session token.

        Returns ``(token, expires_in_seconds)``.
        """
        username = (username or "").strip()
        if not username or not password:
            raise ValidationError(message="username and password required")
        now = time.time() if now is None else now

        conn = get_connection()
        try:
            if cls._recent_failures(conn, client_key, now) >= settings.login_max_attempts:
                logger.warning("Admin login rate limited for %s", client_key)
                raise RateLimitError(cls._rate_limit_message())

            row = conn.execute(
                "SELECT id, username, password FROM admins WHERE username = ?",
                (username,),
            ).fetchone()
            stored_hash = row["password"] if row else _DUMMY_HASH
            if not verify_password(password, stored_hash) or row is None:
                cls._record_failure(conn, client_key, now)
                logger.info("Failed admin login for %r from %s", username, client_key)
                raise UnauthorizedError("Invalid credentials")
        finally:
            conn.close()

        logger.info("Admin %s logged in", row["username"])
        token = create_admin_token(row["id"], row["username"])
        return token, settings.admin_token_expire_minutes * 60

    @classmethod
    async def create_admin(cls, username: str, password: str) -> AdminRead:
        """Create an administrator account.

        Raises ``ValidationError`` for blank input and ``ConflictError``
        when the username is taken.
        """
        username = (username or "").strip()
        if not username or not password:
            raise ValidationError(message="username and password required")
        conn = get_connection()
        try:
            try:
                cursor = conn.execute(
                    "INSERT INTO admins (username, password) VALUES (?, ?)",
                    (username, hash_password(password)),
                )
                conn.commit()
            except sqlite3.IntegrityError as exc:
                conn.rollback()
                raise ConflictError("Admin already exists", status_code=400) from exc
            admin_id = cursor.lastrowid
            row = conn.execute(
                "SELECT id, username, created_at FROM admins WHERE id = ?",
                (admin_id,),
            ).fetchone()
        finally:
            conn.close()
        logger.info("Created admin %s", username)
        await AuditService.log(
            user_id=None,
            action="create",
            object_type="admin",
            object_id=admin_id,
            details={"username": username},
        )
        return AdminRead(id=row["id"], username=row["username"], created_at=row["created_at"])

    @classmethod
    async def reset_password(cls, username: str, new_password: str) -> None:
        """Replace the password of an existing administrator.

        Session tokens issued before the reset stop being accepted.
        """
        if not new_password:
            raise ValidationError({"password": "Password must not be empty"})
        conn = get_connection()
        try:
            cursor = conn.execute(
                "UPDATE admins SET password = ?, password_changed_at = ? WHERE username = ?",
                (hash_password(new_password), int(time.time()), (username or "").strip()),
            )
            if cursor.rowcount == 0:
                raise NotFoundError(f"Admin {username} not found")
            conn.commit()
        finally:
            conn.close()
        logger.info("Password reset for admin %s", username)
        await AuditService.log(
            user_id=None,
            action="reset_password",
            object_type="admin",
            details={"username": username},
        )
