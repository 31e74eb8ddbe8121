"""
Audit service for recording administrative actions.

Registration submissions, approvals and rejections, image uploads and
deletions and admin account creation are written to the
``audit_logs`` table so that every status change can be traced to the
admin who made it and when.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any, Dict, List, Optional

from jubilee_api.app.core.db import get_connection


logger = logging.getLogger(__name__)


class AuditService:
    """Service class for writing and retrieving audit logs."""

    @classmethod
    async def log(
        cls,
        user_id: Optional[int],
        action: str,
        object_type: str,
        object_id: Optional[int] = None,
        details: Optional[dict] = None,
    ) -> None:
        """Insert a new audit record.

        Audit writes never fail the action being audited: a database
        error is logged and swallowed.

        Parameters
        ----------
        user_id : Optional[int]
            ID of the admin performing the action.  ``None`` for actions
            initiated by attendees or the system.
        action : str
            Short description of the action (e.g. "create", "approve").
        object_type : str
            Type of object affected (e.g. "registration", "image").
        object_id : Optional[int]
            Primary key of the affected object, if applicable.
        details : Optional[dict]
            Additional structured data about the action, stored as JSON.
        """
        details_json = json.dumps(details) if details else None
        try:
            conn = get_connection()
        except sqlite3.Error:
            logger.exception("Audit log unavailable for %s %s", action, object_type)
            return
        try:
            conn.execute(
                """
                INSERT INTO audit_logs (user_id, action, object_type, object_id, details)
                VALUES (?, ?, ?, ?, ?)
                """,
                (user_id, action, object_type, object_id, details_json),
            )
            conn.commit()
        except sqlite3.Error:
            logger.exception("Failed to write audit log for %s %s %s", action, object_type, object_id)
        finally:
            conn.close()

    @classmethod
    async def list_logs(
        cls,
        object_type: Optional[str] = None,
        object_id: Optional[int] = None,
        limit: int = 100,
    ) -> List[Dict[str, Any]]:
        """Retrieve audit records, newest first."""
        conn = get_connection()
        try:
            where_clauses: List[str] = []
            params: List[Any] = []
            if object_type:
                where_clauses.append("object_type = ?")
                params.append(object_type)
            if object_id is not None:
                where_clauses.append("object_id = ?")
                params.append(object_id)
            query = "SELECT id, user_id, action, object_type, object_id, timestamp, details FROM audit_logs"
            if where_clauses:
                query += " WHERE " + " AND ".join(where_clauses)
            query += " ORDER BY id DESC LIMIT ?"
            params.append(limit)
            rows = conn.execute(query, tuple(params)).fetchall()
            return [
                {
                    "id": row["id"],
                    "user_id": row["user_id"],
                    "action": row["action"],
                    "object_type": row["object_type"],
                    "object_id": row["object_id"],
                    "timestamp": row["timestamp"],
                    "details": json.loads(row["details"]) if row["details"] else None,
                }
                for row in rows
            ]
        finally:
            conn.close()
