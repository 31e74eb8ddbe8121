"""
Registration workflow for the jubilee event.

A registration moves through a small state machine::

    PENDING ──► APPROVED
        └─────► REJECTED

Attendees create a registration once (one per Google account and one
per e‑mail address) with a payment receipt image; administrators then
approve or reject it.  Approved and rejected registrations are final.

Submission is ordered so that no partial record can exist: every field
is validated first, then the receipt is uploaded, and only then is the
row inserted.  If the insert fails the uploaded receipt is removed
again on a best‑effort basis.
"""

from __future__ import annotations

import json
import logging
import re
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from jubilee_api.app.core.config import settings
from jubilee_api.app.core.db import get_connection
from jubilee_api.app.core.exceptions import (
    ConflictError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from jubilee_api.app.schemas.admin import AdminIdentity
from jubilee_api.app.schemas.registration import (
    TERMINAL_STATUSES,
    RegistrationRead,
    RegistrationStatus,
)
from jubilee_api.app.services.audit_service import AuditService
from jubilee_api.app.services.identity_service import ResolvedIdentity
from jubilee_api.app.services.media_store import MediaObject, MediaStore, check_media


logger = logging.getLogger(__name__)

CONTACT_RE = re.compile(r"^[0-9]{10}$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
LINKEDIN_RE = re.compile(r"^https?://(www\.)?linkedin\.com/in/[A-Za-z0-9-]+/?$")
BATCH_RE = re.compile(r"^[0-9]{4}$")

TRUTHY_FLAGS = {"true", "1", "on", "yes"}

_COLUMNS = (
    "id, subject_id, email, name, batch, contact, linkedin, coming_with_family, "
    "family_members, amount, receipt_url, status, status_changed_by, "
    "status_changed_at, created_at"
)


@dataclass
class ReceiptUpload:
    content: bytes
    content_type: str
    filename: str = "receipt"


@dataclass
class RegistrationSubmission:
    """Raw registration form fields as received from the client."""

    name: str = ""
    batch: str = ""
    contact: str = ""
    email: str = ""
    linkedin: str = ""
    coming_with_family: bool = False
    # JSON text from the multipart form, or an already decoded list.
    family_members: Any = "[]"
    receipt: Optional[ReceiptUpload] = None


@dataclass
class CleanRegistration:
    name: str
    batch: str
    contact: str
    email: str
    linkedin: Optional[str]
    coming_with_family: bool
    family_members: List[Dict[str, str]] = field(default_factory=list)


def parse_flag(value: Any) -> bool:
    """Interpret a checkbox‑style form value."""
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in TRUTHY_FLAGS


def compute_amount(coming_with_family: bool, family_count: int) -> int:
    """Total payable amount; family members only count when attending."""
    if not coming_with_family:
        return settings.base_price
    return settings.base_price + settings.addon_price * family_count


def _validate_batch(batch: str) -> Optional[str]:
    if not batch:
        return "Batch is required"
    if settings.allowed_batch:
        if batch != settings.allowed_batch:
            return f"Registration is open only for batch {settings.allowed_batch}"
        return None
    if not BATCH_RE.match(batch) or not (
        settings.batch_min_year <= int(batch) <= settings.batch_max_year
    ):
        return (
            f"{batch} is not a valid batch year! "
            f"(must be between {settings.batch_min_year} and {settings.batch_max_year})"
        )
    return None


def _decode_family(raw: Any) -> Tuple[Optional[List[Any]], Optional[str]]:
    if raw is None or raw == "":
        return [], None
    if isinstance(raw, list):
        return raw, None
    try:
        decoded = json.loads(raw)
    except (TypeError, ValueError):
        return None, "Family members must be a JSON list"
    if not isinstance(decoded, list):
        return None, "Family members must be a JSON list"
    return decoded, None


def _validate_receipt(receipt: Optional[ReceiptUpload]) -> Optional[str]:
    if receipt is None or not receipt.content:
        return "Upload payment receipt (image)"
    content_type = (receipt.content_type or "").lower()
    if not content_type.startswith("image/"):
        return "Receipt must be an image"
    problem = check_media(receipt.content, content_type, settings.media_max_bytes)
    if problem is None:
        return None
    if len(receipt.content) > settings.media_max_bytes:
        return f"Receipt exceeds {settings.media_max_bytes // (1024 * 1024)}MB"
    return problem


def validate_submission(
    submission: RegistrationSubmission,
) -> Tuple[Optional[CleanRegistration], Dict[str, str]]:
    """Validate every field and collect all errors.

    Returns the cleaned registration and an empty error map, or
    ``None`` and a map of field name to message.
    """
    errors: Dict[str, str] = {}
    name = (submission.name or "").strip()
    batch = (submission.batch or "").strip()
    contact = (submission.contact or "").strip()
    email = (submission.email or "").strip().lower()
    linkedin = (submission.linkedin or "").strip()
    coming_with_family = parse_flag(submission.coming_with_family)

    if not name:
        errors["name"] = "Name is required"
    batch_error = _validate_batch(batch)
    if batch_error:
        errors["batch"] = batch_error
    if not CONTACT_RE.match(contact):
        errors["contact"] = "Please provide a valid 10-digit contact number"
    if not EMAIL_RE.match(email):
        errors["email"] = "Please provide a valid email address"
    if linkedin and not LINKEDIN_RE.match(linkedin):
        errors["linkedin"] = "Please provide a valid LinkedIn profile URL"

    family: List[Dict[str, str]] = []
    if coming_with_family:
        members, family_error = _decode_family(submission.family_members)
        if family_error:
            errors["familyMembers"] = family_error
        for i, member in enumerate(members or []):
            if not isinstance(member, dict):
                errors[f"family_{i}_name"] = "Family member name is required"
                errors[f"family_{i}_relation"] = "Family member relation is required"
                continue
            member_name = str(member.get("name") or "").strip()
            relation = str(member.get("relation") or "").strip()
            if not member_name:
                errors[f"family_{i}_name"] = "Family member name is required"
            if not relation:
                errors[f"family_{i}_relation"] = "Family member relation is required"
            family.append({"name": member_name, "relation": relation})

    receipt_error = _validate_receipt(submission.receipt)
    if receipt_error:
        errors["receipt"] = receipt_error

    if errors:
        return None, errors
    return (
        CleanRegistration(
            name=name,
            batch=batch,
            contact=contact,
            email=email,
            linkedin=linkedin or None,
            coming_with_family=coming_with_family,
            family_members=family,
        ),
        {},
    )


def _row_to_registration(row: sqlite3.Row) -> RegistrationRead:
    return RegistrationRead(
        id=row["id"],
        subject_id=row["subject_id"],
        email=row["email"],
        name=row["name"],
        batch=row["batch"],
        contact=row["contact"],
        linkedin=row["linkedin"],
        coming_with_family=bool(row["coming_with_family"]),
        family_members=json.loads(row["family_members"] or "[]"),
        amount=row["amount"],
        receipt_url=row["receipt_url"],
        status=row["status"],
        status_changed_by=row["status_changed_by"],
        status_changed_at=row["status_changed_at"],
        created_at=row["created_at"],
    )


def _conflict_message(exc: sqlite3.IntegrityError) -> str:
    if "registrations.email" in str(exc):
        return "Email already registered"
    return "You have already registered"


class RegistrationService:
    """Create, read and review attendee registrations."""

    @classmethod
    async def submit(
        cls,
        identity: ResolvedIdentity,
        submission: RegistrationSubmission,
        media_store: MediaStore,
    ) -> RegistrationRead:
        """Validate, upload the receipt, then persist a PENDING registration.

        Raises ``ValidationError`` with every field error before any
        upload, ``UpstreamError`` when the receipt cannot be stored and
        ``ConflictError`` (HTTP 400) when the account or e‑mail already
        has a registration.
        """
        clean, errors = validate_submission(submission)
        if errors:
            raise ValidationError(errors)
        amount = compute_amount(clean.coming_with_family, len(clean.family_members))

        receipt = submission.receipt
        stored: MediaObject = await media_store.upload(
            receipt.content,
            receipt.content_type,
            folder=f"{settings.media_root_folder}/receipts",
            filename=receipt.filename,
        )

        created_at = datetime.now(timezone.utc).isoformat()
        try:
            conn = get_connection()
        except sqlite3.Error as exc:
            await media_store.delete(stored.external_id)
            logger.exception("Database unavailable while saving registration for %s", identity.sub)
            raise UpstreamError("Server error") from exc
        try:
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO registrations (
                        subject_id, email, name, batch, contact, linkedin,
                        coming_with_family, family_members, amount,
                        receipt_url, receipt_external_id, status, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        identity.sub,
                        clean.email,
                        clean.name,
                        clean.batch,
                        clean.contact,
                        clean.linkedin,
                        1 if clean.coming_with_family else 0,
                        json.dumps(clean.family_members),
                        amount,
                        stored.url,
                        stored.external_id,
                        RegistrationStatus.PENDING.value,
                        created_at,
                    ),
                )
                conn.commit()
            except sqlite3.IntegrityError as exc:
                conn.rollback()
                await media_store.delete(stored.external_id)
                logger.info("Duplicate registration for %s: %s", identity.sub, exc)
                raise ConflictError(_conflict_message(exc), status_code=400) from exc
            except sqlite3.Error as exc:
                conn.rollback()
                await media_store.delete(stored.external_id)
                logger.exception("Failed to save registration for %s", identity.sub)
                raise UpstreamError("Server error") from exc
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM registrations WHERE id = ?",
                (cursor.lastrowid,),
            ).fetchone()
        finally:
            conn.close()

        registration = _row_to_registration(row)
        logger.info("Registration %s created for batch %s", registration.id, registration.batch)
        await AuditService.log(
            user_id=None,
            action="create",
            object_type="registration",
            object_id=registration.id,
            details={"subject_id": identity.sub, "amount": amount},
        )
        return registration

    @classmethod
    async def get_own(cls, subject_id: str) -> RegistrationRead:
        conn = get_connection()
        try:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM registrations WHERE subject_id = ?",
                (subject_id,),
            ).fetchone()
        finally:
            conn.close()
        if not row:
            raise NotFoundError("No registration found")
        return _row_to_registration(row)

    @classmethod
    async def get_by_id(cls, registration_id: int) -> RegistrationRead:
        conn = get_connection()
        try:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM registrations WHERE id = ?",
                (registration_id,),
            ).fetchone()
        finally:
            conn.close()
        if not row:
            raise NotFoundError("Registration not found")
        return _row_to_registration(row)

    @classmethod
    async def list_all(cls, status: Optional[str] = None) -> List[RegistrationRead]:
        """Every registration, newest first, optionally filtered by status.

        An unknown status value is rejected rather than silently
        returning nothing.
        """
        query = f"SELECT {_COLUMNS} FROM registrations"
        params: Tuple[Any, ...] = ()
        if status:
            try:
                status_value = RegistrationStatus(status.strip().upper()).value
            except ValueError:
                raise ValidationError({"status": f"Unknown status {status}"})
            query += " WHERE status = ?"
            params = (status_value,)
        query += " ORDER BY created_at DESC, id DESC"
        conn = get_connection()
        try:
            rows = conn.execute(query, params).fetchall()
        finally:
            conn.close()
        return [_row_to_registration(row) for row in rows]

    @classmethod
    async def set_status(
        cls,
        registration_id: int,
        new_status: str,
        actor: AdminIdentity,
    ) -> RegistrationRead:
        """Approve or reject a pending registration.

        Setting a decided registration to the status it already has is
        a no‑op; any other change to a decided registration raises
        ``ConflictError``.
        """
        try:
            target = RegistrationStatus((new_status or "").strip().upper())
        except ValueError:
            target = None
        if target not in TERMINAL_STATUSES:
            raise ValidationError({"status": "Status must be APPROVED or REJECTED"})

        conn = get_connection()
        try:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM registrations WHERE id = ?",
                (registration_id,),
            ).fetchone()
            if not row:
                raise NotFoundError("Registration not found")
            current = RegistrationStatus(row["status"])
            if current == target:
                return _row_to_registration(row)
            if current != RegistrationStatus.PENDING:
                raise ConflictError(f"Registration already {current.value}")

            changed_at = datetime.now(timezone.utc).isoformat()
            cursor = conn.execute(
                """
                UPDATE registrations
                SET status = ?, status_changed_by = ?, status_changed_at = ?
                WHERE id = ? AND status = ?
                """,
                (target.value, actor.username, changed_at, registration_id, current.value),
            )
            if cursor.rowcount == 0:
                # Another admin decided it between the read and the update.
                conn.rollback()
                raise ConflictError("Registration status changed concurrently")
            conn.commit()
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM registrations WHERE id = ?",
                (registration_id,),
            ).fetchone()
        finally:
            conn.close()

        logger.info("Admin %s set registration %s to %s", actor.username, registration_id, target.value)
        await AuditService.log(
            user_id=actor.id,
            action=target.value.lower(),
            object_type="registration",
            object_id=registration_id,
            details={"from": current.value, "to": target.value, "by": actor.username},
        )
        return _row_to_registration(row)
