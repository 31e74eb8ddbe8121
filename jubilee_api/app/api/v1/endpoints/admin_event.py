"""
Registration review endpoints for administrators.

Every route depends on ``require_admin``.  The status update reads its
JSON body inside the handler so that an unauthorised caller gets 401
or 403 whatever it sends.
"""

from json import JSONDecodeError
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, Request
from pydantic import ValidationError as SchemaError

from jubilee_api.app.core.exceptions import ValidationError
from jubilee_api.app.core.security import require_admin
from jubilee_api.app.schemas.admin import AdminIdentity
from jubilee_api.app.schemas.registration import RegistrationRead, StatusUpdate
from jubilee_api.app.services.audit_service import AuditService
from jubilee_api.app.services.registration_service import RegistrationService


router = APIRouter()


async def _read_status_update(request: Request) -> StatusUpdate:
    try:
        body = await request.json()
    except (JSONDecodeError, UnicodeDecodeError):
        raise ValidationError({"request": "Body must be valid JSON"}, message="Invalid request")
    try:
        return StatusUpdate.model_validate(body)
    except SchemaError as exc:
        errors = {
            ".".join(str(p) for p in err["loc"]) or "request": err["msg"]
            for err in exc.errors()
        }
        raise ValidationError(errors, message="Invalid request")


@router.get("/registrations", response_model=List[RegistrationRead])
async def list_registrations(
    status: Optional[str] = Query(None, description="PENDING, APPROVED or REJECTED"),
    admin: AdminIdentity = Depends(require_admin),
) -> List[RegistrationRead]:
    """All registrations, newest first."""
    return await RegistrationService.list_all(status)


@router.patch(
    "/registrations/{registration_id}/status",
    response_model=RegistrationRead,
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": StatusUpdate.model_json_schema()}},
        }
    },
)
async def set_registration_status(
    request: Request,
    registration_id: int = Path(..., description="Registration ID"),
    admin: AdminIdentity = Depends(require_admin),
) -> RegistrationRead:
    """Approve or reject a pending registration.

    Body: ``{"status": "APPROVED" | "REJECTED"}``.  Decided
    registrations cannot be changed again (409); repeating the same
    decision returns the record unchanged.
    """
    payload = await _read_status_update(request)
    return await RegistrationService.set_status(registration_id, payload.status, admin)


@router.get("/registrations/{registration_id}/history")
async def registration_history(
    registration_id: int = Path(..., description="Registration ID"),
    admin: AdminIdentity = Depends(require_admin),
) -> List[dict]:
    """Audit trail of a registration: creation and every status change."""
    await RegistrationService.get_by_id(registration_id)
    return await AuditService.list_logs(object_type="registration", object_id=registration_id)
