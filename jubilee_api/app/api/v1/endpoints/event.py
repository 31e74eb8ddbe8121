"""
Attendee registration endpoints.

``POST /register`` takes the multipart registration form including the
payment receipt image.  The ``amount`` the client may send is ignored;
the server computes it from the family details.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status

from jubilee_api.app.schemas.registration import RegistrationRead
from jubilee_api.app.services.identity_service import (
    resolve_request_identity,
    resolve_subject_id,
)
from jubilee_api.app.services.media_store import MediaStore, get_media_store
from jubilee_api.app.services.registration_service import (
    ReceiptUpload,
    RegistrationService,
    RegistrationSubmission,
)


router = APIRouter()


@router.post("/register", response_model=RegistrationRead, status_code=status.HTTP_201_CREATED)
async def register(
    request: Request,
    name: str = Form(""),
    batch: str = Form(""),
    contact: str = Form(""),
    email: str = Form(""),
    linkedin: str = Form(""),
    coming_with_family: str = Form("false", alias="comingWithFamily"),
    family_members: str = Form("[]", alias="familyMembers"),
    oauth_uid: Optional[str] = Form(None, alias="oauthUid"),
    oauth_email: Optional[str] = Form(None, alias="oauthEmail"),
    receipt: Optional[UploadFile] = File(None),
    media_store: MediaStore = Depends(get_media_store),
) -> RegistrationRead:
    """Submit the caller's registration.

    Returns 401 without a Google identity, 400 with every field error
    when the form is invalid and 400 when the account or e‑mail is
    already registered.
    """
    identity = resolve_request_identity(request, oauth_uid, oauth_email)
    receipt_upload = None
    if receipt is not None:
        receipt_upload = ReceiptUpload(
            content=await receipt.read(),
            content_type=receipt.content_type or "",
            filename=receipt.filename or "receipt",
        )
    submission = RegistrationSubmission(
        name=name,
        batch=batch,
        contact=contact,
        email=email,
        linkedin=linkedin,
        coming_with_family=coming_with_family,
        family_members=family_members,
        receipt=receipt_upload,
    )
    return await RegistrationService.submit(identity, submission, media_store)


@router.get("/registration/me", response_model=RegistrationRead)
async def my_registration(
    request: Request,
    oauth_uid: Optional[str] = Query(None, alias="oauthUid"),
) -> RegistrationRead:
    """Return the caller's own registration and its review status."""
    subject_id = resolve_subject_id(request, oauth_uid)
    return await RegistrationService.get_own(subject_id)
