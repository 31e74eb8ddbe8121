"""
Pydantic models for attendee registrations.

``RegistrationRead`` is what attendees see on their summary screen and
what administrators review.  The receipt's media‑store handle is kept
in the database but not exposed here.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class RegistrationStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


# PENDING is the only state with outgoing transitions.
TERMINAL_STATUSES = frozenset({RegistrationStatus.APPROVED, RegistrationStatus.REJECTED})


class FamilyMember(BaseModel):
    name: str = Field(..., examples=["Asha"])
    relation: str = Field(..., examples=["Spouse"])


class RegistrationRead(BaseModel):
    id: int
    subject_id: str
    email: str
    name: str
    batch: str
    contact: str
    linkedin: Optional[str] = None
    coming_with_family: bool = False
    family_members: List[FamilyMember] = Field(default_factory=list)
    amount: int
    receipt_url: Optional[str] = None
    status: RegistrationStatus = RegistrationStatus.PENDING
    status_changed_by: Optional[str] = None
    status_changed_at: Optional[datetime] = None
    created_at: datetime

    model_config = {
        "from_attributes": True,
        "alias_generator": to_camel,
        "populate_by_name": True,
    }


class StatusUpdate(BaseModel):
    """Body of ``PATCH /api/admin/event/registrations/{id}/status``.

    Kept as a plain string so that an unknown value produces the
    service's field error rather than a schema error.
    """

    status: str = Field(..., examples=["APPROVED"])
