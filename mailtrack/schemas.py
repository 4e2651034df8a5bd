from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema exchanging camelCase keys with the dashboard."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RequestModel(CamelModel):
    """Base for request bodies; unknown keys are rejected."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid"
    )


class ResponseModel(CamelModel):
    """Base for responses built from ORM objects."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class UserOut(ResponseModel):
    """Response schema for user data."""

    id: str
    email: str
    name: Optional[str] = None


class CategoryCreate(RequestModel):
    """Schema for creating a category."""

    name: str = Field(min_length=1, max_length=255)
    position: Optional[int] = None


class CategoryUpdate(RequestModel):
    """Schema for updating a category (all fields optional)."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    position: Optional[int] = None


class CategoryOut(ResponseModel):
    id: str
    user_id: str
    name: str
    position: int


class ContactCreate(RequestModel):
    """Schema for creating a new contact."""

    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    category_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("categoryId", "category")
    )


class ContactUpdate(RequestModel):
    """Schema for updating a contact (all fields optional)."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    category_id: Optional[str] = None
    position: Optional[int] = None
    last_sent_at: Optional[datetime] = None


class ContactOut(ResponseModel):
    """Schema for returning a contact."""

    id: str
    user_id: str
    name: str
    email: str
    category_id: Optional[str] = None
    position: int
    last_sent_at: Optional[datetime] = None


class BulkContactIn(RequestModel):
    """One row of a bulk import. The email is validated per row."""

    name: Optional[str] = None
    email: str = ""
    category_id: Optional[str] = None


class BulkContactsRequest(RequestModel):
    contacts: List[BulkContactIn]


class RowError(CamelModel):
    """A rejected import row, numbered from 1."""

    row: int
    email: str
    reason: str


class BulkContactsOut(CamelModel):
    contacts: List[ContactOut]
    errors: List[RowError] = []


class ReorderRequest(RequestModel):
    """Full ordered list of ids; index becomes the new position."""

    ids: List[str]


class OkOut(BaseModel):
    ok: bool = True


class ManualDraftCreate(RequestModel):
    note: Optional[str] = None


class ManualDraftUpdate(RequestModel):
    """Schema for updating a manual draft (all fields optional)."""

    note: Optional[str] = None
    contact_id: Optional[str] = None
    position: Optional[int] = None


class ManualDraftOut(ResponseModel):
    id: str
    user_id: str
    contact_id: Optional[str] = None
    note: str
    position: int
    sent_at: datetime


class AttachmentOut(ResponseModel):
    id: str
    filename: str


class SentMailOut(ResponseModel):
    id: str
    contact_id: str
    sent_at: datetime
    note: Optional[str] = None
    status: Optional[str] = None
    labels: List[str] = []
    attachments: List[AttachmentOut] = []


class DashboardContactOut(ContactOut):
    """Contact with its sent mail and staleness bucket."""

    sent_mails: List[SentMailOut] = []
    staleness: str = "unknown"
    color: str = "gray"


class DropRequest(RequestModel):
    """A drag payload dropped onto a target.

    ``payload`` is the raw string carried by the drag data channel.
    ``target_id`` is a category id (``None`` for "uncategorized"), a
    contact id, or for mail reorders the contact owning the list.
    """

    payload: str
    target_id: Optional[str] = None
    target_index: Optional[int] = None


class DropOut(CamelModel):
    kind: str
    contact: Optional[ContactOut] = None
    draft: Optional[ManualDraftOut] = None
    mail_ids: Optional[List[str]] = None
