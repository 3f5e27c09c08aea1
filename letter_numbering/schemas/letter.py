"""
schemas/letter.py
-----------------
Pydantic models for letters and their attachments.

The sequence number, year and company of a letter are fixed at creation:
LetterUpdate rejects them outright instead of silently ignoring them.
"""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class LetterCreate(BaseModel):
    company_id: str = Field(..., min_length=1, description="Company issuing the letter")
    letter_date: Optional[date] = Field(None, description="Defaults to today")
    year: Optional[int] = Field(
        None,
        ge=1900,
        le=9999,
        description="Numbering year; derived from letter_date when omitted",
    )
    recipient_company: str = ""
    subject: str = ""
    prepared_by: str = ""
    notes: str = ""


class LetterUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    letter_date: Optional[date] = None
    recipient_company: Optional[str] = None
    subject: Optional[str] = None
    prepared_by: Optional[str] = None
    notes: Optional[str] = None


class LetterPatch(BaseModel):
    """Multipart 'payload' of PATCH /letters/{id}."""
    model_config = ConfigDict(extra="forbid")

    updates: LetterUpdate = LetterUpdate()
    remove_attachments: List[str] = Field(
        default_factory=list,
        description="Paths of attachments to delete",
    )


class AttachmentUpload(BaseModel):
    """A file received with a request, already read into memory."""
    name: str
    content: bytes
    content_type: str = "application/octet-stream"


class AttachmentRead(BaseModel):
    id: str
    name: str
    path: str
    size: Optional[int] = None
    web_url: Optional[str] = None
    last_modified: Optional[datetime] = None

    model_config = {"from_attributes": True}


class LetterRead(BaseModel):
    id: str
    reference_number: str
    company_id: str
    company_name: str
    company_abbreviation: str
    sequence_number: int
    year: int
    letter_date: Optional[datetime] = None
    recipient_company: str
    subject: str
    prepared_by: str
    notes: str
    attachments: List[AttachmentRead] = []
    attachments_loaded: bool
    has_attachments: bool
    web_url: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ViewUrl(BaseModel):
    url: str
