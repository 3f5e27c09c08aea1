"""
domain/entities.py
------------------
Typed entities decoded from the free-form records of the record store.

Entities are frozen: the workspace never mutates one in place, it swaps
in a model_copy(update=...) through a dispatched action.

Role design:
  - 'Admin':  manages companies and access entries, sees every company.
  - 'Editor': creates and edits letters inside their company scope.
  - 'Viewer': read-only inside their company scope.
"""

from datetime import datetime
from enum import Enum as PyEnum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class Role(str, PyEnum):
    admin = "Admin"
    editor = "Editor"
    viewer = "Viewer"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Role":
        """Case-insensitive lookup; anything unrecognised is a Viewer."""
        normalized = (value or "").strip().lower()
        for role in cls:
            if role.value.lower() == normalized:
                return role
        return cls.viewer


class Company(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    abbreviation: str
    starting_number: int = 1
    color: str = "#2563eb"


class Attachment(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    path: str
    size: Optional[int] = None
    web_url: Optional[str] = None
    last_modified: Optional[datetime] = None

    @property
    def key(self) -> str:
        return self.path or self.id or self.name


class Letter(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    reference_number: str
    company_id: str
    company_name: str = ""
    company_abbreviation: str = ""
    sequence_number: int
    year: int
    letter_date: Optional[datetime] = None
    recipient_company: str = ""
    subject: str = ""
    prepared_by: str = ""
    notes: str = ""
    attachments: List[Attachment] = []
    attachments_loaded: bool = False
    web_url: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def has_attachments(self) -> bool:
        return len(self.attachments) > 0

    @property
    def sort_date(self) -> Optional[datetime]:
        return self.letter_date or self.created_at


class UserAccessEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    user_principal_name: str = ""
    role: Role = Role.viewer
    company_ids: List[str] = []
    company_names: List[str] = []

    @property
    def principal_key(self) -> str:
        """The name this entry matches against, lower-cased."""
        return (self.user_principal_name or self.title or "").strip().lower()
