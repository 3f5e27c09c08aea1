"""
schemas/workspace.py
--------------------
Response models for the caller's identity, the workspace status and the
dashboard.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel

from letter_numbering.domain.entities import Role
from letter_numbering.schemas.letter import LetterRead


class MeRead(BaseModel):
    principal: str
    role: Role
    ready: bool
    is_admin: bool
    can_edit_letters: bool
    can_manage_companies: bool
    # None → every company
    allowed_company_ids: Optional[List[str]] = None
    bootstrap: bool = False


class WorkspaceStatus(BaseModel):
    version: int
    initialized: bool
    access_loaded: bool
    companies: int
    letters: int
    access_entries: int
    errors: Dict[str, str] = {}


class CompanyPreview(BaseModel):
    company_id: str
    name: str
    abbreviation: str
    color: str
    next_reference: str


class DashboardRead(BaseModel):
    total_letters: int
    letters_this_year: int
    unique_recipients: int
    next_references: List[CompanyPreview]
    latest_letters: List[LetterRead]
