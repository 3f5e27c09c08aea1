"""
schemas/access.py
-----------------
Pydantic models for user access entries and directory search results.

An empty company_ids list grants access to every company.
"""

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from letter_numbering.domain.entities import Role


def _parse_role(v):
    if v is None or isinstance(v, Role):
        return v
    normalized = str(v).strip().lower()
    for role in Role:
        if role.value.lower() == normalized:
            return role
    raise ValueError("Role must be one of Admin, Editor, Viewer")


class AccessEntryCreate(BaseModel):
    user_principal_name: str = Field(..., min_length=3, max_length=320, examples=["jane@contoso.com"])
    role: Role = Role.viewer
    company_ids: List[str] = []

    @field_validator("user_principal_name")
    @classmethod
    def strip_principal(cls, v: str) -> str:
        return v.strip()

    @field_validator("role", mode="before")
    @classmethod
    def parse_role(cls, v):
        return _parse_role(v)


class AccessEntryUpdate(BaseModel):
    user_principal_name: Optional[str] = Field(None, min_length=3, max_length=320)
    role: Optional[Role] = None
    company_ids: Optional[List[str]] = None

    @field_validator("role", mode="before")
    @classmethod
    def parse_role(cls, v):
        return _parse_role(v)


class AccessEntryRead(BaseModel):
    id: str
    title: str
    user_principal_name: str
    role: Role
    company_ids: List[str]
    company_names: List[str]

    model_config = {"from_attributes": True}


class DirectoryUserRead(BaseModel):
    id: str
    display_name: str
    user_principal_name: str
    email: str

    model_config = {"from_attributes": True}
