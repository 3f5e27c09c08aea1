"""
schemas/company.py
------------------
Pydantic request/response models for Company.

Naming convention:
  CompanyCreate  → inbound request body
  CompanyUpdate  → inbound partial update (unset fields are left alone)
  CompanyRead    → outbound response body
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class CompanyCreate(BaseModel):
    name: str = Field(..., max_length=255, examples=["East Africa Shipping"])
    abbreviation: str = Field(
        ...,
        max_length=20,
        examples=["EASE"],
        description="Reference prefix; stored upper-cased",
    )
    starting_number: int = Field(1, ge=1, description="First sequence number of every year")
    color: Optional[str] = Field(None, examples=["#2563eb"])

    @field_validator("name", "abbreviation")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()


class CompanyUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    abbreviation: Optional[str] = Field(None, max_length=20)
    starting_number: Optional[int] = Field(None, ge=1)
    color: Optional[str] = None


class CompanyRead(BaseModel):
    id: str
    name: str
    abbreviation: str
    starting_number: int
    color: str

    model_config = {"from_attributes": True}


class NextReference(BaseModel):
    """Advisory preview: nothing is reserved until a letter is created."""
    company_id: str
    year: int
    sequence_number: int
    reference_number: str
