"""
api/routes/companies.py
-----------------------
Company endpoints. Reads are scoped; mutations are Admin-only.

GET    /companies                         — Companies visible to the caller
POST   /companies                         — Create a company
GET    /companies/{id}                    — One company
PATCH  /companies/{id}                    — Partial update
DELETE /companies/{id}                    — Delete
GET    /companies/{id}/next-reference     — Advisory next reference for a year
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Query, status

from letter_numbering.dependencies import RecordStoreDep, ScopeDep, WorkspaceDep
from letter_numbering.schemas.company import CompanyCreate, CompanyRead, CompanyUpdate, NextReference
from letter_numbering.services.company_service import CompanyService

router = APIRouter(prefix="/companies", tags=["Companies"])


@router.get("", response_model=list[CompanyRead], summary="List companies in scope")
async def list_companies(workspace: WorkspaceDep, scope: ScopeDep) -> list[CompanyRead]:
    return [CompanyRead.model_validate(c) for c in CompanyService.list_companies(workspace, scope)]


@router.post(
    "",
    response_model=CompanyRead,
    status_code=status.HTTP_201_CREATED,
    summary="Admin: create a company",
)
async def create_company(
    body: CompanyCreate,
    workspace: WorkspaceDep,
    store: RecordStoreDep,
    scope: ScopeDep,
) -> CompanyRead:
    company = await CompanyService.add_company(workspace, store, scope, body)
    return CompanyRead.model_validate(company)


@router.get("/{company_id}", response_model=CompanyRead, summary="Get a company")
async def get_company(company_id: str, workspace: WorkspaceDep, scope: ScopeDep) -> CompanyRead:
    return CompanyRead.model_validate(CompanyService.get_company(workspace, scope, company_id))


@router.patch("/{company_id}", response_model=CompanyRead, summary="Admin: update a company")
async def update_company(
    company_id: str,
    body: CompanyUpdate,
    workspace: WorkspaceDep,
    store: RecordStoreDep,
    scope: ScopeDep,
) -> CompanyRead:
    company = await CompanyService.update_company(workspace, store, scope, company_id, body)
    return CompanyRead.model_validate(company)


@router.delete(
    "/{company_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Admin: delete a company",
)
async def delete_company(
    company_id: str,
    workspace: WorkspaceDep,
    store: RecordStoreDep,
    scope: ScopeDep,
) -> None:
    await CompanyService.delete_company(workspace, store, scope, company_id)


@router.get(
    "/{company_id}/next-reference",
    response_model=NextReference,
    summary="Preview the next reference number (not reserved)",
)
async def next_reference(
    company_id: str,
    workspace: WorkspaceDep,
    scope: ScopeDep,
    year: Optional[int] = Query(None, ge=1900, le=9999, description="Defaults to the current year"),
) -> NextReference:
    return CompanyService.next_reference(workspace, scope, company_id, year or date.today().year)
