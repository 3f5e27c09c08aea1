"""
services/company_service.py
---------------------------
Company reads, Admin-only company mutations, and the next-reference preview.

Reads are filtered through the caller's AccessScope: a company outside the
scope is reported as NotFound, the same as one that does not exist.
"""

from typing import List, Optional

from letter_numbering.core.config import settings
from letter_numbering.core.errors import AllocationError, NotFound, ValidationError
from letter_numbering.core.logging import get_logger
from letter_numbering.domain.allocator import next_sequence
from letter_numbering.domain.entities import Company
from letter_numbering.domain.mapping import COMPANY_COLUMNS, company_fields, decode_company
from letter_numbering.domain.reference import format_reference
from letter_numbering.domain.scope import AccessScope
from letter_numbering.domain.state import CompanyAdded, CompanyRemoved, CompanyUpdated, Workspace
from letter_numbering.schemas.company import CompanyCreate, CompanyUpdate, NextReference
from letter_numbering.stores.base import RecordStore

logger = get_logger(__name__)


def _clean_abbreviation(value: Optional[str]) -> str:
    return (value or "").strip().upper()


class CompanyService:

    # ── Reads ─────────────────────────────────────────────────────────────────

    @staticmethod
    def list_companies(workspace: Workspace, scope: AccessScope) -> List[Company]:
        scope.require_ready()
        return scope.filter_companies(workspace.state.companies)

    @staticmethod
    def get_company(workspace: Workspace, scope: AccessScope, company_id: str) -> Company:
        scope.require_ready()
        company = workspace.state.company(company_id)
        if company is None or not scope.can_access_company(company.id):
            raise NotFound("Company not found.")
        return company

    @staticmethod
    def next_reference(
        workspace: Workspace, scope: AccessScope, company_id: str, year: int
    ) -> NextReference:
        company = CompanyService.get_company(workspace, scope, company_id)
        sequence = next_sequence(workspace.state, scope, company.id, year)
        if not sequence:
            raise AllocationError("Unable to determine the next sequence number.")
        return NextReference(
            company_id=company.id,
            year=year,
            sequence_number=sequence,
            reference_number=format_reference(company.abbreviation, sequence, year),
        )

    # ── Mutations (Admin) ─────────────────────────────────────────────────────

    @staticmethod
    async def add_company(
        workspace: Workspace,
        store: RecordStore,
        scope: AccessScope,
        data: CompanyCreate,
    ) -> Company:
        scope.require_manage_companies("add companies")
        name = (data.name or "").strip()
        abbreviation = _clean_abbreviation(data.abbreviation)
        if not name or not abbreviation:
            raise ValidationError("Company name and abbreviation are required.")

        await store.ensure_columns(settings.COMPANY_LIST_NAME, COMPANY_COLUMNS)
        record = await store.create(
            settings.COMPANY_LIST_NAME,
            company_fields(name, abbreviation, data.starting_number, data.color),
        )
        company = decode_company(record)
        workspace.dispatch(CompanyAdded(company))
        logger.info("Company created", company_id=company.id, abbreviation=company.abbreviation)
        return company

    @staticmethod
    async def update_company(
        workspace: Workspace,
        store: RecordStore,
        scope: AccessScope,
        company_id: str,
        data: CompanyUpdate,
    ) -> Company:
        scope.require_manage_companies("edit companies")
        existing = workspace.state.company(company_id)
        if existing is None:
            raise NotFound("Company not found.")

        fields = {}
        changes = data.model_dump(exclude_unset=True)
        if "name" in changes:
            name = (changes["name"] or "").strip()
            if not name:
                raise ValidationError("Company name cannot be empty.")
            fields["Title"] = name
        if "abbreviation" in changes:
            abbreviation = _clean_abbreviation(changes["abbreviation"])
            if not abbreviation:
                raise ValidationError("Company abbreviation cannot be empty.")
            fields["Abbreviation"] = abbreviation
        if "starting_number" in changes and changes["starting_number"] is not None:
            fields["StartingNumber"] = changes["starting_number"]
        if changes.get("color"):
            fields["Color"] = changes["color"]
        if not fields:
            return existing

        await store.update(settings.COMPANY_LIST_NAME, company_id, fields)
        updated = existing.model_copy(
            update={
                "name": fields.get("Title", existing.name),
                "abbreviation": fields.get("Abbreviation", existing.abbreviation),
                "starting_number": fields.get("StartingNumber", existing.starting_number),
                "color": fields.get("Color", existing.color),
            }
        )
        workspace.dispatch(CompanyUpdated(updated))
        logger.info("Company updated", company_id=company_id, fields=sorted(fields))
        return updated

    @staticmethod
    async def delete_company(
        workspace: Workspace,
        store: RecordStore,
        scope: AccessScope,
        company_id: str,
    ) -> None:
        scope.require_manage_companies("delete companies")
        if workspace.state.company(company_id) is None:
            raise NotFound("Company not found.")
        await store.delete(settings.COMPANY_LIST_NAME, company_id)
        workspace.dispatch(CompanyRemoved(company_id))
        logger.info("Company deleted", company_id=company_id)
