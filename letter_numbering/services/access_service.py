"""
services/access_service.py
--------------------------
Admin-only management of user access entries.

Company ids are trimmed and blank ids dropped. CompanyNames is a
denormalized, display-only copy taken from the companies known right now;
ids that match no company simply contribute no name.
"""

from typing import Iterable, List

from letter_numbering.core.config import settings
from letter_numbering.core.errors import NotFound
from letter_numbering.core.logging import get_logger
from letter_numbering.domain.entities import UserAccessEntry
from letter_numbering.domain.mapping import (
    USER_ACCESS_COLUMNS,
    access_entry_fields,
    normalize_company_ids,
)
from letter_numbering.domain.scope import AccessScope
from letter_numbering.domain.state import (
    AccessEntryAdded,
    AccessEntryRemoved,
    AccessEntryUpdated,
    Workspace,
)
from letter_numbering.schemas.access import AccessEntryCreate, AccessEntryUpdate
from letter_numbering.stores.base import RecordStore

logger = get_logger(__name__)


def _company_names(workspace: Workspace, company_ids: Iterable[str]) -> List[str]:
    names = []
    for company_id in company_ids:
        company = workspace.state.company(company_id)
        if company is not None:
            names.append(company.name)
    return names


class AccessService:

    @staticmethod
    def list_access_entries(workspace: Workspace, scope: AccessScope) -> List[UserAccessEntry]:
        scope.require_admin("view user access entries")
        return list(workspace.state.access_entries)

    @staticmethod
    async def add_user_access_entry(
        workspace: Workspace,
        store: RecordStore,
        scope: AccessScope,
        data: AccessEntryCreate,
    ) -> UserAccessEntry:
        scope.require_admin("manage user access entries")
        company_ids = normalize_company_ids(data.company_ids)
        company_names = _company_names(workspace, company_ids)

        await store.ensure_columns(settings.USER_ACCESS_LIST_NAME, USER_ACCESS_COLUMNS)
        record = await store.create(
            settings.USER_ACCESS_LIST_NAME,
            access_entry_fields(company_ids, company_names, data.user_principal_name, data.role),
        )
        entry = UserAccessEntry(
            id=record.id,
            title=data.user_principal_name,
            user_principal_name=data.user_principal_name,
            role=data.role,
            company_ids=company_ids,
            company_names=company_names,
        )
        workspace.dispatch(AccessEntryAdded(entry))
        logger.info(
            "Access entry created",
            entry_id=entry.id,
            principal=entry.principal_key,
            role=entry.role.value,
            company_ids=company_ids,
        )
        return entry

    @staticmethod
    async def update_user_access_entry(
        workspace: Workspace,
        store: RecordStore,
        scope: AccessScope,
        entry_id: str,
        data: AccessEntryUpdate,
    ) -> UserAccessEntry:
        """
        Partial update. The company lists are always rewritten: omitting
        company_ids keeps the current ids, an empty list means all companies.
        """
        scope.require_admin("manage user access entries")
        existing = workspace.state.access_entry(entry_id)
        if existing is None:
            raise NotFound("User access entry not found.")

        changes = data.model_dump(exclude_unset=True)
        company_ids = normalize_company_ids(
            changes["company_ids"] if changes.get("company_ids") is not None else existing.company_ids
        )
        company_names = _company_names(workspace, company_ids)
        principal = changes.get("user_principal_name")
        principal = principal.strip() if principal else None
        role = changes.get("role")

        await store.update(
            settings.USER_ACCESS_LIST_NAME,
            entry_id,
            access_entry_fields(company_ids, company_names, principal, role),
        )
        entry = existing.model_copy(
            update={
                "title": principal or existing.title,
                "user_principal_name": principal or existing.user_principal_name,
                "role": role or existing.role,
                "company_ids": company_ids,
                "company_names": company_names,
            }
        )
        workspace.dispatch(AccessEntryUpdated(entry))
        logger.info("Access entry updated", entry_id=entry_id, fields=sorted(changes))
        return entry

    @staticmethod
    async def delete_user_access_entry(
        workspace: Workspace,
        store: RecordStore,
        scope: AccessScope,
        entry_id: str,
    ) -> None:
        scope.require_admin("remove user access entries")
        if workspace.state.access_entry(entry_id) is None:
            raise NotFound("User access entry not found.")
        await store.delete(settings.USER_ACCESS_LIST_NAME, entry_id)
        workspace.dispatch(AccessEntryRemoved(entry_id))
        logger.info("Access entry deleted", entry_id=entry_id)
