"""
services/workspace_service.py
-----------------------------
Loads the three collections into the shared Workspace.

Each loader follows the same path:
  1. Extend the collection with any missing columns (best-effort).
  2. List the records.
  3. On CollectionNotFound, provision the collection with its fixed
     column schema and list once more.

The access list always leaves the "not ready" state, even when loading
fails, so requests get a resolved (restrictive) scope instead of waiting
forever.
"""

import asyncio
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

from letter_numbering.core.config import settings
from letter_numbering.core.errors import CollectionNotFound, StoreError
from letter_numbering.core.logging import get_logger
from letter_numbering.domain.entities import Company, Letter, UserAccessEntry
from letter_numbering.domain.mapping import (
    COMPANY_COLUMNS,
    LETTER_COLUMNS,
    USER_ACCESS_COLUMNS,
    decode_access_entry,
    decode_company,
    decode_letter,
)
from letter_numbering.domain.state import (
    AccessEntriesLoaded,
    AccessMarkedReady,
    CompaniesLoaded,
    Initialized,
    LettersLoaded,
    Workspace,
)
from letter_numbering.stores.base import ColumnSpec, RecordStore, StoredRecord

logger = get_logger(__name__)


async def list_or_provision(
    store: RecordStore,
    collection: str,
    columns: Sequence[ColumnSpec],
    order_by: Optional[str] = None,
) -> List[StoredRecord]:
    await store.ensure_columns(collection, columns)
    try:
        return await store.list(collection, order_by=order_by)
    except CollectionNotFound:
        logger.info("Collection missing, provisioning", collection=collection)
        await store.provision(collection, columns)
        await store.ensure_columns(collection, columns)
        return await store.list(collection, order_by=order_by)


class WorkspaceService:

    @staticmethod
    async def load_companies(workspace: Workspace, store: RecordStore) -> Tuple[Company, ...]:
        records = await list_or_provision(store, settings.COMPANY_LIST_NAME, COMPANY_COLUMNS)
        companies = tuple(decode_company(r) for r in records)
        workspace.dispatch(CompaniesLoaded(companies))
        logger.info("Companies loaded", count=len(companies))
        return companies

    @staticmethod
    async def load_letters(
        workspace: Workspace, store: RecordStore, today: Optional[date] = None
    ) -> Tuple[Letter, ...]:
        records = await list_or_provision(
            store, settings.LETTER_LIST_NAME, LETTER_COLUMNS, order_by="LetterDate desc"
        )
        letters = tuple(decode_letter(r, today=today) for r in records)
        workspace.dispatch(LettersLoaded(letters))
        logger.info("Letters loaded", count=len(letters))
        return letters

    @staticmethod
    async def load_access_entries(
        workspace: Workspace, store: RecordStore
    ) -> Tuple[UserAccessEntry, ...]:
        try:
            records = await list_or_provision(
                store, settings.USER_ACCESS_LIST_NAME, USER_ACCESS_COLUMNS, order_by="Title asc"
            )
        except StoreError as e:
            logger.error("Access entries could not be loaded", error=e.message)
            workspace.dispatch(AccessMarkedReady(load_failed=True))
            raise
        entries = tuple(decode_access_entry(r) for r in records)
        workspace.dispatch(AccessEntriesLoaded(entries))
        logger.info("Access entries loaded", count=len(entries))
        return entries

    @staticmethod
    async def refresh_all(
        workspace: Workspace,
        store: RecordStore,
        requested_by: Optional[str] = None,
    ) -> Dict[str, str]:
        """
        Reload every collection concurrently. *requested_by* is the principal
        that asked for the reload, if any; it is only logged.

        Never raises for store failures: each failing collection is logged
        and reported in the returned {collection: error} map. The workspace
        is marked initialized either way.
        """
        names = (
            settings.COMPANY_LIST_NAME,
            settings.LETTER_LIST_NAME,
            settings.USER_ACCESS_LIST_NAME,
        )
        results = await asyncio.gather(
            WorkspaceService.load_companies(workspace, store),
            WorkspaceService.load_letters(workspace, store),
            WorkspaceService.load_access_entries(workspace, store),
            return_exceptions=True,
        )
        errors: Dict[str, str] = {}
        for name, result in zip(names, results):
            if isinstance(result, StoreError):
                logger.error("Workspace refresh failed", collection=name, error=result.message)
                errors[name] = result.message
            elif isinstance(result, BaseException):
                raise result
        workspace.dispatch(Initialized())
        logger.info(
            "Workspace refreshed",
            version=workspace.version,
            failed=list(errors),
            requested_by=requested_by,
        )
        return errors
