"""
api/routes/access_entries.py
----------------------------
Admin-only access-grant endpoints.

GET    /access-entries        — Every access entry
POST   /access-entries        — Grant a user a role and company scope
PATCH  /access-entries/{id}   — Partial update
DELETE /access-entries/{id}   — Revoke
GET    /directory/users?q=    — Directory search for principals to grant
"""

from fastapi import APIRouter, Query, status

from letter_numbering.dependencies import DirectoryDep, RecordStoreDep, ScopeDep, WorkspaceDep
from letter_numbering.schemas.access import (
    AccessEntryCreate,
    AccessEntryRead,
    AccessEntryUpdate,
    DirectoryUserRead,
)
from letter_numbering.services.access_service import AccessService
from letter_numbering.services.directory_service import DirectoryService

router = APIRouter(tags=["Access"])


@router.get(
    "/access-entries",
    response_model=list[AccessEntryRead],
    summary="Admin: list user access entries",
)
async def list_access_entries(workspace: WorkspaceDep, scope: ScopeDep) -> list[AccessEntryRead]:
    entries = AccessService.list_access_entries(workspace, scope)
    return [AccessEntryRead.model_validate(e) for e in entries]


@router.post(
    "/access-entries",
    response_model=AccessEntryRead,
    status_code=status.HTTP_201_CREATED,
    summary="Admin: grant access to a user",
)
async def create_access_entry(
    body: AccessEntryCreate,
    workspace: WorkspaceDep,
    store: RecordStoreDep,
    scope: ScopeDep,
) -> AccessEntryRead:
    entry = await AccessService.add_user_access_entry(workspace, store, scope, body)
    return AccessEntryRead.model_validate(entry)


@router.patch(
    "/access-entries/{entry_id}",
    response_model=AccessEntryRead,
    summary="Admin: update a user access entry",
)
async def update_access_entry(
    entry_id: str,
    body: AccessEntryUpdate,
    workspace: WorkspaceDep,
    store: RecordStoreDep,
    scope: ScopeDep,
) -> AccessEntryRead:
    entry = await AccessService.update_user_access_entry(workspace, store, scope, entry_id, body)
    return AccessEntryRead.model_validate(entry)


@router.delete(
    "/access-entries/{entry_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Admin: revoke a user access entry",
)
async def delete_access_entry(
    entry_id: str,
    workspace: WorkspaceDep,
    store: RecordStoreDep,
    scope: ScopeDep,
) -> None:
    await AccessService.delete_user_access_entry(workspace, store, scope, entry_id)


@router.get(
    "/directory/users",
    response_model=list[DirectoryUserRead],
    summary="Admin: search the user directory by e-mail / UPN prefix",
)
async def search_directory(
    directory: DirectoryDep,
    scope: ScopeDep,
    q: str = Query("", max_length=256, description="At least two characters"),
    limit: int = Query(10, ge=1, le=25),
) -> list[DirectoryUserRead]:
    users = await DirectoryService.search_users(directory, scope, q, limit)
    return [DirectoryUserRead.model_validate(u) for u in users]
