"""
stores/base.py
--------------
Collaborator contracts the core depends on.

  RecordStore        — list/create/update/delete of free-form records
                       grouped in named collections (SharePoint lists,
                       a database table, or memory).
  BlobStore          — binary objects under folder paths.
  DirectoryProvider  — user search for the access-grant screens.

Backends live next to this module; the rest of the code only ever sees
these Protocols.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Mapping, Optional, Protocol, Sequence

from pydantic import BaseModel

ColumnKind = Literal["text", "multilineText", "number", "dateTime", "choice"]


class ColumnSpec(BaseModel):
    """One column of a collection's fixed schema, used when provisioning."""

    name: str
    kind: ColumnKind = "text"
    choices: List[str] = []


class StoredRecord(BaseModel):
    id: str
    fields: Dict[str, Any] = {}
    created_at: Optional[datetime] = None
    web_url: Optional[str] = None


class BlobMeta(BaseModel):
    id: str
    name: str
    path: str
    size: Optional[int] = None
    url: Optional[str] = None
    last_modified: Optional[datetime] = None


class DirectoryUser(BaseModel):
    id: str
    display_name: str = ""
    user_principal_name: str = ""
    email: str = ""


class RecordStore(Protocol):
    async def list(
        self,
        collection: str,
        filter: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
    ) -> List[StoredRecord]:
        ...

    async def create(self, collection: str, fields: Mapping[str, Any]) -> StoredRecord:
        ...

    async def update(
        self, collection: str, record_id: str, fields: Mapping[str, Any]
    ) -> StoredRecord:
        ...

    async def delete(self, collection: str, record_id: str) -> None:
        ...

    async def provision(self, collection: str, columns: Sequence[ColumnSpec]) -> None:
        ...

    async def ensure_columns(self, collection: str, columns: Sequence[ColumnSpec]) -> None:
        ...


class BlobStore(Protocol):
    async def ensure_folder(self, path: str) -> None:
        ...

    async def put(self, path: str, content: bytes, content_type: str) -> BlobMeta:
        ...

    async def list(self, folder_path: str) -> List[BlobMeta]:
        ...

    async def get_view_url(self, path: str) -> str:
        ...

    async def delete(self, path: str) -> None:
        ...


class DirectoryProvider(Protocol):
    async def search_users(self, prefix: str, limit: int = 10) -> List[DirectoryUser]:
        ...


# ── Shared helpers for backends ───────────────────────────────────────────────

def parse_order_by(order_by: Optional[str]) -> tuple[Optional[str], bool]:
    """"LetterDate desc" → ("LetterDate", True); None → (None, False)."""
    if not order_by:
        return None, False
    parts = order_by.split()
    field = parts[0]
    if field.startswith("fields/"):
        field = field[len("fields/"):]
    descending = len(parts) > 1 and parts[1].lower() == "desc"
    return field, descending


def sort_records(records: List[StoredRecord], order_by: Optional[str]) -> List[StoredRecord]:
    field, descending = parse_order_by(order_by)
    if field is None:
        return records
    # None sorts last in both directions
    present = [r for r in records if r.fields.get(field) is not None]
    missing = [r for r in records if r.fields.get(field) is None]
    present.sort(key=lambda r: r.fields[field], reverse=descending)
    return present + missing


def matches_filter(record: StoredRecord, filter: Optional[Mapping[str, Any]]) -> bool:
    if not filter:
        return True
    return all(record.fields.get(key) == value for key, value in filter.items())
