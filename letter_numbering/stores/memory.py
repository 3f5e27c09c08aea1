"""
stores/memory.py
----------------
In-process record, blob and directory backends.

Used for local development (RECORD_STORE_BACKEND=memory) and by the test
suite. Behaviour mirrors the remote backends closely enough to exercise
the provisioning path: a collection that was never provisioned raises
CollectionNotFound, exactly like a missing SharePoint list.
"""

import itertools
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from letter_numbering.core.errors import CollectionNotFound, StoreError
from letter_numbering.stores.base import (
    BlobMeta,
    ColumnSpec,
    DirectoryUser,
    StoredRecord,
    matches_filter,
    sort_records,
)


class MemoryRecordStore:

    def __init__(self, auto_provision: bool = False) -> None:
        self._collections: Dict[str, Dict[str, StoredRecord]] = {}
        self._columns: Dict[str, List[str]] = {}
        self._ids = itertools.count(1)
        self._auto_provision = auto_provision
        # Every call as (operation, collection), oldest first
        self.operations: List[Tuple[str, str]] = []

    def _records(self, collection: str) -> Dict[str, StoredRecord]:
        if collection not in self._collections:
            if not self._auto_provision:
                raise CollectionNotFound(collection)
            self._collections[collection] = {}
        return self._collections[collection]

    async def list(
        self,
        collection: str,
        filter: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
    ) -> List[StoredRecord]:
        self.operations.append(("list", collection))
        records = [
            r.model_copy(deep=True)
            for r in self._records(collection).values()
            if matches_filter(r, filter)
        ]
        return sort_records(records, order_by)

    async def create(self, collection: str, fields: Mapping[str, Any]) -> StoredRecord:
        self.operations.append(("create", collection))
        records = self._records(collection)
        record_id = str(next(self._ids))
        record = StoredRecord(
            id=record_id,
            fields=dict(fields),
            created_at=datetime.now(timezone.utc),
        )
        records[record_id] = record
        return record.model_copy(deep=True)

    async def update(
        self, collection: str, record_id: str, fields: Mapping[str, Any]
    ) -> StoredRecord:
        self.operations.append(("update", collection))
        records = self._records(collection)
        existing = records.get(record_id)
        if existing is None:
            raise StoreError(f"Item not found: {collection}/{record_id}", status_code=404)
        updated = existing.model_copy(update={"fields": {**existing.fields, **fields}})
        records[record_id] = updated
        return updated.model_copy(deep=True)

    async def delete(self, collection: str, record_id: str) -> None:
        self.operations.append(("delete", collection))
        records = self._records(collection)
        if records.pop(record_id, None) is None:
            raise StoreError(f"Item not found: {collection}/{record_id}", status_code=404)

    async def provision(self, collection: str, columns: Sequence[ColumnSpec]) -> None:
        self.operations.append(("provision", collection))
        self._collections.setdefault(collection, {})
        self._columns[collection] = [c.name for c in columns]

    async def ensure_columns(self, collection: str, columns: Sequence[ColumnSpec]) -> None:
        if collection not in self._collections:
            # Same as the remote backends: nothing to extend yet
            return
        known = self._columns.setdefault(collection, [])
        known.extend(c.name for c in columns if c.name not in known)

    def columns(self, collection: str) -> List[str]:
        return list(self._columns.get(collection, []))


class MemoryBlobStore:

    def __init__(self) -> None:
        self._blobs: Dict[str, Tuple[bytes, str, BlobMeta]] = {}
        self._folders: set = set()
        self._ids = itertools.count(1)

    @staticmethod
    def _clean(path: str) -> str:
        return "/".join(segment for segment in (path or "").split("/") if segment)

    async def ensure_folder(self, path: str) -> None:
        current = ""
        for segment in self._clean(path).split("/"):
            if not segment:
                continue
            current = f"{current}/{segment}" if current else segment
            self._folders.add(current)

    async def put(self, path: str, content: bytes, content_type: str) -> BlobMeta:
        path = self._clean(path)
        folder, _, name = path.rpartition("/")
        if folder and folder not in self._folders:
            raise StoreError(f"Folder not found: {folder}", status_code=404)
        meta = BlobMeta(
            id=f"blob-{next(self._ids)}",
            name=name,
            path=path,
            size=len(content),
            url=f"memory://{path}",
            last_modified=datetime.now(timezone.utc),
        )
        self._blobs[path] = (content, content_type, meta)
        return meta

    async def list(self, folder_path: str) -> List[BlobMeta]:
        folder = self._clean(folder_path)
        return [
            meta
            for path, (_, _, meta) in sorted(self._blobs.items())
            if path.rpartition("/")[0] == folder
        ]

    async def get_view_url(self, path: str) -> str:
        path = self._clean(path)
        if path not in self._blobs:
            raise StoreError(f"File not found: {path}", status_code=404)
        return self._blobs[path][2].url or f"memory://{path}"

    async def delete(self, path: str) -> None:
        self._blobs.pop(self._clean(path), None)

    def read(self, path: str) -> bytes:
        return self._blobs[self._clean(path)][0]

    def exists(self, path: str) -> bool:
        return self._clean(path) in self._blobs


class MemoryDirectory:

    def __init__(self, users: Optional[Sequence[DirectoryUser]] = None) -> None:
        self._users = list(users or [])

    async def search_users(self, prefix: str, limit: int = 10) -> List[DirectoryUser]:
        term = (prefix or "").strip().lower()
        matches = [
            user
            for user in self._users
            if user.email.lower().startswith(term)
            or user.user_principal_name.lower().startswith(term)
        ]
        return matches[:limit]
