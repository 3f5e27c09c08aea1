"""
stores/database.py
------------------
Record store over SQLAlchemy (async).

Every call opens its own short session, so the store can be shared across
requests the same way the remote backends are. Filtering and ordering are
applied in Python over the collection's rows: field maps are schemaless
JSON and collections stay small (hundreds to low thousands of rows).
"""

import asyncio
from typing import Any, List, Mapping, Optional, Sequence

from sqlalchemy import inspect, select
from sqlalchemy.exc import OperationalError, ProgrammingError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from letter_numbering.core.errors import CollectionNotFound, StoreError
from letter_numbering.core.logging import get_logger
from letter_numbering.models import Base, RecordCollection, StoredRecordRow
from letter_numbering.stores.base import ColumnSpec, StoredRecord, matches_filter, sort_records

logger = get_logger(__name__)


def _to_record(row: StoredRecordRow) -> StoredRecord:
    return StoredRecord(id=row.id, fields=dict(row.fields or {}), created_at=row.created_at)


class DatabaseRecordStore:

    def __init__(
        self,
        engine: AsyncEngine,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        self._engine = engine
        self._session_factory = session_factory
        # Collections are provisioned concurrently on first load
        self._provision_lock = asyncio.Lock()

    async def _require_collection(self, db: AsyncSession, collection: str) -> RecordCollection:
        result = await db.execute(
            select(RecordCollection).where(RecordCollection.name == collection)
        )
        found = result.scalar_one_or_none()
        if found is None:
            raise CollectionNotFound(collection)
        return found

    async def _tables_missing(self) -> bool:
        """False when the database cannot be reached at all."""
        try:
            async with self._engine.connect() as conn:
                present = await conn.run_sync(
                    lambda sync_conn: inspect(sync_conn).has_table(RecordCollection.__tablename__)
                )
        except SQLAlchemyError:
            return False
        return not present

    async def _get_row(self, db: AsyncSession, collection: str, record_id: str) -> StoredRecordRow:
        result = await db.execute(
            select(StoredRecordRow).where(
                StoredRecordRow.collection == collection,
                StoredRecordRow.id == record_id,
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise StoreError(f"Item not found: {collection}/{record_id}", status_code=404)
        return row

    async def list(
        self,
        collection: str,
        filter: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
    ) -> List[StoredRecord]:
        try:
            async with self._session_factory() as db:
                await self._require_collection(db, collection)
                result = await db.execute(
                    select(StoredRecordRow)
                    .where(StoredRecordRow.collection == collection)
                    .order_by(StoredRecordRow.created_at)
                )
                records = [_to_record(row) for row in result.scalars().all()]
        except (OperationalError, ProgrammingError) as exc:
            # Tables not created yet look the same as a missing collection
            if await self._tables_missing():
                logger.warning("Record tables missing", collection=collection, error=str(exc))
                raise CollectionNotFound(collection) from exc
            raise StoreError(f"Failed to list {collection}: {exc}", status_code=503) from exc
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to list {collection}: {exc}", status_code=503) from exc
        return sort_records([r for r in records if matches_filter(r, filter)], order_by)

    async def create(self, collection: str, fields: Mapping[str, Any]) -> StoredRecord:
        try:
            async with self._session_factory() as db:
                await self._require_collection(db, collection)
                row = StoredRecordRow(collection=collection, fields=dict(fields))
                db.add(row)
                await db.commit()
                await db.refresh(row)
                return _to_record(row)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to create record in {collection}: {exc}") from exc

    async def update(
        self, collection: str, record_id: str, fields: Mapping[str, Any]
    ) -> StoredRecord:
        try:
            async with self._session_factory() as db:
                row = await self._get_row(db, collection, record_id)
                # Reassign so the JSON column registers as dirty
                row.fields = {**(row.fields or {}), **fields}
                await db.commit()
                await db.refresh(row)
                return _to_record(row)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to update {collection}/{record_id}: {exc}") from exc

    async def delete(self, collection: str, record_id: str) -> None:
        try:
            async with self._session_factory() as db:
                row = await self._get_row(db, collection, record_id)
                await db.delete(row)
                await db.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to delete {collection}/{record_id}: {exc}") from exc

    async def provision(self, collection: str, columns: Sequence[ColumnSpec]) -> None:
        try:
            async with self._provision_lock:
                async with self._engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)
                async with self._session_factory() as db:
                    existing = await db.get(RecordCollection, collection)
                    if existing is None:
                        db.add(RecordCollection(name=collection, columns=[c.name for c in columns]))
                        await db.commit()
                        logger.info("Collection provisioned", collection=collection)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to provision {collection}: {exc}") from exc

    async def ensure_columns(self, collection: str, columns: Sequence[ColumnSpec]) -> None:
        try:
            async with self._session_factory() as db:
                existing = await db.get(RecordCollection, collection)
                if existing is None:
                    return
                known = list(existing.columns or [])
                missing = [c.name for c in columns if c.name not in known]
                if missing:
                    existing.columns = known + missing
                    await db.commit()
        except SQLAlchemyError as exc:
            logger.warning("Failed to ensure columns", collection=collection, error=str(exc))
