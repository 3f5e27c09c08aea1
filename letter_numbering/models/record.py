"""
models/record.py
----------------
ORM models backing the database record store.

A collection is the database equivalent of a SharePoint list: it must be
provisioned (a RecordCollection row) before records can be listed, and
it remembers the column names it was provisioned with. Records keep
their fields as a JSON document so every collection shares one table.
"""

from typing import Any, Dict, List

from sqlalchemy import JSON, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from letter_numbering.db.base import Base, TimestampMixin, generate_uuid


class RecordCollection(Base, TimestampMixin):
    __tablename__ = "record_collections"

    name: Mapped[str] = mapped_column(String(255), primary_key=True)
    columns: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    def __repr__(self) -> str:
        return f"<RecordCollection name={self.name}>"


class StoredRecordRow(Base, TimestampMixin):
    __tablename__ = "stored_records"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    collection: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("record_collections.name", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    fields: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    def __repr__(self) -> str:
        return f"<StoredRecordRow id={self.id} collection={self.collection}>"
