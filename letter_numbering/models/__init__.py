"""
models/__init__.py
------------------
Re-export all models so create_tables.py (and Alembic, if added) can
import Base and discover all tables via a single import:

    from letter_numbering.models import Base
"""

from letter_numbering.db.base import Base
from letter_numbering.models.record import RecordCollection, StoredRecordRow

__all__ = ["Base", "RecordCollection", "StoredRecordRow"]
