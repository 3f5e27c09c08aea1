"""
create_tables.py
----------------
One-shot script to provision the three collections (companies, letters,
user access) in the configured record store, with their column schemas.

For RECORD_STORE_BACKEND=database this creates the tables; for graph it
creates any SharePoint list that does not exist yet and adds missing
columns to the ones that do. Safe to run repeatedly.

Usage:
    python create_tables.py
"""

import asyncio

from letter_numbering.core.config import settings
from letter_numbering.core.errors import CollectionNotFound
from letter_numbering.core.logging import configure_logging
from letter_numbering.domain.mapping import COMPANY_COLUMNS, LETTER_COLUMNS, USER_ACCESS_COLUMNS
from letter_numbering.stores.factory import build_backends

COLLECTIONS = (
    (settings.COMPANY_LIST_NAME, COMPANY_COLUMNS),
    (settings.LETTER_LIST_NAME, LETTER_COLUMNS),
    (settings.USER_ACCESS_LIST_NAME, USER_ACCESS_COLUMNS),
)


async def create_all_collections() -> None:
    configure_logging()
    backends = build_backends(settings)
    store = backends.record_store
    try:
        for name, columns in COLLECTIONS:
            try:
                await store.list(name)
            except CollectionNotFound:
                await store.provision(name, columns)
            await store.ensure_columns(name, columns)
            print(f"✅  {name} ready.")
    finally:
        await backends.aclose()


if __name__ == "__main__":
    asyncio.run(create_all_collections())
