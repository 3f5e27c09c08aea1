"""
services/directory_service.py
-----------------------------
User search for the access-grant screens.

Search is a convenience: a failing directory never fails the request, it
just returns no candidates.
"""

from typing import List

from letter_numbering.core.errors import StoreError
from letter_numbering.core.logging import get_logger
from letter_numbering.domain.scope import AccessScope
from letter_numbering.stores.base import DirectoryProvider, DirectoryUser

logger = get_logger(__name__)

MIN_PREFIX_LENGTH = 2
MAX_RESULTS = 25


class DirectoryService:

    @staticmethod
    async def search_users(
        directory: DirectoryProvider,
        scope: AccessScope,
        prefix: str,
        limit: int = 10,
    ) -> List[DirectoryUser]:
        scope.require_admin("search the user directory")
        term = (prefix or "").strip()
        if len(term) < MIN_PREFIX_LENGTH:
            return []
        limit = max(1, min(limit, MAX_RESULTS))
        try:
            return await directory.search_users(term, limit)
        except StoreError as e:
            logger.warning("Failed to search users", prefix=term, error=e.message)
            return []
