"""
core/errors.py
--------------
Domain error kinds raised by the service layer.

Services never build HTTP responses; main.py maps each kind to a status
code through exception handlers:

  PermissionDenied   → 403
  NotFound           → 404
  ValidationError    → 422
  AllocationError    → 409
  StoreError         → 502   (CollectionNotFound is a StoreError)
  ScopeNotReady      → 503
"""

from typing import Optional


class LetterNumberingError(Exception):
    """Base class for every error the service layer raises on purpose."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class PermissionDenied(LetterNumberingError):
    """Role or company-scope check failed."""


class NotFound(LetterNumberingError):
    """Referenced company, letter or access entry is absent (or out of scope)."""


class ValidationError(LetterNumberingError):
    """A required field is missing or malformed."""


class AllocationError(LetterNumberingError):
    """The next sequence number could not be determined."""


class StoreError(LetterNumberingError):
    """A remote record or blob operation failed."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CollectionNotFound(StoreError):
    """The named collection does not exist yet and must be provisioned."""

    def __init__(self, collection: str) -> None:
        super().__init__(f"List not found: {collection}", status_code=404)
        self.collection = collection


class ScopeNotReady(LetterNumberingError):
    """Access entries have not been loaded, so no scope can be resolved."""
