"""
domain/allocator.py
-------------------
Sequence Allocator.

Computes the next sequence number for a (company, year) pair from the
letters currently held in the workspace:

    no letters for the pair  → the company's starting number (default 1)
    otherwise                → max(sequence_number) + 1

Nothing is reserved. Two callers computing before either writes get the
same answer; the letter service serialises creations per pair to keep
that from happening inside one process.
"""

from typing import Any, Optional

from letter_numbering.domain.mapping import to_int
from letter_numbering.domain.reference import format_reference
from letter_numbering.domain.scope import AccessScope
from letter_numbering.domain.state import WorkspaceState


def next_sequence(
    state: WorkspaceState,
    scope: AccessScope,
    company_id: Optional[str],
    year: Any,
) -> Optional[int]:
    """Next sequence number, or None when it cannot or must not be computed."""
    year = to_int(year)
    if not company_id or not year:
        return None
    # Never preview numbers for companies the caller cannot see
    if not scope.can_access_company(company_id):
        return None

    sequences = [
        letter.sequence_number or 0
        for letter in state.letters
        if letter.company_id == company_id and letter.year == year
    ]
    if not sequences:
        company = state.company(company_id)
        return (company.starting_number if company else 0) or 1
    return max(max(sequences), 0) + 1


def reference_preview(
    state: WorkspaceState,
    scope: AccessScope,
    company_id: Optional[str],
    year: Any,
) -> str:
    """The reference a new letter would get right now. Advisory only."""
    if not company_id or not scope.can_access_company(company_id):
        return ""
    company = state.company(company_id)
    year = to_int(year)
    if company is None or not year:
        return ""
    sequence = next_sequence(state, scope, company_id, year)
    if not sequence:
        return ""
    return format_reference(company.abbreviation, sequence, year)
