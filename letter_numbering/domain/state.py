"""
domain/state.py
---------------
Versioned in-memory cache of companies, letters and access entries.

Actions are pure data. reduce() holds all state-transition logic and never
mutates its input. Workspace.dispatch() is the only way the cache changes:
it runs reduce() and bumps the version, so readers always see a whole
state, never a half-applied one.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple, Union

from letter_numbering.domain.entities import Attachment, Company, Letter, UserAccessEntry
from letter_numbering.domain.scope import AccessScope, resolve_scope

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WorkspaceState:
    companies: Tuple[Company, ...] = ()
    letters: Tuple[Letter, ...] = ()
    access_entries: Tuple[UserAccessEntry, ...] = ()
    access_loaded: bool = False
    # Set when the access list could not be read; bootstrap Admin is then withheld
    access_load_failed: bool = False
    initialized: bool = False
    version: int = 0

    def company(self, company_id: str) -> Optional[Company]:
        return next((c for c in self.companies if c.id == company_id), None)

    def letter(self, letter_id: str) -> Optional[Letter]:
        return next((letter for letter in self.letters if letter.id == letter_id), None)

    def access_entry(self, entry_id: str) -> Optional[UserAccessEntry]:
        return next((e for e in self.access_entries if e.id == entry_id), None)


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CompaniesLoaded:
    companies: Tuple[Company, ...]


@dataclass(frozen=True)
class CompanyAdded:
    company: Company


@dataclass(frozen=True)
class CompanyUpdated:
    company: Company


@dataclass(frozen=True)
class CompanyRemoved:
    company_id: str


@dataclass(frozen=True)
class LettersLoaded:
    letters: Tuple[Letter, ...]


@dataclass(frozen=True)
class LetterAdded:
    letter: Letter


@dataclass(frozen=True)
class LetterUpdated:
    letter: Letter


@dataclass(frozen=True)
class LetterAttachmentsLoaded:
    letter_id: str
    attachments: Tuple[Attachment, ...]


@dataclass(frozen=True)
class AccessEntriesLoaded:
    entries: Tuple[UserAccessEntry, ...]


@dataclass(frozen=True)
class AccessEntryAdded:
    entry: UserAccessEntry


@dataclass(frozen=True)
class AccessEntryUpdated:
    entry: UserAccessEntry


@dataclass(frozen=True)
class AccessEntryRemoved:
    entry_id: str


@dataclass(frozen=True)
class AccessMarkedReady:
    load_failed: bool = False


@dataclass(frozen=True)
class Initialized:
    value: bool = True


Action = Union[
    CompaniesLoaded, CompanyAdded, CompanyUpdated, CompanyRemoved,
    LettersLoaded, LetterAdded, LetterUpdated, LetterAttachmentsLoaded,
    AccessEntriesLoaded, AccessEntryAdded, AccessEntryUpdated, AccessEntryRemoved,
    AccessMarkedReady, Initialized,
]


# ---------------------------------------------------------------------------
# Reducer
# ---------------------------------------------------------------------------

def as_aware(value: Optional[datetime]) -> datetime:
    if value is None:
        return _EPOCH
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _sorted_companies(companies) -> Tuple[Company, ...]:
    return tuple(sorted(companies, key=lambda c: c.name.casefold()))


def _sorted_letters(letters) -> Tuple[Letter, ...]:
    # Newest letter date first; creation time breaks ties
    return tuple(
        sorted(
            letters,
            key=lambda letter: (as_aware(letter.sort_date), as_aware(letter.created_at)),
            reverse=True,
        )
    )


def _keep_loaded_attachments(previous: Tuple[Letter, ...], fresh: Tuple[Letter, ...]):
    """A reload must not forget attachment lists fetched earlier."""
    loaded = {letter.id: letter for letter in previous if letter.attachments_loaded}
    for letter in fresh:
        known = loaded.get(letter.id)
        if known is not None and not letter.attachments_loaded:
            yield letter.model_copy(
                update={"attachments": known.attachments, "attachments_loaded": True}
            )
        else:
            yield letter


def reduce(state: WorkspaceState, action: Action) -> WorkspaceState:
    """Return the state that results from applying *action* to *state*."""
    if isinstance(action, CompaniesLoaded):
        return replace(state, companies=_sorted_companies(action.companies))

    if isinstance(action, CompanyAdded):
        return replace(state, companies=_sorted_companies(state.companies + (action.company,)))

    if isinstance(action, CompanyUpdated):
        return replace(
            state,
            companies=_sorted_companies(
                action.company if c.id == action.company.id else c for c in state.companies
            ),
        )

    if isinstance(action, CompanyRemoved):
        return replace(
            state,
            companies=tuple(c for c in state.companies if c.id != action.company_id),
        )

    if isinstance(action, LettersLoaded):
        return replace(
            state,
            letters=_sorted_letters(_keep_loaded_attachments(state.letters, action.letters)),
        )

    if isinstance(action, LetterAdded):
        others = tuple(letter for letter in state.letters if letter.id != action.letter.id)
        return replace(state, letters=_sorted_letters(others + (action.letter,)))

    if isinstance(action, LetterUpdated):
        return replace(
            state,
            letters=_sorted_letters(
                action.letter if letter.id == action.letter.id else letter for letter in state.letters
            ),
        )

    if isinstance(action, LetterAttachmentsLoaded):
        return replace(
            state,
            letters=tuple(
                letter.model_copy(
                    update={"attachments": list(action.attachments), "attachments_loaded": True}
                )
                if letter.id == action.letter_id
                else letter
                for letter in state.letters
            ),
        )

    if isinstance(action, AccessEntriesLoaded):
        return replace(
            state,
            access_entries=tuple(action.entries),
            access_loaded=True,
            access_load_failed=False,
        )

    if isinstance(action, AccessEntryAdded):
        return replace(state, access_entries=state.access_entries + (action.entry,))

    if isinstance(action, AccessEntryUpdated):
        return replace(
            state,
            access_entries=tuple(
                action.entry if e.id == action.entry.id else e for e in state.access_entries
            ),
        )

    if isinstance(action, AccessEntryRemoved):
        return replace(
            state,
            access_entries=tuple(e for e in state.access_entries if e.id != action.entry_id),
        )

    if isinstance(action, AccessMarkedReady):
        return replace(state, access_loaded=True, access_load_failed=action.load_failed)

    if isinstance(action, Initialized):
        return replace(state, initialized=action.value)

    raise ValueError(f"Unknown action: {type(action).__name__}")


# ---------------------------------------------------------------------------
# Owner
# ---------------------------------------------------------------------------

class Workspace:
    """
    Owns the current WorkspaceState for the process.

    Shared by every request. Only dispatch() replaces the state; callers
    hold on to a snapshot (workspace.state) for the duration of a read.
    """

    def __init__(self, state: Optional[WorkspaceState] = None) -> None:
        self._state = state or WorkspaceState()
        self._allocation_locks: Dict[Tuple[str, int], asyncio.Lock] = {}

    @property
    def state(self) -> WorkspaceState:
        return self._state

    @property
    def version(self) -> int:
        return self._state.version

    def dispatch(self, action: Action) -> WorkspaceState:
        new_state = reduce(self._state, action)
        self._state = replace(new_state, version=self._state.version + 1)
        return self._state

    def scope_for(self, principal: str, bootstrap_mode: bool = True) -> AccessScope:
        state = self._state
        return resolve_scope(
            state.access_entries,
            principal,
            access_loaded=state.access_loaded,
            bootstrap_mode=bootstrap_mode and not state.access_load_failed,
        )

    def allocation_lock(self, company_id: str, year: int) -> asyncio.Lock:
        """One lock per (company, year): creations for that pair run one at a time."""
        key = (company_id, int(year))
        lock = self._allocation_locks.get(key)
        if lock is None:
            lock = self._allocation_locks[key] = asyncio.Lock()
        return lock
