"""
domain/scope.py
---------------
Access Scope Resolver.

Derives, for one principal, an effective role and the set of companies
that principal may see, from the loaded access entries:

  1. Entries not loaded yet      → not ready: Viewer, no companies.
  2. Entry matches the principal → that entry's role.
  3. No match, entries exist     → Viewer with no companies (default deny).
  4. No match, no entries at all → Admin, but only in bootstrap mode;
                                   otherwise treated like rule 3.

Company scope: Admins are unrestricted (None). A matched non-admin entry
with company ids is limited to them; an empty id list means all companies.

Every read and every mutation in the service layer goes through the
AccessScope produced here.
"""

from typing import FrozenSet, Iterable, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from letter_numbering.core.errors import PermissionDenied, ScopeNotReady
from letter_numbering.domain.entities import Company, Letter, Role, UserAccessEntry


class AccessScope(BaseModel):
    model_config = ConfigDict(frozen=True)

    principal: str
    role: Role = Role.viewer
    ready: bool = False
    # None → every company is visible; a set (possibly empty) → only those ids
    allowed_company_ids: Optional[FrozenSet[str]] = frozenset()
    matched_entry: Optional[UserAccessEntry] = None
    bootstrap: bool = False

    # ── Capabilities ──────────────────────────────────────────────────────────

    @property
    def is_admin(self) -> bool:
        return self.ready and self.role == Role.admin

    @property
    def can_edit_letters(self) -> bool:
        return self.ready and self.role in (Role.admin, Role.editor)

    @property
    def can_manage_companies(self) -> bool:
        return self.is_admin

    @property
    def is_unrestricted(self) -> bool:
        return self.allowed_company_ids is None

    def can_access_company(self, company_id: Optional[str]) -> bool:
        if not self.ready or not company_id:
            return False
        if self.allowed_company_ids is None:
            return True
        return str(company_id).strip() in self.allowed_company_ids

    # ── Filters ───────────────────────────────────────────────────────────────

    def filter_companies(self, companies: Iterable[Company]) -> List[Company]:
        return [c for c in companies if self.can_access_company(c.id)]

    def filter_letters(self, letters: Iterable[Letter]) -> List[Letter]:
        return [letter for letter in letters if self.can_access_company(letter.company_id)]

    # ── Guards ────────────────────────────────────────────────────────────────

    def require_ready(self) -> None:
        if not self.ready:
            raise ScopeNotReady("Access entries are still loading; try again shortly")

    def require_edit_letters(self, action: str = "edit letters") -> None:
        self.require_ready()
        if not self.can_edit_letters:
            raise PermissionDenied(f"You do not have permission to {action}.")

    def require_manage_companies(self, action: str = "manage companies") -> None:
        self.require_ready()
        if not self.can_manage_companies:
            raise PermissionDenied(f"You do not have permission to {action}.")

    def require_admin(self, action: str = "manage user access entries") -> None:
        self.require_ready()
        if not self.is_admin:
            raise PermissionDenied(f"Only admins can {action}.")

    def require_company(self, company_id: Optional[str], message: str) -> None:
        self.require_ready()
        if not self.can_access_company(company_id):
            raise PermissionDenied(message)


def find_entry(
    entries: Sequence[UserAccessEntry], principal: str
) -> Optional[UserAccessEntry]:
    """Case-insensitive principal match; the last matching entry wins."""
    key = (principal or "").strip().lower()
    if not key:
        return None
    match = None
    for entry in entries:
        if entry.principal_key == key:
            match = entry
    return match


def resolve_scope(
    entries: Sequence[UserAccessEntry],
    principal: str,
    access_loaded: bool,
    bootstrap_mode: bool = True,
) -> AccessScope:
    principal = (principal or "").strip().lower()

    if not access_loaded:
        return AccessScope(principal=principal, ready=False)

    entry = find_entry(entries, principal)

    if entry is None:
        if not entries and bootstrap_mode:
            return AccessScope(
                principal=principal,
                role=Role.admin,
                ready=True,
                allowed_company_ids=None,
                bootstrap=True,
            )
        return AccessScope(
            principal=principal,
            role=Role.viewer,
            ready=True,
            allowed_company_ids=frozenset(),
        )

    if entry.role == Role.admin:
        allowed = None
    else:
        ids = frozenset(cid.strip() for cid in entry.company_ids if cid and cid.strip())
        allowed = ids or None

    return AccessScope(
        principal=principal,
        role=entry.role,
        ready=True,
        allowed_company_ids=allowed,
        matched_entry=entry,
    )
