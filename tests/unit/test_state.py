"""Tests for the workspace reducer and its owner"""

from datetime import datetime, timezone

import pytest

from letter_numbering.domain.entities import Attachment, Company, Letter, Role, UserAccessEntry
from letter_numbering.domain.state import (
    AccessEntriesLoaded,
    AccessEntryAdded,
    AccessEntryRemoved,
    AccessMarkedReady,
    CompaniesLoaded,
    CompanyAdded,
    CompanyRemoved,
    CompanyUpdated,
    Initialized,
    LetterAdded,
    LetterAttachmentsLoaded,
    LettersLoaded,
    Workspace,
    WorkspaceState,
    reduce,
)

pytestmark = pytest.mark.unit


def letter(id, day, created_hour=0, **extra):
    return Letter(
        id=id,
        reference_number=f"EASE/{int(id[1:]):04d}/24",
        company_id="c1",
        sequence_number=int(id[1:]),
        year=2024,
        letter_date=datetime(2024, 1, day, tzinfo=timezone.utc),
        created_at=datetime(2024, 1, day, created_hour, tzinfo=timezone.utc),
        **extra,
    )


class TestReducer:
    def test_companies_sorted_by_name(self):
        state = reduce(
            WorkspaceState(),
            CompaniesLoaded((Company(id="2", name="zeta", abbreviation="Z"), Company(id="1", name="Alpha", abbreviation="A"))),
        )
        state = reduce(state, CompanyAdded(Company(id="3", name="Mid", abbreviation="M")))
        assert [c.name for c in state.companies] == ["Alpha", "Mid", "zeta"]

    def test_company_update_and_remove(self):
        state = WorkspaceState(companies=(Company(id="1", name="Alpha", abbreviation="A"),))
        state = reduce(state, CompanyUpdated(Company(id="1", name="Alpha", abbreviation="AL", starting_number=5)))
        assert state.company("1").abbreviation == "AL"
        state = reduce(state, CompanyRemoved("1"))
        assert state.companies == ()

    def test_letters_newest_first(self):
        state = reduce(WorkspaceState(), LettersLoaded((letter("l1", 3), letter("l2", 9), letter("l3", 5))))
        assert [x.id for x in state.letters] == ["l2", "l3", "l1"]

    def test_creation_time_breaks_letter_date_ties(self):
        state = reduce(WorkspaceState(), LettersLoaded((letter("l1", 3, created_hour=1), letter("l2", 3, created_hour=7))))
        assert [x.id for x in state.letters] == ["l2", "l1"]

    def test_added_letter_replaces_same_id(self):
        state = reduce(WorkspaceState(), LettersLoaded((letter("l1", 3),)))
        state = reduce(state, LetterAdded(letter("l1", 3, subject="again")))
        assert len(state.letters) == 1
        assert state.letters[0].subject == "again"

    def test_reload_keeps_attachments_already_fetched(self):
        attachment = Attachment(id="a", name="EASE-0001-24.pdf", path="EASE/EASE-0001-24.pdf")
        state = reduce(WorkspaceState(), LettersLoaded((letter("l1", 3),)))
        state = reduce(state, LetterAttachmentsLoaded("l1", (attachment,)))
        state = reduce(state, LettersLoaded((letter("l1", 3),)))
        assert state.letter("l1").attachments_loaded
        assert state.letter("l1").attachments == [attachment]

    def test_access_entries(self):
        first = UserAccessEntry(id="1", user_principal_name="a@x.com", role=Role.admin)
        second = UserAccessEntry(id="2", user_principal_name="b@x.com")
        state = reduce(WorkspaceState(), AccessEntriesLoaded((first,)))
        assert state.access_loaded
        state = reduce(state, AccessEntryAdded(second))
        assert [e.id for e in state.access_entries] == ["1", "2"]
        state = reduce(state, AccessEntryRemoved("1"))
        assert [e.id for e in state.access_entries] == ["2"]

    def test_failed_access_load_is_flagged_until_a_successful_load(self):
        state = reduce(WorkspaceState(), AccessMarkedReady(load_failed=True))
        assert state.access_loaded and state.access_load_failed
        state = reduce(state, AccessEntriesLoaded(()))
        assert not state.access_load_failed

    def test_reducer_does_not_mutate_input(self):
        before = WorkspaceState()
        after = reduce(before, Initialized())
        assert not before.initialized
        assert after.initialized

    def test_unknown_action(self):
        with pytest.raises(ValueError):
            reduce(WorkspaceState(), object())


class TestWorkspace:
    def test_dispatch_bumps_version(self):
        workspace = Workspace()
        workspace.dispatch(Initialized())
        workspace.dispatch(AccessEntriesLoaded(()))
        assert workspace.version == 2
        assert workspace.state.initialized

    def test_failed_access_load_withholds_bootstrap_admin(self):
        workspace = Workspace()
        workspace.dispatch(AccessMarkedReady(load_failed=True))
        scope = workspace.scope_for("a@x.com", bootstrap_mode=True)
        assert scope.ready
        assert scope.role == Role.viewer
        assert scope.allowed_company_ids == frozenset()

    def test_allocation_lock_per_company_and_year(self):
        workspace = Workspace()
        assert workspace.allocation_lock("c1", 2024) is workspace.allocation_lock("c1", "2024")
        assert workspace.allocation_lock("c1", 2024) is not workspace.allocation_lock("c1", 2025)
