"""Tests for company, access, dashboard, directory and workspace services"""

from datetime import date

import pytest

from letter_numbering.core.config import settings
from letter_numbering.core.errors import NotFound, PermissionDenied, StoreError, ValidationError
from letter_numbering.domain.entities import Role
from letter_numbering.domain.mapping import COMPANY_COLUMNS, LETTER_COLUMNS, USER_ACCESS_COLUMNS
from letter_numbering.schemas.access import AccessEntryCreate, AccessEntryUpdate
from letter_numbering.schemas.company import CompanyCreate, CompanyUpdate
from letter_numbering.services.access_service import AccessService
from letter_numbering.services.company_service import CompanyService
from letter_numbering.services.dashboard_service import DashboardService
from letter_numbering.services.directory_service import DirectoryService
from letter_numbering.services.workspace_service import WorkspaceService
from letter_numbering.stores.memory import MemoryRecordStore
from tests.fixtures import ADMIN, EDITOR, STRANGER, VIEWER

pytestmark = pytest.mark.unit


class AccessListDown(MemoryRecordStore):
    async def list(self, collection, filter=None, order_by=None):
        if collection == settings.USER_ACCESS_LIST_NAME:
            raise StoreError("Service unavailable", status_code=503)
        return await super().list(collection, filter=filter, order_by=order_by)


class FailingDirectory:
    async def search_users(self, prefix, limit=10):
        raise StoreError("Directory unreachable", status_code=500)


class TestWorkspaceService:
    @pytest.mark.asyncio
    async def test_missing_collections_are_provisioned(self, record_store, workspace):
        errors = await WorkspaceService.refresh_all(workspace, record_store)

        assert errors == {}
        provisioned = [name for op, name in record_store.operations if op == "provision"]
        assert sorted(provisioned) == sorted(
            [settings.COMPANY_LIST_NAME, settings.LETTER_LIST_NAME, settings.USER_ACCESS_LIST_NAME]
        )
        assert record_store.columns(settings.LETTER_LIST_NAME) == [c.name for c in LETTER_COLUMNS]
        assert record_store.columns(settings.COMPANY_LIST_NAME) == [c.name for c in COMPANY_COLUMNS]
        assert record_store.columns(settings.USER_ACCESS_LIST_NAME) == [c.name for c in USER_ACCESS_COLUMNS]
        assert workspace.state.initialized
        assert workspace.state.access_loaded

    @pytest.mark.asyncio
    async def test_empty_access_list_bootstraps_an_admin(self, record_store, workspace):
        await WorkspaceService.refresh_all(workspace, record_store)
        scope = workspace.scope_for(STRANGER, bootstrap_mode=True)
        assert scope.is_admin and scope.bootstrap
        assert not workspace.scope_for(STRANGER, bootstrap_mode=False).is_admin

    @pytest.mark.asyncio
    async def test_unreadable_access_list_is_reported_and_restrictive(self, workspace):
        store = AccessListDown(auto_provision=True)
        errors = await WorkspaceService.refresh_all(workspace, store)

        assert list(errors) == [settings.USER_ACCESS_LIST_NAME]
        assert workspace.state.initialized
        assert workspace.state.access_loaded and workspace.state.access_load_failed
        scope = workspace.scope_for(STRANGER, bootstrap_mode=True)
        assert scope.ready
        assert scope.role == Role.viewer
        assert not scope.bootstrap

    @pytest.mark.asyncio
    async def test_seeded_state(self, seeded, workspace):
        state = workspace.state
        assert [c.abbreviation for c in state.companies] == ["ACME", "EASE"]
        assert [x.reference_number for x in state.letters] == ["EASE/0007/24"]
        assert [e.user_principal_name for e in state.access_entries] == [ADMIN, EDITOR, VIEWER]


class TestCompanyService:
    @pytest.mark.asyncio
    async def test_scoped_reads(self, seeded, workspace):
        editor = workspace.scope_for(EDITOR)
        assert [c.id for c in CompanyService.list_companies(workspace, editor)] == [seeded.ease]
        with pytest.raises(NotFound):
            CompanyService.get_company(workspace, editor, seeded.acme)
        assert CompanyService.list_companies(workspace, workspace.scope_for(STRANGER)) == []

    @pytest.mark.asyncio
    async def test_next_reference(self, seeded, workspace):
        editor = workspace.scope_for(EDITOR)
        assert CompanyService.next_reference(workspace, editor, seeded.ease, 2024).reference_number == "EASE/0008/24"
        assert CompanyService.next_reference(workspace, editor, seeded.ease, 2025).reference_number == "EASE/0001/25"
        admin = workspace.scope_for(ADMIN)
        preview = CompanyService.next_reference(workspace, admin, seeded.acme, 2024)
        assert (preview.sequence_number, preview.reference_number) == (100, "ACME/0100/24")

    @pytest.mark.asyncio
    async def test_add_company_upper_cases_abbreviation(self, seeded, workspace, record_store):
        company = await CompanyService.add_company(
            workspace, record_store, workspace.scope_for(ADMIN),
            CompanyCreate(name="  Northwind ", abbreviation=" nw ", starting_number=50),
        )
        assert (company.name, company.abbreviation, company.starting_number) == ("Northwind", "NW", 50)
        assert workspace.state.company(company.id) == company
        stored = await record_store.list(settings.COMPANY_LIST_NAME, filter={"Abbreviation": "NW"})
        assert stored[0].fields["Title"] == "Northwind"

    @pytest.mark.asyncio
    async def test_blank_abbreviation_is_rejected(self, seeded, workspace, record_store):
        with pytest.raises(ValidationError):
            await CompanyService.add_company(
                workspace, record_store, workspace.scope_for(ADMIN),
                CompanyCreate(name="Northwind", abbreviation="   "),
            )

    @pytest.mark.asyncio
    async def test_update_is_partial(self, seeded, workspace, record_store):
        company = await CompanyService.update_company(
            workspace, record_store, workspace.scope_for(ADMIN), seeded.ease,
            CompanyUpdate(abbreviation="ease2"),
        )
        assert (company.name, company.abbreviation) == ("East Africa Shipping", "EASE2")
        assert workspace.state.company(seeded.ease).abbreviation == "EASE2"

    @pytest.mark.asyncio
    async def test_delete(self, seeded, workspace, record_store):
        await CompanyService.delete_company(workspace, record_store, workspace.scope_for(ADMIN), seeded.acme)
        assert workspace.state.company(seeded.acme) is None
        with pytest.raises(NotFound):
            await CompanyService.delete_company(workspace, record_store, workspace.scope_for(ADMIN), seeded.acme)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("principal", [EDITOR, VIEWER])
    async def test_only_admins_mutate_companies(self, principal, seeded, workspace, record_store):
        scope = workspace.scope_for(principal)
        before = list(record_store.operations)
        with pytest.raises(PermissionDenied):
            await CompanyService.add_company(
                workspace, record_store, scope, CompanyCreate(name="Northwind", abbreviation="NW")
            )
        with pytest.raises(PermissionDenied):
            await CompanyService.update_company(
                workspace, record_store, scope, seeded.ease, CompanyUpdate(name="x")
            )
        with pytest.raises(PermissionDenied):
            await CompanyService.delete_company(workspace, record_store, scope, seeded.ease)
        assert record_store.operations == before


class TestAccessService:
    @pytest.mark.asyncio
    async def test_add_entry_normalises_ids_and_derives_names(self, seeded, workspace, record_store):
        entry = await AccessService.add_user_access_entry(
            workspace, record_store, workspace.scope_for(ADMIN),
            AccessEntryCreate(user_principal_name="jane@contoso.com", role="editor", company_ids=[f" {seeded.ease} ", " ", "999"]),
        )
        assert entry.role == Role.editor
        assert entry.company_ids == [seeded.ease, "999"]
        assert entry.company_names == ["East Africa Shipping"]
        stored = await record_store.list(settings.USER_ACCESS_LIST_NAME, filter={"UserPrincipalName": "jane@contoso.com"})
        assert stored[0].fields["CompanyIds"] == f"{seeded.ease},999"

        scope = workspace.scope_for("Jane@Contoso.com")
        assert scope.can_edit_letters
        assert scope.can_access_company(seeded.ease)
        assert not scope.can_access_company(seeded.acme)

    @pytest.mark.asyncio
    async def test_update_keeps_company_ids_when_omitted(self, seeded, workspace, record_store):
        editor_entry = next(e for e in workspace.state.access_entries if e.user_principal_name == EDITOR)
        entry = await AccessService.update_user_access_entry(
            workspace, record_store, workspace.scope_for(ADMIN), editor_entry.id,
            AccessEntryUpdate(role="Viewer"),
        )
        assert entry.role == Role.viewer
        assert entry.company_ids == [seeded.ease]
        assert not workspace.scope_for(EDITOR).can_edit_letters

    @pytest.mark.asyncio
    async def test_newer_grant_wins_before_and_after_refresh(self, seeded, workspace, record_store):
        await AccessService.add_user_access_entry(
            workspace, record_store, workspace.scope_for(ADMIN),
            AccessEntryCreate(user_principal_name=EDITOR, role="Viewer", company_ids=[seeded.ease]),
        )
        assert workspace.scope_for(EDITOR).role == Role.viewer

        await WorkspaceService.refresh_all(workspace, record_store)
        assert workspace.scope_for(EDITOR).role == Role.viewer
        assert [e.role for e in workspace.state.access_entries if e.user_principal_name == EDITOR] == [
            Role.editor,
            Role.viewer,
        ]

    @pytest.mark.asyncio
    async def test_empty_company_list_grants_every_company(self, seeded, workspace, record_store):
        viewer_entry = next(e for e in workspace.state.access_entries if e.user_principal_name == VIEWER)
        await AccessService.update_user_access_entry(
            workspace, record_store, workspace.scope_for(ADMIN), viewer_entry.id,
            AccessEntryUpdate(company_ids=[]),
        )
        assert workspace.scope_for(VIEWER).can_access_company(seeded.acme)

    @pytest.mark.asyncio
    async def test_delete_entry(self, seeded, workspace, record_store):
        viewer_entry = next(e for e in workspace.state.access_entries if e.user_principal_name == VIEWER)
        await AccessService.delete_user_access_entry(workspace, record_store, workspace.scope_for(ADMIN), viewer_entry.id)
        scope = workspace.scope_for(VIEWER)
        assert scope.ready and scope.allowed_company_ids == frozenset()

    @pytest.mark.asyncio
    async def test_non_admins_are_denied(self, seeded, workspace, record_store):
        editor = workspace.scope_for(EDITOR)
        before = list(record_store.operations)
        with pytest.raises(PermissionDenied):
            AccessService.list_access_entries(workspace, editor)
        with pytest.raises(PermissionDenied):
            await AccessService.add_user_access_entry(
                workspace, record_store, editor, AccessEntryCreate(user_principal_name="me@contoso.com", role="Admin")
            )
        assert record_store.operations == before

    def test_invalid_role_is_rejected_by_the_schema(self):
        with pytest.raises(ValueError):
            AccessEntryCreate(user_principal_name="jane@contoso.com", role="Owner")


class TestDashboardService:
    @pytest.mark.asyncio
    async def test_admin_dashboard(self, seeded, workspace):
        board = DashboardService.dashboard(workspace, workspace.scope_for(ADMIN), today=date(2024, 7, 1))
        assert board.total_letters == 1
        assert board.letters_this_year == 1
        assert board.unique_recipients == 1
        assert [(p.abbreviation, p.next_reference) for p in board.next_references] == [
            ("ACME", "ACME/0100/24"),
            ("EASE", "EASE/0008/24"),
        ]
        assert [x.reference_number for x in board.latest_letters] == ["EASE/0007/24"]

    @pytest.mark.asyncio
    async def test_dashboard_is_scoped(self, seeded, workspace):
        board = DashboardService.dashboard(workspace, workspace.scope_for(STRANGER), today=date(2024, 7, 1))
        assert board.total_letters == 0
        assert board.next_references == []

    @pytest.mark.asyncio
    async def test_year_options_always_offer_the_current_year(self, seeded, workspace):
        scope = workspace.scope_for(VIEWER)
        assert DashboardService.year_options(workspace, scope, today=date(2025, 2, 1)) == [2025, 2024]
        assert DashboardService.year_options(workspace, scope, today=date(2024, 2, 1)) == [2024]


class TestDirectoryService:
    @pytest.mark.asyncio
    async def test_prefix_search(self, seeded, workspace, directory):
        admin = workspace.scope_for(ADMIN)
        users = await DirectoryService.search_users(directory, admin, "ja")
        assert [u.display_name for u in users] == ["Jane Doe", "Jack Roe"]
        assert await DirectoryService.search_users(directory, admin, "j") == []
        assert len(await DirectoryService.search_users(directory, admin, "ja", limit=1)) == 1

    @pytest.mark.asyncio
    async def test_directory_failures_return_nothing(self, seeded, workspace):
        assert await DirectoryService.search_users(FailingDirectory(), workspace.scope_for(ADMIN), "jane") == []

    @pytest.mark.asyncio
    async def test_only_admins_search(self, seeded, workspace, directory):
        with pytest.raises(PermissionDenied):
            await DirectoryService.search_users(directory, workspace.scope_for(EDITOR), "ja")
