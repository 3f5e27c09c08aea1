"""
api/routes/workspace.py
-----------------------
Caller identity, workspace refresh and the dashboard.

GET  /me                 — Resolved role, capabilities and company scope
POST /workspace/refresh  — Reload companies, letters and access entries
GET  /dashboard          — Summary figures for the caller's scope
"""

from fastapi import APIRouter

from letter_numbering.dependencies import RecordStoreDep, ScopeDep, WorkspaceDep
from letter_numbering.schemas.workspace import DashboardRead, MeRead, WorkspaceStatus
from letter_numbering.services.dashboard_service import DashboardService
from letter_numbering.services.workspace_service import WorkspaceService

router = APIRouter(tags=["Workspace"])


@router.get("/me", response_model=MeRead, summary="Current principal and access scope")
async def me(scope: ScopeDep) -> MeRead:
    """
    Never fails on a scope that is still loading: ready=false tells the
    client to wait before offering any action.
    """
    return MeRead(
        principal=scope.principal,
        role=scope.role,
        ready=scope.ready,
        is_admin=scope.is_admin,
        can_edit_letters=scope.can_edit_letters,
        can_manage_companies=scope.can_manage_companies,
        allowed_company_ids=(
            None if scope.allowed_company_ids is None else sorted(scope.allowed_company_ids)
        ),
        bootstrap=scope.bootstrap,
    )


@router.post(
    "/workspace/refresh",
    response_model=WorkspaceStatus,
    summary="Reload every collection from the record store",
)
async def refresh_workspace(
    workspace: WorkspaceDep,
    store: RecordStoreDep,
    scope: ScopeDep,
) -> WorkspaceStatus:
    """
    Open to any authenticated caller, including one whose scope is not ready
    yet: a failed access-list load is recovered from here.
    """
    errors = await WorkspaceService.refresh_all(workspace, store, requested_by=scope.principal)
    state = workspace.state
    return WorkspaceStatus(
        version=state.version,
        initialized=state.initialized,
        access_loaded=state.access_loaded,
        companies=len(state.companies),
        letters=len(state.letters),
        access_entries=len(state.access_entries),
        errors=errors,
    )


@router.get("/dashboard", response_model=DashboardRead, summary="Dashboard figures")
async def dashboard(workspace: WorkspaceDep, scope: ScopeDep) -> DashboardRead:
    return DashboardService.dashboard(workspace, scope)
