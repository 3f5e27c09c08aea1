"""
Pytest Configuration and Fixtures
Shared fixtures for in-memory backends, a seeded workspace, tokens and the
ASGI client.
"""

from types import SimpleNamespace

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from letter_numbering.domain.state import Workspace
from letter_numbering.services.workspace_service import WorkspaceService
from letter_numbering.stores.base import DirectoryUser
from letter_numbering.stores.factory import Backends
from letter_numbering.stores.memory import MemoryBlobStore, MemoryDirectory, MemoryRecordStore
from main import create_application
from tests.fixtures import (
    ADMIN,
    EDITOR,
    VIEWER,
    auth_headers_for,
    create_access_entry,
    create_company,
    create_letter_record,
    provision_all,
)


@pytest.fixture
def record_store() -> MemoryRecordStore:
    return MemoryRecordStore()


@pytest.fixture
def blob_store() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def directory() -> MemoryDirectory:
    return MemoryDirectory(
        [
            DirectoryUser(id="u1", display_name="Jane Doe", user_principal_name="jane@contoso.com", email="jane@contoso.com"),
            DirectoryUser(id="u2", display_name="Jack Roe", user_principal_name="jack@contoso.com", email="jack.roe@contoso.com"),
            DirectoryUser(id="u3", display_name="Omar Ali", user_principal_name="omar@contoso.com", email="omar@contoso.com"),
        ]
    )


@pytest.fixture
def workspace() -> Workspace:
    return Workspace()


@pytest_asyncio.fixture
async def seeded(record_store, workspace):
    """
    Two companies, one 2024 letter for EASE (sequence 7), and three access
    entries: an Admin, an Editor limited to EASE, and a Viewer limited to
    EASE. The workspace is loaded from the store.
    """
    await provision_all(record_store)
    ease = await create_company(record_store, "East Africa Shipping", "EASE", 1)
    acme = await create_company(record_store, "Acme Trading", "ACME", 100)
    letter = await create_letter_record(
        record_store, ease, "East Africa Shipping", "EASE", 7, 2024,
        letter_date="2024-05-02T00:00:00Z", recipient="Port Authority",
    )
    await create_access_entry(record_store, ADMIN, "Admin")
    await create_access_entry(record_store, EDITOR, "Editor", [ease])
    await create_access_entry(record_store, VIEWER, "Viewer", [ease])
    await WorkspaceService.refresh_all(workspace, record_store)
    return SimpleNamespace(ease=ease, acme=acme, letter=letter)


@pytest_asyncio.fixture
async def async_client(record_store, blob_store, directory, workspace):
    app = create_application(
        backends=Backends(record_store=record_store, blob_store=blob_store, directory=directory),
        initial_workspace=workspace,
    )
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def admin_headers() -> dict:
    return auth_headers_for(ADMIN)


@pytest.fixture
def editor_headers() -> dict:
    return auth_headers_for(EDITOR)


@pytest.fixture
def viewer_headers() -> dict:
    return auth_headers_for(VIEWER)
